"""The request pipeline.

Parse the hostname, resolve it through the cache, interpret the record, then either redirect
or fetch and serve the IPFS content. ``serve_hostname`` is the only place failures are turned
into responses: every path through it yields a response.
"""

import logging
from typing import Optional

from aiohttp import ClientSession, web
import sentry_sdk

from dweb.brave.gateway.app.config import (
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ResolutionCacheAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
)
from dweb.brave.gateway.app.handlers.helpers import (
    content_response,
    error_response,
    not_found_response,
    redirect_response,
    server_error_response,
    welcome_response,
)
from dweb.brave.gateway.app.health import HealthGauge
from dweb.brave.gateway.app.metrics import MetricsClient
from dweb.brave.gateway.errors import GatewayException, ResolutionException
from dweb.brave.gateway.ipfs.content_type import resolve_content_type
from dweb.brave.gateway.ipfs.fetch import fetch_content
from dweb.brave.gateway.resolve.cache import ResolutionCache
from dweb.brave.gateway.resolve.domains import cached_resolve_domain
from dweb.brave.gateway.resolve.hostname import HostnameType, parse_hostname
from dweb.brave.gateway.resolve.records import OutcomeType, interpret_record

logger = logging.getLogger(__name__)


def request_hostname(request: web.Request) -> str:
    """Return the request's Host without port, case preserved."""
    host = request.host
    if host.startswith("["):
        return host[: host.find("]") + 1]
    return host.split(":", 1)[0]


async def _serve_hostname(
    hostname: str,
    settings: Settings,
    http_session: ClientSession,
    cache: ResolutionCache,
    metrics_client: MetricsClient,
) -> web.Response:
    parsed = parse_hostname(hostname)
    if parsed.hostname_type == HostnameType.welcome:
        metrics_client.increment("gateway.pipeline.outcome", 1, tag_dict={"outcome": "welcome"})
        return welcome_response()

    lookup_key = str(parsed.lookup_key)
    logger.info("Parsed hostname: %s, querying for: %s", hostname, lookup_key)

    record = await cached_resolve_domain(
        http_session,
        metrics_client,
        cache,
        settings.resolution_api_url,
        settings.unstoppable_api_key,
        lookup_key,
    )

    outcome = interpret_record(record)
    metrics_client.increment(
        "gateway.pipeline.outcome", 1, tag_dict={"outcome": outcome.outcome_type.name}
    )

    if outcome.outcome_type == OutcomeType.redirect:
        logger.info("Redirecting %s to: %s", lookup_key, outcome.value)
        return redirect_response(str(outcome.value))

    if outcome.outcome_type == OutcomeType.not_found:
        logger.info("No content identifier for %s, records: %s", lookup_key, record.records)
        return not_found_response()

    cid = str(outcome.value)
    logger.info("Resolved IPFS hash for %s from %s: %s", lookup_key, outcome.record_name, cid)

    content = await fetch_content(
        http_session,
        metrics_client,
        cid,
        settings.ipfs_gateways,
        retries=settings.gateway_retries,
        retry_delay_ms=settings.gateway_retry_delay_ms,
        race_strategy=settings.gateway_race_strategy,
    )
    logger.info(
        "Serving %d bytes from %s as %s",
        len(content.body),
        content.url,
        resolve_content_type(content.content_type, content.url),
    )
    return content_response(content)


async def serve_hostname(
    hostname: str,
    settings: Settings,
    http_session: ClientSession,
    cache: ResolutionCache,
    metrics_client: MetricsClient,
    health_gauge: Optional[HealthGauge] = None,
) -> web.Response:
    """Run the resolution and delivery pipeline for a request hostname.

    Args:
        hostname: Request hostname, without port
        settings: Application settings
        http_session: HTTP client session for the resolution API and gateways
        cache: Resolution cache shared by every request in the process
        metrics_client: Metrics client
        health_gauge: Gauge raised on unexpected failures

    Returns:
        The response for the hostname, never raising for pipeline failures
    """
    try:
        return await _serve_hostname(hostname, settings, http_session, cache, metrics_client)
    except GatewayException as e:
        logger.warning("Request for %s failed: %s (%s)", hostname, e.message, e.detail)
        metrics_client.increment(
            "gateway.pipeline.error",
            1,
            tag_dict={"exception": type(e).__name__, "status": e.status},
        )
        if isinstance(e, ResolutionException):
            sentry_sdk.capture_exception(e)
        return error_response(e)
    except Exception as e:
        logger.exception("Server error serving %s", hostname)
        sentry_sdk.capture_exception(e)
        metrics_client.increment(
            "gateway.pipeline.error",
            1,
            tag_dict={"exception": type(e).__name__, "status": 500},
        )
        if health_gauge is not None:
            await health_gauge.record_failure(type(e).__name__)
        return server_error_response(e)


async def handle_gateway(request: web.Request) -> web.Response:
    return await serve_hostname(
        request_hostname(request),
        request.app[SettingsAppKey],
        request.app[SessionAppKey],
        request.app[ResolutionCacheAppKey],
        request.app[MetricsClientAppKey],
        request.app[HealthGaugeAppKey],
    )
