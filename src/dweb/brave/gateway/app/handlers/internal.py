import logging
from typing import Any, Dict

from aiohttp import web
import sentry_sdk

from dweb.brave.gateway.app.config import (
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ResolutionCacheAppKey,
    SessionAppKey,
    SettingsAppKey,
)
from dweb.brave.gateway.app.handlers.helpers import error_cause
from dweb.brave.gateway.errors import GatewayException
from dweb.brave.gateway.resolve.domains import cached_resolve_domain
from dweb.brave.gateway.resolve.hostname import HostnameType, parse_hostname
from dweb.brave.gateway.resolve.records import interpret_record

logger = logging.getLogger(__name__)


async def handle_internal_ready(request: web.Request):
    snapshot = await request.app[HealthGaugeAppKey].snapshot()
    return web.json_response(snapshot, status=200 if snapshot["healthy"] else 503)


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)


async def handle_internal_resolve(request: web.Request):
    """
    Describe how each ``hostname`` query parameter resolves, without fetching content.

    Uses the same cache and resolver as the pipeline, so a lookup here warms the cache.
    """
    hostnames = request.query.getall("hostname", [])
    if len(hostnames) == 0:
        return web.json_response([])

    settings = request.app[SettingsAppKey]
    http_session = request.app[SessionAppKey]
    cache = request.app[ResolutionCacheAppKey]
    metrics_client = request.app[MetricsClientAppKey]
    health_gauge = request.app[HealthGaugeAppKey]

    results = []
    for hostname in hostnames:
        result: Dict[str, Any] = {"hostname": hostname}
        try:
            parsed = parse_hostname(hostname)
            result["type"] = parsed.hostname_type.name
            if parsed.hostname_type == HostnameType.domain:
                lookup_key = str(parsed.lookup_key)
                record = await cached_resolve_domain(
                    http_session,
                    metrics_client,
                    cache,
                    settings.resolution_api_url,
                    settings.unstoppable_api_key,
                    lookup_key,
                )
                outcome = interpret_record(record)
                result["lookup_key"] = lookup_key
                result["outcome"] = outcome.outcome_type.name
                result["value"] = outcome.value
                result["record"] = outcome.record_name
        except GatewayException as e:
            logger.info("Resolve failed for %s: %s", hostname, e.detail)
            result["error"] = e.message
            result["status"] = e.status
        except Exception as e:
            logger.exception("Server error resolving %s", hostname)
            sentry_sdk.capture_exception(e)
            await health_gauge.record_failure(type(e).__name__)
            result["error"] = f"Server error: {error_cause(e)}"
            result["status"] = 500
        results.append(result)

    return web.json_response(results)
