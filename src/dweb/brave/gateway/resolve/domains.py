"""Unstoppable Domains resolution API client.

Resolves ``.brave`` lookup keys to their domain records. The record is returned verbatim;
deciding what a record means is left to ``dweb.brave.gateway.resolve.records``.
"""

import logging
from time import time
from typing import Optional

from aiohttp import ClientSession
import sentry_sdk

from dweb.brave.gateway.app.metrics import MetricsClient
from dweb.brave.gateway.errors import ResolutionException
from dweb.brave.gateway.resolve.cache import ResolutionCache
from dweb.brave.gateway.resolve.records import ResolutionRecord

logger = logging.getLogger(__name__)


def domain_resolution_url(api_url: str, lookup_key: str) -> str:
    return f"{api_url.rstrip('/')}/resolve/domains/{lookup_key}"


async def resolve_domain(
    session: ClientSession,
    metrics_client: MetricsClient,
    api_url: str,
    api_key: Optional[str],
    lookup_key: str,
) -> ResolutionRecord:
    """Query the resolution service for a single domain.

    Performs exactly one request; retries are not attempted at this layer.

    Args:
        session: HTTP client session
        metrics_client: Metrics client for upstream timings
        api_url: Base URL of the resolution service
        api_key: Bearer credential for the resolution service
        lookup_key: Domain to resolve, e.g. ``name.brave``

    Returns:
        ResolutionRecord for the domain

    Raises:
        ResolutionException: If the credential is missing, the service answers with a
            non-success status, or the response body cannot be decoded
    """
    if not api_key:
        logger.error("Resolution API key not configured")
        raise ResolutionException.missing_api_key()

    url = domain_resolution_url(api_url, lookup_key)
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    start_time = time()
    status = 0
    try:
        async with session.get(url, headers=headers) as resp:
            status = resp.status
            logger.info("Resolution API status %s for %s", resp.status, lookup_key)

            if resp.status < 200 or resp.status >= 300:
                body = await resp.text()
                logger.warning("Resolution API error for %s: %s", lookup_key, body)
                raise ResolutionException.upstream_status(
                    resp.status, resp.reason, body
                )

            try:
                body = await resp.json(content_type=None)
                return ResolutionRecord.from_response(body)
            except ValueError as e:
                sentry_sdk.capture_exception(e)
                raise ResolutionException.malformed_response(str(e)) from e
    finally:
        metrics_client.timer(
            "gateway.resolve.upstream.time",
            time() - start_time,
            tag_dict={"status": status},
        )


async def cached_resolve_domain(
    session: ClientSession,
    metrics_client: MetricsClient,
    cache: ResolutionCache,
    api_url: str,
    api_key: Optional[str],
    lookup_key: str,
) -> ResolutionRecord:
    """Return the cached record for a domain, resolving and caching it on a miss.

    Cache consultation never suspends. Only successful resolutions are cached.
    """
    record = cache.get(lookup_key)
    if record is not None:
        logger.info("Cache hit for %s", lookup_key)
        metrics_client.increment("gateway.resolve.cache.hit", 1)
        return record

    logger.info("Cache miss for %s, querying resolution API", lookup_key)
    metrics_client.increment("gateway.resolve.cache.miss", 1)

    record = await resolve_domain(session, metrics_client, api_url, api_key, lookup_key)
    cache.put(lookup_key, record)
    return record
