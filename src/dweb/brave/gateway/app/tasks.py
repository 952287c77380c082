import asyncio
import logging
from typing import NoReturn

from aiohttp import web

from dweb.brave.gateway.app.config import (
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ResolutionCacheAppKey,
)

logger = logging.getLogger(__name__)


async def tick_health_task(app: web.Application, interval: float = 30) -> NoReturn:
    """
    Tick the health gauge every interval, reducing the failure count by 1 each time.
    """

    logger.info("Starting health gauge task")

    health_gauge = app[HealthGaugeAppKey]
    while True:
        await health_gauge.tick()
        await asyncio.sleep(interval)


async def cache_metrics_task(app: web.Application, interval: float = 60) -> NoReturn:
    """
    Report the resolution cache size and health gauge value every interval.
    """

    logger.info("Starting cache metrics task")

    cache = app[ResolutionCacheAppKey]
    health_gauge = app[HealthGaugeAppKey]
    metrics_client = app[MetricsClientAppKey]
    while True:
        metrics_client.gauge("gateway.resolve.cache.size", len(cache))
        metrics_client.gauge("gateway.health.value", health_gauge.value)
        await asyncio.sleep(interval)
