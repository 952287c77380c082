import asyncio
import contextlib
import logging
from time import time
from typing import Optional

import aiohttp
from aiohttp import web
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from dweb.brave.gateway.app.config import (
    CacheMetricsTaskAppKey,
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ResolutionCacheAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    TickHealthTaskAppKey,
)
from dweb.brave.gateway.app.handlers.gateway import handle_gateway, request_hostname
from dweb.brave.gateway.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
    handle_internal_resolve,
)
from dweb.brave.gateway.app.health import HealthGauge
from dweb.brave.gateway.app.metrics import MetricsClient, create_metrics_client
from dweb.brave.gateway.app.tasks import cache_metrics_task, tick_health_task
from dweb.brave.gateway.resolve.cache import ResolutionCache
from dweb.brave.gateway.resolve.hostname import is_gateway_hostname

logger = logging.getLogger(__name__)


async def background_tasks(app: web.Application):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logging.info("Starting request: %s %s", params.method, params.url)

        async def on_request_end(
            session, trace_config_ctx, params: aiohttp.TraceRequestEndParams
        ):
            logging.info(
                "Ending request: %s %s %s",
                params.method,
                params.url,
                params.response.status,
            )

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=settings.upstream_timeout),
        trace_configs=[trace_config],
    )

    await app[MetricsClientAppKey].connect()

    logger.info("Startup complete")

    app[TickHealthTaskAppKey] = asyncio.create_task(
        tick_health_task(app, settings.health_tick_interval)
    )
    app[CacheMetricsTaskAppKey] = asyncio.create_task(cache_metrics_task(app))

    yield

    logger.info("Shutting down background tasks")

    app[TickHealthTaskAppKey].cancel()
    app[CacheMetricsTaskAppKey].cancel()

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[TickHealthTaskAppKey]

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[CacheMetricsTaskAppKey]

    await app[SessionAppKey].close()
    await app[MetricsClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def hosted_site_middleware(request: web.Request, handler):
    """Serve gateway domain requests through the pipeline whatever their path.

    The internal routes are only reachable on other hosts, such as the pod address used by
    probes, so hosted sites keep every path of their own.
    """
    if is_gateway_hostname(request_hostname(request)):
        return await handle_gateway(request)
    return await handler(request)


@web.middleware
async def metrics_middleware(request: web.Request, handler):
    metrics_client: MetricsClient = request.app[MetricsClientAppKey]
    request_method: str = request.method

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            "gateway.server.request.exception",
            1,
            tag_dict={"exception": type(e).__name__, "method": request_method},
        )
        raise e
    finally:
        metrics_client.timer(
            "gateway.server.request.time",
            time() - start_time,
            tag_dict={"method": request_method},
        )
        metrics_client.increment(
            "gateway.server.request.count",
            1,
            tag_dict={"method": request_method, "status": response_status_code},
        )


async def start_web_server(settings: Optional[Settings] = None) -> web.Application:
    """
    Build the gateway application.

    Requests for brave.site and its subdomains always go to the resolution pipeline, which
    only looks at the request hostname. On any other host the internal endpoints are matched
    first and every remaining method and path is handed to the pipeline.
    """

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=False,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(
        middlewares=[metrics_middleware, sentry_middleware, hosted_site_middleware]
    )

    app[SettingsAppKey] = settings
    app[HealthGaugeAppKey] = HealthGauge(health_threshold=settings.health_threshold)
    app[ResolutionCacheAppKey] = ResolutionCache(
        max_entries=settings.resolution_cache_max_entries,
        ttl=settings.resolution_cache_ttl,
    )
    app[MetricsClientAppKey] = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        otel_endpoint=settings.otel_endpoint,
        service_name=settings.statsd_prefix,
        debug=settings.debug,
    )

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
            web.get("/internal/api/resolve", handle_internal_resolve),
        ]
    )

    app.add_routes([web.route("*", "/{tail:.*}", handle_gateway)])

    app.cleanup_ctx.append(background_tasks)

    return app
