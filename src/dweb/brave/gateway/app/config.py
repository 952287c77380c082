"""
Configuration Module for the Brave Gateway

This module defines the configuration system for the gateway using Pydantic settings, and the
AppKeys through which handlers reach settings and shared resources in the aiohttp app context.

Settings are loaded from environment variables with defaults suitable for development. The
only value with no usable default is the resolution API credential, which is only required
once a request actually needs a domain resolved.

Key configuration areas include:
- Service networking and error reporting
- Name resolution service access
- IPFS gateway list and retry policy
- Resolution cache policy
- Metrics backend
"""

import asyncio
from typing import Annotated, Final, List, Literal, Optional
import logging

from aiohttp import ClientSession, web
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from dweb.brave.gateway.app.health import HealthGauge
from dweb.brave.gateway.app.metrics import MetricsClient
from dweb.brave.gateway.ipfs.fetch import CID_PLACEHOLDER, RaceStrategy
from dweb.brave.gateway.resolve.cache import ResolutionCache

logger = logging.getLogger(__name__)

DEFAULT_IPFS_GATEWAYS: Final[List[str]] = [
    "https://cloudflare-ipfs.com/ipfs/{cid}",
    "https://ipfs.io/ipfs/{cid}",
    "https://dweb.link/ipfs/{cid}",
]


class Settings(BaseSettings):
    """
    Application settings for the Brave Gateway.

    Environment variables map onto fields by name, case-insensitively. For example, the
    resolution API credential is set with UNSTOPPABLE_API_KEY and the gateway list with
    IPFS_GATEWAYS.
    """

    debug: bool = False
    """
    Enable debug mode, tracing every outbound client request.
    Set with DEBUG=true environment variable.
    """

    http_port: int = Field(alias="port", default=8080)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    # Name resolution
    unstoppable_api_key: Optional[str] = None
    """
    Bearer credential for the Unstoppable Domains resolution API.
    Set with UNSTOPPABLE_API_KEY environment variable.
    """

    resolution_api_url: str = "https://api.unstoppabledomains.com"
    """
    Base URL of the resolution API. Domains are resolved at {url}/resolve/domains/{domain}.
    Set with RESOLUTION_API_URL environment variable.
    """

    # IPFS gateways
    ipfs_gateways: Annotated[List[str], NoDecode] = list(DEFAULT_IPFS_GATEWAYS)
    """
    Ordered IPFS gateway URL templates, each containing a {cid} placeholder.
    Set with IPFS_GATEWAYS environment variable as comma-separated values.
    """

    gateway_retries: int = Field(default=3, ge=0)
    """
    Attempts per gateway during the sequential fallback.
    Set with GATEWAY_RETRIES environment variable.
    """

    gateway_retry_delay_ms: int = Field(default=1000, ge=0)
    """
    Delay in milliseconds between fallback attempts on the same gateway.
    Set with GATEWAY_RETRY_DELAY_MS environment variable.
    """

    gateway_race_strategy: RaceStrategy = RaceStrategy.first_settled
    """
    How the concurrent gateway race is settled: first_settled or first_success.
    Set with GATEWAY_RACE_STRATEGY environment variable.
    """

    upstream_timeout: float = Field(default=60.0, gt=0)
    """
    Total timeout in seconds for each outbound request.
    Set with UPSTREAM_TIMEOUT environment variable.
    """

    # Resolution cache
    resolution_cache_max_entries: int = Field(default=10000, gt=0)
    """
    Maximum number of cached domain records. The least recently used record is evicted.
    Set with RESOLUTION_CACHE_MAX_ENTRIES environment variable.
    """

    resolution_cache_ttl: Optional[float] = Field(default=None, gt=0)
    """
    Lifetime in seconds of a cached domain record. Records never expire if not set.
    Set with RESOLUTION_CACHE_TTL environment variable.
    """

    # Readiness
    health_threshold: int = Field(default=100, gt=0)
    """
    Number of recent unexpected failures above which the readiness probe fails.
    Set with HEALTH_THRESHOLD environment variable.
    """

    health_tick_interval: float = Field(default=30.0, gt=0)
    """
    Seconds between health gauge decrements.
    Set with HEALTH_TICK_INTERVAL environment variable.
    """

    # Monitoring and observability settings
    metrics_backend: Literal["telegraf", "otel", "none"] = "none"
    """
    Metrics backend to report to.
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    statsd_prefix: str = "brave-gateway"
    """
    Metrics namespace, reported as the OpenTelemetry service name.
    Set with STATSD_PREFIX environment variable.
    """

    otel_endpoint: Optional[str] = None
    """
    OTLP gRPC endpoint for the otel metrics backend.
    Set with OTEL_ENDPOINT environment variable.
    """

    @field_validator("ipfs_gateways", mode="before")
    @classmethod
    def decode_ipfs_gateways(cls, v) -> List[str]:
        """
        Accept either a list of templates or a comma-separated string.

        Raises:
            ValueError: If no gateway is given or a template lacks the {cid} placeholder
        """
        if isinstance(v, str):
            v = [gateway.strip() for gateway in v.split(",")]
        if not isinstance(v, list):
            raise ValueError("ipfs_gateways must be a list or a comma-separated string")

        gateways = [gateway for gateway in v if gateway]
        if len(gateways) == 0:
            raise ValueError("ipfs_gateways must contain at least one gateway")
        for gateway in gateways:
            if CID_PLACEHOLDER not in gateway:
                raise ValueError(f"gateway {gateway} is missing the {CID_PLACEHOLDER} placeholder")
        return gateways


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

ResolutionCacheAppKey: Final = web.AppKey("resolution_cache", ResolutionCache)
"""AppKey for accessing the process-wide resolution cache"""

HealthGaugeAppKey: Final = web.AppKey("health_gauge", HealthGauge)
"""AppKey for accessing the health monitoring gauge"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""

TickHealthTaskAppKey: Final = web.AppKey("tick_health_task", asyncio.Task[None])
"""AppKey for the background task that decays the health gauge"""

CacheMetricsTaskAppKey: Final = web.AppKey("cache_metrics_task", asyncio.Task[None])
"""AppKey for the background task that reports the resolution cache size"""
