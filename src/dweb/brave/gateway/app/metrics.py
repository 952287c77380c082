"""
Metrics for the Brave Gateway

This module provides the metrics interface used across the gateway and its backends:
Telegraf/StatsD through aio-statsd, OpenTelemetry when its optional packages are installed,
and a no-op client for development and tests.

Key Components:
- MetricsClient: Interface every pipeline stage records metrics through
- TelegrafMetricsClient: Delegates to an aio-statsd TelegrafStatsdClient
- OTELMetricsClient: Records through an OpenTelemetry meter
- NoOpMetricsClient: Discards everything
- create_metrics_client: Builds the client named by the ``metrics_backend`` setting

Metric names are dotted and prefixed with ``gateway.``, e.g. ``gateway.ipfs.race.win``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

try:
    from opentelemetry import metrics
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    from opentelemetry.sdk.resources import Resource, SERVICE_NAME

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False

from aio_statsd import TelegrafStatsdClient

logger = logging.getLogger(__name__)

Number = Union[int, float]


class MetricsClient(ABC):
    """
    Metrics interface for counters, gauges and timers.

    Tags are passed as a flat dictionary and converted by each backend into its own
    attribute format.
    """

    @abstractmethod
    def increment(
        self, name: str, value: Number = 1, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        """Increment a counter."""

    @abstractmethod
    def gauge(
        self, name: str, value: Number, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        """Set a gauge to a point-in-time value."""

    @abstractmethod
    def timer(
        self, name: str, value: Number, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        """Record a duration in seconds."""

    async def connect(self) -> None:
        """Open any connection the backend needs."""

    @abstractmethod
    async def close(self) -> None:
        """Flush and close the backend."""


class TelegrafMetricsClient(MetricsClient):
    """
    Metrics client backed by aio-statsd's TelegrafStatsdClient.
    """

    def __init__(self, client: TelegrafStatsdClient):
        self.client = client

    def increment(
        self, name: str, value: Number = 1, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        self.client.increment(name, value, tag_dict=tag_dict or {})

    def gauge(
        self, name: str, value: Number, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        self.client.gauge(name, value, tag_dict=tag_dict or {})

    def timer(
        self, name: str, value: Number, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        self.client.timer(name, value, tag_dict=tag_dict or {})

    async def connect(self) -> None:
        await self.client.connect()

    async def close(self) -> None:
        try:
            await self.client.close()
        except Exception as e:
            logger.warning("Error closing Telegraf client: %s", e)


class OTELMetricsClient(MetricsClient):
    """
    Metrics client backed by the OpenTelemetry SDK.

    Instruments are created lazily on first use and cached by name. Gauges are recorded with
    an UpDownCounter, timers with a histogram in seconds.
    """

    def __init__(
        self,
        service_name: str = "brave-gateway",
        exporter_endpoint: Optional[str] = None,
        export_interval_seconds: int = 30,
    ):
        if not OTEL_AVAILABLE:
            raise ImportError(
                "OpenTelemetry packages not available. Install with: "
                "pip install brave-gateway[otel]"
            )

        resource = Resource.create({SERVICE_NAME: service_name})
        if exporter_endpoint:
            reader = PeriodicExportingMetricReader(
                exporter=OTLPMetricExporter(endpoint=exporter_endpoint),
                export_interval_millis=export_interval_seconds * 1000,
            )
            metrics.set_meter_provider(
                MeterProvider(resource=resource, metric_readers=[reader])
            )

        self.meter = metrics.get_meter(service_name)
        self._instruments: Dict[str, Any] = {}

    def _instrument(self, kind: str, name: str) -> Any:
        key = f"{kind}:{name}"
        if key not in self._instruments:
            if kind == "counter":
                self._instruments[key] = self.meter.create_counter(name=name)
            elif kind == "gauge":
                self._instruments[key] = self.meter.create_up_down_counter(name=name)
            else:
                self._instruments[key] = self.meter.create_histogram(name=name, unit="s")
        return self._instruments[key]

    @staticmethod
    def _attributes(tag_dict: Optional[Dict[str, Any]]) -> Dict[str, str]:
        return {str(k): str(v) for k, v in (tag_dict or {}).items()}

    def increment(
        self, name: str, value: Number = 1, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        self._instrument("counter", name).add(value, attributes=self._attributes(tag_dict))

    def gauge(
        self, name: str, value: Number, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        self._instrument("gauge", name).add(value, attributes=self._attributes(tag_dict))

    def timer(
        self, name: str, value: Number, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        self._instrument("timer", name).record(
            value, attributes=self._attributes(tag_dict)
        )

    async def close(self) -> None:
        provider = metrics.get_meter_provider()
        if hasattr(provider, "shutdown"):
            provider.shutdown()


class NoOpMetricsClient(MetricsClient):
    """
    Metrics client that records nothing.
    """

    def increment(
        self, name: str, value: Number = 1, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        pass

    def gauge(
        self, name: str, value: Number, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        pass

    def timer(
        self, name: str, value: Number, tag_dict: Optional[Dict[str, Any]] = None
    ) -> None:
        pass

    async def close(self) -> None:
        pass


def create_metrics_client(
    backend: str,
    host: str = "localhost",
    port: int = 8125,
    otel_endpoint: Optional[str] = None,
    service_name: str = "brave-gateway",
    debug: bool = False,
) -> MetricsClient:
    """
    Build the metrics client for a backend name.

    Args:
        backend: One of ``telegraf``, ``otel`` or ``none``
        host: Telegraf/StatsD host
        port: Telegraf/StatsD port
        otel_endpoint: OTLP gRPC endpoint for the ``otel`` backend
        service_name: Service name reported to OpenTelemetry
        debug: Enable aio-statsd debug output

    Raises:
        ValueError: If the backend is unknown or its packages are not installed
    """
    backend = backend.lower()

    if backend == "telegraf":
        return TelegrafMetricsClient(
            TelegrafStatsdClient(host=host, port=port, debug=debug)
        )

    if backend == "otel":
        if not OTEL_AVAILABLE:
            raise ValueError(
                "OpenTelemetry packages required for 'otel' backend. "
                "Install with: pip install brave-gateway[otel]"
            )
        return OTELMetricsClient(
            service_name=service_name, exporter_endpoint=otel_endpoint
        )

    if backend == "none":
        logger.info("Metrics collection disabled (no-op client)")
        return NoOpMetricsClient()

    raise ValueError(
        f"Invalid metrics backend: {backend}. Supported backends: 'telegraf', 'otel', 'none'"
    )
