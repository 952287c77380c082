"""
Unit tests for the metrics clients in dweb.brave.gateway.app.metrics
"""

import pytest
from unittest.mock import AsyncMock, Mock

from dweb.brave.gateway.app.metrics import (
    MetricsClient,
    NoOpMetricsClient,
    TelegrafMetricsClient,
    create_metrics_client,
)


class TestMetricsClientInterface:
    def test_interface_is_abstract(self):
        """MetricsClient should be abstract and not instantiable."""
        with pytest.raises(TypeError):
            MetricsClient()


class TestNoOpMetricsClient:
    @pytest.fixture
    def noop_client(self):
        return NoOpMetricsClient()

    def test_noop_operations(self, noop_client):
        noop_client.increment("test.counter", 1, {"tag": "value"})
        noop_client.increment("test.counter")
        noop_client.gauge("test.gauge", 42.5)
        noop_client.timer("test.timer", 0.001, {"tag": "value"})

    async def test_noop_connect_and_close(self, noop_client):
        await noop_client.connect()
        await noop_client.close()


class TestTelegrafMetricsClient:
    @pytest.fixture
    def mock_telegraf_client(self):
        mock = Mock()
        mock.connect = AsyncMock()
        mock.close = AsyncMock()
        return mock

    @pytest.fixture
    def telegraf_client(self, mock_telegraf_client):
        return TelegrafMetricsClient(mock_telegraf_client)

    def test_increment(self, telegraf_client, mock_telegraf_client):
        telegraf_client.increment("gateway.ipfs.race.win", 1, {"gateway": "gw1"})
        mock_telegraf_client.increment.assert_called_once_with(
            "gateway.ipfs.race.win", 1, tag_dict={"gateway": "gw1"}
        )

    def test_increment_no_tags(self, telegraf_client, mock_telegraf_client):
        telegraf_client.increment("gateway.resolve.cache.hit")
        mock_telegraf_client.increment.assert_called_once_with(
            "gateway.resolve.cache.hit", 1, tag_dict={}
        )

    def test_gauge(self, telegraf_client, mock_telegraf_client):
        telegraf_client.gauge("gateway.resolve.cache.size", 12)
        mock_telegraf_client.gauge.assert_called_once_with(
            "gateway.resolve.cache.size", 12, tag_dict={}
        )

    def test_timer(self, telegraf_client, mock_telegraf_client):
        telegraf_client.timer("gateway.resolve.upstream.time", 0.25, {"status": 200})
        mock_telegraf_client.timer.assert_called_once_with(
            "gateway.resolve.upstream.time", 0.25, tag_dict={"status": 200}
        )

    async def test_connect(self, telegraf_client, mock_telegraf_client):
        await telegraf_client.connect()
        mock_telegraf_client.connect.assert_awaited_once()

    async def test_close_swallows_errors(self, telegraf_client, mock_telegraf_client):
        mock_telegraf_client.close.side_effect = OSError("socket closed")
        await telegraf_client.close()
        mock_telegraf_client.close.assert_awaited_once()


class TestCreateMetricsClient:
    def test_none_backend(self):
        assert isinstance(create_metrics_client("none"), NoOpMetricsClient)

    def test_backend_name_case_insensitive(self):
        assert isinstance(create_metrics_client("NONE"), NoOpMetricsClient)

    async def test_telegraf_backend(self):
        client = create_metrics_client("telegraf", host="localhost", port=8125)
        assert isinstance(client, TelegrafMetricsClient)

    def test_invalid_backend(self):
        with pytest.raises(ValueError, match="Invalid metrics backend"):
            create_metrics_client("graphite")
