"""
Unit Tests for Metrics Abstraction Layer

This module tests the metrics abstraction layer used by the orchestrator and
web server (Telegraf, NoOp).

Test Coverage:
- MetricsClient interface implementations
- Backend selection via factory function
- Error handling on close
"""

import pytest
from unittest.mock import Mock, patch, AsyncMock

from social.graze.wormhole.app.metrics import (
    MetricsClient,
    TelegrafCompatibilityClient,
    NoOpMetricsClient,
    create_metrics_client,
)


class TestMetricsClientInterface:
    """Test the abstract MetricsClient interface."""

    def test_interface_is_abstract(self):
        """MetricsClient should be abstract and not instantiable."""
        with pytest.raises(TypeError):
            MetricsClient()


class TestNoOpMetricsClient:
    """Test the NoOpMetricsClient implementation."""

    @pytest.fixture
    def noop_client(self):
        return NoOpMetricsClient()

    def test_noop_calls(self, noop_client):
        """NoOp metrics calls should not raise exceptions."""
        noop_client.increment("wormhole.resolve.count", 1, {"outcome": "resolved"})
        noop_client.increment("wormhole.resolve.count")
        noop_client.gauge("wormhole.cache.size", 42)
        noop_client.timer("wormhole.resolve.time", 0.012)

    @pytest.mark.asyncio
    async def test_noop_close(self, noop_client):
        await noop_client.close()


class TestTelegrafCompatibilityClient:
    """Test the TelegrafCompatibilityClient wrapper."""

    @pytest.fixture
    def mock_telegraf_client(self):
        """Create a mock TelegrafStatsdClient."""
        mock = Mock()
        mock.increment = Mock()
        mock.gauge = Mock()
        mock.timer = Mock()
        mock.connect = AsyncMock()
        mock.close = AsyncMock()
        return mock

    @pytest.fixture
    def telegraf_client(self, mock_telegraf_client):
        return TelegrafCompatibilityClient(mock_telegraf_client)

    def test_telegraf_increment(self, telegraf_client, mock_telegraf_client):
        telegraf_client.increment("wormhole.cache.hit", 3, {"path": "/internal/api/resolve"})
        mock_telegraf_client.increment.assert_called_once_with(
            "wormhole.cache.hit", 3, tag_dict={"path": "/internal/api/resolve"}
        )

    def test_telegraf_gauge(self, telegraf_client, mock_telegraf_client):
        telegraf_client.gauge("wormhole.cache.size", 12)
        mock_telegraf_client.gauge.assert_called_once_with(
            "wormhole.cache.size", 12, tag_dict={}
        )

    def test_telegraf_timer(self, telegraf_client, mock_telegraf_client):
        telegraf_client.timer("wormhole.resolve.time", 1.234, {"outcome": "resolved"})
        mock_telegraf_client.timer.assert_called_once_with(
            "wormhole.resolve.time", 1.234, tag_dict={"outcome": "resolved"}
        )

    @pytest.mark.asyncio
    async def test_telegraf_connect(self, telegraf_client, mock_telegraf_client):
        await telegraf_client.connect()
        mock_telegraf_client.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_telegraf_close(self, telegraf_client, mock_telegraf_client):
        await telegraf_client.close()
        mock_telegraf_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_telegraf_close_error_suppressed(self, telegraf_client, mock_telegraf_client):
        mock_telegraf_client.close.side_effect = OSError("socket closed")
        await telegraf_client.close()


class TestMetricsClientFactory:
    """Test the create_metrics_client factory function."""

    def test_factory_creates_noop_client(self):
        assert isinstance(create_metrics_client("none"), NoOpMetricsClient)

    @patch("social.graze.wormhole.app.metrics.TelegrafStatsdClient")
    def test_factory_creates_telegraf_client(self, mock_telegraf_class):
        mock_instance = Mock()
        mock_telegraf_class.return_value = mock_instance

        client = create_metrics_client("telegraf", host="telegraf", port=8125, debug=True)

        assert isinstance(client, TelegrafCompatibilityClient)
        assert client.client is mock_instance
        mock_telegraf_class.assert_called_once_with(host="telegraf", port=8125, debug=True)

    def test_factory_uses_preconfigured_telegraf_client(self):
        mock_client = Mock()
        client = create_metrics_client("telegraf", telegraf_client=mock_client)
        assert client.client is mock_client

    def test_factory_handles_invalid_backend(self):
        with pytest.raises(ValueError, match="Invalid metrics backend: otel"):
            create_metrics_client("otel")

    def test_factory_handles_case_insensitive_backends(self):
        clients = [create_metrics_client(name) for name in ("NONE", "None", "none")]
        assert all(isinstance(c, NoOpMetricsClient) for c in clients)
