"""Tests for request tracing middleware."""

from unittest.mock import MagicMock, patch

import pytest
from httpx import AsyncClient
from starlette.requests import Request

from gaming_analytics.middleware.request_tracing import client_ip


def _request(headers: dict[str, str], client: tuple[str, int] | None = ("192.168.1.5", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


class TestClientIp:
    def test_prefers_first_forwarded_hop(self) -> None:
        request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
        assert client_ip(request) == "203.0.113.7"

    def test_falls_back_to_real_ip(self) -> None:
        assert client_ip(_request({"X-Real-IP": "198.51.100.2"})) == "198.51.100.2"

    def test_uses_socket_peer(self) -> None:
        assert client_ip(_request({})) == "192.168.1.5"

    def test_unknown_without_peer(self) -> None:
        assert client_ip(_request({}, client=None)) == "unknown"


class TestTracingHeaders:
    @pytest.mark.asyncio
    async def test_generates_ids(self, test_client: AsyncClient) -> None:
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.headers["X-Correlation-ID"]
        assert len(response.headers["X-Request-ID"]) == 8
        assert float(response.headers["X-Report-Duration-Ms"]) >= 0

    @pytest.mark.asyncio
    async def test_echoes_incoming_correlation_id(self, test_client: AsyncClient) -> None:
        response = await test_client.get("/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"

    @pytest.mark.asyncio
    async def test_slow_request_logged_as_warning(self, test_client: AsyncClient) -> None:
        mock_logger = MagicMock()
        with (
            patch("gaming_analytics.middleware.request_tracing.logger", mock_logger),
            patch("gaming_analytics.middleware.request_tracing.settings.SLOW_REPORT_MS", 0),
        ):
            await test_client.get("/health")

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.args[0] == "slow_request"
        mock_logger.info.assert_not_called()
