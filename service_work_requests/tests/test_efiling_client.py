"""
Unit tests for the E-Filing client.
"""

import json
import pytest
import httpx
from unittest.mock import AsyncMock, patch

from service_work_requests.app.adapters.efiling_client import EFilingClient
from shared.metrics import MetricsCollector


def _response(status_code, body, url="http://efiling.test/api/external/divisions"):
    return httpx.Response(
        status_code=status_code,
        content=json.dumps(body),
        request=httpx.Request("GET", url)
    )


class TestEFilingClient:
    """Test cases for EFilingClient."""

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("work-requests")

    @pytest.fixture
    def efiling_client(self, metrics):
        return EFilingClient("http://efiling.test/api/external/", "downstream-key", timeout=5.0, metrics=metrics)

    @pytest.mark.asyncio
    async def test_get_divisions_success(self, efiling_client):
        """Downstream body is passed through unchanged."""
        body = {"success": True, "data": [{"id": 1, "name": "North"}]}

        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(return_value=_response(200, body))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            result = await efiling_client.get_divisions(active=True, department_id=4)

        assert result == body
        args, kwargs = mock_get.call_args
        assert args[0] == "http://efiling.test/api/external/divisions"
        assert kwargs["params"] == {"active": "true", "department_id": "4"}
        assert kwargs["headers"]["X-API-Key"] == "downstream-key"
        mock_client.assert_called_once_with(timeout=5.0)

    @pytest.mark.asyncio
    async def test_get_zones_without_filters(self, efiling_client):
        body = {"success": True, "data": []}

        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(return_value=_response(200, body))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            result = await efiling_client.get_zones()

        assert result == body
        assert mock_get.call_args.kwargs["params"] is None

    @pytest.mark.asyncio
    async def test_get_division_not_found(self, efiling_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(404, {"error": "nope"})
            )

            result = await efiling_client.get_division(99)

        assert result == {"success": False, "error": "Division not found", "data": None}

    @pytest.mark.asyncio
    async def test_get_zone_not_found(self, efiling_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(404, {})
            )

            result = await efiling_client.get_zone(99)

        assert result["error"] == "Zone not found"

    @pytest.mark.asyncio
    async def test_error_body_message(self, efiling_client, metrics):
        """Non-2xx responses surface the downstream error field."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(503, {"error": "maintenance"})
            )

            result = await efiling_client.get_divisions()

        assert result == {"success": False, "error": "E-Filing API: maintenance", "data": []}
        sample = metrics.registry.get_sample_value(
            "efiling_requests_total", {"operation": "get_divisions", "outcome": "error"}
        )
        assert sample == 1.0

    @pytest.mark.asyncio
    async def test_error_without_body_uses_reason(self, efiling_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=httpx.Response(
                    status_code=500,
                    content=b"oops",
                    request=httpx.Request("GET", "http://efiling.test/api/external/zones")
                )
            )

            result = await efiling_client.get_zones()

        assert result["success"] is False
        assert result["error"] == "E-Filing API: Internal Server Error"

    @pytest.mark.asyncio
    async def test_timeout(self, efiling_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.ReadTimeout("timed out")
            )

            result = await efiling_client.get_division(1)

        assert result["success"] is False
        assert "timeout" in result["error"]
        assert result["data"] is None

    @pytest.mark.asyncio
    async def test_connection_error(self, efiling_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.ConnectError("refused")
            )

            result = await efiling_client.get_zones(active=False)

        assert result == {"success": False, "error": "refused", "data": []}

    @pytest.mark.asyncio
    async def test_test_connection(self, efiling_client):
        with patch.object(efiling_client, 'get_divisions', new_callable=AsyncMock) as mock_divisions:
            mock_divisions.return_value = {"success": True, "data": []}
            assert await efiling_client.test_connection() is True

            mock_divisions.return_value = {"success": False, "error": "down", "data": []}
            assert await efiling_client.test_connection() is False

    @pytest.mark.asyncio
    async def test_test_connection_with_list_body(self, efiling_client):
        """A bare JSON array from E-Filing is a reachable service, not a crash."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(200, [{"id": 1}])
            )

            assert await efiling_client.test_connection() is True

    @pytest.mark.asyncio
    async def test_test_connection_with_scalar_body(self, efiling_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(200, "ok")
            )

            assert await efiling_client.test_connection() is True

    def test_no_api_key_header_when_unset(self):
        client = EFilingClient("http://efiling.test", None)

        assert "X-API-Key" not in client._headers()
