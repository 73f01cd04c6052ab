"""
E-Filing service client.

Fetches reference data (divisions and zones) from the sibling E-Filing
system. Every call degrades to ``{"success": False, "error": ..., "data": ...}``
instead of raising, so an E-Filing outage never breaks the caller.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import ExternalServiceError
from shared.logging import get_logger
from shared.metrics import MetricsCollector


class EFilingClient:
    """Client for the E-Filing external API."""

    def __init__(self, base_url: str, api_key: Optional[str], timeout: float = 5.0,
                 metrics: Optional[MetricsCollector] = None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("work-requests.efiling_client")

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    def _record(self, operation: str, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("efiling_requests_total", operation=operation, outcome=outcome)

    async def get_divisions(self, active: Optional[bool] = None,
                            department_id: Optional[int] = None) -> Dict[str, Any]:
        """List divisions, optionally filtered by active flag and department."""
        params: Dict[str, str] = {}
        if active is not None:
            params["active"] = str(active).lower()
        if department_id:
            params["department_id"] = str(department_id)
        return await self._get("get_divisions", "/divisions", params=params, empty=[])

    async def get_division(self, division_id: int) -> Dict[str, Any]:
        return await self._get(
            "get_division",
            f"/divisions/{division_id}",
            empty=None,
            not_found="Division not found",
        )

    async def get_zones(self, active: Optional[bool] = None) -> Dict[str, Any]:
        """List zones, optionally filtered by active flag."""
        params: Dict[str, str] = {}
        if active is not None:
            params["active"] = str(active).lower()
        return await self._get("get_zones", "/zones", params=params, empty=[])

    async def get_zone(self, zone_id: int) -> Dict[str, Any]:
        return await self._get(
            "get_zone",
            f"/zones/{zone_id}",
            empty=None,
            not_found="Zone not found",
        )

    async def test_connection(self) -> bool:
        """True when E-Filing answers a divisions listing."""
        result = await self.get_divisions(active=True)
        # Bodies that are not JSON objects still count as a live connection
        return not (isinstance(result, dict) and result.get("success") is False)

    async def _get(self, operation: str, path: str, params: Optional[Dict[str, str]] = None,
                   empty: Any = None, not_found: Optional[str] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params or None, headers=self._headers())

            if response.status_code == 404 and not_found is not None:
                self._record(operation, "not_found")
                return {"success": False, "error": not_found, "data": None}

            if response.is_success:
                self._record(operation, "success")
                return response.json()

            raise ExternalServiceError(
                service="E-Filing API",
                message=self._error_detail(response),
                details={"status_code": response.status_code}
            )

        except ExternalServiceError as e:
            self.logger.error("E-Filing request failed", operation=operation, url=url, error=e.message)
            self._record(operation, "error")
            return {"success": False, "error": e.message, "data": empty}
        except httpx.TimeoutException as e:
            self.logger.error("E-Filing request timed out", operation=operation, url=url, timeout=self.timeout)
            self._record(operation, "timeout")
            return {"success": False, "error": f"E-Filing API timeout: {e}", "data": empty}
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error("E-Filing request error", operation=operation, url=url, error=str(e))
            self._record(operation, "error")
            return {"success": False, "error": str(e), "data": empty}

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.reason_phrase or "Unknown error"
