"""
Work Requests external API for the Video Archiving access layer.

Serves work requests and their media to the E-Filing platform. Every
external route passes the API key gate, then the fixed-window rate limiter,
before touching the database.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, Optional

from fastapi import Query, Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import (
    AccessLayerException,
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    ServiceError,
    ValidationError,
)
from shared.logging import mask_secret, set_client_context
from .adapters.efiling_client import EFilingClient
from .auth.api_key import ApiKeyAuthenticator
from .domain.query_builder import Pagination, WorkRequestFilter, parse_int
from .persistence.postgres import WorkRequestRepository
from .ratelimit.fixed_window import FixedWindowRateLimiter, RateLimitResult, build_bucket_store


SERVICE_NAME = "work-requests"
SERVICE_PORT = 8000
EXTERNAL_PREFIX = "/api/external/work-requests"
REFERENCE_PREFIX = "/api/efiling"


class WorkRequestsService(BaseService):
    """External work request API implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 repository: Optional[WorkRequestRepository] = None,
                 bucket_store=None,
                 efiling_client: Optional[EFilingClient] = None,
                 clock=None):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        self.authenticator = ApiKeyAuthenticator(
            self.config.inbound_api_key,
            production=self.config.is_production,
        )

        self._owns_repository = repository is None
        self.repository = repository or WorkRequestRepository(
            self.config.postgres_dsn,
            min_size=self.config.postgres_min_pool_size,
            max_size=self.config.postgres_max_pool_size,
        )

        store = bucket_store or build_bucket_store(self.config.rate_limit_backend, self.config.redis_url)
        self.rate_limiter = FixedWindowRateLimiter(
            store,
            max_requests=self.config.rate_limit_max_requests,
            window_ms=self.config.rate_limit_window_ms,
            clock=clock,
        )

        self.efiling_client = efiling_client or EFilingClient(
            self.config.efiling_api_url,
            self.config.efiling_api_key,
            timeout=self.config.efiling_timeout_seconds,
            metrics=self.metrics,
        )

        self._setup_work_request_routes()
        self._setup_reference_routes()

        self.app.state.work_requests_service = self

    async def startup(self) -> None:
        if self._owns_repository:
            await self.repository.start()
        if not self.config.inbound_api_key:
            self.logger.error("VIDEO_ARCHIVING_API_KEY or EXTERNAL_API_KEY not configured")

    async def shutdown(self) -> None:
        await self.rate_limiter.close()
        if self._owns_repository:
            await self.repository.stop()

    async def _check_dependencies(self) -> Dict[str, str]:
        postgres_ok = await self.repository.ping()
        efiling_ok = await self.efiling_client.test_connection()
        return {
            "postgres": "ok" if postgres_ok else "error",
            "efiling": "ok" if efiling_ok else "unavailable",
        }

    @staticmethod
    def _format_iso(epoch_ms: int) -> str:
        """Format epoch milliseconds as ISO-8601 with millisecond precision."""
        value = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
        return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def _client_identity(self, request: Request, api_key: Optional[str]) -> str:
        """Rate limit partition key: the API key, else the caller host."""
        if api_key:
            return api_key
        host = request.client.host if request.client else "unknown"
        return f"anonymous:{host}"

    async def _guard(self, request: Request, endpoint: str) -> RateLimitResult:
        """Authenticate the caller and count the request against its budget."""
        auth = self.authenticator.check(request.headers)
        if not auth.valid:
            self.metrics.increment_counter("auth_failures_total", reason=auth.reason)
            raise AuthenticationError(auth.error)

        identity = self._client_identity(request, auth.api_key)
        set_client_context(mask_secret(identity))

        result = await self.rate_limiter.check(identity)
        if not result.allowed:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=mask_secret(identity),
                endpoint=endpoint,
                reset_at=result.reset_at
            )
            self.metrics.increment_counter("rate_limit_rejections_total", endpoint=endpoint)
            raise RateLimitError(
                details={"resetAt": self._format_iso(result.reset_at)},
                headers=result.headers()
            )
        # Carried onto error responses raised after admission
        request.state.response_headers = result.headers()
        return result

    async def _query(self, description: str, operation: Awaitable[Any]) -> Any:
        """Await a store call, hiding unexpected failures behind a 500."""
        try:
            return await operation
        except AccessLayerException:
            raise
        except Exception as e:
            self.logger.error(f"Error {description}", error=str(e), exc_info=True)
            self.metrics.record_error(type(e).__name__)
            raise ServiceError()

    @staticmethod
    def _parse_work_request_id(raw: Any) -> int:
        work_request_id = parse_int(raw)
        if work_request_id is None:
            raise ValidationError("Invalid work request ID")
        return work_request_id

    async def _require_work_request(self, work_request_id: int) -> None:
        exists = await self._query(
            "checking work request",
            self.repository.work_request_exists(work_request_id)
        )
        if not exists:
            raise NotFoundError("Work request not found")

    def _setup_work_request_routes(self):
        """Set up the external work request routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Video Archiving - External Work Requests API",
                "version": "1.0.0"
            }

        @self.app.get(EXTERNAL_PREFIX)
        async def list_work_requests(
            request: Request,
            response: Response,
            search: Optional[str] = Query(None),
            filter_: Optional[str] = Query(None, alias="filter"),
            status: Optional[str] = Query(None, description="Status ID or status name"),
            limit: Optional[str] = Query(None, description="Page size, at most 500"),
            offset: Optional[str] = Query(None),
        ):
            """List and search work requests."""
            rate_result = await self._guard(request, EXTERNAL_PREFIX)
            response.headers.update(rate_result.headers())

            filters = WorkRequestFilter.from_query(search=search, filter_=filter_, status=status)
            pagination = Pagination.from_query(limit=limit, offset=offset)

            rows, total = await self._query(
                "fetching work requests",
                self.repository.list_work_requests(filters, pagination)
            )

            return {
                "data": rows,
                "total": total,
                "limit": pagination.limit,
                "offset": pagination.offset,
                "hasMore": pagination.has_more(total),
            }

        @self.app.post(f"{EXTERNAL_PREFIX}/verify")
        async def verify_work_request(request: Request, response: Response):
            """Tell the caller whether a work request id can be referenced."""
            rate_result = await self._guard(request, f"{EXTERNAL_PREFIX}/verify")
            response.headers.update(rate_result.headers())

            try:
                body = await request.json()
            except ValueError:
                raise ValidationError("Invalid JSON body")
            if not isinstance(body, dict):
                raise ValidationError("Invalid JSON body")

            raw_id = body.get("work_request_id")
            # 0 and false count as absent; the string "0" does not
            if raw_id is None or raw_id is False or raw_id == "" or raw_id == 0:
                raise ValidationError("work_request_id is required")

            work_request_id = parse_int(raw_id)
            if work_request_id is None:
                raise ValidationError("Invalid work_request_id format")

            summary = await self._query(
                "verifying work request",
                self.repository.get_verification_summary(work_request_id)
            )

            if summary is None:
                return {
                    "exists": False,
                    "valid": False,
                    "message": "Work request not found"
                }

            return {
                "exists": True,
                "valid": True,
                "data": {
                    "id": summary["id"],
                    "address": summary.get("address"),
                    "description": summary.get("description"),
                    "status": summary.get("status_name"),
                    "status_id": summary.get("status_id"),
                    "request_date": summary.get("request_date"),
                    "created_date": summary.get("created_date"),
                }
            }

        @self.app.get(EXTERNAL_PREFIX + "/{work_request_id}")
        async def get_work_request(work_request_id: str, request: Request, response: Response):
            """Full detail for one work request."""
            rate_result = await self._guard(request, EXTERNAL_PREFIX + "/{id}")
            response.headers.update(rate_result.headers())

            parsed_id = self._parse_work_request_id(work_request_id)
            work_request = await self._query(
                "fetching work request",
                self.repository.get_work_request(parsed_id)
            )
            if work_request is None:
                raise NotFoundError("Work request not found")

            if work_request.get("additional_locations") is None:
                work_request["additional_locations"] = []

            return {"data": work_request}

        @self.app.get(EXTERNAL_PREFIX + "/{work_request_id}/before-content")
        async def get_before_content(work_request_id: str, request: Request, response: Response):
            """Media captured before work started."""
            rate_result = await self._guard(request, EXTERNAL_PREFIX + "/{id}/before-content")
            response.headers.update(rate_result.headers())

            parsed_id = self._parse_work_request_id(work_request_id)
            await self._require_work_request(parsed_id)

            items = await self._query(
                "fetching before content",
                self.repository.list_before_content(parsed_id)
            )
            return {
                "data": items,
                "count": len(items),
                "work_request_id": parsed_id,
            }

        @self.app.get(EXTERNAL_PREFIX + "/{work_request_id}/videos")
        async def get_videos(work_request_id: str, request: Request, response: Response):
            rate_result = await self._guard(request, EXTERNAL_PREFIX + "/{id}/videos")
            response.headers.update(rate_result.headers())

            parsed_id = self._parse_work_request_id(work_request_id)
            await self._require_work_request(parsed_id)

            videos = await self._query(
                "fetching videos",
                self.repository.list_videos(parsed_id)
            )
            return {"success": True, "data": videos}

    def _setup_reference_routes(self):
        """Expose E-Filing reference data (divisions, zones)."""

        def _parse_reference_id(raw: str, label: str) -> int:
            parsed = parse_int(raw)
            if parsed is None:
                raise ValidationError(f"Invalid {label} ID")
            return parsed

        @self.app.get(f"{REFERENCE_PREFIX}/divisions")
        async def list_divisions(
            request: Request,
            response: Response,
            active: Optional[bool] = Query(None),
            department_id: Optional[int] = Query(None),
        ):
            rate_result = await self._guard(request, f"{REFERENCE_PREFIX}/divisions")
            response.headers.update(rate_result.headers())
            return await self.efiling_client.get_divisions(active=active, department_id=department_id)

        @self.app.get(REFERENCE_PREFIX + "/divisions/{division_id}")
        async def get_division(division_id: str, request: Request, response: Response):
            rate_result = await self._guard(request, REFERENCE_PREFIX + "/divisions/{id}")
            response.headers.update(rate_result.headers())
            return await self.efiling_client.get_division(_parse_reference_id(division_id, "division"))

        @self.app.get(f"{REFERENCE_PREFIX}/zones")
        async def list_zones(
            request: Request,
            response: Response,
            active: Optional[bool] = Query(None),
        ):
            rate_result = await self._guard(request, f"{REFERENCE_PREFIX}/zones")
            response.headers.update(rate_result.headers())
            return await self.efiling_client.get_zones(active=active)

        @self.app.get(REFERENCE_PREFIX + "/zones/{zone_id}")
        async def get_zone(zone_id: str, request: Request, response: Response):
            rate_result = await self._guard(request, REFERENCE_PREFIX + "/zones/{id}")
            response.headers.update(rate_result.headers())
            return await self.efiling_client.get_zone(_parse_reference_id(zone_id, "zone"))


def create_app(config: Optional[ServiceConfig] = None):
    """Create FastAPI application."""
    service = WorkRequestsService(config or get_config(SERVICE_NAME, SERVICE_PORT))
    return service.app


if __name__ == "__main__":
    service = WorkRequestsService()
    service.run()
