"""
Work Requests Service package for the Video Archiving access layer.

The service fronts the work request database for the E-Filing platform,
enforcing:
- Authentication: shared-secret X-API-Key check
- Rate limiting: fixed-window counters per API key
- Graceful degradation for outbound E-Filing reference lookups

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.auth: API key gate.
- app.ratelimit: Fixed-window limiter and bucket stores.
- app.domain: Filter/pagination handling and creator resolution.
- app.persistence: asyncpg queries.
- app.adapters: HTTP client for the E-Filing service.
"""
