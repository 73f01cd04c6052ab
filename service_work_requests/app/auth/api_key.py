"""
Shared-secret API key authentication for external callers.
"""

import secrets
from dataclasses import dataclass
from typing import Mapping, Optional

from shared.logging import get_logger, mask_secret


API_KEY_HEADER = "X-API-Key"
LOOPBACK_MARKERS = ("localhost", "127.0.0.1", "::1")

NOT_CONFIGURED = "API key not configured"
KEY_REQUIRED = "Unauthorized - API key required. Provide X-API-Key header."
INVALID_KEY = "Unauthorized - Invalid API key"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an API key check."""
    valid: bool
    error: Optional[str] = None
    reason: Optional[str] = None
    api_key: Optional[str] = None
    bypassed: bool = False


class ApiKeyAuthenticator:
    """Validate the ``X-API-Key`` header against one configured secret.

    Outside production, requests whose Host or Referer names a loopback
    address are let through without a key.
    """

    def __init__(self, expected_key: Optional[str], production: bool):
        self.expected_key = expected_key or None
        self.production = production
        self.logger = get_logger("work-requests.auth")

    def _is_loopback(self, headers: Mapping[str, str]) -> bool:
        host = headers.get("host") or ""
        referer = headers.get("referer") or ""
        return any(marker in host or marker in referer for marker in LOOPBACK_MARKERS)

    def check(self, headers: Mapping[str, str]) -> AuthResult:
        """Evaluate request headers. Has no side effects besides logging."""
        headers = {name.lower(): value for name, value in headers.items()}
        supplied = headers.get(API_KEY_HEADER.lower()) or None

        if not self.production and self._is_loopback(headers):
            return AuthResult(valid=True, api_key=supplied, bypassed=True)

        if self.expected_key is None:
            self.logger.error("VIDEO_ARCHIVING_API_KEY or EXTERNAL_API_KEY not configured")
            return AuthResult(valid=False, error=NOT_CONFIGURED, reason="not_configured")

        if supplied is None:
            return AuthResult(valid=False, error=KEY_REQUIRED, reason="key_required")

        if not secrets.compare_digest(supplied.encode(), self.expected_key.encode()):
            self.logger.warning("Invalid API key presented", api_key=mask_secret(supplied))
            return AuthResult(valid=False, error=INVALID_KEY, reason="invalid_key")

        return AuthResult(valid=True, api_key=supplied)
