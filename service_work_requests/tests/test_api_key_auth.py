"""
Unit tests for API key authentication.
"""

import pytest

from service_work_requests.app.auth.api_key import (
    INVALID_KEY,
    KEY_REQUIRED,
    NOT_CONFIGURED,
    ApiKeyAuthenticator,
)


class TestApiKeyAuthenticator:
    """Test cases for ApiKeyAuthenticator."""

    @pytest.fixture
    def authenticator(self):
        return ApiKeyAuthenticator("secret-key-123", production=True)

    def test_valid_key(self, authenticator):
        result = authenticator.check({"X-API-Key": "secret-key-123", "Host": "api.example.com"})

        assert result.valid is True
        assert result.api_key == "secret-key-123"
        assert result.bypassed is False

    def test_header_name_is_case_insensitive(self, authenticator):
        result = authenticator.check({"x-api-key": "secret-key-123"})

        assert result.valid is True

    def test_missing_key(self, authenticator):
        result = authenticator.check({"Host": "api.example.com"})

        assert result.valid is False
        assert result.error == KEY_REQUIRED
        assert result.reason == "key_required"

    def test_empty_key_counts_as_missing(self, authenticator):
        result = authenticator.check({"X-API-Key": ""})

        assert result.error == KEY_REQUIRED

    def test_wrong_key(self, authenticator):
        result = authenticator.check({"X-API-Key": "secret-key-124"})

        assert result.valid is False
        assert result.error == INVALID_KEY
        assert result.reason == "invalid_key"

    def test_key_comparison_is_exact(self, authenticator):
        """Prefixes and padded keys are rejected."""
        assert authenticator.check({"X-API-Key": "secret-key"}).valid is False
        assert authenticator.check({"X-API-Key": "secret-key-123 "}).valid is False

    def test_not_configured(self):
        authenticator = ApiKeyAuthenticator(None, production=True)

        result = authenticator.check({"X-API-Key": "anything"})

        assert result.valid is False
        assert result.error == NOT_CONFIGURED
        assert result.reason == "not_configured"

    def test_empty_configured_key_is_not_configured(self):
        authenticator = ApiKeyAuthenticator("", production=True)

        assert authenticator.check({"X-API-Key": ""}).error == NOT_CONFIGURED

    def test_not_configured_checked_before_missing_key(self):
        """Without a configured secret the caller is told so, key or not."""
        authenticator = ApiKeyAuthenticator(None, production=True)

        assert authenticator.check({}).error == NOT_CONFIGURED

    @pytest.mark.parametrize("headers", [
        {"Host": "localhost:8000"},
        {"Host": "127.0.0.1:8000"},
        {"Host": "[::1]:8000"},
        {"Host": "api.example.com", "Referer": "http://localhost:3000/dashboard"},
    ])
    def test_loopback_bypass_in_development(self, headers):
        authenticator = ApiKeyAuthenticator("secret-key-123", production=False)

        result = authenticator.check(headers)

        assert result.valid is True
        assert result.bypassed is True

    def test_loopback_bypass_without_configured_key(self):
        authenticator = ApiKeyAuthenticator(None, production=False)

        assert authenticator.check({"Host": "localhost:8000"}).valid is True

    def test_no_loopback_bypass_in_production(self):
        authenticator = ApiKeyAuthenticator("secret-key-123", production=True)

        result = authenticator.check({"Host": "localhost:8000"})

        assert result.valid is False
        assert result.error == KEY_REQUIRED

    def test_development_remote_host_needs_key(self):
        authenticator = ApiKeyAuthenticator("secret-key-123", production=False)

        assert authenticator.check({"Host": "api.example.com"}).valid is False
        assert authenticator.check({"Host": "api.example.com", "X-API-Key": "secret-key-123"}).valid is True
