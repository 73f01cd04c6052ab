"""
Unit tests for structured logging helpers.
"""

from shared.logging import (
    add_correlation_context,
    add_service_context,
    clear_context,
    mask_secret,
    set_client_context,
    set_request_id,
)


def test_service_taken_from_logger_name():
    assert add_service_context(None, "info", {"logger": "work-requests.auth"})["service"] == "work-requests"
    assert add_service_context(None, "info", {"logger": "work-requests"})["service"] == "work-requests"
    assert "service" not in add_service_context(None, "info", {})


def test_correlation_context():
    request_id = set_request_id()
    set_client_context("abcdefgh...")
    try:
        event = add_correlation_context(None, "info", {"event": "HTTP request"})
    finally:
        clear_context()

    assert event["request_id"] == request_id
    assert event["client_id"] == "abcdefgh..."
    assert "request_id" not in add_correlation_context(None, "info", {})


def test_set_request_id_keeps_supplied_value():
    try:
        assert set_request_id("req-1") == "req-1"
    finally:
        clear_context()


def test_mask_secret():
    assert mask_secret("secret-key-123") == "secret-k..."
    assert mask_secret("") == ""
    assert mask_secret(None) is None
