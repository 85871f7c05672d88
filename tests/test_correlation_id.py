# tests/test_correlation_id.py
"""
Tests for correlation ID middleware, request context and log formatting.
"""

import json
import logging

import pytest

from stock_ledger.utils.context import (
    bind_correlation_id,
    bind_ledger_user,
    get_correlation_id,
    get_ledger_user,
    reset_correlation_id,
    reset_ledger_user,
)
from stock_ledger.utils.logging import JsonFormatter, RequestContextFilter, parse_log_level


class TestCorrelationIdContext:
    """Tests for correlation ID context functions."""

    def test_get_returns_none_when_not_set(self):
        """Should return None when correlation ID is not set."""
        assert get_correlation_id() is None

    def test_bind_and_reset(self):
        """Reset restores the previous value."""
        token = bind_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

        reset_correlation_id(token)
        assert get_correlation_id() is None

    def test_nested_binding(self):
        outer = bind_correlation_id("outer")
        inner = bind_correlation_id("inner")

        reset_correlation_id(inner)
        assert get_correlation_id() == "outer"
        reset_correlation_id(outer)

    def test_ledger_user(self):
        token = bind_ledger_user("u1")
        assert get_ledger_user() == "u1"
        reset_ledger_user(token)
        assert get_ledger_user() is None


class TestCorrelationIdMiddleware:
    """Tests for correlation ID middleware."""

    def test_generates_correlation_id_when_not_provided(self, client):
        """Should generate correlation ID when not provided in request."""
        response = client.get("/health")

        assert response.status_code == 200
        assert "X-Correlation-ID" in response.headers
        # Should be a valid UUID format
        correlation_id = response.headers["X-Correlation-ID"]
        assert len(correlation_id) == 36
        assert correlation_id.count("-") == 4

    def test_uses_provided_correlation_id(self, client):
        """Should use correlation ID from request header."""
        custom_id = "my-custom-trace-id-123"
        response = client.get("/health", headers={"X-Correlation-ID": custom_id})

        assert response.headers["X-Correlation-ID"] == custom_id

    def test_uses_request_id_header_as_fallback(self, client):
        """Should use X-Request-ID header if X-Correlation-ID not provided."""
        response = client.get("/health", headers={"X-Request-ID": "my-request-id-456"})

        assert response.headers["X-Correlation-ID"] == "my-request-id-456"

    def test_prefers_correlation_id_over_request_id(self, client):
        """Should prefer X-Correlation-ID over X-Request-ID."""
        response = client.get(
            "/health",
            headers={
                "X-Correlation-ID": "correlation-123",
                "X-Request-ID": "request-456",
            },
        )

        assert response.headers["X-Correlation-ID"] == "correlation-123"

    def test_overlong_id_is_replaced(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "x" * 200})

        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_different_requests_get_different_ids(self, client):
        """Different requests should get different correlation IDs."""
        id1 = client.get("/health").headers["X-Correlation-ID"]
        id2 = client.get("/health").headers["X-Correlation-ID"]

        assert id1 != id2

    def test_error_responses_carry_id(self, client):
        response = client.get("/users/nobody", headers={"X-Correlation-ID": "trace-404"})

        assert response.status_code == 404
        assert response.headers["X-Correlation-ID"] == "trace-404"

    def test_context_is_cleared_after_request(self, client):
        client.get("/ledger/positions", headers={"X-Correlation-ID": "trace-1"})

        assert get_correlation_id() is None
        assert get_ledger_user() is None


class TestLogFormatting:
    @staticmethod
    def _record(message: str = "Computed 3 positions", **extra) -> logging.LogRecord:
        record = logging.LogRecord("stock_ledger.services.ledger", logging.INFO, __file__, 1, message, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_filter_stamps_context(self):
        record = self._record()
        id_token = bind_correlation_id("trace-9")
        user_token = bind_ledger_user("u1")
        try:
            assert RequestContextFilter().filter(record)
        finally:
            reset_ledger_user(user_token)
            reset_correlation_id(id_token)

        assert record.correlation_id == "trace-9"
        assert record.ledger_user == "u1"

    def test_filter_outside_request(self):
        record = self._record()
        RequestContextFilter().filter(record)

        assert record.correlation_id == "-"
        assert record.ledger_user is None

    def test_json_formatter(self):
        record = self._record(correlation_id="trace-9", ledger_user="u1", stock_code="600519")

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["correlation_id"] == "trace-9"
        assert entry["ledger_user"] == "u1"
        assert entry["message"] == "Computed 3 positions"
        assert entry["extra"] == {"stock_code": "600519"}

    def test_json_formatter_keeps_chinese_text(self):
        line = JsonFormatter().format(self._record("贵州茅台", correlation_id="-"))

        assert "贵州茅台" in line

    @pytest.mark.parametrize("name,level", [("debug", logging.DEBUG), (" WARN ", logging.WARNING)])
    def test_parse_log_level(self, name, level):
        assert parse_log_level(name) == level

    def test_parse_unknown_level(self):
        with pytest.raises(ValueError):
            parse_log_level("VERBOSE")
