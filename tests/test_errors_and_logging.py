"""
Tests for the error taxonomy and logging helpers.
"""

import asyncio

from promsight.core.errors import (
    BackendError,
    BackendTimeoutError,
    CircuitOpenError,
    PromsightError,
    QueryCancelledError,
    SafetyViolation,
    ViolationKind,
    format_error_message,
)
from promsight.logging import sanitize_for_logging


class TestErrors:
    """Test error types and formatting."""

    def test_backend_errors_share_base(self):
        error = BackendTimeoutError("query timed out", operation="query")

        assert isinstance(error, BackendError)
        assert isinstance(error, PromsightError)
        assert error.operation == "query"

    def test_cancellation_is_not_a_backend_error(self):
        error = QueryCancelledError("query cancelled", operation="query")

        assert isinstance(error, asyncio.CancelledError)
        assert not isinstance(error, PromsightError)

    def test_circuit_open_details(self):
        error = CircuitOpenError("backend", "open")

        assert format_error_message(error) == (
            "circuit breaker 'backend' is open: call rejected (open) "
            "(breaker=backend, state=open, reason=open)"
        )

    def test_safety_violation_rendering(self):
        violation = SafetyViolation(
            ViolationKind.TOO_MANY_NESTED,
            "Query contains too many nested operations",
            details="depth 5",
            suggestion="Simplify.",
        )

        assert str(violation) == "[TOO_MANY_NESTED_OPS] Query contains too many nested operations: depth 5"
        assert violation.user_message() == (
            "Query contains too many nested operations\n\nDetails: depth 5\n\nSuggestion: Simplify."
        )
        assert violation.to_dict()["code"] == "TOO_MANY_NESTED_OPS"


class TestSanitizeForLogging:
    """Test log injection protection."""

    def test_escapes_control_characters(self):
        assert sanitize_for_logging("up\nINFO fake\r\tline") == "up\\nINFO fake\\r\\tline"

    def test_truncates_long_input(self):
        sanitized = sanitize_for_logging("x" * 300)

        assert sanitized == "x" * 200 + "..."

    def test_short_input_untouched(self):
        assert sanitize_for_logging("rate(x[5m])") == "rate(x[5m])"
