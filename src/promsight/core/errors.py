"""
Unified error taxonomy for promsight.

Every failure the core can surface has its own exception type so callers
never have to parse messages:

- Backend failures: connectivity, timeout, HTTP status, query error
  envelopes and malformed payloads
- Circuit breaker rejections
- Safety violations, categorized by ``ViolationKind``
- Discovery failures, split into fatal cycle errors and per-service
  write errors

Cancellation is reported with ``QueryCancelledError``, which derives from
``asyncio.CancelledError`` so task cancellation keeps working.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any


class PromsightError(Exception):
    """Base exception for promsight errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PromsightError):
    """Raised for configuration-related errors."""


class BackendError(PromsightError):
    """Raised when the metrics backend call fails."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.operation = operation


class BackendConnectionError(BackendError):
    """The backend could not be reached."""


class BackendTimeoutError(BackendError):
    """The backend did not answer within the call deadline."""


class BackendHTTPError(BackendError):
    """The backend answered with a non-2xx HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str = "",
        operation: str | None = None,
    ):
        super().__init__(
            message,
            operation=operation,
            details={"status_code": status_code},
        )
        self.status_code = status_code
        self.body = body


class BackendQueryError(BackendError):
    """The backend answered with ``status: error`` in the envelope."""

    def __init__(
        self,
        message: str,
        *,
        error_type: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(
            message,
            operation=operation,
            details={"error_type": error_type} if error_type else None,
        )
        self.error_type = error_type


class MalformedResponseError(BackendError):
    """The backend payload could not be decoded into the expected shape."""


class QueryCancelledError(asyncio.CancelledError):
    """The caller cancelled an in-flight backend request."""

    def __init__(self, message: str, *, operation: str | None = None):
        super().__init__(message)
        self.message = message
        self.operation = operation


class CircuitOpenError(PromsightError):
    """Raised when the circuit breaker rejects a call without attempting it."""

    def __init__(self, name: str, state: str, reason: str = "open"):
        message = f"circuit breaker '{name}' is {state}: call rejected ({reason})"
        super().__init__(message, {"breaker": name, "state": state, "reason": reason})
        self.name = name
        self.state = state
        self.reason = reason


class ViolationKind(str, Enum):
    """Categories of query safety violations."""

    FORBIDDEN_METRIC = "FORBIDDEN_METRIC"
    EXCESSIVE_RANGE = "EXCESSIVE_TIME_RANGE"
    HIGH_CARDINALITY = "HIGH_CARDINALITY"
    EXPENSIVE_OPERATION = "EXPENSIVE_OPERATION"
    TOO_MANY_NESTED = "TOO_MANY_NESTED_OPS"
    EXCESSIVE_LENGTH = "EXCESSIVE_LENGTH"
    INVALID_INPUT = "INVALID_INPUT"


class SafetyViolation(PromsightError):
    """A candidate query was rejected by the safety validator."""

    def __init__(
        self,
        kind: ViolationKind,
        message: str,
        *,
        details: str = "",
        suggestion: str = "",
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__(message, metadata)
        self.kind = kind
        self.explanation = details
        self.suggestion = suggestion

    def __str__(self) -> str:
        text = f"[{self.kind.value}] {self.message}"
        if self.explanation:
            text = f"{text}: {self.explanation}"
        return text

    def user_message(self) -> str:
        """Return the message with details and remediation for end users."""
        parts = [self.message]
        if self.explanation:
            parts.append(f"Details: {self.explanation}")
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return "\n\n".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.kind.value,
            "message": self.message,
            "details": self.explanation,
            "suggestion": self.suggestion,
            "metadata": dict(self.details),
        }


class DiscoveryError(PromsightError):
    """Raised when the discovery engine cannot start or is misused."""


class DiscoveryCycleError(DiscoveryError):
    """A discovery cycle had to be aborted."""


class DiscoveryWriteError(DiscoveryError):
    """A single service could not be written to the catalog."""

    def __init__(self, message: str, *, service: str, namespace: str):
        super().__init__(message, {"service": service, "namespace": namespace})
        self.service = service
        self.namespace = namespace


class ServiceNotFoundError(PromsightError):
    """Raised by catalogs when a service id is unknown."""


def format_error_message(error: PromsightError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
