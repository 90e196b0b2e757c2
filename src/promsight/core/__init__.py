"""Core modules for promsight - centralized definitions and utilities."""

from promsight.core.errors import (
    BackendConnectionError,
    BackendError,
    BackendHTTPError,
    BackendQueryError,
    BackendTimeoutError,
    CircuitOpenError,
    ConfigurationError,
    DiscoveryCycleError,
    DiscoveryError,
    DiscoveryWriteError,
    MalformedResponseError,
    PromsightError,
    QueryCancelledError,
    SafetyViolation,
    ServiceNotFoundError,
    ViolationKind,
    format_error_message,
)

__all__ = [
    "PromsightError",
    "ConfigurationError",
    # Backend
    "BackendError",
    "BackendConnectionError",
    "BackendTimeoutError",
    "BackendHTTPError",
    "BackendQueryError",
    "MalformedResponseError",
    "QueryCancelledError",
    # Resilience
    "CircuitOpenError",
    # Safety
    "SafetyViolation",
    "ViolationKind",
    # Discovery
    "DiscoveryError",
    "DiscoveryCycleError",
    "DiscoveryWriteError",
    "ServiceNotFoundError",
    "format_error_message",
]
