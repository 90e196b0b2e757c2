"""Query safety validation."""

from promsight.validation.durations import (
    extract_range_durations,
    format_duration,
    parse_duration,
)
from promsight.validation.safety import (
    DEFAULT_FORBIDDEN_METRICS,
    EXPENSIVE_OPERATIONS,
    SafetyCheck,
    SafetyChecker,
    SafetyPolicy,
    nesting_depth,
)

__all__ = [
    "DEFAULT_FORBIDDEN_METRICS",
    "EXPENSIVE_OPERATIONS",
    "SafetyCheck",
    "SafetyChecker",
    "SafetyPolicy",
    "extract_range_durations",
    "format_duration",
    "nesting_depth",
    "parse_duration",
]
