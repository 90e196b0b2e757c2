"""
Safety validation for candidate PromQL queries.

Checks are heuristic, not a PromQL parser. They run in a fixed order and
the first violation wins:

1. Query length
2. Forbidden metric patterns (regex, case-insensitive)
3. Custom forbidden substrings (case-insensitive)
4. Range selector durations against the maximum range
5. Empty ``by ()`` / ``without ()`` grouping
6. Expensive operations (``group_left``, ``absent(``, ...)
7. Parenthesis nesting depth
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta

import structlog

from promsight.core.errors import ConfigurationError, SafetyViolation, ViolationKind
from promsight.logging import sanitize_for_logging
from promsight.validation.durations import (
    extract_range_durations,
    format_duration,
    is_single_duration,
    parse_duration,
)

logger = structlog.get_logger()

DEFAULT_FORBIDDEN_METRICS = (
    ".*_secret.*",
    ".*_password.*",
    ".*_token.*",
    ".*_key.*",
)

EXPENSIVE_OPERATIONS = (
    "group_left",
    "group_right",
    "or vector",
    "absent(",
)

EMPTY_GROUPINGS = ("by ()", "without ()")

_LABEL_MATCHERS = re.compile(r"\{[^}]+\}")


@dataclass(frozen=True)
class SafetyPolicy:
    """Limits enforced by a SafetyChecker."""

    max_query_length: int = 500
    forbidden_metrics: tuple[str, ...] = DEFAULT_FORBIDDEN_METRICS
    forbidden_substrings: tuple[str, ...] = field(default_factory=tuple)
    max_range: timedelta = timedelta(days=7)
    max_nesting_depth: int = 3
    max_cardinality: int = 10000


class SafetyCheck(ABC):
    """Base class for query safety checks."""

    name: str = "base"
    description: str = "Base check"

    @abstractmethod
    def check(self, query: str) -> None:
        """Raise SafetyViolation if ``query`` fails this check."""


class QueryLengthCheck(SafetyCheck):
    name = "queryLength"
    description = "Reject queries longer than the configured maximum"

    def __init__(self, max_length: int):
        self.max_length = max_length

    def check(self, query: str) -> None:
        if self.max_length > 0 and len(query) > self.max_length:
            raise SafetyViolation(
                ViolationKind.EXCESSIVE_LENGTH,
                "Query exceeds maximum length",
                details=(
                    f"Query length: {len(query)} characters, "
                    f"maximum allowed: {self.max_length}"
                ),
                suggestion="Please simplify your query or break it into smaller queries.",
                metadata={"length": len(query), "max_length": self.max_length},
            )


class ForbiddenMetricCheck(SafetyCheck):
    name = "forbiddenMetric"
    description = "Reject queries touching sensitive metrics"

    def __init__(self, patterns: tuple[str, ...]):
        self.patterns = []
        for pattern in patterns:
            try:
                self.patterns.append((pattern, re.compile(pattern, re.IGNORECASE)))
            except re.error as exc:
                raise ConfigurationError(
                    f"invalid forbidden metric pattern {pattern!r}: {exc}",
                    {"pattern": pattern},
                ) from exc

    def check(self, query: str) -> None:
        for pattern, compiled in self.patterns:
            if compiled.search(query):
                raise SafetyViolation(
                    ViolationKind.FORBIDDEN_METRIC,
                    "Query contains forbidden metric",
                    details=(
                        "The query attempts to access metrics matching the "
                        f"forbidden pattern: {pattern}"
                    ),
                    suggestion=(
                        "Metrics containing sensitive information (secrets, passwords, "
                        "tokens, keys) cannot be queried directly. Please contact your "
                        "administrator if you need access."
                    ),
                    metadata={"pattern": pattern},
                )


class ForbiddenSubstringCheck(SafetyCheck):
    name = "forbiddenSubstring"
    description = "Reject queries containing operator-defined substrings"

    def __init__(self, substrings: tuple[str, ...]):
        self.substrings = [s for s in substrings if s]

    def check(self, query: str) -> None:
        lowered = query.lower()
        for substring in self.substrings:
            if substring.lower() in lowered:
                raise SafetyViolation(
                    ViolationKind.FORBIDDEN_METRIC,
                    "Query contains forbidden pattern",
                    details=f"Forbidden pattern: {substring}",
                    suggestion="Modify your query to avoid using this pattern.",
                    metadata={"pattern": substring},
                )


class RangeDurationCheck(SafetyCheck):
    name = "rangeDuration"
    description = "Reject range selectors longer than the maximum range"

    def __init__(self, max_range: timedelta):
        self.max_range = max_range

    def check(self, query: str) -> None:
        for text in extract_range_durations(query):
            try:
                duration = parse_duration(text)
            except ValueError:
                # Not a duration (e.g. a character class in a regex matcher)
                continue
            if duration > self.max_range:
                raise excessive_range_violation(text, self.max_range)


class EmptyGroupingCheck(SafetyCheck):
    name = "emptyGrouping"
    description = "Reject aggregations grouped by no labels"

    def check(self, query: str) -> None:
        for grouping in EMPTY_GROUPINGS:
            if grouping in query:
                raise SafetyViolation(
                    ViolationKind.HIGH_CARDINALITY,
                    "Query may produce high cardinality results",
                    details=(
                        "The query structure suggests it could return an excessive "
                        "number of time series"
                    ),
                    suggestion=(
                        "Add more specific label filters or use aggregation functions "
                        "like sum(), avg(), or max(). Avoid queries that group by no "
                        "labels or use 'without ()'."
                    ),
                    metadata={"grouping": grouping},
                )


class ExpensiveOperationCheck(SafetyCheck):
    name = "expensiveOperation"
    description = "Reject operations known to be resource intensive"

    def check(self, query: str) -> None:
        lowered = query.lower()
        for operation in EXPENSIVE_OPERATIONS:
            if operation in lowered:
                raise SafetyViolation(
                    ViolationKind.EXPENSIVE_OPERATION,
                    "Query contains potentially expensive operation",
                    details=(
                        f"The query uses the '{operation}' operation which can be "
                        "resource-intensive"
                    ),
                    suggestion=(
                        "Consider rewriting your query to avoid expensive operations "
                        "like 'group_left', 'group_right', or 'absent()'. Use simpler "
                        "aggregations when possible."
                    ),
                    metadata={"operation": operation},
                )


class NestingDepthCheck(SafetyCheck):
    name = "nestingDepth"
    description = "Reject deeply nested expressions"

    def __init__(self, max_depth: int):
        self.max_depth = max_depth

    def check(self, query: str) -> None:
        depth = nesting_depth(query)
        if depth > self.max_depth:
            raise SafetyViolation(
                ViolationKind.TOO_MANY_NESTED,
                "Query contains too many nested operations",
                details=(
                    f"The query has {depth} levels of nesting, "
                    f"maximum allowed is {self.max_depth}"
                ),
                suggestion=(
                    "Break down complex queries into simpler parts, or reduce the "
                    "number of nested function calls."
                ),
                metadata={"depth": depth, "max_depth": self.max_depth},
            )


def nesting_depth(query: str) -> int:
    """Maximum parenthesis depth, ignoring characters inside quoted strings."""
    depth = 0
    deepest = 0
    quote: str | None = None
    escaped = False

    for char in query:
        if quote is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in ("'", '"', "`"):
            quote = char
        elif char == "(":
            depth += 1
            deepest = max(deepest, depth)
        elif char == ")" and depth > 0:
            depth -= 1

    return deepest


def excessive_range_violation(requested: str, max_range: timedelta) -> SafetyViolation:
    allowed = format_duration(max_range)
    return SafetyViolation(
        ViolationKind.EXCESSIVE_RANGE,
        "Query time range exceeds maximum allowed",
        details=(
            f"The query requests data for {requested}, which exceeds the maximum "
            f"allowed range of {allowed}"
        ),
        suggestion=(
            f"Please reduce the time range to {allowed} or less. For historical "
            "analysis, consider using aggregated data or downsampled metrics."
        ),
        metadata={"requested": requested, "max_range": allowed},
    )


def build_checks(policy: SafetyPolicy) -> list[SafetyCheck]:
    """Instantiate the ordered check pipeline for ``policy``."""
    return [
        QueryLengthCheck(policy.max_query_length),
        ForbiddenMetricCheck(policy.forbidden_metrics),
        ForbiddenSubstringCheck(policy.forbidden_substrings),
        RangeDurationCheck(policy.max_range),
        EmptyGroupingCheck(),
        ExpensiveOperationCheck(),
        NestingDepthCheck(policy.max_nesting_depth),
    ]


class SafetyChecker:
    """Vets candidate queries before they reach the metrics backend."""

    def __init__(self, policy: SafetyPolicy | None = None):
        """
        Build the checker.

        Raises:
            ConfigurationError: If a forbidden metric pattern is not a valid regex
        """
        self.policy = policy or SafetyPolicy()
        self.checks = build_checks(self.policy)

    def validate_query(self, query: str) -> None:
        """
        Validate a PromQL query.

        Raises:
            SafetyViolation: The first failed check
        """
        for check in self.checks:
            try:
                check.check(query)
            except SafetyViolation as violation:
                logger.warning(
                    "query_rejected",
                    check=check.name,
                    code=violation.kind.value,
                    query=sanitize_for_logging(query),
                )
                raise

    def validate_time_range(self, time_range: str) -> timedelta:
        """
        Validate a ``<int><unit>`` time range such as ``24h``.

        Returns:
            The parsed duration

        Raises:
            SafetyViolation: INVALID_INPUT for a bad format, EXCESSIVE_TIME_RANGE
                when longer than the maximum range
        """
        if not is_single_duration(time_range):
            raise SafetyViolation(
                ViolationKind.INVALID_INPUT,
                "Invalid time range format",
                details=f"Time range: {time_range}",
                suggestion="Use valid time range formats like: 5m, 1h, 24h, 7d, 1w",
            )

        duration = parse_duration(time_range)
        if duration > self.policy.max_range:
            raise excessive_range_violation(time_range, self.policy.max_range)
        return duration

    def estimate_cardinality(self, query: str) -> int:
        """
        Rough, advisory estimate of how many series ``query`` returns.

        Never used to reject a query.
        """
        cardinality = 1

        for matcher in _LABEL_MATCHERS.findall(query):
            cardinality *= matcher.count(",") + 1

        if "sum" in query or "avg" in query:
            cardinality //= 2

        if "by (" in query:
            cardinality *= 10

        return cardinality

    def exceeds_cardinality(self, query: str) -> bool:
        return self.estimate_cardinality(query) > self.policy.max_cardinality
