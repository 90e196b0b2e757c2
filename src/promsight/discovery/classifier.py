"""
Naming-convention heuristics for discovered metrics.

Two rule tables live here:

- ``TYPE_RULES`` infers a metric type when the backend has no metadata.
- ``SERVICE_NAME_RULES`` guesses an owning service from the metric name
  when no service label is present, filtered by ``SERVICE_STOP_WORDS``.

Both are ordered; the first matching rule wins.
"""

import re

import structlog

from .models import MetricType

logger = structlog.get_logger()

# (match kind, fragment, type); "suffix" rules are checked with endswith,
# "contains" rules anywhere in the name.
TYPE_RULES = (
    ("suffix", "_total", MetricType.COUNTER),
    ("suffix", "_count", MetricType.COUNTER),
    ("contains", "_bucket", MetricType.HISTOGRAM),
    ("contains", "_histogram", MetricType.HISTOGRAM),
    ("contains", "_duration", MetricType.HISTOGRAM),
    ("contains", "_time", MetricType.HISTOGRAM),
    ("contains", "_latency", MetricType.HISTOGRAM),
    ("contains", "_summary", MetricType.SUMMARY),
)

# Leading token, then the token before _total, then before _count.
SERVICE_NAME_RULES = (
    re.compile(r"^([a-zA-Z][a-zA-Z0-9_-]*?)_.*"),
    re.compile(r"^.*_([a-zA-Z][a-zA-Z0-9_-]*?)_total$"),
    re.compile(r"^.*_([a-zA-Z][a-zA-Z0-9_-]*?)_count$"),
)

SERVICE_STOP_WORDS = frozenset(
    {
        "http", "https", "tcp", "udp", "grpc",
        "cpu", "memory", "disk", "network", "io",
        "request", "requests", "response", "responses",
        "latency", "duration", "time", "rate",
        "error", "errors", "success", "failure",
        "total", "count", "sum", "avg", "max", "min",
        "bytes", "seconds", "milliseconds",
        "up", "down", "status", "health",
        "api", "db", "database", "cache", "queue",
        "go", "process", "node", "system",
        "gauge", "counter", "histogram", "summary",
        "bucket",
    }
)


def infer_metric_type(metric_name: str) -> MetricType:
    """
    Infer metric type from naming conventions.

    This is a fallback when the backend has no metadata for the metric.
    """
    name = metric_name.lower()

    for kind, fragment, metric_type in TYPE_RULES:
        if kind == "suffix" and name.endswith(fragment):
            return metric_type
        if kind == "contains" and fragment in name:
            return metric_type

    return MetricType.GAUGE  # Default assumption


def is_generic_metric_word(word: str) -> bool:
    """Return True for vocabulary that names a measurement, not a service."""
    return word.lower() in SERVICE_STOP_WORDS


def extract_service_from_metric_name(metric_name: str) -> str | None:
    """
    Guess the owning service from a metric name.

    Returns None when every candidate token is generic vocabulary.
    """
    for pattern in SERVICE_NAME_RULES:
        match = pattern.match(metric_name)
        if not match:
            continue
        candidate = match.group(1)
        if not is_generic_metric_word(candidate):
            logger.debug(
                "service_inferred_from_name",
                metric=metric_name,
                service=candidate,
                pattern=pattern.pattern,
            )
            return candidate

    return None
