"""Metrics backend providers and their shared data model."""

from promsight.providers.base import MetricsBackend, ProviderHealth
from promsight.providers.models import (
    MatrixResult,
    MetricMetadata,
    QueryResponse,
    QueryResult,
    ScalarResult,
    StringResult,
    VectorResult,
)

__all__ = [
    "MetricsBackend",
    "ProviderHealth",
    "QueryResponse",
    "QueryResult",
    "VectorResult",
    "MatrixResult",
    "ScalarResult",
    "StringResult",
    "MetricMetadata",
]
