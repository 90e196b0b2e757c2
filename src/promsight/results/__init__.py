"""Processing and presentation of query results."""

from promsight.results.metadata import (
    MetadataGenerator,
    determine_visualization_type,
    grafana_explore_link,
)
from promsight.results.models import (
    MetricSample,
    ProcessedResult,
    ResultMetadata,
    ResultPoint,
    ResultStats,
    Trend,
    VisualizationType,
)
from promsight.results.processor import (
    ResultProcessor,
    compute_statistics,
    compute_trend,
    downsample,
)

__all__ = [
    "MetadataGenerator",
    "MetricSample",
    "ProcessedResult",
    "ResultMetadata",
    "ResultPoint",
    "ResultProcessor",
    "ResultStats",
    "Trend",
    "VisualizationType",
    "compute_statistics",
    "compute_trend",
    "determine_visualization_type",
    "downsample",
    "grafana_explore_link",
]
