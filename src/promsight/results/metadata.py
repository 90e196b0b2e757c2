"""
Visualization hints and follow-up suggestions for processed results.
"""

from __future__ import annotations

import json
from urllib.parse import quote

from .models import ProcessedResult, ResultMetadata, Trend, VisualizationType

MANY_SERIES_THRESHOLD = 10

NO_DATA_STEPS = (
    "Check if the metric name is correct",
    "Verify the time range includes data",
    "Confirm label filters are not too restrictive",
)


def determine_visualization_type(result: ProcessedResult) -> VisualizationType | None:
    """Range results are time series, one series a stat, several a table."""
    if result.statistics is not None:
        return VisualizationType.TIME_SERIES
    if result.total_series == 1:
        return VisualizationType.STAT
    if result.total_series > 1:
        return VisualizationType.TABLE
    return None


def grafana_explore_link(base_url: str | None, query: str) -> str:
    """Build a Grafana Explore URL for ``query``; empty without a base URL."""
    if not base_url:
        return ""

    state = {
        "queries": [{"refId": "A", "expr": query}],
        "range": {"from": "now-1h", "to": "now"},
    }
    encoded = quote(json.dumps(state, separators=(",", ":")), safe="")
    return f"{base_url.rstrip('/')}/explore?left={encoded}"


class MetadataGenerator:
    """Generates visualization hints and next steps for query results."""

    def __init__(self, grafana_url: str | None = None):
        self.grafana_url = grafana_url

    def generate(self, query: str, result: ProcessedResult) -> ResultMetadata:
        visualization = determine_visualization_type(result)
        metadata = ResultMetadata(
            visualization_type=visualization,
            grafana_link=grafana_explore_link(self.grafana_url, query),
        )

        if visualization == VisualizationType.TIME_SERIES:
            metadata.recommendation = (
                "This query works best as a graph showing the trend over time"
            )
            metadata.next_steps.append("View full time series in Grafana")
            trend = result.statistics.trend if result.statistics else Trend.STABLE
            if trend == Trend.INCREASING:
                metadata.next_steps.append("Consider setting an upper threshold alert")
            elif trend == Trend.DECREASING:
                metadata.next_steps.append("Consider setting a lower threshold alert")

        elif visualization == VisualizationType.STAT:
            metadata.recommendation = (
                "This query returns a single value, perfect for a stat panel"
            )
            metadata.next_steps.append("Create an alert if value exceeds threshold")
            lowered = query.lower()
            if "rate(" in lowered or "increase(" in lowered:
                metadata.next_steps.append("Compare with historical baselines")

        elif visualization == VisualizationType.TABLE:
            metadata.recommendation = (
                "This query returns multiple series, best viewed as a table"
            )
            metadata.next_steps.append("Sort or filter series in Grafana")
            if result.total_series > MANY_SERIES_THRESHOLD:
                metadata.next_steps.append(
                    "Consider aggregating by label to reduce series count"
                )

        if result.truncated:
            metadata.next_steps.append(
                "View all results in Grafana - showing limited sample here"
            )

        if result.total_series == 0:
            metadata.recommendation = "No data found for this query"
            metadata.next_steps = list(NO_DATA_STEPS)

        return metadata
