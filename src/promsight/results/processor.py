"""
Bounded processing of query results.

Backend payloads can hold thousands of series and points. The processor
reduces them to something a person can read:

- Vector: at most ``max_samples`` series plus an aggregate summary
- Matrix: min/max/avg/current/trend over every point, and each series
  downsampled to ``max_time_points`` keeping the first and last point
- Scalar/String: one synthetic sample
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence, TypeVar

import structlog

from promsight.core.errors import ConfigurationError
from promsight.providers.models import (
    MatrixResult,
    QueryResponse,
    QueryResult,
    ScalarResult,
    StringResult,
    VectorResult,
)

from .models import MetricSample, ProcessedResult, ResultPoint, ResultStats, Trend

logger = structlog.get_logger()

MAX_SAMPLES_DEFAULT = 10
MAX_TIME_POINTS_DEFAULT = 50

TREND_RELATIVE_THRESHOLD = 0.1
TREND_ABSOLUTE_THRESHOLD = 0.1
NEAR_ZERO = 0.001

NO_DATA = "No data found"

T = TypeVar("T")


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def compute_trend(first: float, last: float, points: int) -> Trend:
    """
    Classify the change from ``first`` to ``last``.

    Relative change beyond +/-10% when ``first`` is not near zero, absolute
    change beyond +/-0.1 otherwise. Fewer than two points is always stable.
    """
    if points < 2:
        return Trend.STABLE

    if abs(first) > NEAR_ZERO:
        change = (last - first) / abs(first)
        if change > TREND_RELATIVE_THRESHOLD:
            return Trend.INCREASING
        if change < -TREND_RELATIVE_THRESHOLD:
            return Trend.DECREASING
        return Trend.STABLE

    if last > first + TREND_ABSOLUTE_THRESHOLD:
        return Trend.INCREASING
    if last < first - TREND_ABSOLUTE_THRESHOLD:
        return Trend.DECREASING
    return Trend.STABLE


def downsample(values: Sequence[T], max_points: int) -> list[T]:
    """
    Reduce ``values`` to ``max_points`` items.

    The first and last items are always kept; interior items are taken at
    evenly spaced indices. Caps below 2 are treated as 2.
    """
    max_points = max(2, max_points)
    if len(values) <= max_points:
        return list(values)

    step = (len(values) - 1) / (max_points - 1)
    sampled = [values[0]]
    sampled.extend(values[int(j * step)] for j in range(1, max_points - 1))
    sampled.append(values[-1])
    return sampled


def compute_statistics(series: Iterable[Sequence[float]]) -> ResultStats | None:
    """
    Statistics over every point of every series.

    ``current`` is the last point of the first non-empty series. The trend
    compares the first point of the first non-empty series with the last
    point of the last non-empty one.
    Returns None when there are no points at all.
    """
    count = 0
    total = 0.0
    low = high = 0.0
    first: float | None = None
    current = last = 0.0

    for values in series:
        if not values:
            continue
        if first is None:
            first = values[0]
            current = values[-1]
            low = high = values[0]
        last = values[-1]

        for value in values:
            low = min(low, value)
            high = max(high, value)
            total += value
            count += 1

    if first is None:
        return None

    return ResultStats(
        min=low,
        max=high,
        avg=total / count,
        current=current,
        trend=compute_trend(first, last, count),
    )


class ResultProcessor:
    """Turns backend results into bounded, presentable summaries."""

    def __init__(
        self,
        max_samples: int = MAX_SAMPLES_DEFAULT,
        max_time_points: int = MAX_TIME_POINTS_DEFAULT,
    ):
        if max_samples < 1:
            raise ConfigurationError(
                "max_samples must be at least 1", {"max_samples": max_samples}
            )
        self.max_samples = max_samples
        self.max_time_points = max(2, max_time_points)

    def process(
        self,
        result: QueryResponse | QueryResult,
        warnings: Iterable[str] = (),
    ) -> ProcessedResult:
        """
        Process a query response or a bare result variant.

        Backend warnings carried by a QueryResponse are kept, followed by
        any extra ``warnings``.
        """
        collected: list[str] = []
        if isinstance(result, QueryResponse):
            collected.extend(result.warnings)
            result = result.result
        collected.extend(warnings)

        if isinstance(result, VectorResult):
            processed = self._process_vector(result, collected)
        elif isinstance(result, MatrixResult):
            processed = self._process_matrix(result, collected)
        elif isinstance(result, ScalarResult):
            processed = self._process_scalar(result, collected)
        elif isinstance(result, StringResult):
            processed = self._process_string(result, collected)
        else:
            raise TypeError(f"unsupported result: {type(result).__name__}")

        logger.debug(
            "result_processed",
            result_type=processed.result_type,
            total_series=processed.total_series,
            truncated=processed.truncated,
        )
        return processed

    def _process_vector(self, result: VectorResult, warnings: list[str]) -> ProcessedResult:
        samples = [
            MetricSample(
                labels=dict(sample.labels),
                value=sample.value,
                timestamp=_to_datetime(sample.timestamp),
            )
            for sample in result.samples
        ]
        truncated = len(samples) > self.max_samples

        return ProcessedResult(
            result_type=result.result_type,
            summary=self._vector_summary([s.value for s in result.samples], truncated),
            samples=samples[: self.max_samples],
            total_series=len(samples),
            truncated=truncated,
            warnings=warnings,
        )

    def _vector_summary(self, values: list[float], truncated: bool) -> str:
        if not values:
            return NO_DATA
        if len(values) == 1:
            return f"Current value: {values[0]:.2f}"

        summary = (
            f"Found {len(values)} series: min={min(values):.2f}, "
            f"max={max(values):.2f}, sum={sum(values):.2f}"
        )
        if truncated:
            summary += f" (showing first {self.max_samples})"
        return summary

    def _process_matrix(self, result: MatrixResult, warnings: list[str]) -> ProcessedResult:
        stats = compute_statistics([point.value for point in s.values] for s in result.series)

        samples = [
            MetricSample(
                labels=dict(series.labels),
                values=[
                    ResultPoint(timestamp=_to_datetime(p.timestamp), value=p.value)
                    for p in downsample(series.values, self.max_time_points)
                ],
            )
            for series in result.series
        ]

        if stats is None:
            summary = NO_DATA
        else:
            summary = (
                f"{len(result.series)} series over time: min={stats.min:.2f}, "
                f"max={stats.max:.2f}, avg={stats.avg:.2f}, "
                f"current={stats.current:.2f} (trend: {stats.trend.value})"
            )

        return ProcessedResult(
            result_type=result.result_type,
            summary=summary,
            samples=samples,
            total_series=len(result.series),
            statistics=stats,
            warnings=warnings,
        )

    def _process_scalar(self, result: ScalarResult, warnings: list[str]) -> ProcessedResult:
        return ProcessedResult(
            result_type=result.result_type,
            summary=f"Scalar value: {result.value:.2f}",
            samples=[MetricSample(value=result.value, timestamp=_to_datetime(result.timestamp))],
            total_series=1,
            warnings=warnings,
        )

    def _process_string(self, result: StringResult, warnings: list[str]) -> ProcessedResult:
        return ProcessedResult(
            result_type=result.result_type,
            summary=f"String value: {result.value}",
            samples=[MetricSample(text=result.value, timestamp=_to_datetime(result.timestamp))],
            total_series=1,
            warnings=warnings,
        )
