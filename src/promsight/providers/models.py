"""
Typed results for the Prometheus HTTP API.

The ``resultType`` discriminator of a query response is inspected exactly
once, in ``parse_query_result``. Everything downstream dispatches on the
variant class (``VectorResult``, ``MatrixResult``, ``ScalarResult``,
``StringResult``) instead of the raw JSON.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

import structlog

from promsight.core.errors import MalformedResponseError

logger = structlog.get_logger()

_SPECIAL_FLOATS = {
    "nan": math.nan,
    "+inf": math.inf,
    "inf": math.inf,
    "-inf": -math.inf,
}


def parse_sample_value(raw: Any) -> float:
    """
    Parse a sample value as sent by Prometheus (``"42.5"``).

    Unparsable values become 0.0 so one bad point cannot fail the whole
    call. The raw string is kept on every sample for stricter callers.
    """
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, str):
        special = _SPECIAL_FLOATS.get(raw.strip().lower())
        if special is not None:
            return special
        try:
            return float(raw)
        except ValueError:
            pass
    logger.warning("sample_value_unparsable", raw_value=repr(raw))
    return 0.0


@dataclass(frozen=True)
class TimeValue:
    """A single (timestamp, value) point."""

    timestamp: float
    value: float
    raw_value: str = ""


@dataclass(frozen=True)
class VectorSample:
    """One series of an instant vector."""

    labels: dict[str, str]
    value: float
    timestamp: float
    raw_value: str = ""


@dataclass(frozen=True)
class RangeSeries:
    """One series of a range vector, points ordered by time."""

    labels: dict[str, str]
    values: list[TimeValue] = field(default_factory=list)


@dataclass(frozen=True)
class VectorResult:
    result_type: ClassVar[str] = "vector"

    samples: list[VectorSample] = field(default_factory=list)

    @property
    def series_count(self) -> int:
        return len(self.samples)


@dataclass(frozen=True)
class MatrixResult:
    result_type: ClassVar[str] = "matrix"

    series: list[RangeSeries] = field(default_factory=list)

    @property
    def series_count(self) -> int:
        return len(self.series)


@dataclass(frozen=True)
class ScalarResult:
    result_type: ClassVar[str] = "scalar"

    timestamp: float
    value: float
    raw_value: str = ""

    @property
    def series_count(self) -> int:
        return 1


@dataclass(frozen=True)
class StringResult:
    result_type: ClassVar[str] = "string"

    timestamp: float
    value: str

    @property
    def series_count(self) -> int:
        return 1


QueryResult = Union[VectorResult, MatrixResult, ScalarResult, StringResult]


@dataclass(frozen=True)
class QueryResponse:
    """Decoded response envelope of a query or query_range call."""

    status: str
    result: QueryResult
    warnings: list[str] = field(default_factory=list)

    @property
    def result_type(self) -> str:
        return self.result.result_type


@dataclass(frozen=True)
class MetricMetadata:
    """Metadata of a metric, either reported by the backend or inferred."""

    type: str
    help: str = ""
    unit: str = ""
    inferred: bool = False


def _split_point(point: Any, what: str) -> tuple[float, Any]:
    if not isinstance(point, (list, tuple)) or len(point) != 2:
        raise MalformedResponseError(f"invalid {what} point: expected [timestamp, value]")
    ts, raw = point
    try:
        timestamp = float(ts)
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError(f"invalid {what} timestamp: {ts!r}") from exc
    return timestamp, raw


def _labels(entry: dict[str, Any]) -> dict[str, str]:
    labels = entry.get("metric", {})
    if not isinstance(labels, dict):
        raise MalformedResponseError("series labels must be an object")
    return {str(k): str(v) for k, v in labels.items()}


def _parse_vector(result: Any) -> VectorResult:
    if not isinstance(result, list):
        raise MalformedResponseError("vector result must be a list")
    samples = []
    for entry in result:
        if not isinstance(entry, dict):
            raise MalformedResponseError("vector entry must be an object")
        timestamp, raw = _split_point(entry.get("value"), "vector")
        samples.append(
            VectorSample(
                labels=_labels(entry),
                value=parse_sample_value(raw),
                timestamp=timestamp,
                raw_value=str(raw),
            )
        )
    return VectorResult(samples=samples)


def _parse_matrix(result: Any) -> MatrixResult:
    if not isinstance(result, list):
        raise MalformedResponseError("matrix result must be a list")
    series = []
    for entry in result:
        if not isinstance(entry, dict):
            raise MalformedResponseError("matrix entry must be an object")
        values = []
        for point in entry.get("values", []) or []:
            timestamp, raw = _split_point(point, "matrix")
            values.append(
                TimeValue(timestamp=timestamp, value=parse_sample_value(raw), raw_value=str(raw))
            )
        series.append(RangeSeries(labels=_labels(entry), values=values))
    return MatrixResult(series=series)


def _parse_scalar(result: Any) -> ScalarResult:
    timestamp, raw = _split_point(result, "scalar")
    return ScalarResult(timestamp=timestamp, value=parse_sample_value(raw), raw_value=str(raw))


def _parse_string(result: Any) -> StringResult:
    timestamp, raw = _split_point(result, "string")
    return StringResult(timestamp=timestamp, value=str(raw))


_RESULT_PARSERS = {
    "vector": _parse_vector,
    "matrix": _parse_matrix,
    "scalar": _parse_scalar,
    "string": _parse_string,
}


def parse_query_result(data: Any) -> QueryResult:
    """Decode the ``data`` member of a query response into its variant."""
    if not isinstance(data, dict):
        raise MalformedResponseError("query response data must be an object")

    result_type = data.get("resultType")
    parser = _RESULT_PARSERS.get(result_type)  # type: ignore[arg-type]
    if parser is None:
        raise MalformedResponseError(f"unsupported result type: {result_type!r}")
    return parser(data.get("result", []))


def parse_query_response(payload: dict[str, Any]) -> QueryResponse:
    """Decode a successful query envelope."""
    warnings = payload.get("warnings") or []
    return QueryResponse(
        status=payload.get("status", ""),
        result=parse_query_result(payload.get("data")),
        warnings=[str(w) for w in warnings],
    )
