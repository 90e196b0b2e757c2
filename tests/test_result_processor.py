"""
Tests for bounded result processing.
"""

import pytest

from promsight.core.errors import ConfigurationError
from promsight.providers.models import (
    MatrixResult,
    QueryResponse,
    RangeSeries,
    ScalarResult,
    StringResult,
    TimeValue,
    VectorResult,
    VectorSample,
)
from promsight.results.models import Trend
from promsight.results.processor import (
    ResultProcessor,
    compute_statistics,
    compute_trend,
    downsample,
)


def vector_of(*values):
    return VectorResult(
        samples=[
            VectorSample(labels={"instance": f"host-{i}"}, value=v, timestamp=1700000000)
            for i, v in enumerate(values)
        ]
    )


def series_of(*values, start=1700000000, step=60):
    return RangeSeries(
        labels={"job": "api"},
        values=[TimeValue(timestamp=start + i * step, value=v) for i, v in enumerate(values)],
    )


class TestVector:
    """Test instant vector results."""

    def test_single_series(self):
        result = ResultProcessor().process(vector_of(42.123))

        assert result.summary == "Current value: 42.12"
        assert result.total_series == 1
        assert not result.truncated
        assert result.samples[0].labels == {"instance": "host-0"}
        assert result.samples[0].timestamp.year == 2023

    def test_several_series(self):
        result = ResultProcessor().process(vector_of(1, 2, 3))

        assert result.summary == "Found 3 series: min=1.00, max=3.00, sum=6.00"
        assert len(result.samples) == 3

    def test_exactly_at_cap_is_not_truncated(self):
        result = ResultProcessor(max_samples=10).process(vector_of(*range(10)))

        assert not result.truncated
        assert len(result.samples) == 10

    def test_above_cap_is_truncated(self):
        result = ResultProcessor(max_samples=10).process(vector_of(*range(11)))

        assert result.truncated
        assert len(result.samples) == 10
        assert result.total_series == 11
        assert result.summary == (
            "Found 11 series: min=0.00, max=10.00, sum=55.00 (showing first 10)"
        )

    def test_empty(self):
        result = ResultProcessor().process(VectorResult())

        assert result.summary == "No data found"
        assert result.total_series == 0
        assert result.samples == []

    def test_response_warnings_are_kept(self):
        response = QueryResponse(
            status="success", result=vector_of(1), warnings=["partial response"]
        )

        result = ResultProcessor().process(response, warnings=["slow query"])

        assert result.warnings == ["partial response", "slow query"]
        assert result.result_type == "vector"


class TestMatrix:
    """Test range results."""

    def test_statistics_and_summary(self):
        result = ResultProcessor().process(MatrixResult(series=[series_of(10, 20, 30)]))

        stats = result.statistics
        assert (stats.min, stats.max, stats.avg, stats.current) == (10, 30, 20, 30)
        assert stats.trend == Trend.INCREASING
        assert result.summary == (
            "1 series over time: min=10.00, max=30.00, avg=20.00, current=30.00 "
            "(trend: increasing)"
        )

    def test_current_comes_from_first_series(self):
        result = ResultProcessor().process(
            MatrixResult(series=[series_of(1, 5), series_of(2, 9)])
        )

        assert result.statistics.current == 5
        assert result.statistics.trend == Trend.INCREASING
        assert "current=5.00" in result.summary

    def test_downsampling_keeps_endpoints(self):
        values = list(range(200))
        result = ResultProcessor(max_time_points=50).process(
            MatrixResult(series=[series_of(*values)])
        )

        points = result.samples[0].values
        assert len(points) == 50
        assert points[0].value == 0
        assert points[-1].value == 199
        # Statistics are computed before downsampling
        assert result.statistics.avg == pytest.approx(99.5)

    def test_empty_matrix(self):
        result = ResultProcessor().process(MatrixResult())

        assert result.summary == "No data found"
        assert result.statistics is None
        assert result.total_series == 0

    def test_series_without_points(self):
        result = ResultProcessor().process(MatrixResult(series=[series_of()]))

        assert result.statistics is None
        assert result.total_series == 1
        assert result.summary == "No data found"


class TestScalarAndString:
    """Test single-value results."""

    def test_scalar(self):
        result = ResultProcessor().process(ScalarResult(timestamp=1700000000, value=3.14159))

        assert result.summary == "Scalar value: 3.14"
        assert result.total_series == 1
        assert result.samples[0].value == pytest.approx(3.14159)

    def test_string(self):
        result = ResultProcessor().process(StringResult(timestamp=1700000000, value="hello"))

        assert result.summary == "String value: hello"
        assert result.total_series == 1
        assert result.samples[0].text == "hello"

    def test_unsupported_result(self):
        with pytest.raises(TypeError):
            ResultProcessor().process("vector")


class TestComputeTrend:
    """Test trend thresholds."""

    @pytest.mark.parametrize(
        "first,last,expected",
        [
            (100, 111, Trend.INCREASING),
            (100, 110, Trend.STABLE),
            (100, 89, Trend.DECREASING),
            (100, 90, Trend.STABLE),
            (-100, -80, Trend.INCREASING),
            (0, 0.2, Trend.INCREASING),
            (0, 0.05, Trend.STABLE),
            (0.0005, -0.2, Trend.DECREASING),
        ],
    )
    def test_thresholds(self, first, last, expected):
        assert compute_trend(first, last, points=2) == expected

    def test_single_point_is_stable(self):
        assert compute_trend(1, 100, points=1) == Trend.STABLE


class TestComputeStatistics:
    """Test statistics across series."""

    def test_skips_empty_leading_series(self):
        stats = compute_statistics([[], [5, 7], [1, 3]])

        assert stats.min == 1
        assert stats.max == 7
        assert stats.current == 7
        # trend compares first point 5 with last point 3
        assert stats.trend == Trend.DECREASING

    def test_no_points(self):
        assert compute_statistics([[], []]) is None


class TestDownsample:
    """Test time point reduction."""

    def test_short_series_untouched(self):
        assert downsample([1, 2, 3], 5) == [1, 2, 3]

    def test_even_spacing(self):
        assert downsample(list(range(11)), 3) == [0, 5, 10]

    def test_caps_below_two_are_raised(self):
        assert downsample(list(range(10)), 1) == [0, 9]

    def test_processor_raises_small_caps(self):
        assert ResultProcessor(max_time_points=0).max_time_points == 2

    def test_invalid_sample_cap(self):
        with pytest.raises(ConfigurationError):
            ResultProcessor(max_samples=0)
