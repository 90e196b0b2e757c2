"""
Tests for PromQL duration parsing.
"""

from datetime import timedelta

import pytest

from promsight.validation.durations import (
    extract_range_durations,
    format_duration,
    parse_duration,
)


class TestParseDuration:
    """Test duration strings."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("500ms", timedelta(milliseconds=500)),
            ("30s", timedelta(seconds=30)),
            ("5m", timedelta(minutes=5)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("7d", timedelta(days=7)),
            ("2w", timedelta(weeks=2)),
            ("1y", timedelta(days=365)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "5", "m", "5x", "-5m", "5 m", "1.5h"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestExtractRangeDurations:
    """Test range selector extraction."""

    def test_range_selectors(self):
        query = "rate(a_total[5m]) / rate(b_total[ 1h ])"
        assert extract_range_durations(query) == ["5m", "1h"]

    def test_subquery_keeps_range_only(self):
        assert extract_range_durations("max_over_time(x[30d:5m])") == ["30d"]
        assert extract_range_durations("max_over_time(x[1h:])") == ["1h"]

    def test_no_ranges(self):
        assert extract_range_durations('up{job="api"}') == []


class TestFormatDuration:
    """Test human-readable durations."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (timedelta(days=7), "7d"),
            (timedelta(hours=36), "36h"),
            (timedelta(minutes=90), "90m"),
            (timedelta(seconds=61), "61s"),
            (timedelta(milliseconds=250), "250ms"),
        ],
    )
    def test_format(self, value, expected):
        assert format_duration(value) == expected
