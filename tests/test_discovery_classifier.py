"""
Tests for metric naming heuristics.
"""

import pytest

from promsight.discovery.classifier import (
    extract_service_from_metric_name,
    infer_metric_type,
    is_generic_metric_word,
)
from promsight.discovery.models import MetricType


class TestInferMetricType:
    """Test type inference from metric names."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("http_requests_total", MetricType.COUNTER),
            ("rpc_calls_count", MetricType.COUNTER),
            ("request_duration_seconds", MetricType.HISTOGRAM),
            ("request_duration_seconds_bucket", MetricType.HISTOGRAM),
            ("db_query_latency_ms", MetricType.HISTOGRAM),
            ("gc_time_seconds", MetricType.HISTOGRAM),
            ("request_summary", MetricType.SUMMARY),
            ("current_connections", MetricType.GAUGE),
            ("up", MetricType.GAUGE),
        ],
    )
    def test_naming_conventions(self, name, expected):
        assert infer_metric_type(name) == expected

    def test_suffix_rules_win_over_substrings(self):
        # Both "_duration" and the "_count" suffix apply
        assert infer_metric_type("request_duration_seconds_count") == MetricType.COUNTER

    def test_case_insensitive(self):
        assert infer_metric_type("HTTP_REQUESTS_TOTAL") == MetricType.COUNTER


class TestExtractServiceFromMetricName:
    """Test service inference when no service label exists."""

    def test_leading_token(self):
        assert extract_service_from_metric_name("checkout_orders_total") == "checkout"

    def test_generic_leading_token_falls_back_to_total_token(self):
        assert extract_service_from_metric_name("http_payments_total") == "payments"

    def test_generic_tokens_are_rejected(self):
        assert extract_service_from_metric_name("http_requests_total") is None
        assert extract_service_from_metric_name("go_goroutines") is None

    def test_no_underscore(self):
        assert extract_service_from_metric_name("up") is None

    @pytest.mark.parametrize("word", ["HTTP", "cpu", "bucket", "Summary"])
    def test_stop_words(self, word):
        assert is_generic_metric_word(word)

    def test_non_generic_word(self):
        assert not is_generic_metric_word("billing")
