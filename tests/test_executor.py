"""
Tests for the interactive query pipeline.
"""

from datetime import datetime, timedelta, timezone

import pytest

from promsight.core.errors import BackendHTTPError, SafetyViolation, ViolationKind
from promsight.executor import QueryExecutor
from promsight.providers.models import (
    MatrixResult,
    QueryResponse,
    RangeSeries,
    TimeValue,
    VectorResult,
    VectorSample,
)
from promsight.results.models import VisualizationType
from promsight.results.processor import ResultProcessor

NOW = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)


class TestExecute:
    """Test instant query execution."""

    @pytest.mark.asyncio
    async def test_runs_and_describes_query(self, fake_backend):
        fake_backend.query_response = QueryResponse(
            status="success",
            result=VectorResult(
                samples=[VectorSample(labels={"job": "api"}, value=12.5, timestamp=1700000000)]
            ),
        )
        executor = QueryExecutor(fake_backend, timeout=5.0)

        execution = await executor.execute("rate(http_requests_total[5m])", NOW)

        assert fake_backend.calls_to("query") == [
            ("query", "rate(http_requests_total[5m])", NOW, 5.0)
        ]
        assert execution.result.summary == "Current value: 12.50"
        assert execution.metadata.visualization_type == VisualizationType.STAT
        assert execution.estimated_cardinality == 1

    @pytest.mark.asyncio
    async def test_unsafe_query_never_reaches_backend(self, fake_backend):
        executor = QueryExecutor(fake_backend)

        with pytest.raises(SafetyViolation) as exc_info:
            await executor.execute("rate(app_secret_key[5m])")

        assert exc_info.value.kind == ViolationKind.FORBIDDEN_METRIC
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_blank_query_rejected(self, fake_backend):
        executor = QueryExecutor(fake_backend)

        with pytest.raises(SafetyViolation) as exc_info:
            await executor.execute("   ")

        assert exc_info.value.kind == ViolationKind.INVALID_INPUT
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_backend_errors_propagate(self, fake_backend):
        fake_backend.errors["query"] = BackendHTTPError(
            "query failed with status 500", status_code=500
        )
        executor = QueryExecutor(fake_backend)

        with pytest.raises(BackendHTTPError):
            await executor.execute("up")

    @pytest.mark.asyncio
    async def test_uses_configured_processor(self, fake_backend):
        fake_backend.query_response = QueryResponse(
            status="success",
            result=VectorResult(
                samples=[
                    VectorSample(labels={"i": str(i)}, value=i, timestamp=1700000000)
                    for i in range(5)
                ]
            ),
        )
        executor = QueryExecutor(fake_backend, processor=ResultProcessor(max_samples=2))

        execution = await executor.execute("up")

        assert execution.result.truncated
        assert len(execution.result.samples) == 2


class TestExecuteRange:
    """Test range query execution."""

    @pytest.mark.asyncio
    async def test_runs_range_query(self, fake_backend):
        fake_backend.query_response = QueryResponse(
            status="success",
            result=MatrixResult(
                series=[
                    RangeSeries(
                        labels={"job": "api"},
                        values=[TimeValue(1700000000, 1.0), TimeValue(1700000060, 2.0)],
                    )
                ]
            ),
        )
        executor = QueryExecutor(fake_backend)

        execution = await executor.execute_range(
            "up", NOW - timedelta(hours=1), NOW, timedelta(minutes=1)
        )

        assert execution.result.statistics is not None
        assert execution.metadata.visualization_type == VisualizationType.TIME_SERIES
        assert len(fake_backend.calls_to("query_range")) == 1

    @pytest.mark.asyncio
    async def test_window_longer_than_max_range(self, fake_backend):
        executor = QueryExecutor(fake_backend)

        with pytest.raises(SafetyViolation) as exc_info:
            await executor.execute_range("up", NOW - timedelta(days=8), NOW, 3600)

        assert exc_info.value.kind == ViolationKind.EXCESSIVE_RANGE
        assert "8d" in exc_info.value.explanation
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_inverted_window(self, fake_backend):
        executor = QueryExecutor(fake_backend)

        with pytest.raises(SafetyViolation) as exc_info:
            await executor.execute_range("up", NOW, NOW - timedelta(hours=1), 60)

        assert exc_info.value.kind == ViolationKind.INVALID_INPUT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("step", [0, -15, timedelta(0)])
    async def test_non_positive_step(self, fake_backend, step):
        executor = QueryExecutor(fake_backend)

        with pytest.raises(SafetyViolation) as exc_info:
            await executor.execute_range("up", NOW - timedelta(hours=1), NOW, step)

        assert exc_info.value.kind == ViolationKind.INVALID_INPUT
        assert fake_backend.calls == []
