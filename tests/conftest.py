"""Root test configuration."""

import logging

import pytest
import structlog

from promsight.providers.models import (
    MetricMetadata,
    QueryResponse,
    VectorResult,
)


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class FakeBackend:
    """In-memory MetricsBackend recording every call."""

    def __init__(self):
        self.metric_names: list[str] = []
        # (label, match) -> values; match is None for unscoped lookups
        self.label_values: dict[tuple[str, str | None], list[str]] = {}
        self.query_response = QueryResponse(status="success", result=VectorResult())
        self.metadata = MetricMetadata(type="gauge")
        self.errors: dict[str, BaseException] = {}
        self.calls: list[tuple] = []

    def _record(self, operation: str, *args):
        self.calls.append((operation, *args))
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def calls_to(self, operation: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == operation]

    async def query(self, query, time=None, *, timeout=None):
        self._record("query", query, time, timeout)
        return self.query_response

    async def query_range(self, query, start, end, step, *, timeout=None):
        self._record("query_range", query, start, end, step, timeout)
        return self.query_response

    async def get_metric_names(self, *, timeout=None):
        self._record("get_metric_names", timeout)
        return list(self.metric_names)

    async def get_label_values(self, label, *match, timeout=None):
        self._record("get_label_values", label, match, timeout)
        key = (label, match[0] if match else None)
        return list(self.label_values.get(key, []))

    async def get_metric_metadata(self, metric, *, timeout=None):
        self._record("get_metric_metadata", metric, timeout)
        return self.metadata

    async def test_connection(self, *, timeout=None):
        self._record("test_connection", timeout)


@pytest.fixture
def fake_backend():
    return FakeBackend()
