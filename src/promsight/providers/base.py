from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Protocol

from promsight.providers.models import MetricMetadata, QueryResponse


@dataclass(frozen=True)
class ProviderHealth:
    status: Literal["healthy", "degraded", "unreachable"]
    details: str | None = None


class MetricsBackend(Protocol):
    """Operations every Prometheus-compatible backend exposes to the core."""

    async def query(
        self,
        query: str,
        time: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> QueryResponse:
        ...

    async def query_range(
        self,
        query: str,
        start: datetime,
        end: datetime,
        step: timedelta | float,
        *,
        timeout: float | None = None,
    ) -> QueryResponse:
        ...

    async def get_metric_names(self, *, timeout: float | None = None) -> list[str]:
        ...

    async def get_label_values(
        self,
        label: str,
        *match: str,
        timeout: float | None = None,
    ) -> list[str]:
        ...

    async def get_metric_metadata(
        self,
        metric: str,
        *,
        timeout: float | None = None,
    ) -> MetricMetadata:
        ...

    async def test_connection(self, *, timeout: float | None = None) -> None:
        ...
