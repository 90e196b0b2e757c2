"""
Data models for service discovery.
"""

from datetime import timedelta
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field


class MetricType(str, Enum):
    """Prometheus metric types."""
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    SUMMARY = "summary"
    UNKNOWN = "unknown"


class DiscoveryConfig(BaseModel):
    """Settings of the periodic discovery engine."""

    enabled: bool = Field(True, description="Run discovery at all")
    interval: timedelta = Field(timedelta(minutes=5), description="Time between cycles")
    namespaces: List[str] = Field(
        default_factory=list,
        description="Namespace allow-list; empty allows every namespace",
    )
    service_label_names: List[str] = Field(
        default_factory=lambda: ["service", "job", "app", "application"],
        description="Labels that name the owning service, in priority order",
    )
    exclude_metrics: List[str] = Field(
        default_factory=list,
        description="Regexes of metric names to skip",
    )


class ServiceInfo(BaseModel):
    """A service a single metric was attributed to."""

    name: str
    namespace: str = "default"

    class Config:
        frozen = True


class DiscoveredService(BaseModel):
    """A service observed during one discovery cycle."""

    name: str = Field(..., description="Service name")
    namespace: str = Field("default", description="Service namespace")
    labels: Dict[str, str] = Field(default_factory=dict, description="Service labels")
    metrics: List[str] = Field(
        default_factory=list,
        description="Metric names observed for the service in this cycle",
    )

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


class DiscoveryReport(BaseModel):
    """Outcome of one discovery cycle."""

    total_metrics: int = Field(0, description="Metric names returned by the backend")
    filtered_metrics: int = Field(0, description="Metric names left after exclusions")
    services_discovered: int = Field(0, description="Distinct (namespace, name) services")
    catalog_writes: int = Field(0, description="Services created or updated successfully")
    write_failures: int = Field(0, description="Services that could not be written")
    duration_seconds: float = Field(0.0, description="Wall-clock duration of the cycle")
