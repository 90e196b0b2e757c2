"""
Service discovery from the metrics backend.

Periodically inventories metrics, attributes them to services and keeps the
service catalog in sync.
"""

from promsight.discovery.catalog import InMemoryServiceCatalog, Service, ServiceCatalog
from promsight.discovery.classifier import (
    extract_service_from_metric_name,
    infer_metric_type,
)
from promsight.discovery.engine import DiscoveryEngine
from promsight.discovery.models import (
    DiscoveredService,
    DiscoveryConfig,
    DiscoveryReport,
    MetricType,
    ServiceInfo,
)

__all__ = [
    "DiscoveredService",
    "DiscoveryConfig",
    "DiscoveryEngine",
    "DiscoveryReport",
    "InMemoryServiceCatalog",
    "MetricType",
    "Service",
    "ServiceCatalog",
    "ServiceInfo",
    "extract_service_from_metric_name",
    "infer_metric_type",
]
