"""
Wiring of the backend client, circuit breaker, discovery engine and query
executor from ``Settings``.
"""

from __future__ import annotations

from promsight.config import Settings, get_settings
from promsight.discovery.catalog import InMemoryServiceCatalog, ServiceCatalog
from promsight.discovery.engine import DiscoveryEngine
from promsight.executor import QueryExecutor
from promsight.logging import configure_logging
from promsight.providers.base import MetricsBackend
from promsight.providers.circuit_breaker import CircuitBreaker, CircuitBreakerClient
from promsight.providers.prometheus import PrometheusClient
from promsight.results.metadata import MetadataGenerator
from promsight.results.processor import ResultProcessor
from promsight.validation.safety import SafetyChecker

BREAKER_NAME = "metrics-backend"


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog at the level named in settings."""
    settings = settings or get_settings()
    configure_logging(settings.log_level.upper())


def create_backend(settings: Settings | None = None) -> MetricsBackend:
    """Build the backend client, behind a circuit breaker unless disabled."""
    settings = settings or get_settings()
    client = PrometheusClient(settings.backend_endpoint())
    if not settings.breaker_enabled:
        return client

    breaker = CircuitBreaker(BREAKER_NAME, settings.breaker_policy())
    return CircuitBreakerClient(client, breaker)


def create_discovery_engine(
    backend: MetricsBackend,
    catalog: ServiceCatalog | None = None,
    settings: Settings | None = None,
) -> DiscoveryEngine:
    settings = settings or get_settings()
    return DiscoveryEngine(
        backend,
        catalog if catalog is not None else InMemoryServiceCatalog(),
        settings.discovery_config(),
        request_timeout=settings.discovery_timeout,
    )


def create_query_executor(
    backend: MetricsBackend,
    settings: Settings | None = None,
) -> QueryExecutor:
    settings = settings or get_settings()
    return QueryExecutor(
        backend,
        safety=SafetyChecker(settings.safety_policy()),
        processor=ResultProcessor(
            max_samples=settings.result_max_samples,
            max_time_points=settings.result_max_time_points,
        ),
        metadata=MetadataGenerator(settings.grafana_url),
        timeout=settings.backend_timeout,
    )
