"""
Application settings using Pydantic.

Provides environment-based configuration loading with PROMSIGHT_ prefix.
List fields are read from the environment as JSON, e.g.
``PROMSIGHT_DISCOVERY_NAMESPACES='["prod", "staging"]'``.
"""

from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings

from promsight.core.errors import ConfigurationError
from promsight.discovery.models import DiscoveryConfig
from promsight.providers.circuit_breaker import BreakerPolicy
from promsight.providers.prometheus import AuthType, BackendEndpoint, BackendType
from promsight.validation.safety import DEFAULT_FORBIDDEN_METRICS, SafetyPolicy


class Settings(BaseSettings):
    """Application settings."""

    # Metrics backend
    backend_url: str = "http://localhost:9090"
    backend_type: BackendType = BackendType.AUTO
    backend_auth_type: AuthType = AuthType.NONE
    backend_username: str | None = None
    backend_password: str | None = None
    backend_bearer_token: str | None = None
    backend_tenant_id: str | None = None
    backend_timeout: float = 30.0

    # Circuit breaker
    breaker_enabled: bool = True
    breaker_max_requests: int = 1
    breaker_interval: float = 10.0
    breaker_timeout: float = 30.0
    breaker_min_requests: int = 3
    breaker_consecutive_failures: int = 5
    breaker_failure_ratio: float = 0.6

    # Discovery
    discovery_enabled: bool = True
    discovery_interval_seconds: int = 300
    discovery_namespaces: list[str] = []
    discovery_service_labels: list[str] = ["service", "job", "app"]
    discovery_exclude_metrics: list[str] = ["go_.*", "process_.*"]
    discovery_timeout: float | None = None

    # Query safety
    safety_max_query_length: int = 500
    safety_max_range_seconds: int = 7 * 24 * 3600
    safety_forbidden_metrics: list[str] = list(DEFAULT_FORBIDDEN_METRICS)
    safety_forbidden_substrings: list[str] = []
    safety_max_nesting_depth: int = 3
    safety_max_cardinality: int = 10000

    # Result processing
    result_max_samples: int = 10
    result_max_time_points: int = 50

    # Grafana
    grafana_url: str | None = None

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "PROMSIGHT_"

    def backend_endpoint(self) -> BackendEndpoint:
        if not self.backend_url:
            raise ConfigurationError("backend_url is required")
        return BackendEndpoint(
            url=self.backend_url,
            auth_type=self.backend_auth_type,
            username=self.backend_username,
            password=self.backend_password,
            bearer_token=self.backend_bearer_token,
            tenant_id=self.backend_tenant_id,
            timeout=self.backend_timeout,
            backend_type=self.backend_type,
        )

    def breaker_policy(self) -> BreakerPolicy:
        return BreakerPolicy(
            max_requests=self.breaker_max_requests,
            interval=self.breaker_interval,
            timeout=self.breaker_timeout,
            min_requests=self.breaker_min_requests,
            consecutive_failures=self.breaker_consecutive_failures,
            failure_ratio=self.breaker_failure_ratio,
        )

    def discovery_config(self) -> DiscoveryConfig:
        return DiscoveryConfig(
            enabled=self.discovery_enabled,
            interval=timedelta(seconds=self.discovery_interval_seconds),
            namespaces=list(self.discovery_namespaces),
            service_label_names=list(self.discovery_service_labels),
            exclude_metrics=list(self.discovery_exclude_metrics),
        )

    def safety_policy(self) -> SafetyPolicy:
        return SafetyPolicy(
            max_query_length=self.safety_max_query_length,
            forbidden_metrics=tuple(self.safety_forbidden_metrics),
            forbidden_substrings=tuple(self.safety_forbidden_substrings),
            max_range=timedelta(seconds=self.safety_max_range_seconds),
            max_nesting_depth=self.safety_max_nesting_depth,
            max_cardinality=self.safety_max_cardinality,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
