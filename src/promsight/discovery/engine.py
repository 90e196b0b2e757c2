"""
Periodic service discovery.

Inventories every metric the backend knows, attributes metrics to services
(by label, or by metric-name heuristics when no service label exists) and
keeps the service catalog in sync.
"""

from __future__ import annotations

import asyncio
import re
import time
from typing import Iterable

import structlog

from promsight.core.errors import (
    DiscoveryCycleError,
    DiscoveryError,
    DiscoveryWriteError,
    PromsightError,
)
from promsight.providers.base import MetricsBackend

from .catalog import ServiceCatalog
from .classifier import extract_service_from_metric_name
from .models import DiscoveredService, DiscoveryConfig, DiscoveryReport, ServiceInfo

logger = structlog.get_logger()

DEFAULT_NAMESPACE = "default"
NAMESPACE_LABEL = "namespace"


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def compile_exclusions(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    """Compile exclusion regexes, skipping (and logging) invalid ones."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            logger.warning("discovery_invalid_exclude_pattern", pattern=pattern, error=str(exc))
    return compiled


class DiscoveryEngine:
    """Discovers services and metrics from a metrics backend."""

    def __init__(
        self,
        backend: MetricsBackend,
        catalog: ServiceCatalog,
        config: DiscoveryConfig | None = None,
        *,
        request_timeout: float | None = None,
        stop_grace_period: float = 5.0,
    ) -> None:
        """
        Initialize the discovery engine.

        Args:
            backend: Plain or circuit-breaker wrapped backend client
            catalog: Service catalog to synchronize
            config: Discovery settings
            request_timeout: Deadline for each backend call made by discovery
            stop_grace_period: Seconds ``stop()`` waits for an in-flight cycle
        """
        self._backend = backend
        self._catalog = catalog
        self._config = config or DiscoveryConfig()
        self._request_timeout = request_timeout
        self._stop_grace_period = stop_grace_period
        self._exclude_patterns = compile_exclusions(self._config.exclude_metrics)

        self._task: asyncio.Task[None] | None = None
        self._starting = False
        self._cycle_lock = asyncio.Lock()
        self.last_report: DiscoveryReport | None = None

    @property
    def config(self) -> DiscoveryConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """
        Validate connectivity, run one cycle now and then one per interval.

        Raises:
            DiscoveryError: If already running or the backend is unreachable
        """
        if self.is_running or self._starting:
            raise DiscoveryError("discovery service already running")

        if not self._config.enabled:
            logger.info("discovery_disabled")
            return

        self._starting = True
        try:
            try:
                await self._backend.test_connection(timeout=self._request_timeout)
            except PromsightError as exc:
                raise DiscoveryError(f"failed to connect to metrics backend: {exc}") from exc

            self._task = asyncio.create_task(self._loop(), name="promsight-discovery")
        finally:
            self._starting = False

        logger.info(
            "discovery_started",
            interval_seconds=self._config.interval.total_seconds(),
        )

    async def stop(self) -> None:
        """Stop the interval loop. Safe to call repeatedly."""
        task = self._task
        if task is None:
            return
        self._task = None

        task.cancel()
        done, _ = await asyncio.wait({task}, timeout=self._stop_grace_period)
        if not done:
            logger.warning(
                "discovery_stop_timed_out",
                grace_period_seconds=self._stop_grace_period,
            )
            return

        if not task.cancelled() and task.exception() is not None:
            logger.error("discovery_loop_failed", error=str(task.exception()))
        logger.info("discovery_stopped")

    async def run_cycle(self) -> DiscoveryReport | None:
        """
        Run one discovery cycle unless another one is in progress.

        Returns:
            The cycle report, or None when the cycle was skipped

        Raises:
            DiscoveryCycleError: If the metric catalog cannot be fetched
        """
        if self._cycle_lock.locked():
            logger.info("discovery_cycle_skipped", reason="cycle_in_progress")
            return None

        async with self._cycle_lock:
            return await self._run_cycle()

    def filter_metrics(self, metric_names: list[str]) -> list[str]:
        """Drop metric names matching any exclusion pattern."""
        if not self._exclude_patterns:
            return list(metric_names)

        return [
            name
            for name in metric_names
            if not any(pattern.search(name) for pattern in self._exclude_patterns)
        ]

    async def discover_services(self, metric_names: list[str]) -> list[DiscoveredService]:
        """Attribute metrics to services, grouped by (namespace, name)."""
        services: dict[tuple[str, str], DiscoveredService] = {}
        allowed = set(self._config.namespaces)

        for metric in metric_names:
            for info in await self.resolve_services(metric):
                if allowed and info.namespace not in allowed:
                    continue

                key = (info.namespace, info.name)
                service = services.get(key)
                if service is None:
                    service = DiscoveredService(
                        name=info.name,
                        namespace=info.namespace,
                        labels={NAMESPACE_LABEL: info.namespace},
                    )
                    services[key] = service
                if metric not in service.metrics:
                    service.metrics.append(metric)

        return list(services.values())

    async def resolve_services(self, metric: str) -> list[ServiceInfo]:
        """
        Find every service that exposes ``metric``.

        Service labels are tried in priority order; the first label with
        values wins and all of its values are returned. Without any label
        match the metric name itself is used.
        """
        for label in self._config.service_label_names:
            names: list[str] = []
            for value in await self._label_values(label, metric):
                if value and value != "unknown" and value not in names:
                    names.append(value)
            if not names:
                continue

            return [
                ServiceInfo(
                    name=name,
                    namespace=await self._resolve_namespace(metric, label, name),
                )
                for name in names
            ]

        name = extract_service_from_metric_name(metric)
        if name is None:
            return []
        return [ServiceInfo(name=name, namespace=DEFAULT_NAMESPACE)]

    async def sync_catalog(self, services: list[DiscoveredService]) -> tuple[int, int]:
        """
        Create or update every discovered service.

        Returns:
            (successful writes, failed writes)
        """
        writes = 0
        failures = 0

        for discovered in services:
            try:
                await self._sync_service(discovered)
            except DiscoveryWriteError as exc:
                failures += 1
                logger.warning(
                    "discovery_write_failed",
                    service=exc.service,
                    namespace=exc.namespace,
                    error=exc.message,
                )
                continue
            writes += 1

        return writes, failures

    async def _loop(self) -> None:
        interval = self._config.interval.total_seconds()
        while True:
            await self._run_logged()
            await asyncio.sleep(interval)

    async def _run_logged(self) -> None:
        try:
            await self.run_cycle()
        except DiscoveryCycleError as exc:
            logger.error("discovery_cycle_failed", error=exc.message)
        except Exception:
            logger.exception("discovery_cycle_crashed")

    async def _run_cycle(self) -> DiscoveryReport:
        started = time.monotonic()
        logger.info("discovery_cycle_started")

        try:
            metric_names = await self._backend.get_metric_names(timeout=self._request_timeout)
        except PromsightError as exc:
            raise DiscoveryCycleError(f"failed to fetch metric names: {exc}") from exc

        filtered = self.filter_metrics(metric_names)
        services = await self.discover_services(filtered)
        writes, failures = await self.sync_catalog(services)

        report = DiscoveryReport(
            total_metrics=len(metric_names),
            filtered_metrics=len(filtered),
            services_discovered=len(services),
            catalog_writes=writes,
            write_failures=failures,
            duration_seconds=time.monotonic() - started,
        )
        self.last_report = report
        logger.info("discovery_cycle_completed", **report.model_dump())
        return report

    async def _sync_service(self, discovered: DiscoveredService) -> None:
        try:
            existing = await self._catalog.get_service_by_name(
                discovered.name, discovered.namespace
            )
            if existing is None:
                existing = await self._catalog.create_service(
                    discovered.name, discovered.namespace, discovered.labels
                )
                logger.info(
                    "service_created",
                    service=discovered.name,
                    namespace=discovered.namespace,
                    metrics=len(discovered.metrics),
                )
            await self._catalog.update_service_metrics(existing.id, discovered.metrics)
        except Exception as exc:
            raise DiscoveryWriteError(
                f"failed to sync service {discovered.key}: {exc}",
                service=discovered.name,
                namespace=discovered.namespace,
            ) from exc

    async def _label_values(self, label: str, match: str) -> list[str]:
        try:
            return await self._backend.get_label_values(
                label, match, timeout=self._request_timeout
            )
        except PromsightError as exc:
            logger.debug("label_lookup_failed", label=label, match=match, error=str(exc))
            return []

    async def _resolve_namespace(self, metric: str, label: str, service: str) -> str:
        selector = f'{metric}{{{label}="{_escape_label_value(service)}"}}'
        for value in await self._label_values(NAMESPACE_LABEL, selector):
            if value:
                return value
        return DEFAULT_NAMESPACE
