"""
Prometheus-compatible metrics backend client.

One client speaks to Prometheus and Mimir/Cortex. Both serve the same
PromQL HTTP API; only the path prefix differs:

    Prometheus: /api/v1/{query,query_range,label/<name>/values,metadata}
    Mimir:      /prometheus/api/v1/{...}

With ``backend_type="auto"`` the prefix is detected on first use by probing
both conventions, then cached for the lifetime of the client.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

import httpx
import structlog

from promsight.core.errors import (
    BackendConnectionError,
    BackendError,
    BackendHTTPError,
    BackendQueryError,
    BackendTimeoutError,
    ConfigurationError,
    MalformedResponseError,
    QueryCancelledError,
    SafetyViolation,
    ViolationKind,
)
from promsight.discovery.classifier import infer_metric_type
from promsight.providers.base import ProviderHealth
from promsight.providers.models import MetricMetadata, QueryResponse, parse_query_response

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "promsight-provider-prometheus/0.1.0"

PROMETHEUS_PREFIX = "/api/v1"
MIMIR_PREFIX = "/prometheus/api/v1"

_MAX_ERROR_BODY = 500


class BackendType(StrEnum):
    """Path convention of the metrics backend."""
    AUTO = "auto"
    PROMETHEUS = "prometheus"
    MIMIR = "mimir"


class AuthType(StrEnum):
    """Authentication mode for backend requests."""
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"


_PREFIXES = {
    BackendType.PROMETHEUS: PROMETHEUS_PREFIX,
    BackendType.MIMIR: MIMIR_PREFIX,
}


@dataclass(frozen=True)
class BackendEndpoint:
    """Connection settings of one backend."""

    url: str
    auth_type: AuthType = AuthType.NONE
    username: str | None = None
    password: str | None = None
    bearer_token: str | None = None
    tenant_id: str | None = None
    timeout: float = 30.0
    backend_type: BackendType = BackendType.AUTO


def _unix_seconds(value: datetime) -> str:
    return str(int(value.timestamp()))


def _step_seconds(step: timedelta | float) -> str:
    seconds = step.total_seconds() if isinstance(step, timedelta) else float(step)
    if seconds <= 0:
        raise SafetyViolation(
            ViolationKind.INVALID_INPUT,
            "Invalid query step",
            details=f"step must be positive, got {seconds:g}s",
            suggestion="Use a resolution step such as 15s or 1m.",
        )
    return str(max(1, int(seconds)))


class PrometheusClient:
    """Client for the Prometheus query API, served by Prometheus or Mimir."""

    name = "prometheus"

    def __init__(
        self,
        endpoint: BackendEndpoint,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        if endpoint.auth_type == AuthType.BASIC and not endpoint.username:
            raise ConfigurationError("basic auth requires a username")
        if endpoint.auth_type == AuthType.BEARER and not endpoint.bearer_token:
            raise ConfigurationError("bearer auth requires a token")

        self._endpoint = endpoint
        self._base_url = endpoint.url.rstrip("/")
        self._timeout = endpoint.timeout
        self._user_agent = user_agent
        self._prefix: str | None = _PREFIXES.get(endpoint.backend_type)
        self._detect_lock = asyncio.Lock()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def api_prefix(self) -> str | None:
        """The cached API prefix, or None while undetected."""
        return self._prefix

    async def detect_backend(self) -> str:
        """
        Decide the API prefix, probing the server when configured as auto.

        The decision is made once. Connectivity failures propagate without
        caching anything so a later call can retry the probe.
        """
        if self._prefix is not None:
            return self._prefix

        async with self._detect_lock:
            if self._prefix is not None:
                return self._prefix

            for backend_type in (BackendType.PROMETHEUS, BackendType.MIMIR):
                prefix = _PREFIXES[backend_type]
                response = await self._send(
                    f"{prefix}/query", {"query": "up"}, "detect", None
                )
                if response.status_code != 404 and response.status_code < 500:
                    self._prefix = prefix
                    logger.info(
                        "backend_detected",
                        backend=str(backend_type),
                        prefix=prefix,
                        url=self._base_url,
                    )
                    return prefix
                logger.debug(
                    "backend_probe_rejected",
                    backend=str(backend_type),
                    status=response.status_code,
                )

            self._prefix = PROMETHEUS_PREFIX
            logger.warning(
                "backend_detection_inconclusive",
                url=self._base_url,
                prefix=PROMETHEUS_PREFIX,
            )
            return self._prefix

    async def query(
        self,
        query: str,
        time: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> QueryResponse:
        """
        Execute an instant query.

        Args:
            query: PromQL query string
            time: Evaluation time (defaults to the server's now)
            timeout: Per-call deadline in seconds

        Returns:
            Parsed QueryResponse
        """
        params: dict[str, Any] = {"query": query}
        if time is not None:
            params["time"] = _unix_seconds(time)

        payload = await self._get("query", "/query", params, timeout)
        return self._decode_query(payload, "query")

    async def query_range(
        self,
        query: str,
        start: datetime,
        end: datetime,
        step: timedelta | float,
        *,
        timeout: float | None = None,
    ) -> QueryResponse:
        """
        Execute a range query.

        Args:
            query: PromQL query string
            start: Start time
            end: End time
            step: Resolution, as a timedelta or in seconds
            timeout: Per-call deadline in seconds
        """
        params = {
            "query": query,
            "start": _unix_seconds(start),
            "end": _unix_seconds(end),
            "step": _step_seconds(step),
        }

        payload = await self._get("query_range", "/query_range", params, timeout)
        return self._decode_query(payload, "query_range")

    async def get_metric_names(self, *, timeout: float | None = None) -> list[str]:
        """Return every metric name known to the backend."""
        payload = await self._get(
            "get metric names", "/label/__name__/values", None, timeout
        )
        return self._decode_string_list(payload, "get metric names")

    async def get_label_values(
        self,
        label: str,
        *match: str,
        timeout: float | None = None,
    ) -> list[str]:
        """Return values of ``label``, optionally scoped by series selectors."""
        params = {"match[]": list(match)} if match else None
        payload = await self._get(
            "get label values", f"/label/{label}/values", params, timeout
        )
        return self._decode_string_list(payload, "get label values")

    async def get_metric_metadata(
        self,
        metric: str,
        *,
        timeout: float | None = None,
    ) -> MetricMetadata:
        """
        Return type, help and unit of a metric.

        Falls back to naming-convention inference when the backend has no
        metadata for the metric or the lookup fails.
        """
        try:
            payload = await self._get(
                "get metadata", "/metadata", {"metric": metric}, timeout
            )
        except BackendError as exc:
            logger.debug("metadata_lookup_failed", metric=metric, error=str(exc))
            return self._inferred_metadata(metric)

        data = payload.get("data")
        entries = data.get(metric) if isinstance(data, dict) else None
        if not entries or not isinstance(entries[0], dict):
            return self._inferred_metadata(metric)

        entry = entries[0]
        return MetricMetadata(
            type=str(entry.get("type") or infer_metric_type(metric).value),
            help=str(entry.get("help", "")),
            unit=str(entry.get("unit", "")),
        )

    async def test_connection(self, *, timeout: float | None = None) -> None:
        """Run a trivial query; raises the backend error when it fails."""
        try:
            await self.query("up", timeout=timeout)
        except BackendError as exc:
            logger.warning("connection_test_failed", url=self._base_url, error=str(exc))
            raise

    async def health_check(self) -> ProviderHealth:
        """Check if the backend is reachable."""
        try:
            await self.test_connection()
            return ProviderHealth(status="healthy")
        except (BackendConnectionError, BackendTimeoutError) as exc:
            return ProviderHealth(status="unreachable", details=str(exc))
        except BackendError as exc:
            return ProviderHealth(status="degraded", details=str(exc))

    def _inferred_metadata(self, metric: str) -> MetricMetadata:
        return MetricMetadata(type=infer_metric_type(metric).value, inferred=True)

    def _build_headers(self) -> dict[str, str]:
        """Build request headers."""
        headers = {
            "User-Agent": self._user_agent,
        }

        if self._endpoint.tenant_id:
            headers["X-Scope-OrgID"] = self._endpoint.tenant_id

        if self._endpoint.auth_type == AuthType.BEARER:
            headers["Authorization"] = f"Bearer {self._endpoint.bearer_token}"

        return headers

    def _auth(self) -> httpx.BasicAuth | None:
        if self._endpoint.auth_type == AuthType.BASIC:
            return httpx.BasicAuth(self._endpoint.username or "", self._endpoint.password or "")
        return None

    async def _send(
        self,
        path: str,
        params: dict[str, Any] | None,
        operation: str,
        timeout: float | None,
    ) -> httpx.Response:
        """Issue one GET request, mapping transport failures to backend errors."""
        url = f"{self._base_url}{path}"
        deadline = self._timeout if timeout is None else timeout

        try:
            async with httpx.AsyncClient(timeout=deadline) as client:
                return await client.get(
                    url,
                    params=params,
                    headers=self._build_headers(),
                    auth=self._auth(),
                )
        except asyncio.CancelledError as exc:
            raise QueryCancelledError(f"{operation} cancelled", operation=operation) from exc
        except httpx.TimeoutException as exc:
            raise BackendTimeoutError(
                f"{operation} timed out after {deadline}s: {exc}", operation=operation
            ) from exc
        except httpx.TransportError as exc:
            raise BackendConnectionError(
                f"{operation} failed to connect to {self._base_url}: {exc}",
                operation=operation,
            ) from exc

    async def _get(
        self,
        operation: str,
        endpoint: str,
        params: dict[str, Any] | None,
        timeout: float | None,
    ) -> dict[str, Any]:
        prefix = await self.detect_backend()
        response = await self._send(f"{prefix}{endpoint}", params, operation, timeout)

        if not response.is_success:
            body = response.text[:_MAX_ERROR_BODY]
            raise BackendHTTPError(
                f"{operation} failed with status {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
                operation=operation,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"{operation} returned invalid JSON", operation=operation
            ) from exc

        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"{operation} returned an unexpected envelope", operation=operation
            )

        if payload.get("status") != "success":
            error = payload.get("error") or "unknown error"
            raise BackendQueryError(
                f"{operation} error: {error}",
                error_type=payload.get("errorType"),
                operation=operation,
            )

        return payload

    def _decode_query(self, payload: dict[str, Any], operation: str) -> QueryResponse:
        try:
            return parse_query_response(payload)
        except MalformedResponseError as exc:
            exc.operation = operation
            raise

    def _decode_string_list(self, payload: dict[str, Any], operation: str) -> list[str]:
        data = payload.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise MalformedResponseError(
                f"{operation} returned non-list data", operation=operation
            )
        return [str(item) for item in data]
