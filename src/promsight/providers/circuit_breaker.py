"""
Circuit breaker for the metrics backend, built on pybreaker.

pybreaker holds the breaker state, the consecutive-failure counter, the
transition listeners and the excluded (caller-input) error types. The
policy on top adds what a plain ``fail_max`` cannot express:

    closed    --min requests seen, then consecutive or ratio trip-->  open
    open      --cooldown elapsed-->        half_open
    half_open --max_requests successes-->  closed
    half_open --any failure-->             open

Counters live in a "generation" that starts at every state change and, in
the closed state, at every counting-interval boundary. Outcomes reported by
calls that started in an older generation are ignored.

Only the accounting is serialized; the wrapped coroutines run concurrently.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, Awaitable, Callable, TypeVar

import pybreaker
import structlog

from promsight.core.errors import CircuitOpenError, ConfigurationError, SafetyViolation
from promsight.providers.base import MetricsBackend
from promsight.providers.models import MetricMetadata, QueryResponse

logger = structlog.get_logger()

T = TypeVar("T")

# Raised for the caller's own input; they say nothing about backend health.
EXCLUDED_ERRORS: tuple[type[BaseException], ...] = (SafetyViolation, ConfigurationError)


class BreakerState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


_FROM_PYBREAKER = {
    pybreaker.STATE_CLOSED: BreakerState.CLOSED,
    pybreaker.STATE_OPEN: BreakerState.OPEN,
    pybreaker.STATE_HALF_OPEN: BreakerState.HALF_OPEN,
}


@dataclass(frozen=True)
class Counts:
    """Snapshot of the breaker counters for the current generation."""

    requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    consecutive_successes: int = 0
    consecutive_failures: int = 0

    @property
    def failure_ratio(self) -> float:
        if self.requests == 0:
            return 0.0
        return self.total_failures / self.requests


@dataclass(frozen=True)
class BreakerPolicy:
    """Thresholds of the circuit breaker."""

    max_requests: int = 1
    interval: float = 10.0
    timeout: float = 30.0
    min_requests: int = 3
    consecutive_failures: int = 5
    failure_ratio: float = 0.6

    def ready_to_trip(self, counts: Counts) -> bool:
        """Open once enough requests were seen and failures dominate."""
        if counts.requests < self.min_requests:
            return False
        return (
            counts.consecutive_failures >= self.consecutive_failures
            or counts.failure_ratio >= self.failure_ratio
        )


StateChangeCallback = Callable[[str, BreakerState, BreakerState], None]


def log_state_change(name: str, from_state: BreakerState, to_state: BreakerState) -> None:
    logger.warning(
        "circuit_breaker_state_changed",
        breaker=name,
        from_state=str(from_state),
        to_state=str(to_state),
    )


class StateChangeListener(pybreaker.CircuitBreakerListener):
    """Reports pybreaker transitions as ``BreakerState`` pairs."""

    def __init__(self, name: str, callback: StateChangeCallback) -> None:
        self.name = name
        self._callback = callback

    def state_change(self, cb, old_state, new_state) -> None:
        if old_state is None:
            return
        self._callback(
            self.name,
            _FROM_PYBREAKER[old_state.name],
            _FROM_PYBREAKER[new_state.name],
        )


class CircuitBreaker:
    """Circuit breaker gating async calls."""

    def __init__(
        self,
        name: str,
        policy: BreakerPolicy | None = None,
        *,
        on_state_change: StateChangeCallback | None = log_state_change,
        clock: Callable[[], float] = time.monotonic,
        exclude: tuple[type[BaseException], ...] = EXCLUDED_ERRORS,
    ) -> None:
        self.name = name
        self._policy = policy or BreakerPolicy()
        self._clock = clock
        self._lock = threading.RLock()

        listeners = []
        if on_state_change is not None:
            listeners.append(StateChangeListener(name, on_state_change))

        self._storage = pybreaker.CircuitMemoryStorage(pybreaker.STATE_CLOSED)
        self._breaker = pybreaker.CircuitBreaker(
            fail_max=self._policy.consecutive_failures,
            reset_timeout=self._policy.timeout,
            exclude=list(exclude),
            listeners=listeners,
            state_storage=self._storage,
            name=name,
        )
        self._transitions = {
            BreakerState.OPEN: self._breaker.open,
            BreakerState.HALF_OPEN: self._breaker.half_open,
            BreakerState.CLOSED: self._breaker.close,
        }

        self._generation = 0
        self._requests = 0
        self._total_successes = 0
        self._total_failures = 0
        self._consecutive_successes = 0
        self._expiry = 0.0
        self._new_generation(self._clock())

    @property
    def policy(self) -> BreakerPolicy:
        return self._policy

    @property
    def state(self) -> BreakerState:
        with self._lock:
            state, _ = self._current_state(self._clock())
            return state

    @property
    def counts(self) -> Counts:
        with self._lock:
            self._current_state(self._clock())
            return self._snapshot()

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Run ``func`` if the breaker admits it.

        Excluded errors are re-raised without being counted either way.

        Raises:
            CircuitOpenError: When open, or when half-open trials are exhausted
        """
        generation = self._before_request()
        try:
            result = await func(*args, **kwargs)
        except BaseException as exc:
            self._after_request(generation, exc)
            raise
        self._after_request(generation, None)
        return result

    def _before_request(self) -> int:
        with self._lock:
            state, generation = self._current_state(self._clock())

            if state == BreakerState.OPEN:
                raise CircuitOpenError(self.name, str(state), "open")
            if state == BreakerState.HALF_OPEN and self._requests >= self._policy.max_requests:
                raise CircuitOpenError(self.name, str(state), "too_many_requests")

            self._requests += 1
            return generation

    def _after_request(self, before: int, error: BaseException | None) -> None:
        with self._lock:
            now = self._clock()
            state, generation = self._current_state(now)
            if generation != before:
                return

            if error is None:
                self._on_success(state, now)
            elif self._breaker.is_system_error(error):
                self._on_failure(state, now)
            else:
                self._requests -= 1

    def _on_success(self, state: BreakerState, now: float) -> None:
        self._total_successes += 1
        self._consecutive_successes += 1
        self._storage.reset_counter()
        if (
            state == BreakerState.HALF_OPEN
            and self._consecutive_successes >= self._policy.max_requests
        ):
            self._set_state(BreakerState.CLOSED, now)

    def _on_failure(self, state: BreakerState, now: float) -> None:
        self._total_failures += 1
        self._consecutive_successes = 0
        self._storage.increment_counter()
        if state == BreakerState.CLOSED:
            if self._policy.ready_to_trip(self._snapshot()):
                self._set_state(BreakerState.OPEN, now)
        elif state == BreakerState.HALF_OPEN:
            self._set_state(BreakerState.OPEN, now)

    def _current_state(self, now: float) -> tuple[BreakerState, int]:
        state = _FROM_PYBREAKER[self._breaker.current_state]
        if state == BreakerState.CLOSED:
            if self._expiry and self._expiry < now:
                self._new_generation(now)
        elif state == BreakerState.OPEN:
            if self._expiry <= now:
                self._set_state(BreakerState.HALF_OPEN, now)
                state = BreakerState.HALF_OPEN
        return state, self._generation

    def _set_state(self, state: BreakerState, now: float) -> None:
        if _FROM_PYBREAKER[self._breaker.current_state] == state:
            return
        self._transitions[state]()
        self._new_generation(now)

    def _new_generation(self, now: float) -> None:
        self._generation += 1
        self._requests = 0
        self._total_successes = 0
        self._total_failures = 0
        self._consecutive_successes = 0
        self._storage.reset_counter()

        state = _FROM_PYBREAKER[self._breaker.current_state]
        if state == BreakerState.CLOSED:
            self._expiry = now + self._policy.interval if self._policy.interval > 0 else 0.0
        elif state == BreakerState.OPEN:
            self._expiry = now + self._policy.timeout
        else:
            self._expiry = 0.0

    def _snapshot(self) -> Counts:
        return Counts(
            requests=self._requests,
            total_successes=self._total_successes,
            total_failures=self._total_failures,
            consecutive_successes=self._consecutive_successes,
            consecutive_failures=self._breaker.fail_counter,
        )


class CircuitBreakerClient:
    """Backend client whose every operation goes through one circuit breaker."""

    def __init__(self, client: MetricsBackend, breaker: CircuitBreaker) -> None:
        self._client = client
        self._breaker = breaker

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def state(self) -> BreakerState:
        return self._breaker.state

    @property
    def counts(self) -> Counts:
        return self._breaker.counts

    async def query(
        self,
        query: str,
        time: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> QueryResponse:
        return await self._breaker.call(self._client.query, query, time, timeout=timeout)

    async def query_range(
        self,
        query: str,
        start: datetime,
        end: datetime,
        step: timedelta | float,
        *,
        timeout: float | None = None,
    ) -> QueryResponse:
        return await self._breaker.call(
            self._client.query_range, query, start, end, step, timeout=timeout
        )

    async def get_metric_names(self, *, timeout: float | None = None) -> list[str]:
        return await self._breaker.call(self._client.get_metric_names, timeout=timeout)

    async def get_label_values(
        self,
        label: str,
        *match: str,
        timeout: float | None = None,
    ) -> list[str]:
        return await self._breaker.call(
            self._client.get_label_values, label, *match, timeout=timeout
        )

    async def get_metric_metadata(
        self,
        metric: str,
        *,
        timeout: float | None = None,
    ) -> MetricMetadata:
        return await self._breaker.call(
            self._client.get_metric_metadata, metric, timeout=timeout
        )

    async def test_connection(self, *, timeout: float | None = None) -> None:
        await self._breaker.call(self._client.test_connection, timeout=timeout)
