"""
Interactive query pipeline.

candidate query -> safety checks -> backend (usually behind the circuit
breaker) -> result processing -> visualization hints.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from promsight.core.errors import SafetyViolation, ViolationKind
from promsight.logging import bind_context, sanitize_for_logging
from promsight.providers.base import MetricsBackend
from promsight.providers.models import QueryResponse
from promsight.results.metadata import MetadataGenerator
from promsight.results.models import ProcessedResult, ResultMetadata
from promsight.results.processor import ResultProcessor
from promsight.validation.durations import format_duration
from promsight.validation.safety import SafetyChecker, excessive_range_violation

logger = structlog.get_logger()


@dataclass(frozen=True)
class ExecutionResult:
    """Everything the caller needs to present one query."""

    query: str
    result: ProcessedResult
    metadata: ResultMetadata
    estimated_cardinality: int


class QueryExecutor:
    """Runs caller-supplied PromQL safely against a metrics backend."""

    def __init__(
        self,
        backend: MetricsBackend,
        *,
        safety: SafetyChecker | None = None,
        processor: ResultProcessor | None = None,
        metadata: MetadataGenerator | None = None,
        timeout: float | None = None,
    ):
        self.backend = backend
        self.safety = safety or SafetyChecker()
        self.processor = processor or ResultProcessor()
        self.metadata = metadata or MetadataGenerator()
        self.timeout = timeout

    async def execute(self, query: str, time: datetime | None = None) -> ExecutionResult:
        """
        Validate and run an instant query.

        Raises:
            SafetyViolation: Before any backend call when the query is unsafe
            BackendError: When the backend call fails
            CircuitOpenError: When the backend breaker is open
        """
        estimate = self._validate(query)
        response = await self.backend.query(query, time, timeout=self.timeout)
        return self._finish(query, response, estimate)

    async def execute_range(
        self,
        query: str,
        start: datetime,
        end: datetime,
        step: timedelta | float,
    ) -> ExecutionResult:
        """Validate and run a range query; the window is held to the max range."""
        estimate = self._validate(query)

        window = end - start
        if window <= timedelta(0):
            raise SafetyViolation(
                ViolationKind.INVALID_INPUT,
                "Invalid time range",
                details=f"start {start.isoformat()} is not before end {end.isoformat()}",
                suggestion="Choose a start time earlier than the end time.",
            )
        if window > self.safety.policy.max_range:
            raise excessive_range_violation(
                format_duration(window), self.safety.policy.max_range
            )

        seconds = step.total_seconds() if isinstance(step, timedelta) else float(step)
        if seconds <= 0:
            raise SafetyViolation(
                ViolationKind.INVALID_INPUT,
                "Invalid query step",
                details=f"step must be positive, got {seconds:g}s",
                suggestion="Use a resolution step such as 15s or 1m.",
            )

        response = await self.backend.query_range(
            query, start, end, step, timeout=self.timeout
        )
        return self._finish(query, response, estimate)

    def _validate(self, query: str) -> int:
        if not query.strip():
            raise SafetyViolation(
                ViolationKind.INVALID_INPUT,
                "Query is empty",
                suggestion="Provide a PromQL expression to execute.",
            )

        self.safety.validate_query(query)

        estimate = self.safety.estimate_cardinality(query)
        if estimate > self.safety.policy.max_cardinality:
            logger.warning(
                "query_cardinality_high",
                query=sanitize_for_logging(query),
                estimated_cardinality=estimate,
                max_cardinality=self.safety.policy.max_cardinality,
            )
        return estimate

    def _finish(
        self, query: str, response: QueryResponse, estimate: int
    ) -> ExecutionResult:
        processed = self.processor.process(response)
        metadata = self.metadata.generate(query, processed)

        log = bind_context(query=sanitize_for_logging(query))
        log.info(
            "query_executed",
            result_type=processed.result_type,
            total_series=processed.total_series,
            truncated=processed.truncated,
        )
        return ExecutionResult(
            query=query,
            result=processed,
            metadata=metadata,
            estimated_cardinality=estimate,
        )
