from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from ..classifier import ErrorKind, classify
from ..ledger import EffectsResult, GasSummary, LedgerClient, TransactionRequest, lookup
from .collector import OutcomeRecord, utc_timestamp

LOGGER = logging.getLogger("rollback_bench.benchmark.executor")

# Places a rejected submission may carry effects, in probe order.
EXCEPTION_EFFECTS_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "effects"),
    ("effects",),
    ("__cause__", "data", "effects"),
)


@dataclass(frozen=True)
class SubmissionContext:
    """Labels attached to one submission; copied verbatim onto its record."""

    category: str
    object_type: str
    abort_depth: str
    pattern: str
    iteration: int
    expected_abort: bool
    assumed_error: ErrorKind | None = None


@dataclass
class ExecutorStatistics:
    submitted: int = 0
    aborted: int = 0
    rejected: int = 0


class ThrottledExecutor:
    """Submits one transaction at a time and turns every response into a record."""

    def __init__(
        self,
        client: LedgerClient,
        delay_seconds: float,
        shared_delay_seconds: float,
        stop_event: threading.Event | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._client = client
        self._delay_seconds = delay_seconds
        self._shared_delay_seconds = shared_delay_seconds
        self._stop_event = stop_event or threading.Event()
        self._clock = clock
        self.statistics = ExecutorStatistics()

    def submit(self, request: TransactionRequest, context: SubmissionContext) -> OutcomeRecord:
        timestamp = utc_timestamp()
        started = self._clock()
        try:
            effects = self._client.execute(request)
        except Exception as exc:  # noqa: BLE001
            latency_ms = (self._clock() - started) * 1000.0
            record = self._rejected_record(context, exc, latency_ms, timestamp)
            self.statistics.rejected += 1
        else:
            latency_ms = (self._clock() - started) * 1000.0
            record = self._effects_record(context, effects, latency_ms, timestamp)

        self.statistics.submitted += 1
        if record.actual_abort:
            self.statistics.aborted += 1
        _log_record(record)
        self._throttle(request)
        return record

    def stop(self) -> None:
        self._stop_event.set()

    def _effects_record(
        self,
        context: SubmissionContext,
        effects: EffectsResult,
        latency_ms: float,
        timestamp: str,
    ) -> OutcomeRecord:
        if effects.succeeded:
            return _build_record(context, effects.gas, latency_ms, timestamp, digest=effects.digest)

        message = effects.error or ""
        return _build_record(
            context,
            effects.gas,
            latency_ms,
            timestamp,
            failure_text=message,
            digest=effects.digest,
        )

    def _rejected_record(
        self,
        context: SubmissionContext,
        exc: BaseException,
        latency_ms: float,
        timestamp: str,
    ) -> OutcomeRecord:
        message_parts = [str(exc)] if str(exc) else []
        gas: GasSummary | None = None
        for path in EXCEPTION_EFFECTS_PATHS:
            effects = _probe(exc, path)
            if effects is None:
                continue
            status_error = lookup(lookup(effects, "status"), "error")
            if status_error:
                message_parts.append(str(status_error))
            gas_payload = lookup(effects, "gasUsed", "gas_used")
            if gas is None and gas_payload is not None:
                LOGGER.debug("Recovered gas figures from exception path %s", ".".join(path))
                gas = GasSummary.from_payload(gas_payload)

        message = " | ".join(part for part in message_parts if part) or repr(exc)
        return _build_record(context, gas or GasSummary(), latency_ms, timestamp, failure_text=message)

    def _throttle(self, request: TransactionRequest) -> None:
        delay = self._shared_delay_seconds if request.touches_shared else self._delay_seconds
        if delay > 0:
            self._stop_event.wait(timeout=delay)


def _probe(exc: BaseException, path: tuple[str, ...]) -> Any:
    current: Any = exc
    for name in path:
        current = getattr(current, name, None) if name == "__cause__" else lookup(current, name)
        if current is None:
            return None
    return current


def _build_record(
    context: SubmissionContext,
    gas: GasSummary,
    latency_ms: float,
    timestamp: str,
    failure_text: str | None = None,
    digest: str | None = None,
) -> OutcomeRecord:
    aborted = failure_text is not None
    abort_code = None
    error_type = None
    if aborted:
        classification = classify(failure_text, assumed=context.assumed_error)
        abort_code = classification.abort_code
        error_type = classification.error_type

    return OutcomeRecord(
        category=context.category,
        object_type=context.object_type,
        abort_depth=context.abort_depth,
        pattern=context.pattern,
        iteration=context.iteration,
        expected_abort=context.expected_abort,
        actual_abort=aborted,
        abort_code=abort_code,
        computation_cost=gas.computation_cost,
        storage_cost=gas.storage_cost,
        storage_rebate=gas.storage_rebate,
        latency_ms=latency_ms,
        error_type=error_type,
        error_message=failure_text or None,
        timestamp=timestamp,
        digest=digest,
    )


def _log_record(record: OutcomeRecord) -> None:
    if record.actual_abort:
        LOGGER.info(
            "[%s/%s] #%d FAIL | object=%s depth=%s | expectedAbort=%s | type=%s | code=%s | netGas=%d | latency=%.0fms",
            record.category,
            record.pattern,
            record.iteration,
            record.object_type,
            record.abort_depth,
            record.expected_abort,
            record.error_type,
            record.abort_code if record.abort_code is not None else "n/a",
            record.net_gas_cost,
            record.latency_ms,
        )
    else:
        LOGGER.info(
            "[%s/%s] #%d SUCCESS | object=%s depth=%s | expectedAbort=%s | netGas=%d | latency=%.0fms",
            record.category,
            record.pattern,
            record.iteration,
            record.object_type,
            record.abort_depth,
            record.expected_abort,
            record.net_gas_cost,
            record.latency_ms,
        )
