"""
Shared pytest fixtures: scripted ledger clients that stand in for a Sui fullnode.
"""

import os

os.environ.setdefault("MPLBACKEND", "Agg")

import itertools

import pytest

from rollback_bench.ledger import (
    U64_MAX,
    CreatedObject,
    EffectsResult,
    GasSummary,
    LedgerSubmissionError,
    MoveCall,
)


def move_abort_text(code, function="check"):
    """Failure text in the shape the fullnode reports for ``abort code``."""
    return (
        'MoveAbort(MoveLocation { module: ModuleId { address: 0x5eed, name: Identifier("taxonomy") }, '
        f'function: 3, instruction: 12, function_name: Some("{function}") }}, {code}) in command 0'
    )


class RecordingClient:
    """Ledger client that replays a scripted sequence of effects or exceptions."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.requests = []

    def execute(self, request):
        self.requests.append(request)
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeTaxonomyLedger:
    """Emulates the commit/abort/cost contract of the ``taxonomy`` Move package."""

    def __init__(self):
        self.requests = []
        self._ids = itertools.count(1)
        self._digests = itertools.count(1)

    def execute(self, request):
        self.requests.append(request)
        calls = [command for command in request.commands if isinstance(command, MoveCall)]
        call = calls[-1]
        function = call.target.rsplit("::", 1)[-1]
        values = [argument.value for argument in call.arguments if argument.kind in ("u64", "bool")]
        return self._respond(function, values)

    def _digest(self):
        return f"digest-{next(self._digests)}"

    def _success(self, storage=2_000, rebate=980, created=()):
        return EffectsResult(
            status="success",
            gas=GasSummary(computation_cost=1_000, storage_cost=storage, storage_rebate=rebate),
            digest=self._digest(),
            created_objects=tuple(created),
        )

    def _failure(self, error, rebate=980):
        return EffectsResult(
            status="failure",
            error=error,
            gas=GasSummary(computation_cost=1_000, storage_cost=988, storage_rebate=rebate),
            digest=self._digest(),
        )

    def _respond(self, function, values):
        if function == "create_shared_test_object":
            object_id = f"0x{next(self._ids):04x}"
            return self._success(
                created=[CreatedObject(object_id, "0x5eed::taxonomy::SharedTestObject")]
            )
        if function.endswith("_abort") and function.startswith("test_") and "rebate" not in function:
            if "rollback" in function:
                return self._failure(move_abort_text(7))
            (value,) = values
            return self._failure(move_abort_text(100)) if value <= 100 else self._success()
        if function.startswith("test_overflow_"):
            lhs, rhs = values
            if lhs + rhs > U64_MAX:
                return self._failure("ExecutionError: ArithmeticError, arithmetic overflow in command 0")
            return self._success()
        if function.startswith("test_division_by_zero_"):
            _, divisor = values
            if divisor == 0:
                return self._failure("ExecutionError: division by zero in command 0")
            return self._success()
        if function.startswith("test_vector_oob_"):
            (index,) = values
            if index >= 3:
                return self._failure("MovePrimitiveRuntimeError(MoveLocationOpt(None)) in command 0")
            return self._success()
        if function == "test_rebate_success_owned":
            return self._success(storage=2_000, rebate=1_980)
        if function == "test_rebate_abort_owned":
            return self._failure(move_abort_text(2), rebate=980)
        if function == "test_rebate_destroy_then_abort_owned":
            return self._failure(move_abort_text(3), rebate=1_500)
        if function.startswith("test_rollback_"):
            return self._failure(move_abort_text(7))
        if function.startswith("payload_"):
            (size,) = values
            storage = 2_000 + size * 76
            rebate = storage - 20 if "destroy" in function else 0
            return self._success(storage=storage, rebate=rebate)
        # object creation/modification and balance calls take a trailing abort flag
        if values and isinstance(values[-1], bool):
            return self._failure(move_abort_text(1)) if values[-1] else self._success()
        if function == "create_owned_test_object":
            return self._success()
        raise LedgerSubmissionError(f"Function {function} not found in package")


class FakeClock:
    """Monotonic clock advancing ``step`` seconds per reading."""

    def __init__(self, step=0.5):
        self._now = 0.0
        self._step = step

    def __call__(self):
        value = self._now
        self._now += self._step
        return value


class RecordingStopEvent:
    """Stand-in for ``threading.Event`` that records throttle waits."""

    def __init__(self):
        self.waits = []
        self._set = False

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return self._set

    def is_set(self):
        return self._set

    def set(self):
        self._set = True


@pytest.fixture
def taxonomy_ledger():
    return FakeTaxonomyLedger()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def stop_event():
    return RecordingStopEvent()
