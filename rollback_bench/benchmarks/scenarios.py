"""Scenario drivers: the parameter grids submitted against the ``taxonomy`` package.

Each driver is a generator of ``(TransactionRequest, SubmissionContext)`` pairs
in the exact order they must be submitted. Abort/commit scenarios put their
aborting iterations first, so record order carries meaning and must not be
shuffled or batched.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Protocol

from ..classifier import ErrorKind
from ..ledger import U64_MAX, TransactionRequest, pure_bool, pure_u64, shared_object
from .collector import ResultStore
from .config import BenchmarkPlan
from .executor import SubmissionContext, ThrottledExecutor

LOGGER = logging.getLogger("rollback_bench.benchmark.scenarios")

MODULE = "taxonomy"

# assert!(value > DEPTH_THRESHOLD, E_VALUE_TOO_SMALL)
DEPTH_THRESHOLD = 100
DEPTH_ABORT_VALUE = 50
DEPTH_COMMIT_VALUE = 150
DEPTHS: tuple[str, ...] = ("early", "shallow", "medium", "deep")
ROLLBACK_DEPTHS: tuple[str, ...] = ("shallow", "medium", "deep")
OBJECT_TYPES: tuple[str, ...] = ("owned", "shared")

DEPOSIT_AMOUNT_MIST = 1000

Submission = tuple[TransactionRequest, SubmissionContext]


class SharedObjectSource(Protocol):
    def select(self, index: int) -> str: ...


@dataclass
class ScenarioEnvironment:
    package_id: str
    gas_budget: int
    plan: BenchmarkPlan
    pool: SharedObjectSource | None = None

    def new_request(self, shared_write: bool = False) -> TransactionRequest:
        return TransactionRequest(
            package_id=self.package_id,
            gas_budget=self.gas_budget,
            shared_write=shared_write,
        )

    def pick_shared(self, index: int) -> str:
        if self.pool is None:
            raise RuntimeError("scenario needs the shared object pool but none was initialised")
        return self.pool.select(index)


def _iterations(env: ScenarioEnvironment) -> Iterator[tuple[int, bool]]:
    for iteration in range(1, env.plan.iterations + 1):
        yield iteration, iteration <= env.plan.abort_iterations


def depth_variants(env: ScenarioEnvironment) -> Iterator[Submission]:
    for object_type in OBJECT_TYPES:
        for depth in DEPTHS:
            for iteration, should_abort in _iterations(env):
                value = DEPTH_ABORT_VALUE if should_abort else DEPTH_COMMIT_VALUE
                request = env.new_request()
                request.move_call(f"{MODULE}::test_{object_type}_{depth}_abort", pure_u64(value))
                yield request, SubmissionContext(
                    category="Language-Depth",
                    object_type=object_type,
                    abort_depth=depth,
                    pattern=f"{depth}_abort",
                    iteration=iteration,
                    expected_abort=should_abort,
                )


def vm_errors(env: ScenarioEnvironment) -> Iterator[Submission]:
    for object_type in OBJECT_TYPES:
        for iteration, should_abort in _iterations(env):
            request = env.new_request()
            lhs, rhs = (U64_MAX, 1) if should_abort else (100, 200)
            request.move_call(f"{MODULE}::test_overflow_{object_type}", pure_u64(lhs), pure_u64(rhs))
            yield request, _vm_context(object_type, "overflow", iteration, should_abort)

        for iteration, should_abort in _iterations(env):
            request = env.new_request()
            request.move_call(
                f"{MODULE}::test_division_by_zero_{object_type}",
                pure_u64(100),
                pure_u64(0 if should_abort else 10),
            )
            yield request, _vm_context(object_type, "division_by_zero", iteration, should_abort)

        for iteration, should_abort in _iterations(env):
            request = env.new_request()
            request.move_call(f"{MODULE}::test_vector_oob_{object_type}", pure_u64(10 if should_abort else 1))
            # Out-of-bounds traps often surface as a bare primitive runtime error.
            yield request, _vm_context(
                object_type, "vector_oob", iteration, should_abort, assumed_error=ErrorKind.OUT_OF_BOUNDS
            )


def _vm_context(
    object_type: str,
    pattern: str,
    iteration: int,
    should_abort: bool,
    assumed_error: ErrorKind | None = None,
) -> SubmissionContext:
    return SubmissionContext(
        category="VM-Error",
        object_type=object_type,
        abort_depth="na",
        pattern=pattern,
        iteration=iteration,
        expected_abort=should_abort,
        assumed_error=assumed_error,
    )


def state_rollback(env: ScenarioEnvironment) -> Iterator[Submission]:
    for object_type in OBJECT_TYPES:
        for iteration, should_abort in _iterations(env):
            request = env.new_request(shared_write=object_type == "shared")
            request.move_call(f"{MODULE}::test_{object_type}_object_creation", pure_bool(should_abort))
            yield request, _rollback_context(object_type, "object_creation", iteration, should_abort)

    for iteration, should_abort in _iterations(env):
        request = env.new_request()
        request.move_call(
            f"{MODULE}::test_shared_object_modify",
            shared_object(env.pick_shared(iteration - 1)),
            pure_u64(iteration * 10),
            pure_bool(should_abort),
        )
        yield request, _rollback_context("shared", "object_modify", iteration, should_abort)

    # Owned objects are created and modified in the same transaction.
    for iteration, should_abort in _iterations(env):
        request = env.new_request()
        created = request.move_call(f"{MODULE}::create_owned_test_object")
        request.move_call(
            f"{MODULE}::test_owned_object_modify",
            created,
            pure_u64(iteration * 10),
            pure_bool(should_abort),
        )
        yield request, _rollback_context("owned", "object_modify", iteration, should_abort)


def _rollback_context(object_type: str, pattern: str, iteration: int, should_abort: bool) -> SubmissionContext:
    return SubmissionContext(
        category="State-Rollback",
        object_type=object_type,
        abort_depth="na",
        pattern=pattern,
        iteration=iteration,
        expected_abort=should_abort,
    )


def balance_ops(env: ScenarioEnvironment) -> Iterator[Submission]:
    for iteration, should_abort in _iterations(env):
        request = env.new_request()
        created = request.move_call(f"{MODULE}::create_owned_test_object")
        coin = request.split_gas(DEPOSIT_AMOUNT_MIST)
        request.move_call(f"{MODULE}::test_balance_owned", created, coin, pure_bool(should_abort))
        yield request, SubmissionContext(
            category="Balance-Ops",
            object_type="owned",
            abort_depth="na",
            pattern="balance_owned",
            iteration=iteration,
            expected_abort=should_abort,
        )

    for iteration, should_abort in _iterations(env):
        request = env.new_request()
        shared_id = env.pick_shared(iteration - 1)
        coin = request.split_gas(DEPOSIT_AMOUNT_MIST)
        request.move_call(f"{MODULE}::test_balance_shared", shared_object(shared_id), coin, pure_bool(should_abort))
        yield request, SubmissionContext(
            category="Balance-Ops",
            object_type="shared",
            abort_depth="na",
            pattern="balance_shared",
            iteration=iteration,
            expected_abort=should_abort,
        )


REBATE_CASES: tuple[tuple[str, str, bool], ...] = (
    ("test_rebate_success_owned", "rebate_success", False),
    ("test_rebate_abort_owned", "abort_before_destroy", True),
    ("test_rebate_destroy_then_abort_owned", "destroy_then_abort", True),
)


def rebate_trap(env: ScenarioEnvironment) -> Iterator[Submission]:
    for function, pattern, expected_abort in REBATE_CASES:
        for iteration in range(1, env.plan.iterations + 1):
            request = env.new_request()
            request.move_call(f"{MODULE}::{function}")
            yield request, SubmissionContext(
                category="Rebate-Trap",
                object_type="owned",
                abort_depth="na",
                pattern=pattern,
                iteration=iteration,
                expected_abort=expected_abort,
            )


def rollback_depth(env: ScenarioEnvironment) -> Iterator[Submission]:
    for depth in ROLLBACK_DEPTHS:
        for iteration in range(1, env.plan.rollback_depth_iterations + 1):
            request = env.new_request()
            request.move_call(f"{MODULE}::test_rollback_{depth}_owned")
            yield request, SubmissionContext(
                category="Rollback-Depth",
                object_type="owned",
                abort_depth=depth,
                pattern=f"rollback_{depth}",
                iteration=iteration,
                expected_abort=True,
            )


def payload_sweep(env: ScenarioEnvironment) -> Iterator[Submission]:
    plan = env.plan
    sweeps = (
        ("payload_create_owned", "owned", plan.payload_owned_iterations),
        ("payload_create_destroy_owned", "owned", plan.payload_owned_iterations),
        ("payload_create_shared", "shared", plan.payload_shared_iterations),
    )
    for function, object_type, iterations in sweeps:
        for size in plan.payload_sizes:
            for iteration in range(1, iterations + 1):
                request = env.new_request(shared_write=object_type == "shared")
                request.move_call(f"{MODULE}::{function}", pure_u64(size))
                yield request, SubmissionContext(
                    category="Payload-Sweep",
                    object_type=object_type,
                    abort_depth="na",
                    pattern=f"{function}_{size}",
                    iteration=iteration,
                    expected_abort=False,
                )


ScenarioDriver = Callable[[ScenarioEnvironment], Iterator[Submission]]

CATEGORY_DRIVERS: dict[str, ScenarioDriver] = {
    "depth": depth_variants,
    "vm": vm_errors,
    "rollback": state_rollback,
    "balance": balance_ops,
    "rebate": rebate_trap,
    "rollback-depth": rollback_depth,
    "payload": payload_sweep,
}


def run_scenarios(
    categories: Iterable[str],
    env: ScenarioEnvironment,
    executor: ThrottledExecutor,
    store: ResultStore,
    stop_event: threading.Event | None = None,
) -> int:
    """Submit every grid cell of ``categories`` in order; return the number submitted."""
    submitted = 0
    for name in categories:
        driver = CATEGORY_DRIVERS[name]
        LOGGER.info("Running scenario category: %s", name)
        for request, context in driver(env):
            if stop_event is not None and stop_event.is_set():
                LOGGER.warning("Stop requested; %d submissions completed", submitted)
                return submitted
            store.append(executor.submit(request, context))
            submitted += 1
    return submitted


def count_submissions(categories: Iterable[str], plan: BenchmarkPlan) -> dict[str, int]:
    """Number of submissions each category will issue under ``plan``."""
    env = ScenarioEnvironment(package_id="0x0", gas_budget=1, plan=plan, pool=_DryRunPool())
    return {name: sum(1 for _ in CATEGORY_DRIVERS[name](env)) for name in categories}


class _DryRunPool:
    """Stands in for the shared pool when only counting submissions."""

    def select(self, index: int) -> str:
        return f"0xshared{index}"
