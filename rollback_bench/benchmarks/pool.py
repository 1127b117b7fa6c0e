from __future__ import annotations

import logging
import threading

from ..ledger import LedgerClient, TransactionRequest

LOGGER = logging.getLogger("rollback_bench.benchmark.pool")

CREATE_SHARED_FUNCTION = "taxonomy::create_shared_test_object"
SHARED_OBJECT_TYPE = "SharedTestObject"


class PoolInitialisationError(Exception):
    """Raised when the shared object pool cannot be populated or is used empty."""


class SharedObjectPool:
    """Fixed set of shared objects handed out round-robin by iteration index.

    Writes to one shared object are serialised by consensus, so spreading
    consecutive writes over several objects keeps that queueing out of the
    latency figures. This is an arena with a rotating index, not a lock: the
    pool is filled completely before the first ``select`` and never changes
    afterwards.
    """

    def __init__(
        self,
        client: LedgerClient,
        package_id: str,
        gas_budget: int,
        settle_seconds: float = 0.0,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._client = client
        self._package_id = package_id
        self._gas_budget = gas_budget
        self._settle_seconds = settle_seconds
        self._stop_event = stop_event or threading.Event()
        self._handles: list[str] = []

    @property
    def handles(self) -> tuple[str, ...]:
        return tuple(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def initialize(self, count: int) -> tuple[str, ...]:
        if count <= 0:
            raise PoolInitialisationError("shared object pool size must be > 0")
        if self._handles:
            raise PoolInitialisationError("shared object pool is already initialised")

        LOGGER.info("Initialising shared object pool: %d objects", count)
        for idx in range(count):
            object_id = self._create_one(idx)
            self._handles.append(object_id)
            LOGGER.info("shared[%d] = %s", idx, object_id)
            if self._stop_event.wait(timeout=self._settle_seconds):
                raise PoolInitialisationError("interrupted while initialising shared object pool")
        return self.handles

    def select(self, index: int) -> str:
        if not self._handles:
            raise PoolInitialisationError("shared object pool is empty")
        return self._handles[index % len(self._handles)]

    def _create_one(self, idx: int) -> str:
        request = TransactionRequest(
            package_id=self._package_id,
            gas_budget=self._gas_budget,
            shared_write=True,
        )
        request.move_call(CREATE_SHARED_FUNCTION)
        try:
            effects = self._client.execute(request)
        except Exception as exc:
            raise PoolInitialisationError(f"failed to create shared object #{idx}: {exc}") from exc

        if not effects.succeeded:
            raise PoolInitialisationError(
                f"failed to create shared object #{idx}: {effects.error or effects.status}"
            )
        created = effects.find_created(SHARED_OBJECT_TYPE)
        if created is None:
            raise PoolInitialisationError(
                f"shared object #{idx} creation returned no {SHARED_OBJECT_TYPE} (digest={effects.digest})"
            )
        return created.object_id
