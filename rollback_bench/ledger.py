from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

U64_MAX = 2**64 - 1

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"


class LedgerSubmissionError(Exception):
    """Raised when the ledger rejects a transaction before returning effects."""

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.data = data


class LedgerConnectionError(Exception):
    """Raised when no ledger client could be created."""


@dataclass(frozen=True)
class Argument:
    """A single Move call argument: a pure value, an object or an earlier result."""

    kind: str
    value: Any

    @property
    def is_shared_object(self) -> bool:
        return self.kind == "object"


def pure_u64(value: int) -> Argument:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"u64 argument out of range: {value}")
    return Argument("u64", int(value))


def pure_bool(value: bool) -> Argument:
    return Argument("bool", bool(value))


def shared_object(object_id: str) -> Argument:
    return Argument("object", object_id)


@dataclass(frozen=True)
class MoveCall:
    target: str
    arguments: tuple[Argument, ...]


@dataclass(frozen=True)
class SplitGas:
    amount: int


@dataclass
class TransactionRequest:
    """Programmable transaction assembled by a scenario and handed to the ledger."""

    package_id: str
    gas_budget: int
    shared_write: bool = False
    commands: list[MoveCall | SplitGas] = field(default_factory=list)

    def move_call(self, function: str, *arguments: Argument) -> Argument:
        """Append ``<package>::<function>`` and return a handle on its result."""
        self.commands.append(MoveCall(target=f"{self.package_id}::{function}", arguments=tuple(arguments)))
        return Argument("result", len(self.commands) - 1)

    def split_gas(self, amount: int) -> Argument:
        self.commands.append(SplitGas(amount=amount))
        return Argument("result", len(self.commands) - 1)

    @property
    def targets(self) -> list[str]:
        return [command.target for command in self.commands if isinstance(command, MoveCall)]

    @property
    def touches_shared(self) -> bool:
        if self.shared_write:
            return True
        return any(
            argument.is_shared_object
            for command in self.commands
            if isinstance(command, MoveCall)
            for argument in command.arguments
        )


def coerce_cost(value: Any) -> int:
    """Parse a gas figure that may arrive as int or numeric text; garbage is 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return 0


def lookup(payload: Any, *names: str) -> Any:
    """Return the first of ``names`` present on a mapping or object, else None."""
    if payload is None:
        return None
    for name in names:
        if isinstance(payload, Mapping):
            if name in payload:
                return payload[name]
        elif hasattr(payload, name):
            return getattr(payload, name)
    return None


@dataclass(frozen=True)
class GasSummary:
    computation_cost: int = 0
    storage_cost: int = 0
    storage_rebate: int = 0

    @property
    def net(self) -> int:
        return self.computation_cost + self.storage_cost - self.storage_rebate

    @classmethod
    def from_payload(cls, payload: Any) -> GasSummary:
        if payload is None:
            return cls()
        return cls(
            computation_cost=coerce_cost(lookup(payload, "computationCost", "computation_cost")),
            storage_cost=coerce_cost(lookup(payload, "storageCost", "storage_cost")),
            storage_rebate=coerce_cost(lookup(payload, "storageRebate", "storage_rebate")),
        )


@dataclass(frozen=True)
class CreatedObject:
    object_id: str
    object_type: str


@dataclass(frozen=True)
class EffectsResult:
    status: str
    error: str | None = None
    gas: GasSummary = field(default_factory=GasSummary)
    digest: str | None = None
    created_objects: tuple[CreatedObject, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    @classmethod
    def from_response(cls, tx_response: Any) -> EffectsResult:
        """Normalise a transaction response (typed or raw JSON) into an ``EffectsResult``."""
        effects = lookup(tx_response, "effects")
        status_block = lookup(effects, "status")
        status = lookup(status_block, "status") or STATUS_FAILURE
        error = lookup(status_block, "error")

        created: list[CreatedObject] = []
        for change in lookup(tx_response, "objectChanges", "object_changes") or []:
            if lookup(change, "type") != "created":
                continue
            object_id = lookup(change, "objectId", "object_id")
            object_type = lookup(change, "objectType", "object_type")
            if object_id and object_type:
                created.append(CreatedObject(object_id=str(object_id), object_type=str(object_type)))

        return cls(
            status=str(status),
            error=str(error) if error else None,
            gas=GasSummary.from_payload(lookup(effects, "gasUsed", "gas_used")),
            digest=lookup(tx_response, "digest"),
            created_objects=tuple(created),
        )

    def find_created(self, type_fragment: str) -> CreatedObject | None:
        for created in self.created_objects:
            if type_fragment in created.object_type:
                return created
        return None


class LedgerClient(Protocol):
    def execute(self, request: TransactionRequest) -> EffectsResult:
        """Submit ``request`` once and return its effects, or raise."""
        ...


__all__ = [
    "Argument",
    "CreatedObject",
    "EffectsResult",
    "GasSummary",
    "LedgerClient",
    "LedgerConnectionError",
    "LedgerSubmissionError",
    "MoveCall",
    "SplitGas",
    "STATUS_FAILURE",
    "STATUS_SUCCESS",
    "TransactionRequest",
    "U64_MAX",
    "coerce_cost",
    "lookup",
    "pure_bool",
    "pure_u64",
    "shared_object",
]
