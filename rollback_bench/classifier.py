"""Classification of free-text Sui failure messages into a fixed error taxonomy.

Failure text has no stable schema: a Move abort, a VM trap, an object version
conflict and an RPC rejection all read differently. Classification is an
ordered list of independent ``MatchRule`` objects; the first rule that matches
decides the error type, and abort codes embedded in ``MoveAbort(...)`` text
take priority over the synthetic codes attached to keyword rules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    MOVE_ABORT = "MOVE_ABORT"
    VM_PRIMITIVE_RUNTIME_ERROR = "VM_PRIMITIVE_RUNTIME_ERROR"
    INPUT_OBJECT_VERSION_CONFLICT = "INPUT_OBJECT_VERSION_CONFLICT"
    ARITHMETIC_ERROR = "ARITHMETIC_ERROR"
    DIVISION_BY_ZERO = "DIVISION_BY_ZERO"
    OUT_OF_BOUNDS = "OUT_OF_BOUNDS"
    INSUFFICIENT_GAS = "INSUFFICIENT_GAS"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value


ARITHMETIC_ABORT_CODE = 9001
DIVISION_BY_ZERO_ABORT_CODE = 9002
OUT_OF_BOUNDS_ABORT_CODE = 9003
INSUFFICIENT_GAS_ABORT_CODE = 9100

# MoveAbort(MoveLocation { ... }, 100) in command 0
CANONICAL_ABORT = re.compile(r"MoveAbort\(.*?\},\s*(\d+)\)", re.DOTALL)
LOOSE_ABORT = re.compile(r"MoveAbort.*?(\d{1,6})")

# Kinds a caller-supplied assumption is allowed to replace.
GENERIC_KINDS = frozenset({ErrorKind.UNKNOWN, ErrorKind.VM_PRIMITIVE_RUNTIME_ERROR})


@dataclass(frozen=True)
class MatchRule:
    kind: ErrorKind
    pattern: re.Pattern[str]
    abort_code: int | None = None

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(kind: ErrorKind, pattern: str, abort_code: int | None = None) -> MatchRule:
    return MatchRule(kind=kind, pattern=re.compile(pattern, re.IGNORECASE), abort_code=abort_code)


# Declaration order is precedence order.
RULES: tuple[MatchRule, ...] = (
    _rule(ErrorKind.MOVE_ABORT, r"MoveAbort"),
    _rule(ErrorKind.VM_PRIMITIVE_RUNTIME_ERROR, r"MovePrimitiveRuntimeError"),
    _rule(ErrorKind.INPUT_OBJECT_VERSION_CONFLICT, r"not available for consumption|current version"),
    _rule(ErrorKind.ARITHMETIC_ERROR, r"arithmetic|overflow", ARITHMETIC_ABORT_CODE),
    _rule(ErrorKind.DIVISION_BY_ZERO, r"division.*zero", DIVISION_BY_ZERO_ABORT_CODE),
    _rule(ErrorKind.OUT_OF_BOUNDS, r"out of bounds|index out of range", OUT_OF_BOUNDS_ABORT_CODE),
    _rule(ErrorKind.INSUFFICIENT_GAS, r"InsufficientGas", INSUFFICIENT_GAS_ABORT_CODE),
)

DEFAULT_ABORT_CODES: dict[ErrorKind, int] = {
    rule.kind: rule.abort_code for rule in RULES if rule.abort_code is not None
}


@dataclass(frozen=True)
class Classification:
    error_type: ErrorKind
    abort_code: int | None = None


def extract_abort_code(text: str) -> int | None:
    match = CANONICAL_ABORT.search(text) or LOOSE_ABORT.search(text)
    if match:
        return int(match.group(1))
    for rule in RULES:
        if rule.abort_code is not None and rule.matches(text):
            return rule.abort_code
    return None


def classify_kind(text: str) -> ErrorKind:
    for rule in RULES:
        if rule.matches(text):
            return rule.kind
    return ErrorKind.UNKNOWN


def classify(text: str | None, assumed: ErrorKind | None = None) -> Classification:
    """Classify failure ``text``; never raises.

    ``assumed`` is the failure a scenario is built to provoke. It replaces the
    result only when nothing more specific than a generic VM error was found.
    """
    text = text or ""
    kind = classify_kind(text)
    code = extract_abort_code(text)

    if assumed is not None and kind in GENERIC_KINDS:
        kind = assumed
        if code is None:
            code = DEFAULT_ABORT_CODES.get(assumed)
    return Classification(error_type=kind, abort_code=code)


__all__ = [
    "ARITHMETIC_ABORT_CODE",
    "Classification",
    "DIVISION_BY_ZERO_ABORT_CODE",
    "ErrorKind",
    "INSUFFICIENT_GAS_ABORT_CODE",
    "MatchRule",
    "OUT_OF_BOUNDS_ABORT_CODE",
    "RULES",
    "classify",
    "classify_kind",
    "extract_abort_code",
]
