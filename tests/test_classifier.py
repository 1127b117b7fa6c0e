"""Unit tests for failure text classification."""

import pytest

from rollback_bench.classifier import (
    ARITHMETIC_ABORT_CODE,
    DIVISION_BY_ZERO_ABORT_CODE,
    INSUFFICIENT_GAS_ABORT_CODE,
    OUT_OF_BOUNDS_ABORT_CODE,
    RULES,
    ErrorKind,
    classify,
    extract_abort_code,
)

from .conftest import move_abort_text


class TestMoveAbort:
    """Abort codes embedded in MoveAbort text."""

    @pytest.mark.parametrize("code", [0, 1, 100, 4242, 987654321])
    def test_canonical_shape_extracts_exact_code(self, code):
        result = classify(move_abort_text(code))

        assert result.error_type is ErrorKind.MOVE_ABORT
        assert result.abort_code == code

    def test_canonical_shape_spanning_lines(self):
        text = "MoveAbort(MoveLocation {\n  module: ModuleId { name: taxonomy },\n  function: 1\n}, 77) in command 2"

        assert classify(text).abort_code == 77

    def test_loose_shape_takes_first_digit_run(self):
        result = classify("Transaction failed: MoveAbort in taxonomy::check with code 513")

        assert result.error_type is ErrorKind.MOVE_ABORT
        assert result.abort_code == 513

    def test_move_abort_wins_over_keywords(self):
        result = classify(move_abort_text(100) + " arithmetic overflow")

        assert result.error_type is ErrorKind.MOVE_ABORT
        assert result.abort_code == 100


class TestKeywordRules:
    """Keyword families and their synthetic codes."""

    def test_overflow_is_arithmetic_error(self):
        result = classify("execution failed: arithmetic overflow while adding two u64 values")

        assert result.error_type is ErrorKind.ARITHMETIC_ERROR
        assert result.abort_code == ARITHMETIC_ABORT_CODE

    def test_division_by_zero(self):
        result = classify("VMError: Division by zero in taxonomy::divide")

        assert result.error_type is ErrorKind.DIVISION_BY_ZERO
        assert result.abort_code == DIVISION_BY_ZERO_ABORT_CODE

    def test_out_of_bounds(self):
        result = classify("vector index out of range")

        assert result.error_type is ErrorKind.OUT_OF_BOUNDS
        assert result.abort_code == OUT_OF_BOUNDS_ABORT_CODE

    def test_insufficient_gas(self):
        result = classify("InsufficientGas")

        assert result.error_type is ErrorKind.INSUFFICIENT_GAS
        assert result.abort_code == INSUFFICIENT_GAS_ABORT_CODE

    def test_primitive_runtime_error_has_no_code(self):
        result = classify("MovePrimitiveRuntimeError(MoveLocationOpt(None)) in command 0")

        assert result.error_type is ErrorKind.VM_PRIMITIVE_RUNTIME_ERROR
        assert result.abort_code is None

    def test_primitive_marker_precedes_arithmetic_wording(self):
        result = classify("MovePrimitiveRuntimeError: ArithmeticError")

        assert result.error_type is ErrorKind.VM_PRIMITIVE_RUNTIME_ERROR
        assert result.abort_code == ARITHMETIC_ABORT_CODE

    @pytest.mark.parametrize(
        "text",
        [
            "Object 0xabc is not available for consumption, current version: 12",
            "Transaction needs to be rebuilt because object 0x1 version 3 is unavailable; current version 4",
        ],
    )
    def test_version_conflict(self, text):
        assert classify(text).error_type is ErrorKind.INPUT_OBJECT_VERSION_CONFLICT

    def test_overflow_precedes_out_of_bounds(self):
        assert classify("overflow then out of bounds").error_type is ErrorKind.ARITHMETIC_ERROR

    def test_matching_is_case_insensitive(self):
        assert classify("ARITHMETIC OVERFLOW").error_type is ErrorKind.ARITHMETIC_ERROR

    def test_rules_are_independently_testable(self):
        arithmetic = next(rule for rule in RULES if rule.kind is ErrorKind.ARITHMETIC_ERROR)

        assert arithmetic.matches("u64 overflow")
        assert not arithmetic.matches("division by zero")


class TestFallbacks:
    """Total behaviour and caller assumptions."""

    @pytest.mark.parametrize("text", ["", None, "something odd happened", "RPC timeout 504"])
    def test_unknown_without_code(self, text):
        result = classify(text)

        assert result.error_type is ErrorKind.UNKNOWN
        assert result.abort_code is None

    def test_assumed_kind_replaces_unknown(self):
        result = classify("", assumed=ErrorKind.OUT_OF_BOUNDS)

        assert result.error_type is ErrorKind.OUT_OF_BOUNDS
        assert result.abort_code == OUT_OF_BOUNDS_ABORT_CODE

    def test_assumed_kind_replaces_generic_vm_error(self):
        result = classify(
            "MovePrimitiveRuntimeError(MoveLocationOpt(None))", assumed=ErrorKind.OUT_OF_BOUNDS
        )

        assert result.error_type is ErrorKind.OUT_OF_BOUNDS
        assert result.abort_code == OUT_OF_BOUNDS_ABORT_CODE

    def test_assumed_kind_keeps_specific_failure(self):
        text = "Object 0x1 is not available for consumption"
        result = classify(text, assumed=ErrorKind.OUT_OF_BOUNDS)

        assert result.error_type is ErrorKind.INPUT_OBJECT_VERSION_CONFLICT
        assert result.abort_code is None

    def test_assumed_kind_keeps_extracted_code(self):
        result = classify("MovePrimitiveRuntimeError: MoveAbort 12", assumed=ErrorKind.OUT_OF_BOUNDS)

        # MoveAbort outranks the primitive marker, so nothing is replaced.
        assert result.error_type is ErrorKind.MOVE_ABORT
        assert result.abort_code == 12

    def test_extract_abort_code_without_match(self):
        assert extract_abort_code("all good") is None
