"""Unit tests for the transaction request model and effects normalisation."""

from types import SimpleNamespace

import pytest

from rollback_bench.ledger import (
    U64_MAX,
    EffectsResult,
    GasSummary,
    MoveCall,
    SplitGas,
    TransactionRequest,
    coerce_cost,
    pure_bool,
    pure_u64,
    shared_object,
)


class TestTransactionRequest:
    def test_move_call_prefixes_package_and_returns_result_handle(self):
        request = TransactionRequest(package_id="0xabc", gas_budget=1_000)

        created = request.move_call("taxonomy::create_owned_test_object")
        request.move_call("taxonomy::test_owned_object_modify", created, pure_u64(10), pure_bool(True))

        assert request.targets == [
            "0xabc::taxonomy::create_owned_test_object",
            "0xabc::taxonomy::test_owned_object_modify",
        ]
        assert created.kind == "result" and created.value == 0
        assert isinstance(request.commands[1], MoveCall)
        assert request.commands[1].arguments[0] == created

    def test_split_gas_is_a_command(self):
        request = TransactionRequest(package_id="0xabc", gas_budget=1_000)

        coin = request.split_gas(1000)

        assert request.commands == [SplitGas(amount=1000)]
        assert coin.value == 0

    def test_touches_shared_for_object_arguments(self):
        request = TransactionRequest(package_id="0xabc", gas_budget=1_000)
        request.move_call("taxonomy::test_shared_object_modify", shared_object("0x1"), pure_bool(False))

        assert request.touches_shared

    def test_touches_shared_for_flagged_writes(self):
        request = TransactionRequest(package_id="0xabc", gas_budget=1_000, shared_write=True)
        request.move_call("taxonomy::payload_create_shared", pure_u64(0))

        assert request.touches_shared

    def test_owned_call_does_not_touch_shared(self):
        request = TransactionRequest(package_id="0xabc", gas_budget=1_000)
        request.move_call("taxonomy::test_owned_early_abort", pure_u64(50))

        assert not request.touches_shared

    @pytest.mark.parametrize("value", [-1, U64_MAX + 1])
    def test_u64_range_is_enforced(self, value):
        with pytest.raises(ValueError):
            pure_u64(value)


class TestGasSummary:
    def test_net_may_be_negative(self):
        gas = GasSummary(computation_cost=1_000, storage_cost=500, storage_rebate=2_000)

        assert gas.net == -500

    def test_from_camel_case_text(self):
        gas = GasSummary.from_payload(
            {"computationCost": "1000000", "storageCost": "2964000", "storageRebate": "978120"}
        )

        assert gas == GasSummary(1_000_000, 2_964_000, 978_120)

    def test_from_snake_case_attributes(self):
        payload = SimpleNamespace(computation_cost=10, storage_cost="20", storage_rebate=None)

        assert GasSummary.from_payload(payload) == GasSummary(10, 20, 0)

    @pytest.mark.parametrize("raw, expected", [("12", 12), (" 7 ", 7), ("n/a", 0), (None, 0), (True, 0), (3, 3)])
    def test_coerce_cost(self, raw, expected):
        assert coerce_cost(raw) == expected


class TestEffectsResult:
    def test_from_raw_json_response(self):
        response = {
            "digest": "9XyZ",
            "effects": {
                "status": {"status": "failure", "error": "MoveAbort(...)"},
                "gasUsed": {"computationCost": "1000", "storageCost": "988", "storageRebate": "978"},
            },
            "objectChanges": [
                {"type": "mutated", "objectId": "0xgas", "objectType": "0x2::coin::Coin<0x2::sui::SUI>"},
                {"type": "created", "objectId": "0xnew", "objectType": "0xpkg::taxonomy::SharedTestObject"},
            ],
        }

        effects = EffectsResult.from_response(response)

        assert not effects.succeeded
        assert effects.error == "MoveAbort(...)"
        assert effects.gas.net == 1010
        assert effects.digest == "9XyZ"
        assert effects.find_created("SharedTestObject").object_id == "0xnew"
        assert effects.find_created("OwnedTestObject") is None

    def test_from_typed_response(self):
        response = SimpleNamespace(
            digest="abc",
            effects=SimpleNamespace(
                status=SimpleNamespace(status="success", error=None),
                gas_used=SimpleNamespace(computation_cost="5", storage_cost="6", storage_rebate="1"),
            ),
            object_changes=[],
        )

        effects = EffectsResult.from_response(response)

        assert effects.succeeded
        assert effects.error is None
        assert effects.gas.net == 10

    def test_missing_status_counts_as_failure(self):
        assert not EffectsResult.from_response({}).succeeded
