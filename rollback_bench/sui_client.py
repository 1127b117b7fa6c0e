from __future__ import annotations

import base64
import logging
import time
from typing import Any

from pysui import SuiConfig, SyncClient
from pysui.sui.sui_txn import SyncTransaction
from pysui.sui.sui_types.scalars import ObjectID, SuiBoolean, SuiU64

from .ledger import (
    Argument,
    EffectsResult,
    LedgerConnectionError,
    LedgerSubmissionError,
    MoveCall,
    SplitGas,
    TransactionRequest,
)

LOGGER = logging.getLogger("rollback_bench.sui_client")

NETWORK_URLS: dict[str, str] = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
    "localnet": "http://127.0.0.1:9000",
}

ED25519_FLAG = b"\x00"


def resolve_rpc_url(network: str, rpc_url: str | None = None) -> str:
    if rpc_url:
        return rpc_url
    try:
        return NETWORK_URLS[network.lower()]
    except KeyError:
        raise LedgerConnectionError(
            f"unknown network {network!r}; expected one of {', '.join(NETWORK_URLS)}"
        ) from None


def normalise_private_key(private_key: str) -> str:
    """Return a keystring pysui accepts: bech32 ``suiprivkey`` or flagged base64."""
    key = private_key.strip()
    if key.startswith("suiprivkey"):
        return key
    try:
        raw = bytes.fromhex(key.removeprefix("0x"))
    except ValueError:
        raise LedgerConnectionError("SUI_PRIVATE_KEY is neither a suiprivkey string nor hex") from None
    if len(raw) != 32:
        raise LedgerConnectionError("hex private key must encode 32 bytes of Ed25519 secret")
    return base64.b64encode(ED25519_FLAG + raw).decode("ascii")


def create_client(rpc_url: str, private_key: str) -> SyncClient:
    backoff = 1.0
    max_backoff = 10.0
    deadline = time.time() + 60

    keystring = normalise_private_key(private_key)
    while True:
        try:
            config = SuiConfig.user_config(rpc_url=rpc_url, prv_keys=[keystring])
            return SyncClient(config)
        except Exception as exc:  # noqa: BLE001
            if time.time() >= deadline:
                raise LedgerConnectionError(
                    f"failed to connect to Sui fullnode {rpc_url} within 60 seconds"
                ) from exc
            LOGGER.warning("Sui client not ready (%s); retrying in %.1fs", exc, backoff)
            time.sleep(backoff)
            backoff = min(backoff * 1.5, max_backoff)


class SuiLedgerClient:
    """Executes ``TransactionRequest`` objects as programmable transactions."""

    def __init__(self, client: SyncClient) -> None:
        self._client = client

    @classmethod
    def connect(cls, network: str, private_key: str, rpc_url: str | None = None) -> SuiLedgerClient:
        url = resolve_rpc_url(network, rpc_url)
        LOGGER.info("Connecting to Sui fullnode %s", url)
        return cls(create_client(url, private_key))

    def execute(self, request: TransactionRequest) -> EffectsResult:
        txn = SyncTransaction(client=self._client)
        results: list[Any] = []
        for command in request.commands:
            if isinstance(command, SplitGas):
                results.append(txn.split_coin(coin=txn.gas, amounts=[command.amount]))
            elif isinstance(command, MoveCall):
                arguments = [self._convert(argument, results) for argument in command.arguments]
                results.append(txn.move_call(target=command.target, arguments=arguments))
            else:
                raise TypeError(f"unsupported command {command!r}")

        response = txn.execute(gas_budget=str(request.gas_budget))
        if not response.is_ok():
            raise LedgerSubmissionError(str(response.result_string), data=response.result_data)
        return EffectsResult.from_response(response.result_data)

    @staticmethod
    def _convert(argument: Argument, results: list[Any]) -> Any:
        if argument.kind == "u64":
            return SuiU64(argument.value)
        if argument.kind == "bool":
            return SuiBoolean(argument.value)
        if argument.kind == "object":
            return ObjectID(argument.value)
        if argument.kind == "result":
            return results[argument.value]
        raise TypeError(f"unsupported argument kind {argument.kind!r}")


__all__ = [
    "NETWORK_URLS",
    "SuiLedgerClient",
    "create_client",
    "normalise_private_key",
    "resolve_rpc_url",
]
