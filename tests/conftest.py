"""Shared fixtures: a prelude-backed codec and an in-memory ledger."""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from tessera.pneuma.ledger import (
    CompletedTransaction,
    Credential,
    ExUnits,
    LedgerError,
    TxDraft,
    UTxO,
)
from tessera.pneuma.tx import PendingTransaction
from tessera.spec.codec import Codec
from tessera.spec.prelude import register_prelude
from tessera.spec.schemas import Schema, SchemaRegistry, integer

POLICY = "ab" * 28
MARKER = POLICY + "6d61726b6572"  # "marker"
SCRIPT_HASH = "5c" * 28
SCRIPT_ADDRESS = "addr_test1_script"
WALLET_ADDRESS = "addr_test1_wallet"


class FakeLedger:
    """
    In-memory ledger that records every call.

    Rules registered with ``reject_when`` run on each completed draft and
    raise LedgerError with the given trace, like a failing validator.
    """

    def __init__(self) -> None:
        self.drafts: list[TxDraft] = []
        self.submitted: list[CompletedTransaction] = []
        self.awaited: list[str] = []
        self.utxos: list[UTxO] = []
        self.credentials: dict[str, Credential] = {
            SCRIPT_ADDRESS: Credential("Script", SCRIPT_HASH),
        }
        self._rules: list[tuple[Callable[[TxDraft], bool], str]] = []

    def reject_when(self, predicate: Callable[[TxDraft], bool], trace: str) -> None:
        self._rules.append((predicate, trace))

    async def complete(self, draft: TxDraft) -> CompletedTransaction:
        self.drafts.append(draft)
        for predicate, trace in self._rules:
            if predicate(draft):
                raise LedgerError(trace)
        n = len(self.drafts)
        return CompletedTransaction(
            cbor="84" + "00" * (99 + n),
            fee=170_000,
            ex_units=ExUnits(cpu=1_000_000 * n, mem=2_000 * n),
            tx_hash=f"{n:064x}",
        )

    async def sign(self, tx: CompletedTransaction) -> CompletedTransaction:
        return tx.with_witness("wallet")

    async def sign_with_key(self, tx: CompletedTransaction, key: str) -> CompletedTransaction:
        return tx.with_witness(key)

    async def submit(self, tx: CompletedTransaction) -> str:
        self.submitted.append(tx)
        return tx.tx_hash or ""

    async def await_tx(self, tx_hash: str) -> bool:
        self.awaited.append(tx_hash)
        return True

    async def utxos_at(self, address: str) -> list[UTxO]:
        return [u for u in self.utxos if u.address == address]

    async def utxo_by_unit(self, unit: str) -> UTxO:
        for utxo in self.utxos:
            if utxo.assets.get(unit):
                return utxo
        raise LedgerError(f"No unspent output holds {unit}")

    def payment_credential(self, address: str) -> Credential:
        return self.credentials.get(address, Credential("Key", "0a" * 28))


PAIR = Schema("Pair", 0, (("a", integer()), ("b", integer())))


@pytest.fixture()
def registry() -> SchemaRegistry:
    registry = register_prelude(SchemaRegistry())
    registry.register(PAIR)
    return registry


@pytest.fixture()
def codec(registry: SchemaRegistry) -> Codec:
    return Codec(registry)


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def new_tx(ledger: FakeLedger, codec: Codec) -> Callable[[], PendingTransaction]:
    def factory() -> PendingTransaction:
        return PendingTransaction(ledger, codec)

    return factory


@pytest.fixture()
def utxo() -> Callable[..., UTxO]:
    def factory(
        index: int = 0,
        address: str = WALLET_ADDRESS,
        assets: Optional[dict[str, int]] = None,
    ) -> UTxO:
        return UTxO(
            tx_hash="ee" * 32,
            output_index=index,
            address=address,
            assets=assets if assets is not None else {"lovelace": 2_000_000},
        )

    return factory
