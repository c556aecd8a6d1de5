"""
Ledger contract - what the builder and the test runner need from a ledger.

The ledger (an emulator or a node-backed service) balances drafts,
evaluates scripts, signs with wallet keys, accepts submissions and answers
unspent-output queries. Everything here is a plain value type or a
Protocol; concrete ledgers live elsewhere (see ``rpc.JsonRpcLedger``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional, Protocol

from ..spec.data import WireNode, node_from_json, node_to_json

Assets = dict[str, int]


class LedgerError(RuntimeError):
    """Raised when the ledger rejects a draft or a submission.

    The message is the ledger's own text (often a script trace) and is
    kept verbatim so callers can match on it.
    """

    exit_code: int = 6

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.data = data


@dataclass(frozen=True)
class Credential:
    type: str  # "Key" or "Script"
    hash: str

    @property
    def is_script(self) -> bool:
        return self.type == "Script"


@dataclass(frozen=True)
class ExUnits:
    cpu: int
    mem: int


@dataclass(frozen=True)
class Script:
    type: str  # e.g. "PlutusV2"
    cbor: str

    def to_json(self) -> dict[str, Any]:
        return {"type": self.type, "script": self.cbor}


@dataclass(frozen=True, eq=True)
class UTxO:
    tx_hash: str
    output_index: int
    address: str
    assets: Assets = field(default_factory=dict, hash=False)
    datum: Optional[WireNode] = field(default=None, hash=False)

    @property
    def out_ref(self) -> str:
        return f"{self.tx_hash}#{self.output_index}"

    def holds_marker(self, unit: str) -> bool:
        return self.assets.get(unit) == 1

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "txHash": self.tx_hash,
            "outputIndex": self.output_index,
            "address": self.address,
            "assets": dict(self.assets),
        }
        if self.datum is not None:
            result["datum"] = node_to_json(self.datum)
        return result

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "UTxO":
        datum = payload.get("datum")
        return cls(
            tx_hash=payload["txHash"],
            output_index=int(payload["outputIndex"]),
            address=payload["address"],
            assets={unit: int(qty) for unit, qty in payload.get("assets", {}).items()},
            datum=node_from_json(datum) if datum is not None else None,
        )


# ============ Draft (pre-completion) ============


@dataclass
class DraftInput:
    utxo: UTxO
    redeemer: Optional[WireNode] = None


@dataclass
class DraftMint:
    assets: Assets
    redeemer: Optional[WireNode] = None


@dataclass
class DraftOutput:
    address: str
    assets: Assets
    datum: Optional[WireNode] = None


@dataclass
class DraftWithdrawal:
    address: str
    amount: int
    redeemer: Optional[WireNode] = None


def _node_or_none(node: Optional[WireNode]) -> Optional[dict[str, Any]]:
    return node_to_json(node) if node is not None else None


@dataclass
class TxDraft:
    """Fully serialized, not yet balanced transaction parts."""

    inputs: list[DraftInput] = field(default_factory=list)
    mints: list[DraftMint] = field(default_factory=list)
    outputs: list[DraftOutput] = field(default_factory=list)
    reference_inputs: list[UTxO] = field(default_factory=list)
    withdrawals: list[DraftWithdrawal] = field(default_factory=list)
    signers: list[str] = field(default_factory=list)
    scripts: list[Script] = field(default_factory=list)
    stake_registrations: list[str] = field(default_factory=list)
    valid_from: Optional[int] = None
    valid_to: Optional[int] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "inputs": [
                {"utxo": i.utxo.to_json(), "redeemer": _node_or_none(i.redeemer)}
                for i in self.inputs
            ],
            "mints": [
                {"assets": dict(m.assets), "redeemer": _node_or_none(m.redeemer)}
                for m in self.mints
            ],
            "outputs": [
                {"address": o.address, "assets": dict(o.assets), "datum": _node_or_none(o.datum)}
                for o in self.outputs
            ],
            "referenceInputs": [u.to_json() for u in self.reference_inputs],
            "withdrawals": [
                {"address": w.address, "amount": w.amount, "redeemer": _node_or_none(w.redeemer)}
                for w in self.withdrawals
            ],
            "signers": list(self.signers),
            "scripts": [s.to_json() for s in self.scripts],
            "stakeRegistrations": list(self.stake_registrations),
            "validFrom": self.valid_from,
            "validTo": self.valid_to,
        }


# ============ Completed artifact ============


@dataclass(frozen=True)
class CompletedTransaction:
    cbor: str
    fee: int
    ex_units: Optional[ExUnits] = None
    tx_hash: Optional[str] = None
    witnesses: tuple[str, ...] = ()

    @property
    def size(self) -> int:
        """Serialized size in bytes."""
        return len(self.cbor) // 2

    def with_witness(self, witness: str) -> "CompletedTransaction":
        return replace(self, witnesses=(*self.witnesses, witness))

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "cbor": self.cbor,
            "fee": self.fee,
            "txHash": self.tx_hash,
            "witnesses": list(self.witnesses),
        }
        if self.ex_units is not None:
            result["exUnits"] = {"cpu": self.ex_units.cpu, "mem": self.ex_units.mem}
        return result

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "CompletedTransaction":
        units = payload.get("exUnits")
        return cls(
            cbor=payload["cbor"],
            fee=int(payload["fee"]),
            ex_units=ExUnits(int(units["cpu"]), int(units["mem"])) if units else None,
            tx_hash=payload.get("txHash"),
            witnesses=tuple(payload.get("witnesses", ())),
        )


class Ledger(Protocol):
    async def complete(self, draft: TxDraft) -> CompletedTransaction:
        """Balance the draft, evaluate its scripts and compute the fee."""
        ...

    async def sign(self, tx: CompletedTransaction) -> CompletedTransaction:
        """Add the selected wallet's witness."""
        ...

    async def sign_with_key(self, tx: CompletedTransaction, key: str) -> CompletedTransaction:
        ...

    async def submit(self, tx: CompletedTransaction) -> str:
        ...

    async def await_tx(self, tx_hash: str) -> bool:
        ...

    async def utxos_at(self, address: str) -> list[UTxO]:
        ...

    async def utxo_by_unit(self, unit: str) -> UTxO:
        ...

    def payment_credential(self, address: str) -> Credential:
        """Resolve the payment part of an address."""
        ...


__all__ = [
    "Assets",
    "CompletedTransaction",
    "Credential",
    "DraftInput",
    "DraftMint",
    "DraftOutput",
    "DraftWithdrawal",
    "ExUnits",
    "Ledger",
    "LedgerError",
    "Script",
    "TxDraft",
    "UTxO",
]
