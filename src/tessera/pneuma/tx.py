"""
Transaction Builder - Collect transaction parts now, serialize them later.

A PendingTransaction holds typed redeemers and datums exactly as the
caller supplied them. Nothing is encoded until ``finalize()``, so parts
can be removed, rewritten or merged from other pending transactions
first; that is how adversarial test transactions are derived from
honest ones.

Finalization runs, in order:
  1. encode every redeemer/datum through the codec into a TxDraft
  2. fold the pre-finalize hooks over the draft
  3. ask the ledger to balance and complete the draft
  4. await each post-finalize hook on the completed artifact
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..spec.codec import Codec
from ..spec.data import WireNode
from ..spec.models import Record
from ..spec.schemas import Schema
from .ledger import (
    Assets,
    CompletedTransaction,
    DraftInput,
    DraftMint,
    DraftOutput,
    DraftWithdrawal,
    Ledger,
    Script,
    TxDraft,
    UTxO,
)

logger = logging.getLogger(__name__)

PreFinalizeHook = Callable[[TxDraft], TxDraft]
PostFinalizeHook = Callable[[CompletedTransaction], Awaitable[CompletedTransaction]]


class BuildError(RuntimeError):
    exit_code: int = 5


@dataclass
class PendingInput:
    utxo: UTxO
    redeemer: Any = None


@dataclass
class PendingMint:
    assets: Assets
    redeemer: Any = None


@dataclass
class PendingOutput:
    address: str
    assets: Assets
    datum: Any = None

    def holds_marker(self, unit: str) -> bool:
        return self.assets.get(unit) == 1


@dataclass
class PendingWithdrawal:
    address: str
    amount: int
    redeemer: Any = None


class PendingTransaction:
    """
    Deferred, composable transaction.

    Every mutator returns the same instance so calls chain. Redeemers and
    datums may be Records, wire nodes or any other value the codec can
    encode; ``None`` means "no redeemer/datum".
    """

    def __init__(self, ledger: Ledger, codec: Codec) -> None:
        self.ledger = ledger
        self.codec = codec

        self.inputs: list[PendingInput] = []
        self.mints: list[PendingMint] = []
        self.outputs: list[PendingOutput] = []
        self.reference_inputs: list[UTxO] = []
        self.withdrawals: list[PendingWithdrawal] = []
        self.signers: list[str] = []
        self.scripts: list[Script] = []
        self.stake_registrations: list[str] = []
        self.valid_from: Optional[int] = None
        self.valid_to: Optional[int] = None

        self.pre_finalize_hooks: list[PreFinalizeHook] = []
        self.post_finalize_hooks: list[PostFinalizeHook] = []

        self._finalized = False
        self._consumed = False

    def _ensure_open(self) -> None:
        if self._consumed:
            raise BuildError("Transaction was composed into another and can no longer be used")
        if self._finalized:
            raise BuildError("Transaction was already finalized")

    # ============ Parts ============

    def add_input(self, utxo: UTxO, redeemer: Any = None) -> "PendingTransaction":
        self._ensure_open()
        self.inputs.append(PendingInput(utxo, redeemer))
        return self

    def collect_from(self, utxos: Iterable[UTxO], redeemer: Any = None) -> "PendingTransaction":
        for utxo in utxos:
            self.add_input(utxo, redeemer)
        return self

    def add_mint(self, assets: Assets, redeemer: Any = None) -> "PendingTransaction":
        self._ensure_open()
        self.mints.append(PendingMint(dict(assets), redeemer))
        return self

    def add_output(self, address: str, assets: Assets, datum: Any = None) -> "PendingTransaction":
        self._ensure_open()
        self.outputs.append(PendingOutput(address, dict(assets), datum))
        return self

    def pay_to_address(self, address: str, assets: Assets) -> "PendingTransaction":
        return self.add_output(address, assets)

    def pay_to_contract(self, address: str, datum: Any, assets: Assets) -> "PendingTransaction":
        return self.add_output(address, assets, datum)

    def add_reference_input(self, utxo: UTxO) -> "PendingTransaction":
        self._ensure_open()
        self.reference_inputs.append(utxo)
        return self

    def read_from(self, utxos: Iterable[UTxO]) -> "PendingTransaction":
        for utxo in utxos:
            self.add_reference_input(utxo)
        return self

    def add_withdrawal(self, address: str, amount: int, redeemer: Any = None) -> "PendingTransaction":
        self._ensure_open()
        self.withdrawals.append(PendingWithdrawal(address, amount, redeemer))
        return self

    def add_required_signer(self, key_hash: str) -> "PendingTransaction":
        self._ensure_open()
        self.signers.append(key_hash)
        return self

    def remove_required_signer(self, key_hash: str) -> "PendingTransaction":
        self._ensure_open()
        if key_hash in self.signers:
            self.signers.remove(key_hash)
        return self

    def attach_script(self, script: Script) -> "PendingTransaction":
        self._ensure_open()
        self.scripts.append(script)
        return self

    def register_stake(self, reward_address: str) -> "PendingTransaction":
        self._ensure_open()
        self.stake_registrations.append(reward_address)
        return self

    def set_valid_from(self, unix_time_ms: int) -> "PendingTransaction":
        self._ensure_open()
        self.valid_from = unix_time_ms
        return self

    def set_valid_to(self, unix_time_ms: int) -> "PendingTransaction":
        self._ensure_open()
        self.valid_to = unix_time_ms
        return self

    # ============ Marker edits ============

    def remove_input_by_marker(self, unit: str) -> "PendingTransaction":
        """Drop the first input holding exactly one ``unit``."""
        self._ensure_open()
        for ix, pending in enumerate(self.inputs):
            if pending.utxo.holds_marker(unit):
                del self.inputs[ix]
                break
        return self

    def remove_output_by_marker(self, unit: str) -> "PendingTransaction":
        """Drop the first output holding exactly one ``unit``."""
        self._ensure_open()
        for ix, output in enumerate(self.outputs):
            if output.holds_marker(unit):
                del self.outputs[ix]
                break
        return self

    def _marked_output(self, unit: str) -> Optional[PendingOutput]:
        return next((o for o in self.outputs if o.holds_marker(unit)), None)

    def transform_output_datum_by_marker(
        self,
        unit: str,
        f: Callable[[Any], Any],
        schema: Union[Schema, str, None] = None,
    ) -> "PendingTransaction":
        """
        Rewrite the datum of the first output holding exactly one ``unit``.

        With ``schema``, ``f`` receives the datum decoded as a Record of
        that schema; otherwise it receives the datum as stored.
        """
        self._ensure_open()
        output = self._marked_output(unit)
        if output is not None:
            if schema is not None:
                output.datum = f(self.codec.decode(schema, self.codec.encode(output.datum)))
            else:
                output.datum = f(output.datum)
        return self

    def datum_transformer(
        self, schema: Union[Schema, str], f: Callable[[Record], Any]
    ) -> Callable[[Any], WireNode]:
        """Wrap ``f`` to decode a datum as ``schema``, apply it and re-encode."""
        codec = self.codec

        def transform(datum: Any) -> WireNode:
            return codec.encode(f(codec.decode(schema, codec.encode(datum))))

        return transform

    def transform_output_datum_field_by_marker(
        self,
        unit: str,
        schema: Union[Schema, str],
        field_name: str,
        f: Callable[[Any], Any],
    ) -> "PendingTransaction":
        def rewrite(datum: Record) -> Record:
            return datum.replace(**{field_name: f(datum[field_name])})

        return self.transform_output_datum_by_marker(unit, rewrite, schema=schema)

    def transform_output_assets_by_marker(
        self, unit: str, f: Callable[[Assets], Assets]
    ) -> "PendingTransaction":
        self._ensure_open()
        output = self._marked_output(unit)
        if output is not None:
            output.assets = f(dict(output.assets))
        return self

    def transform_output_assets_by_owner_script(
        self, script_hash: str, f: Callable[[Assets], Assets]
    ) -> "PendingTransaction":
        """Rewrite the assets of every output locked by ``script_hash``."""
        self._ensure_open()
        for output in self.outputs:
            credential = self.ledger.payment_credential(output.address)
            if credential.is_script and credential.hash == script_hash:
                output.assets = f(dict(output.assets))
        return self

    # ============ Hooks & composition ============

    def add_pre_finalize_hook(self, hook: PreFinalizeHook) -> "PendingTransaction":
        self._ensure_open()
        self.pre_finalize_hooks.append(hook)
        return self

    def add_post_finalize_hook(self, hook: PostFinalizeHook) -> "PendingTransaction":
        self._ensure_open()
        self.post_finalize_hooks.append(hook)
        return self

    def sign_with_key(self, key: str) -> "PendingTransaction":
        """Add a witness for ``key`` once the transaction is completed."""
        ledger = self.ledger

        async def sign(tx: CompletedTransaction) -> CompletedTransaction:
            return await ledger.sign_with_key(tx, key)

        return self.add_post_finalize_hook(sign)

    def compose(self, other: "PendingTransaction") -> "PendingTransaction":
        """
        Append ``other``'s parts and hooks after this transaction's own.

        ``other`` is consumed: using it afterwards raises BuildError.
        A validity bound set on ``other`` replaces this transaction's.
        """
        if other is self:
            raise BuildError("Cannot compose a transaction with itself")
        self._ensure_open()
        other._ensure_open()

        self.inputs.extend(other.inputs)
        self.mints.extend(other.mints)
        self.outputs.extend(other.outputs)
        self.reference_inputs.extend(other.reference_inputs)
        self.withdrawals.extend(other.withdrawals)
        self.signers.extend(other.signers)
        self.scripts.extend(other.scripts)
        self.stake_registrations.extend(other.stake_registrations)
        if other.valid_from is not None:
            self.valid_from = other.valid_from
        if other.valid_to is not None:
            self.valid_to = other.valid_to
        self.pre_finalize_hooks.extend(other.pre_finalize_hooks)
        self.post_finalize_hooks.extend(other.post_finalize_hooks)

        other._consumed = True
        return self

    # ============ Finalization ============

    def _encode(self, value: Any) -> Any:
        return self.codec.encode(value) if value is not None else None

    def to_draft(self) -> TxDraft:
        """Encode every pending part. Raises EncodeError on bad redeemers/datums."""
        return TxDraft(
            inputs=[DraftInput(i.utxo, self._encode(i.redeemer)) for i in self.inputs],
            mints=[DraftMint(dict(m.assets), self._encode(m.redeemer)) for m in self.mints],
            outputs=[
                DraftOutput(o.address, dict(o.assets), self._encode(o.datum)) for o in self.outputs
            ],
            reference_inputs=list(self.reference_inputs),
            withdrawals=[
                DraftWithdrawal(w.address, w.amount, self._encode(w.redeemer))
                for w in self.withdrawals
            ],
            signers=list(self.signers),
            scripts=list(self.scripts),
            stake_registrations=list(self.stake_registrations),
            valid_from=self.valid_from,
            valid_to=self.valid_to,
        )

    async def finalize(self) -> CompletedTransaction:
        """
        Serialize, complete and post-process the transaction.

        Call once per logical transaction. Ledger errors (balancing,
        script evaluation) propagate unchanged.
        """
        self._ensure_open()
        self._finalized = True

        draft = self.to_draft()
        for hook in self.pre_finalize_hooks:
            draft = hook(draft)

        logger.debug(
            "Completing draft: %d inputs, %d mints, %d outputs, %d withdrawals",
            len(draft.inputs),
            len(draft.mints),
            len(draft.outputs),
            len(draft.withdrawals),
        )
        completed = await self.ledger.complete(draft)

        for post_hook in self.post_finalize_hooks:
            completed = await post_hook(completed)
        return completed


__all__ = [
    "BuildError",
    "PendingInput",
    "PendingMint",
    "PendingOutput",
    "PendingTransaction",
    "PendingWithdrawal",
    "PostFinalizeHook",
    "PreFinalizeHook",
]
