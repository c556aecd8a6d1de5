"""Tests for the deferred, composable transaction builder."""

from __future__ import annotations

from typing import Callable

import pytest

from tessera.pneuma.ledger import CompletedTransaction, TxDraft, UTxO
from tessera.pneuma.tx import BuildError, PendingTransaction
from tessera.spec.codec import EncodeError
from tessera.spec.data import DataConstr, DataInt
from tessera.spec.models import Record

POLICY = "ab" * 28
MARKER = POLICY + "6d61726b6572"
OTHER_MARKER = POLICY + "6f74686572"
SCRIPT_ADDRESS = "addr_test1_script"
SCRIPT_HASH = "5c" * 28

NewTx = Callable[[], PendingTransaction]


def _shape(tx: PendingTransaction) -> dict:
    draft = tx.to_draft()
    return {
        "inputs": [i.utxo.out_ref for i in draft.inputs],
        "mints": [m.assets for m in draft.mints],
        "outputs": [(o.address, o.assets, o.datum) for o in draft.outputs],
        "signers": draft.signers,
        "withdrawals": [(w.address, w.amount) for w in draft.withdrawals],
        "valid": (draft.valid_from, draft.valid_to),
    }


class TestParts:
    def test_mutators_chain(self, new_tx: NewTx, utxo: Callable[..., UTxO]) -> None:
        tx = new_tx()
        assert tx.add_input(utxo()).pay_to_address("addr", {"lovelace": 1}) is tx

    def test_required_signers(self, new_tx: NewTx) -> None:
        tx = new_tx().add_required_signer("aa").add_required_signer("bb")
        tx.remove_required_signer("aa").remove_required_signer("cc")
        assert tx.signers == ["bb"]

    def test_values_encoded_only_at_finalize(self, new_tx: NewTx) -> None:
        tx = new_tx().pay_to_contract("addr", Record("Pair", a=1, b=2), {"lovelace": 2})
        assert tx.outputs[0].datum == Record("Pair", a=1, b=2)
        assert tx.to_draft().outputs[0].datum == DataConstr(0, (DataInt(1), DataInt(2)))

    @pytest.mark.asyncio
    async def test_bad_datum_fails_at_finalize(self, new_tx: NewTx) -> None:
        tx = new_tx().pay_to_contract("addr", Record("Pair", a=1), {"lovelace": 2})
        with pytest.raises(EncodeError, match="missing field 'b'"):
            await tx.finalize()


class TestMarkers:
    def test_remove_output_by_marker_only_first_match(self, new_tx: NewTx) -> None:
        tx = (
            new_tx()
            .pay_to_address("a", {MARKER: 1})
            .pay_to_address("b", {MARKER: 1})
            .pay_to_address("c", {MARKER: 2})
        )
        tx.remove_output_by_marker(MARKER)
        assert [o.address for o in tx.outputs] == ["b", "c"]

    def test_marker_requires_quantity_one(self, new_tx: NewTx) -> None:
        tx = new_tx().pay_to_address("a", {MARKER: 2})
        tx.remove_output_by_marker(MARKER)
        assert len(tx.outputs) == 1

    def test_remove_input_by_marker(self, new_tx: NewTx, utxo: Callable[..., UTxO]) -> None:
        tx = new_tx().add_input(utxo(0)).add_input(utxo(1, assets={MARKER: 1}))
        tx.remove_input_by_marker(MARKER)
        assert [i.utxo.output_index for i in tx.inputs] == [0]

    def test_datum_transform_touches_only_marked_output(self, new_tx: NewTx) -> None:
        tx = (
            new_tx()
            .pay_to_contract("a", Record("Pair", a=1, b=1), {OTHER_MARKER: 1})
            .pay_to_contract("b", Record("Pair", a=1, b=1), {MARKER: 1})
        )
        tx.transform_output_datum_field_by_marker(MARKER, "Pair", "b", lambda b: b + 10)
        assert tx.outputs[0].datum == Record("Pair", a=1, b=1)
        assert tx.outputs[1].datum == Record("Pair", a=1, b=11)

    def test_datum_transform_decodes_raw_datum(self, new_tx: NewTx) -> None:
        raw = DataConstr(0, (DataInt(4), DataInt(5)))
        tx = new_tx().pay_to_contract("a", raw, {MARKER: 1})
        tx.transform_output_datum_by_marker(MARKER, lambda d: d.replace(a=0), schema="Pair")
        assert tx.outputs[0].datum == Record("Pair", a=0, b=5)

    def test_datum_transformer_re_encodes(self, new_tx: NewTx) -> None:
        tx = new_tx().pay_to_contract("a", Record("Pair", a=1, b=2), {MARKER: 1})
        swap = tx.datum_transformer("Pair", lambda d: d.replace(a=d.b, b=d.a))
        tx.transform_output_datum_by_marker(MARKER, swap)
        assert tx.outputs[0].datum == DataConstr(0, (DataInt(2), DataInt(1)))

    def test_assets_transform_touches_only_marked_output(self, new_tx: NewTx) -> None:
        tx = (
            new_tx()
            .pay_to_address("a", {"lovelace": 5, MARKER: 2})
            .pay_to_address("b", {"lovelace": 5, MARKER: 1})
            .pay_to_address("c", {"lovelace": 5, OTHER_MARKER: 1})
        )
        tx.transform_output_assets_by_marker(MARKER, lambda assets: {**assets, "lovelace": 99})
        assert [o.assets for o in tx.outputs] == [
            {"lovelace": 5, MARKER: 2},
            {"lovelace": 99, MARKER: 1},
            {"lovelace": 5, OTHER_MARKER: 1},
        ]

    def test_missing_marker_is_a_no_op(self, new_tx: NewTx) -> None:
        tx = new_tx().pay_to_address("a", {"lovelace": 5})
        tx.transform_output_assets_by_marker(MARKER, lambda assets: {})
        assert tx.outputs[0].assets == {"lovelace": 5}

    def test_assets_by_owner_script(self, new_tx: NewTx) -> None:
        tx = (
            new_tx()
            .pay_to_address(SCRIPT_ADDRESS, {"lovelace": 5})
            .pay_to_address("addr_test1_wallet", {"lovelace": 5})
        )

        def double(assets: dict[str, int]) -> dict[str, int]:
            return {unit: qty * 2 for unit, qty in assets.items()}

        tx.transform_output_assets_by_owner_script(SCRIPT_HASH, double)
        assert [o.assets["lovelace"] for o in tx.outputs] == [10, 5]


class TestCompose:
    def _parts(self, new_tx: NewTx, utxo: Callable[..., UTxO]) -> list[PendingTransaction]:
        a = new_tx().add_input(utxo(0)).add_required_signer("a1").set_valid_to(100)
        b = new_tx().add_mint({MARKER: 1}).pay_to_address("b", {MARKER: 1}).set_valid_to(200)
        c = new_tx().add_withdrawal("stake", 0).pay_to_address("c", {"lovelace": 3})
        return [a, b, c]

    def test_associative(self, new_tx: NewTx, utxo: Callable[..., UTxO]) -> None:
        a, b, c = self._parts(new_tx, utxo)
        left = a.compose(b).compose(c)

        a2, b2, c2 = self._parts(new_tx, utxo)
        right = a2.compose(b2.compose(c2))

        assert _shape(left) == _shape(right)
        assert _shape(left)["valid"] == (None, 200)

    def test_other_is_consumed(self, new_tx: NewTx) -> None:
        a, b = new_tx(), new_tx()
        a.compose(b)
        with pytest.raises(BuildError, match="composed"):
            b.pay_to_address("x", {"lovelace": 1})
        with pytest.raises(BuildError):
            a.compose(b)

    def test_cannot_compose_with_itself(self, new_tx: NewTx) -> None:
        tx = new_tx()
        with pytest.raises(BuildError):
            tx.compose(tx)

    @pytest.mark.asyncio
    async def test_hooks_run_in_composition_order(self, new_tx: NewTx) -> None:
        calls: list[str] = []

        def pre(name: str):
            def hook(draft: TxDraft) -> TxDraft:
                calls.append(f"pre:{name}")
                return draft

            return hook

        def post(name: str):
            async def hook(tx: CompletedTransaction) -> CompletedTransaction:
                calls.append(f"post:{name}")
                return tx

            return hook

        a = new_tx().add_pre_finalize_hook(pre("a")).add_post_finalize_hook(post("a"))
        b = new_tx().add_pre_finalize_hook(pre("b")).add_post_finalize_hook(post("b"))
        await a.compose(b).finalize()
        assert calls == ["pre:a", "pre:b", "post:a", "post:b"]


class TestFinalize:
    @pytest.mark.asyncio
    async def test_pre_hook_rewrites_draft(self, new_tx: NewTx, ledger) -> None:
        def drop_outputs(draft: TxDraft) -> TxDraft:
            draft.outputs.clear()
            return draft

        tx = new_tx().pay_to_address("a", {"lovelace": 1}).add_pre_finalize_hook(drop_outputs)
        await tx.finalize()
        assert ledger.drafts[0].outputs == []

    @pytest.mark.asyncio
    async def test_sign_with_key_adds_witness(self, new_tx: NewTx) -> None:
        completed = await new_tx().sign_with_key("ed25519_sk_test").finalize()
        assert completed.witnesses == ("ed25519_sk_test",)

    @pytest.mark.asyncio
    async def test_finalize_twice(self, new_tx: NewTx) -> None:
        tx = new_tx()
        await tx.finalize()
        with pytest.raises(BuildError, match="already finalized"):
            await tx.finalize()
