import hashlib

import pytest

from ctv_hash import (
    TemplateHasher,
    default_template_hash,
    render_hash,
    template_hash_hex,
)
from ctv_tx import OutPoint, Transaction, TxIn, TxOut


def make_tx(script_sig=b"", witness=None):
    return Transaction(
        version=2,
        inputs=[
            TxIn(
                prevout=OutPoint(bytes(range(32)), 1),
                script_sig=script_sig,
                sequence=0xFFFFFFFE,
                witness=list(witness or []),
            )
        ],
        outputs=[TxOut(value=5000, script_pubkey=bytes.fromhex("51"))],
        lock_time=0,
    )


class TestDefaultTemplateHash:
    def test_known_values(self):
        tx = make_tx()
        assert default_template_hash(tx, 0).hex() == (
            "124b57d5400eb7c2ceef9386de623d4fae04cbcde9e48f9003df986e0bde5709"
        )
        assert default_template_hash(tx, 1).hex() == (
            "3c8efded89f9127ab33d3b2c22d971c5624927fbc1276b67d677c3d0b82f7d22"
        )

    def test_display_order_is_reversed(self):
        tx = make_tx()
        assert template_hash_hex(tx, 0) == (
            "0957de0b6e98df03908fe4e9cdcb04ae4f3d62de8693efcec2b70e40d5574b12"
        )
        assert template_hash_hex(tx, 0, "internal") == default_template_hash(tx, 0).hex()

    def test_script_sigs_are_committed(self):
        tx = make_tx(script_sig=b"\x51")
        assert default_template_hash(tx, 0).hex() == (
            "7783ab97e1c02b0f9e9481a35669a8a80e5547d1437aae2c1f80be6aaaf99965"
        )

    def test_witness_and_prevout_are_not_committed(self):
        base = make_tx()
        other = make_tx(witness=[b"\x01" * 64])
        other.inputs[0].prevout = OutPoint(b"\xff" * 32, 7)
        assert default_template_hash(base, 0) == default_template_hash(other, 0)

    def test_index_beyond_inputs_is_hashed(self):
        tx = make_tx()
        idx = 0xFFFFFFFF
        seq = hashlib.sha256(bytes.fromhex("feffffff")).digest()
        outs = hashlib.sha256(bytes.fromhex("88130000000000000151")).digest()
        preimage = (
            bytes.fromhex("02000000" "00000000" "01000000")
            + seq
            + bytes.fromhex("01000000")
            + outs
            + idx.to_bytes(4, "little")
        )
        assert default_template_hash(tx, idx) == hashlib.sha256(preimage).digest()

    def test_index_out_of_u32_range(self):
        with pytest.raises(ValueError):
            default_template_hash(make_tx(), 1 << 32)


class TestTemplateHasher:
    def test_matches_one_shot(self):
        tx = make_tx(script_sig=b"\x00\x01")
        hasher = TemplateHasher(tx)
        for idx in (0, 1, 2, 123456789):
            assert hasher.hash(idx) == default_template_hash(tx, idx)
            assert hasher.hash_hex(idx) == template_hash_hex(tx, idx)


def test_render_hash_rejects_unknown_order():
    with pytest.raises(ValueError, match="byte order"):
        render_hash(b"\x00" * 32, "little")
