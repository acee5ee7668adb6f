#!/usr/bin/env python3
"""
BIP-119 default template hash (StandardTemplateHash).

Preimage layout, single SHA256:

    version            i32 LE
    lock_time          u32 LE
    scriptsigs_hash    32 bytes, only when some scriptSig is non-empty
    input_count        u32 LE
    sequences_hash     32 bytes
    output_count       u32 LE
    outputs_hash       32 bytes
    input_index        u32 LE
"""

from __future__ import annotations

from ctv_tx import Transaction, encode_output
from run_cv_common import (
    encode_compact_size,
    encode_i32_le,
    encode_u32_le,
    hexlify,
    sha256,
)


BYTE_ORDERS = ("display", "internal")


def scriptsigs_hash(tx: Transaction) -> bytes:
    return sha256(
        b"".join(encode_compact_size(len(i.script_sig)) + i.script_sig for i in tx.inputs)
    )


def sequences_hash(tx: Transaction) -> bytes:
    return sha256(b"".join(encode_u32_le(i.sequence) for i in tx.inputs))


def outputs_hash(tx: Transaction) -> bytes:
    return sha256(b"".join(encode_output(o) for o in tx.outputs))


class TemplateHasher:
    """Caches everything but the input index, which is all that varies per spend."""

    def __init__(self, tx: Transaction) -> None:
        parts = [encode_i32_le(tx.version), encode_u32_le(tx.lock_time)]
        if tx.has_script_sigs():
            parts.append(scriptsigs_hash(tx))
        parts.extend(
            [
                encode_u32_le(len(tx.inputs)),
                sequences_hash(tx),
                encode_u32_le(len(tx.outputs)),
                outputs_hash(tx),
            ]
        )
        self._prefix = b"".join(parts)

    def hash(self, input_index: int) -> bytes:
        return sha256(self._prefix + encode_u32_le(input_index))

    def hash_hex(self, input_index: int, byte_order: str = "display") -> str:
        return render_hash(self.hash(input_index), byte_order)


def render_hash(digest: bytes, byte_order: str = "display") -> str:
    if byte_order == "display":
        return hexlify(digest[::-1])
    if byte_order == "internal":
        return hexlify(digest)
    raise ValueError(f"unknown byte order: {byte_order!r}")


def default_template_hash(tx: Transaction, input_index: int) -> bytes:
    return TemplateHasher(tx).hash(input_index)


def template_hash_hex(tx: Transaction, input_index: int, byte_order: str = "display") -> str:
    return render_hash(default_template_hash(tx, input_index), byte_order)
