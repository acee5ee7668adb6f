#!/usr/bin/env python3
"""
Bitcoin transaction model and consensus (de)serialization.

Covers the legacy encoding and the BIP-144 extended encoding
(marker 0x00, flag 0x01, per-input witness stacks after the outputs).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from run_cv_common import (
    encode_compact_size,
    encode_i32_le,
    encode_u32_le,
    encode_u64_le,
    hexlify,
    parse_hex,
    read_compact_size,
    sha256d,
)


COIN = 100_000_000
MAX_MONEY = 21_000_000 * COIN

WITNESS_MARKER = 0x00
WITNESS_FLAG = 0x01


@dataclass(frozen=True)
class OutPoint:
    txid: bytes  # bytes32, internal byte order
    vout: int


@dataclass
class TxIn:
    prevout: OutPoint
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF
    witness: list[bytes] = field(default_factory=list)


@dataclass
class TxOut:
    value: int
    script_pubkey: bytes = b""


@dataclass
class Transaction:
    version: int
    inputs: list[TxIn]
    outputs: list[TxOut]
    lock_time: int

    def has_witness(self) -> bool:
        return any(len(i.witness) > 0 for i in self.inputs)

    def has_script_sigs(self) -> bool:
        return any(len(i.script_sig) > 0 for i in self.inputs)


def _encode_input(txin: TxIn) -> bytes:
    if len(txin.prevout.txid) != 32:
        raise ValueError("input.prevout.txid must be 32 bytes")
    return b"".join(
        [
            txin.prevout.txid,
            encode_u32_le(txin.prevout.vout),
            encode_compact_size(len(txin.script_sig)),
            txin.script_sig,
            encode_u32_le(txin.sequence),
        ]
    )


def money_range(value: int) -> bool:
    return 0 <= value <= MAX_MONEY


def check_amounts(tx: Transaction) -> None:
    # Per-output bound only; the sum of random outputs is not constrained.
    for idx, txout in enumerate(tx.outputs):
        if not money_range(txout.value):
            raise ValueError(f"output[{idx}].value out of range: {txout.value}")


def encode_output(txout: TxOut) -> bytes:
    return b"".join(
        [
            encode_u64_le(txout.value),
            encode_compact_size(len(txout.script_pubkey)),
            txout.script_pubkey,
        ]
    )


def _encode_witness(stack: list[bytes]) -> bytes:
    b = bytearray(encode_compact_size(len(stack)))
    for item in stack:
        b.extend(encode_compact_size(len(item)))
        b.extend(item)
    return bytes(b)


def serialize_tx(tx: Transaction, include_witness: bool = True) -> bytes:
    extended = include_witness and tx.has_witness()

    b = bytearray()
    b.extend(encode_i32_le(tx.version))
    if extended:
        b.append(WITNESS_MARKER)
        b.append(WITNESS_FLAG)

    b.extend(encode_compact_size(len(tx.inputs)))
    for txin in tx.inputs:
        b.extend(_encode_input(txin))

    b.extend(encode_compact_size(len(tx.outputs)))
    for txout in tx.outputs:
        b.extend(encode_output(txout))

    if extended:
        for txin in tx.inputs:
            b.extend(_encode_witness(txin.witness))

    b.extend(encode_u32_le(tx.lock_time))
    return bytes(b)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.off = 0

    def take(self, n: int, what: str) -> bytes:
        end = self.off + n
        if end > len(self.data):
            raise ValueError(f"{what}: truncated at offset {self.off}")
        out = self.data[self.off : end]
        self.off = end
        return out

    def u32(self, what: str) -> int:
        return int.from_bytes(self.take(4, what), "little", signed=False)

    def i32(self, what: str) -> int:
        return int.from_bytes(self.take(4, what), "little", signed=True)

    def u64(self, what: str) -> int:
        return int.from_bytes(self.take(8, what), "little", signed=False)

    def compact_size(self, what: str) -> int:
        try:
            v, self.off = read_compact_size(self.data, self.off)
        except ValueError as e:
            raise ValueError(f"{what}: {e}") from e
        return v

    def var_bytes(self, what: str) -> bytes:
        n = self.compact_size(what)
        return self.take(n, what)


def _read_inputs(r: _Reader) -> list[TxIn]:
    inputs: list[TxIn] = []
    for _ in range(r.compact_size("input_count")):
        txid = r.take(32, "input.prevout.txid")
        vout = r.u32("input.prevout.vout")
        script_sig = r.var_bytes("input.script_sig")
        sequence = r.u32("input.sequence")
        inputs.append(TxIn(OutPoint(txid, vout), script_sig, sequence))
    return inputs


def _read_outputs(r: _Reader) -> list[TxOut]:
    outputs: list[TxOut] = []
    for _ in range(r.compact_size("output_count")):
        value = r.u64("output.value")
        script_pubkey = r.var_bytes("output.script_pubkey")
        outputs.append(TxOut(value, script_pubkey))
    return outputs


def deserialize_tx(data: bytes) -> Transaction:
    # Same decision order as Bitcoin Core: an empty input vector is read as
    # the witness marker, and the byte after it as the flags.
    r = _Reader(bytes(data))
    version = r.i32("version")

    flags = 0
    inputs = _read_inputs(r)
    outputs: list[TxOut] = []
    if not inputs:
        flags = r.take(1, "flag")[0]
        if flags != 0:
            inputs = _read_inputs(r)
            outputs = _read_outputs(r)
    else:
        outputs = _read_outputs(r)

    tx = Transaction(version=version, inputs=inputs, outputs=outputs, lock_time=0)
    if flags & WITNESS_FLAG:
        flags ^= WITNESS_FLAG
        for txin in inputs:
            count = r.compact_size("witness_count")
            txin.witness = [r.var_bytes("witness.item") for _ in range(count)]
        if not tx.has_witness():
            raise ValueError("superfluous witness record")
    if flags:
        raise ValueError(f"unknown transaction optional data: flags={flags:#04x}")

    tx.lock_time = r.u32("lock_time")
    if r.off != len(r.data):
        raise ValueError(f"trailing bytes after transaction: {len(r.data) - r.off}")
    return tx


def tx_to_hex(tx: Transaction) -> str:
    return hexlify(serialize_tx(tx))


def tx_from_hex(value: str) -> Transaction:
    return deserialize_tx(parse_hex(value))


def txid(tx: Transaction) -> str:
    return hexlify(sha256d(serialize_tx(tx, include_witness=False))[::-1])
