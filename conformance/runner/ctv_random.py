#!/usr/bin/env python3
from __future__ import annotations

import random
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from ctv_tx import MAX_MONEY, OutPoint, Transaction, TxIn, TxOut
from run_cv_common import load_yaml, parse_int, sha256d


PROFILE_META_KEYS = frozenset({"gate"})


@dataclass(frozen=True)
class IntRange:
    lo: int
    hi: int

    def __post_init__(self) -> None:
        if self.lo < 0 or self.hi < self.lo:
            raise ValueError(f"invalid range: {self.lo}..={self.hi}")


@dataclass(frozen=True)
class GenProfile:
    input_count: IntRange = IntRange(1, 129)
    output_count: IntRange = IntRange(0, 129)
    script_pubkey_length: IntRange = IntRange(0, 129)
    script_sig_length: IntRange = IntRange(0, 129)
    witness_length: IntRange = IntRange(0, 129)
    witness_item_length: IntRange = IntRange(0, 520)
    # Approximate; CompactSize prefixes are not counted.
    random_bytes_count: IntRange = IntRange(0, 10_000)

    def __post_init__(self) -> None:
        if self.input_count.lo < 1:
            raise ValueError("input_count must be at least 1")

    @classmethod
    def from_mapping(cls, obj: dict[str, Any]) -> "GenProfile":
        if "ranges" in obj:
            ranges = obj["ranges"] if obj["ranges"] is not None else {}
        else:
            ranges = {k: v for k, v in obj.items() if k not in PROFILE_META_KEYS}
        if not isinstance(ranges, dict):
            raise ValueError("profile ranges must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(ranges) - known)
        if unknown:
            raise ValueError(f"unknown profile key(s): {', '.join(unknown)}")

        kwargs: dict[str, IntRange] = {}
        for name, value in ranges.items():
            kwargs[name] = parse_range(name, value)
        return cls(**kwargs)


def parse_range(name: str, value: object) -> IntRange:
    if isinstance(value, dict):
        lo, hi = value.get("min"), value.get("max")
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        lo, hi = value
    else:
        raise ValueError(f"{name}: range must be [min, max] or {{min, max}}")
    try:
        return IntRange(parse_int(lo), parse_int(hi))
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name}: {e}") from e


def load_profile(path: Path) -> GenProfile:
    obj = load_yaml(path)
    if "gate" in obj and obj.get("gate") != "CV-CTVHASH":
        raise ValueError(f"invalid gate in profile: {path}")
    return GenProfile.from_mapping(obj)


def make_rng(seed: int) -> random.Random:
    return random.Random(seed)


def next_u32(rng: random.Random) -> int:
    return rng.getrandbits(32)


def next_u64(rng: random.Random) -> int:
    return rng.getrandbits(64)


def random_range(rng: random.Random, r: IntRange) -> int:
    size = max(r.hi - r.lo, 0) + 1
    return r.lo + (next_u64(rng) % size)


def random_bytes_lt(rng: random.Random, r: IntRange, budget: int) -> tuple[bytes, int]:
    """Random bytes with a length drawn from ``r`` and capped by ``budget``.

    Returns the bytes and the remaining budget.
    """
    if budget < 1:
        return b"", budget
    length = random_range(rng, r) % (budget + 1)
    return rng.randbytes(length), budget - length


def random_tx(rng: random.Random, profile: GenProfile | None = None) -> Transaction:
    p = profile or GenProfile()

    version = int.from_bytes(next_u32(rng).to_bytes(4, "little"), "little", signed=True)
    lock_time = next_u32(rng)

    input_count = random_range(rng, p.input_count)
    output_count = random_range(rng, p.output_count)
    remaining = random_range(rng, p.random_bytes_count)
    has_witness = next_u32(rng) % 2 == 1

    inputs: list[TxIn] = []
    for _ in range(input_count):
        prevout = OutPoint(txid=sha256d(rng.randbytes(32)), vout=next_u32(rng))
        remaining = max(remaining - 36, 0)

        witness: list[bytes] = []
        script_sig = b""
        if has_witness:
            for _ in range(random_range(rng, p.witness_length)):
                item, remaining = random_bytes_lt(rng, p.witness_item_length, remaining)
                witness.append(item)
                if remaining < 1:
                    break
            script_sig, remaining = random_bytes_lt(rng, p.script_sig_length, remaining)

        inputs.append(
            TxIn(prevout=prevout, script_sig=script_sig, sequence=next_u32(rng), witness=witness)
        )
        if remaining < 1:
            break

    outputs: list[TxOut] = []
    for _ in range(output_count):
        value = next_u64(rng) % (MAX_MONEY + 1)
        script_pubkey, remaining = random_bytes_lt(rng, p.script_pubkey_length, remaining)
        outputs.append(TxOut(value=value, script_pubkey=script_pubkey))
        if remaining < 1:
            break

    return Transaction(version=version, inputs=inputs, outputs=outputs, lock_time=lock_time)


def random_spend_indices(rng: random.Random) -> list[int]:
    return [0, 1, next_u32(rng), next_u32(rng)]
