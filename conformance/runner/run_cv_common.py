#!/usr/bin/env python3
from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any

import yaml


DEFAULT_TIMEOUT_S = 60.0


def env_timeout_s() -> float:
    raw = os.environ.get("CTV_RPC_TIMEOUT_S", "").strip()
    if raw == "":
        return DEFAULT_TIMEOUT_S
    return float(raw)


def env_default(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def encode_i32_le(v: int) -> bytes:
    if v < -0x80000000 or v > 0x7FFFFFFF:
        raise ValueError(f"i32 overflow: {v}")
    return v.to_bytes(4, "little", signed=True)


def encode_u32_le(v: int) -> bytes:
    if v < 0 or v > 0xFFFFFFFF:
        raise ValueError(f"u32 overflow: {v}")
    return v.to_bytes(4, "little", signed=False)


def encode_u64_le(v: int) -> bytes:
    if v < 0 or v > 0xFFFFFFFFFFFFFFFF:
        raise ValueError(f"u64 overflow: {v}")
    return v.to_bytes(8, "little", signed=False)


def encode_compact_size(v: int) -> bytes:
    if v < 0:
        raise ValueError("compact_size negative")
    if v < 0xFD:
        return bytes([v])
    if v <= 0xFFFF:
        return bytes([0xFD]) + v.to_bytes(2, "little")
    if v <= 0xFFFFFFFF:
        return bytes([0xFE]) + v.to_bytes(4, "little")
    if v <= 0xFFFFFFFFFFFFFFFF:
        return bytes([0xFF]) + v.to_bytes(8, "little")
    raise ValueError("compact_size overflow")


def read_compact_size(data: bytes, off: int) -> tuple[int, int]:
    if off >= len(data):
        raise ValueError("compact_size: truncated")
    first = data[off]
    if first < 0xFD:
        return first, off + 1
    width = {0xFD: 2, 0xFE: 4, 0xFF: 8}[first]
    end = off + 1 + width
    if end > len(data):
        raise ValueError("compact_size: truncated")
    v = int.from_bytes(data[off + 1 : end], "little")
    floor = {0xFD: 0xFD, 0xFE: 0x10000, 0xFF: 0x100000000}[first]
    if v < floor:
        raise ValueError(f"compact_size: non-canonical encoding of {v}")
    return v, end


def parse_int(value: object) -> int:
    if isinstance(value, bool):
        raise TypeError(f"invalid int value: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 0)
    raise TypeError(f"invalid int value: {value!r}")


def parse_hex(value: object) -> bytes:
    if not isinstance(value, str):
        raise TypeError(f"invalid hex value: {value!r}")
    return bytes.fromhex("".join(value.split()))


def hexlify(b: bytes) -> str:
    return "".join(f"{x:02x}" for x in b)


def sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


def sha256d(b: bytes) -> bytes:
    return sha256(sha256(b))


def load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        try:
            obj = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(obj, dict):
        raise ValueError(f"fixture root must be a mapping: {path}")
    return obj


def load_vector_file(path: Path) -> list[Any]:
    text = path.read_text(encoding="utf-8", errors="strict")
    if path.suffix.lower() == ".json":
        obj = json.loads(text)
    else:
        try:
            obj = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(obj, list):
        raise ValueError(f"vector file root must be a list: {path}")
    return obj
