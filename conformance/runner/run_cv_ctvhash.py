#!/usr/bin/env python3
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Optional

from ctv_hash import BYTE_ORDERS, TemplateHasher
from ctv_rpc import JSONRPCException, RpcClient, add_rpc_args, client_from_args
from ctv_tx import Transaction, tx_from_hex
from gen_cv_ctvhash import build_desc
from run_cv_common import load_vector_file, parse_int


def expected_vec_ok(v: Any) -> tuple[bool, str]:
    if not isinstance(v, dict):
        return False, "invalid vector entry (not a mapping)"
    if not isinstance(v.get("hex_tx"), str) or v["hex_tx"] == "":
        return False, "missing hex_tx"
    spend_index = v.get("spend_index")
    result = v.get("result")
    if not isinstance(spend_index, list) or not spend_index:
        return False, "missing spend_index"
    if not isinstance(result, list):
        return False, "missing result"
    if len(spend_index) != len(result):
        return False, f"spend_index/result length mismatch: {len(spend_index)} != {len(result)}"
    if not all(isinstance(r, str) for r in result):
        return False, "result entries must be hex strings"
    return True, ""


def desc_mismatches(tx: Transaction, desc: object) -> list[str]:
    if desc is None:
        return []
    if not isinstance(desc, dict):
        return ["desc must be a mapping"]
    actual = build_desc(tx)
    out: list[str] = []
    for key, value in desc.items():
        if key in actual and actual[key] != value:
            out.append(f"desc.{key} mismatch: got={actual[key]} expected={value}")
    return out


def reverse_hex(h: str) -> str:
    return bytes.fromhex(h)[::-1].hex()


def hash_matches(expected: str, local: str, accept_either_order: bool) -> bool:
    e = expected.strip().lower()
    if e == local:
        return True
    return accept_either_order and e == reverse_hex(local)


def check_vector(
    test_id: str,
    v: dict[str, Any],
    *,
    byte_order: str,
    accept_either_order: bool,
    client: Optional[RpcClient],
) -> tuple[int, list[str]]:
    failures: list[str] = []
    executed = 0

    try:
        tx = tx_from_hex(v["hex_tx"])
    except ValueError as e:
        return 0, [f"{test_id}: hex_tx does not decode: {e}"]

    failures.extend(f"{test_id}: {m}" for m in desc_mismatches(tx, v.get("desc")))

    hasher = TemplateHasher(tx)
    witness = tx.has_witness()
    for raw_idx, expected in zip(v["spend_index"], v["result"]):
        try:
            idx = parse_int(raw_idx)
        except (TypeError, ValueError):
            failures.append(f"{test_id}: invalid spend_index entry {raw_idx!r}")
            continue
        if idx < 0 or idx > 0xFFFFFFFF:
            failures.append(f"{test_id}: spend_index out of u32 range: {idx}")
            continue

        display = hasher.hash_hex(idx, "display")
        local = display if byte_order == "display" else hasher.hash_hex(idx, "internal")
        executed += 1
        if not hash_matches(expected, local, accept_either_order):
            failures.append(
                f"{test_id}: spend_index={idx} local mismatch: got={local} expected={expected}"
            )

        if client is not None:
            try:
                remote = client.get_default_template(v["hex_tx"], idx, witness).lower()
            except JSONRPCException as e:
                failures.append(f"{test_id}: spend_index={idx} oracle error: {e}")
                continue
            executed += 1
            if not hash_matches(expected, remote, accept_either_order):
                failures.append(
                    f"{test_id}: spend_index={idx} oracle mismatch: got={remote} expected={expected}"
                )
            if remote not in (display, reverse_hex(display)):
                failures.append(
                    f"{test_id}: spend_index={idx} oracle/local mismatch: oracle={remote} local={display}"
                )

    return executed, failures


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check BIP-119 template hash vectors against the local calculator (and optionally a node)."
    )
    parser.add_argument(
        "--fixture",
        required=True,
        help="Path to a ctvhash vector file (.json or .yml)",
    )
    add_rpc_args(parser, short=False)
    parser.add_argument(
        "--hash-byte-order",
        choices=BYTE_ORDERS,
        default="display",
        help="byte order of the hashes stored in the fixture (default: display)",
    )
    parser.add_argument(
        "--accept-either-order",
        action="store_true",
        help="accept expected hashes in either byte order",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    fixture_path = Path(args.fixture).resolve()
    try:
        entries = load_vector_file(fixture_path)
    except (OSError, ValueError) as e:
        print(f"cannot load vector file: {e}")
        return 1

    vectors = [e for e in entries if not isinstance(e, str)]
    if not vectors:
        print(f"vector file has no vectors: {fixture_path}")
        return 1

    client = None
    if args.rpc_url:
        try:
            client = client_from_args(args)
        except (OSError, ValueError) as e:
            print(f"cannot set up rpc client: {e}")
            return 1

    failures: list[str] = []
    executed = 0
    try:
        for n, v in enumerate(vectors):
            test_id = f"vector[{n}]"
            ok, reason = expected_vec_ok(v)
            if not ok:
                failures.append(f"{test_id}: {reason}")
                continue
            count, problems = check_vector(
                test_id,
                v,
                byte_order=args.hash_byte_order,
                accept_either_order=args.accept_either_order,
                client=client,
            )
            executed += count
            failures.extend(problems)
    finally:
        if client is not None:
            client.close()

    if failures:
        print("CV-CTVHASH: FAIL")
        for f in failures:
            print(f"- {f}")
        return 1

    print(f"CV-CTVHASH: PASS ({executed} checks)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
