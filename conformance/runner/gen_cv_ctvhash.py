#!/usr/bin/env python3
"""
Generate BIP-119 default-template-hash vectors in the ctvhash.json layout.

Each vector is a random transaction plus template hashes for spend indices
[0, 1, r1, r2]. Hashes come from a node's ``getdefaulttemplate`` RPC (and are
cross-checked against the local calculator), or from the local calculator
alone with --offline.
"""

from __future__ import annotations

import argparse
import json
import os
import random
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from ctv_hash import BYTE_ORDERS, TemplateHasher
from ctv_random import GenProfile, load_profile, make_rng, random_spend_indices, random_tx
from ctv_rpc import JSONRPCException, add_rpc_args, client_from_args
from ctv_tx import Transaction, check_amounts, serialize_tx, tx_from_hex, tx_to_hex


REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_PROFILE = REPO_ROOT / "conformance" / "fixtures" / "CV-CTVHASH-PROFILE.yml"

DOC_ENTRY = '{"hex_tx":string (hex tx), "spend_index":[number], "result": [string (hex hash)]}'

Oracle = Callable[[str, int, bool], str]


def build_desc(tx: Transaction) -> dict[str, Any]:
    return {
        "Inputs": len(tx.inputs),
        "Outputs": len(tx.outputs),
        "Witness": tx.has_witness(),
        "Version": tx.version,
        "scriptSigs": tx.has_script_sigs(),
    }


def checked_hex(tx: Transaction) -> str:
    check_amounts(tx)
    hex_tx = tx_to_hex(tx)
    if serialize_tx(tx_from_hex(hex_tx)) != serialize_tx(tx):
        raise RuntimeError(f"transaction does not survive a decode round trip: {hex_tx[:64]}...")
    return hex_tx


def build_vector(
    tx: Transaction,
    spend_index: list[int],
    *,
    oracle: Optional[Oracle],
    byte_order: str,
    cross_check: bool,
    failures: list[str],
    vector_id: str,
) -> dict[str, Any]:
    hex_tx = checked_hex(tx)
    desc = build_desc(tx)
    hasher = TemplateHasher(tx)

    result: list[str] = []
    for idx in spend_index:
        local = hasher.hash_hex(idx, byte_order)
        if oracle is None:
            result.append(local)
            continue
        remote = oracle(hex_tx, idx, desc["Witness"])
        if cross_check and remote.lower() != local:
            failures.append(
                f"{vector_id}: spend_index={idx} oracle/local mismatch: oracle={remote} local={local}"
            )
        result.append(remote)

    return {
        "hex_tx": hex_tx,
        "spend_index": spend_index,
        "result": result,
        "desc": desc,
    }


def generate_entries(
    rng: random.Random,
    count: int,
    profile: GenProfile,
    *,
    oracle: Optional[Oracle] = None,
    byte_order: str = "display",
    cross_check: bool = True,
    failures: Optional[list[str]] = None,
) -> list[Any]:
    failures = failures if failures is not None else []
    entries: list[Any] = [DOC_ENTRY]
    for n in range(count):
        tx = random_tx(rng, profile)
        spend_index = random_spend_indices(rng)
        entries.append(
            build_vector(
                tx,
                spend_index,
                oracle=oracle,
                byte_order=byte_order,
                cross_check=cross_check,
                failures=failures,
                vector_id=f"vector[{n}]",
            )
        )
    return entries


def write_entries(entries: list[Any], out: str) -> None:
    out_text = json.dumps(entries, indent=2, sort_keys=False) + "\n"
    if out == "-" or out == "":
        sys.stdout.write(out_text)
        sys.stdout.flush()
    else:
        with open(out, "w", encoding="utf-8") as f:
            f.write(out_text)


def parse_seed(s: str) -> int:
    v = int(s, 0)
    if v < 0:
        raise argparse.ArgumentTypeError(f"seed must be non-negative: {s}")
    return v


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        description="Generate randomized BIP-119 template hash vectors (ctvhash.json layout)."
    )
    add_rpc_args(ap)
    ap.add_argument(
        "-n",
        "--transaction-count",
        type=int,
        default=100,
        help="Number of random transactions (default: 100)",
    )
    ap.add_argument("-o", "--out-file", default="-", help="output path (default: stdout)")
    ap.add_argument("--seed", type=parse_seed, default=None, help="RNG seed (default: random)")
    ap.add_argument(
        "--profile",
        default=None,
        help="Generator profile YAML (default: conformance/fixtures/CV-CTVHASH-PROFILE.yml)",
    )
    ap.add_argument("--offline", action="store_true", help="compute results locally, no RPC")
    ap.add_argument(
        "--no-cross-check",
        dest="cross_check",
        action="store_false",
        help="do not compare oracle results against the local calculator",
    )
    ap.add_argument(
        "--hash-byte-order",
        choices=BYTE_ORDERS,
        default="display",
        help="hex rendering of locally computed hashes (default: display, i.e. uint256::GetHex)",
    )
    return ap.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    if args.transaction_count < 0:
        sys.stderr.write("--transaction-count must be non-negative\n")
        return 1

    try:
        if args.profile:
            profile = load_profile(Path(args.profile).resolve())
        elif DEFAULT_PROFILE.exists():
            profile = load_profile(DEFAULT_PROFILE)
        else:
            profile = GenProfile()
    except (OSError, ValueError) as e:
        sys.stderr.write(f"invalid profile: {e}\n")
        return 1

    client = None
    if not args.offline:
        try:
            client = client_from_args(args)
        except (OSError, ValueError) as e:
            sys.stderr.write(f"cannot set up rpc client: {e}\n")
            return 1

    seed = args.seed if args.seed is not None else int.from_bytes(os.urandom(8), "little")
    sys.stderr.write(f"seed: {seed:#x}\n")
    rng = make_rng(seed)

    failures: list[str] = []
    try:
        entries = generate_entries(
            rng,
            args.transaction_count,
            profile,
            oracle=client.get_default_template if client is not None else None,
            byte_order=args.hash_byte_order,
            cross_check=args.cross_check,
            failures=failures,
        )
    except JSONRPCException as e:
        sys.stderr.write(f"getdefaulttemplate failed: {e}\n")
        return 1
    finally:
        if client is not None:
            client.close()

    try:
        write_entries(entries, args.out_file)
    except OSError as e:
        sys.stderr.write(f"cannot write output: {e}\n")
        return 1

    if failures:
        sys.stderr.write("CV-CTVHASH generation: FAIL\n")
        for f in failures:
            sys.stderr.write(f"- {f}\n")
        return 1

    sys.stderr.write(f"wrote {len(entries) - 1} vectors ({'offline' if args.offline else 'oracle'})\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
