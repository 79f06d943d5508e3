"""
PayProof CLI — encode, decode, and anchor payment proofs on Flare.

Commands:
  payproof encode         - Encode HASH:ID record(s) into anchor data (offline)
  payproof decode         - Decode anchor data from a transaction's input (offline)
  payproof master-hash    - Fold ISO record hashes into a master proof hash (offline)
  payproof anchor         - Anchor HASH:ID record(s) in a self-send transaction
  payproof verify-anchor  - Verify a proof hash is anchored in a transaction
  payproof info           - Show the records, block and timestamp of an anchor
  payproof estimate-cost  - Estimate gas and cost of anchoring one record
  payproof balance        - Show the anchoring account balance
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys


def _add_rpc_args(parser: argparse.ArgumentParser, needs_account: bool = False) -> None:
    """Add common Flare RPC flags to a subparser."""
    parser.add_argument("--rpc-url", help="Flare JSON-RPC URL (or set FLARE_RPC_URL)")
    if needs_account:
        parser.add_argument(
            "--from",
            dest="from_address",
            help="Node-managed anchoring account (or set FLARE_ANCHOR_ADDRESS)",
        )


def _parse_record(spec: str) -> tuple[str, str]:
    """Split a HASH:ID argument. The id may itself contain ':'."""
    if ":" not in spec:
        print(f"Error: Record must be HASH:PAYMENT_ID, got {spec!r}", file=sys.stderr)
        sys.exit(1)
    proof_hash, payment_id = spec.split(":", 1)
    return proof_hash, payment_id


def _get_rpc(args: argparse.Namespace):
    """Build an EVMRPC from --rpc-url or env vars."""
    from payproof.anchor import EVMRPC

    url = getattr(args, "rpc_url", None)
    if url:
        return EVMRPC(url)
    return EVMRPC.from_env()


def _get_service(args: argparse.Namespace):
    """Build an AnchorService from CLI flags, falling back to env vars."""
    from payproof.anchor import AnchorError, AnchorService

    rpc = _get_rpc(args)
    address = getattr(args, "from_address", None) or os.environ.get("FLARE_ANCHOR_ADDRESS", "")
    if not address:
        print(
            "Error: No anchoring account. Use --from or set FLARE_ANCHOR_ADDRESS.",
            file=sys.stderr,
        )
        sys.exit(1)
    try:
        return AnchorService(rpc, address)
    except (ValueError, AnchorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_encode(args: argparse.Namespace) -> None:
    """Encode one record as version 1, or several (or --batch) as version 2."""
    from payproof._codec import EncodingError, encode_batch, encode_single

    records = [_parse_record(r) for r in args.records]
    try:
        if len(records) == 1 and not args.batch:
            data = encode_single(*records[0])
        else:
            data = encode_batch(records)
    except EncodingError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(data)


def cmd_decode(args: argparse.Namespace) -> None:
    """Decode anchor data. Exits 1 if it is not a PayProof payload."""
    from payproof._codec import decode_result

    result = decode_result(args.data)
    if args.json:
        out = result.payload.to_dict()
        out["issue"] = result.issue.value if result.issue else None
        print(json.dumps(out, indent=2))
        if not result.ok:
            sys.exit(1)
        return

    if not result.ok:
        print(f"FAIL: not PayProof anchor data ({result.issue.value}: {result.detail})")
        sys.exit(1)

    payload = result.payload
    print(f"PayProof anchor v{payload.version}: {len(payload)} record(s)")
    for i, record in enumerate(payload.records):
        print(f"  [{i}] id={record.payment_id}")
        print(f"      hash={record.proof_hash}")


def cmd_master_hash(args: argparse.Namespace) -> None:
    """Combine ISO record hashes into the master proof hash."""
    from payproof.proof import compute_master_proof_hash

    print(compute_master_proof_hash(args.hashes))


def cmd_anchor(args: argparse.Namespace) -> None:
    """Anchor record(s) on Flare and wait for confirmation."""
    from payproof._codec import EncodingError
    from payproof.anchor import AnchorError

    records = [_parse_record(r) for r in args.records]
    service = _get_service(args)

    try:
        if len(records) == 1 and not args.batch:
            tx_hash = service.anchor_proof_hash(*records[0])
        else:
            tx_hash = service.anchor_multiple_hashes(records)
    except (EncodingError, AnchorError) as e:
        print(f"Error: Anchoring failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Anchored {len(records)} record(s) on Flare")
    print(f"  tx: {tx_hash}")


def cmd_verify_anchor(args: argparse.Namespace) -> None:
    """Verify a proof hash is present in a transaction's anchor data."""
    from payproof.anchor import AnchorService

    service = AnchorService(_get_rpc(args))
    if service.verify_anchor(args.tx_hash, args.proof_hash):
        print(f"OK: proof hash anchored in {args.tx_hash}")
    else:
        print(f"FAIL: proof hash not found in {args.tx_hash}")
        sys.exit(1)


def cmd_info(args: argparse.Namespace) -> None:
    """Show what a transaction anchors, and where."""
    from payproof.anchor import AnchorService

    service = AnchorService(_get_rpc(args))
    info = service.get_anchor_info(args.tx_hash)
    if info is None:
        print(f"FAIL: no anchor information for {args.tx_hash}", file=sys.stderr)
        sys.exit(1)

    print(f"Anchor {info.tx_hash}")
    print(f"  block:     {info.block_number}")
    print(f"  timestamp: {info.timestamp}")
    print(f"  records:   {len(info.proof_hashes)}")
    for proof_hash, payment_id in zip(info.proof_hashes, info.payment_ids):
        print(f"    {payment_id}  {proof_hash}")


def cmd_estimate_cost(args: argparse.Namespace) -> None:
    """Estimate gas and cost of anchoring one record."""
    from payproof._codec import EncodingError
    from payproof.anchor import AnchorService, RPCError

    proof_hash, payment_id = _parse_record(args.record)
    service = AnchorService(_get_rpc(args))
    try:
        cost = service.estimate_anchor_cost(proof_hash, payment_id)
    except (EncodingError, RPCError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"  gas limit: {cost.gas_limit}")
    print(f"  gas price: {cost.gas_price_gwei} gwei")
    print(f"  cost:      {cost.estimated_cost} FLR")


def cmd_balance(args: argparse.Namespace) -> None:
    """Show the anchoring account balance."""
    from payproof.anchor import RPCError

    service = _get_service(args)
    try:
        balance = service.get_wallet_balance()
    except RPCError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"{service.from_address}: {balance} FLR")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payproof",
        description="PayProof — anchor payment proofs on Flare",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sub = parser.add_subparsers(dest="command")

    p_enc = sub.add_parser("encode", help="Encode HASH:ID record(s) into anchor data")
    p_enc.add_argument("records", nargs="+", help="Records as PROOF_HASH:PAYMENT_ID")
    p_enc.add_argument("--batch", action="store_true", help="Use the batch format for one record")

    p_dec = sub.add_parser("decode", help="Decode anchor data")
    p_dec.add_argument("data", help="Transaction input data (hex, 0x optional)")
    p_dec.add_argument("--json", action="store_true", help="Print JSON")

    p_mh = sub.add_parser("master-hash", help="Combine ISO record hashes into a master proof hash")
    p_mh.add_argument("hashes", nargs="+", help="Record hashes, in order")

    p_anc = sub.add_parser("anchor", help="Anchor HASH:ID record(s) on Flare")
    p_anc.add_argument("records", nargs="+", help="Records as PROOF_HASH:PAYMENT_ID")
    p_anc.add_argument("--batch", action="store_true", help="Use the batch format for one record")
    _add_rpc_args(p_anc, needs_account=True)

    p_ver = sub.add_parser("verify-anchor", help="Verify a proof hash is anchored in a tx")
    p_ver.add_argument("tx_hash", help="Anchor transaction hash")
    p_ver.add_argument("proof_hash", help="Expected proof hash")
    _add_rpc_args(p_ver)

    p_info = sub.add_parser("info", help="Show anchor records, block and timestamp")
    p_info.add_argument("tx_hash", help="Anchor transaction hash")
    _add_rpc_args(p_info)

    p_est = sub.add_parser("estimate-cost", help="Estimate the cost of anchoring one record")
    p_est.add_argument("record", help="Record as PROOF_HASH:PAYMENT_ID")
    _add_rpc_args(p_est)

    p_bal = sub.add_parser("balance", help="Show the anchoring account balance")
    _add_rpc_args(p_bal, needs_account=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if not args.command:
        print("PayProof — payment proof anchoring on Flare")
        print()
        print("Usage:")
        print("  payproof encode 0xHASH:pay-001")
        print("  payproof encode 0xHASH1:p1 0xHASH2:p2")
        print("  payproof decode 0x50415950524f4f4601...")
        print("  payproof master-hash HASH1 HASH2 ...")
        print("  payproof anchor 0xHASH:pay-001 --rpc-url ... --from 0xACCOUNT")
        print("  payproof verify-anchor 0xTX 0xHASH --rpc-url ...")
        print("  payproof info 0xTX --rpc-url ...")
        print("  payproof estimate-cost 0xHASH:pay-001 --rpc-url ...")
        print("  payproof balance --from 0xACCOUNT")
        print()
        print("Run 'payproof <command> --help' for details on any command.")
        sys.exit(0)

    commands = {
        "encode": cmd_encode,
        "decode": cmd_decode,
        "master-hash": cmd_master_hash,
        "anchor": cmd_anchor,
        "verify-anchor": cmd_verify_anchor,
        "info": cmd_info,
        "estimate-cost": cmd_estimate_cost,
        "balance": cmd_balance,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
