"""CLI and main logic."""

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

from shares_timelock.console import event_to_json, print_event_log, print_staking_report
from shares_timelock.constants import DEFAULT_TIMEOUT, PARTICIPATION_INACTIVE, PARTICIPATION_YES
from shares_timelock.formatters import as_int, normalize_address, normalize_hash
from shares_timelock.ipfs import configured_gateways, fetch_ipfs_json
from shares_timelock.parsing import load_json_object, parse_proof_bundle, parse_scenario
from shares_timelock.participation import participation_leaf, verify_proof
from shares_timelock.reports import compute_lock_aggregates
from shares_timelock.scenario import run_scenario
from shares_timelock.validation import validate_proof_bundle


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Time-locked staking vault with participation-gated rewards.")
    sub = p.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay a scenario file against a fresh vault and print the outcome.")
    replay.add_argument("scenario", type=Path, help="Scenario JSON file.")
    replay.add_argument("--json", action="store_true", help="Print the event log and summary as JSON.")
    replay.add_argument("--events", action="store_true", help="Also print the event log.")
    replay.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Keep replaying after a step reverts (the reverted step has no effect).",
    )

    verify = sub.add_parser("verify-proof", help="Check an account's participation proof from a bundle.")
    verify.add_argument("--address", required=True, help="Account to check.")
    verify.add_argument(
        "--flag",
        default=str(PARTICIPATION_YES),
        help=f"Participation flag to prove: {PARTICIPATION_YES} (active) or {PARTICIPATION_INACTIVE} (inactive).",
    )
    source = verify.add_mutually_exclusive_group(required=True)
    source.add_argument("--bundle", type=Path, help="Proof bundle JSON file.")
    source.add_argument("--cid", help="IPFS CID of the proof bundle (gateways from IPFS_GATEWAYS).")
    verify.add_argument("--root", default=None, help="Expected root (e.g. the root set on the ledger).")
    verify.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable caching for this run (fetch the bundle fresh from IPFS).",
    )
    return p.parse_args(argv)


def cmd_replay(args: argparse.Namespace) -> int:
    scenario = parse_scenario(load_json_object(args.scenario.read_bytes(), what="scenario"))
    result = run_scenario(scenario, continue_on_error=args.continue_on_error, progress=not args.json)
    aggregates = compute_lock_aggregates(result.system.vault)

    if args.json:
        out = {
            "timestamp": result.system.chain.timestamp,
            "steps": [
                {"index": s.index, "op": s.op, "ok": s.ok, "error": s.error.reason if s.error else None}
                for s in result.steps
            ],
            "aggregates": asdict(aggregates),
            "events": [event_to_json(e) for e in result.system.chain.events],
        }
        print(json.dumps(out, indent=2))
    else:
        print_staking_report(result, aggregates)
        if args.events:
            print("🧾 Events")
            print_event_log(result.system.chain.events)

    return 1 if result.failed else 0


def cmd_verify_proof(args: argparse.Namespace) -> int:
    address = normalize_address(args.address)
    flag = as_int(args.flag)
    if args.bundle is not None:
        data = load_json_object(args.bundle.read_bytes(), what="proof bundle")
    else:
        data = fetch_ipfs_json(args.cid, configured_gateways(), timeout_s=DEFAULT_TIMEOUT, use_cache=not args.no_cache)
    bundle = parse_proof_bundle(data)

    issues = validate_proof_bundle(bundle, expected_root=args.root, warn_only=True)
    if issues:
        print("⚠️  Proof bundle warnings:", file=sys.stderr)
        for issue in issues:
            print(f"   {issue}", file=sys.stderr)

    entry = bundle.entry_for(address)
    if entry is None:
        print(f"❌ {address} has no entry in the bundle", file=sys.stderr)
        return 1
    if entry.participation != flag:
        print(f"ℹ️  Bundle records participation={entry.participation} for {address}", file=sys.stderr)

    root = normalize_hash(args.root) if args.root else bundle.root
    ok = verify_proof(entry.proof, root, participation_leaf(address, flag))
    print(f"{'✅' if ok else '❌'} {address} participation={flag} against {root}: {'valid' if ok else 'invalid'}")
    return 0 if ok else 1


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)
    try:
        if args.command == "replay":
            return cmd_replay(args)
        return cmd_verify_proof(args)
    except (OSError, RuntimeError, ValueError) as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
