"""Validation of proof bundles, configs and scenarios."""

from typing import Any

from shares_timelock.constants import (
    PARTICIPATION_INACTIVE,
    PARTICIPATION_YES,
    PROOF_BUNDLE_FORMAT,
)
from shares_timelock.formatters import normalize_hash
from shares_timelock.models import ProofBundle, VaultConfig
from shares_timelock.participation import participation_leaf, verify_proof

CONFIG_KEYS = frozenset(VaultConfig.__dataclass_fields__) | {"min_lock_months", "max_lock_months"}

# Required fields per scenario op. Ops acting as the maintainer take an optional "caller".
STEP_FIELDS: dict[str, tuple[str, ...]] = {
    "deposit": ("account", "amount"),
    "withdraw": ("account", "lock_id"),
    "eject": ("lock_ids",),
    "boost": ("account", "lock_id"),
    "distribute": ("account", "amount"),
    "distribute_fees": (),
    "collect": ("account",),
    "claim": ("account", "proof"),
    "redistribute": ("accounts", "proofs"),
    "set_root": ("root",),
    "emergency_unlock": (),
    "set_minimum_deposit": ("value",),
    "set_min_lock_amount": ("value",),
    "delegate": ("account", "delegatee"),
    "advance": (),
}

DURATION_KEYS = ("duration", "seconds", "days", "months")


def validate_config_keys(raw: dict[str, Any]) -> list[str]:
    return [f"unknown config key {key!r} (ignored)" for key in sorted(set(raw) - CONFIG_KEYS)]


def validate_scenario_steps(steps: list[dict[str, Any]]) -> list[str]:
    """Check every step names a known op and carries its required fields."""
    issues: list[str] = []
    for i, step in enumerate(steps):
        op = step.get("op")
        if op not in STEP_FIELDS:
            issues.append(f"steps[{i}]: unknown op {op!r}")
            continue
        missing = [name for name in STEP_FIELDS[op] if name not in step]
        if op in ("deposit", "advance") and not any(k in step for k in DURATION_KEYS):
            missing.append("duration|seconds|days|months")
        if missing:
            issues.append(f"steps[{i}] ({op}): missing {', '.join(missing)}")
        if op == "redistribute" and len(step.get("accounts") or []) != len(step.get("proofs") or []):
            issues.append(f"steps[{i}] (redistribute): accounts and proofs differ in length")
    return issues


def validate_proof_bundle(
    bundle: ProofBundle, *, expected_root: str | None = None, warn_only: bool = False
) -> list[str]:
    """
    Validate a participation proof bundle.

    Checks the format tag, the root against `expected_root` (e.g. the root set on
    the ledger), duplicate addresses, flag values, and that every proof verifies
    against the bundle root.

    Returns list of issues. If warn_only=False, raises ValueError on the first one.
    """
    issues: list[str] = []

    def report(msg: str) -> None:
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)

    if bundle.format != PROOF_BUNDLE_FORMAT:
        report(f"unexpected bundle format {bundle.format!r} (expected {PROOF_BUNDLE_FORMAT!r})")

    if expected_root is not None and normalize_hash(expected_root) != bundle.root:
        report(f"bundle root {bundle.root} does not match expected root {normalize_hash(expected_root)}")

    seen: set[str] = set()
    for entry in bundle.entries:
        if entry.address in seen:
            report(f"duplicate entry for {entry.address}")
        seen.add(entry.address)

        if entry.participation not in (PARTICIPATION_INACTIVE, PARTICIPATION_YES):
            report(f"{entry.address}: invalid participation flag {entry.participation}")
            continue

        leaf = participation_leaf(entry.address, entry.participation)
        if not verify_proof(entry.proof, bundle.root, leaf):
            report(f"{entry.address}: proof does not verify against bundle root")

    return issues
