"""Parsing of vault configs, proof bundles and scenarios from JSON."""

import json
import sys
from decimal import Decimal, InvalidOperation
from typing import Any

from shares_timelock.constants import SECONDS_PER_DAY, SECONDS_PER_MONTH
from shares_timelock.formatters import as_int, normalize_address, normalize_hash
from shares_timelock.models import ParticipationEntry, ProofBundle, Scenario, VaultConfig
from shares_timelock.validation import validate_config_keys, validate_scenario_steps

# Duration keys accepted in place of seconds, with their unit in seconds.
DURATION_UNITS = {"months": SECONDS_PER_MONTH, "days": SECONDS_PER_DAY, "seconds": 1}


def load_json_object(raw_bytes: bytes, *, what: str = "document") -> dict[str, Any]:
    """Decode a JSON object from raw bytes."""
    data = json.loads(raw_bytes.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected {what} format (expected JSON object)")
    return data


def parse_amount(value: Any) -> int:
    """Integer amount from an int or a string such as "1_000", "0x10" or "5e18"."""
    if isinstance(value, str) and any(c in value.lower() for c in ".e") and not value.lower().startswith("0x"):
        try:
            d = Decimal(value.strip().replace("_", ""))
        except InvalidOperation as ex:
            raise ValueError(f"not an amount: {value!r}") from ex
        if d != d.to_integral_value():
            raise ValueError(f"amount must be a whole number of base units: {value!r}")
        return int(d)
    return as_int(value)


def parse_duration(fields: dict[str, Any]) -> int:
    """Seconds from `{"duration": n}` or one of `{"seconds": n}`, `{"days": n}`, `{"months": n}`."""
    if "duration" in fields:
        return as_int(fields["duration"])
    for unit, seconds in DURATION_UNITS.items():
        if unit in fields:
            return as_int(fields[unit]) * seconds
    raise ValueError("missing duration (or seconds/days/months)")


def parse_vault_config(raw: dict[str, Any] | None) -> VaultConfig:
    """
    Build a VaultConfig from JSON.

    Durations may be given in seconds (`min_lock_duration`) or months
    (`min_lock_months`). Unknown keys are reported and ignored.
    """
    raw = dict(raw or {})
    issues = validate_config_keys(raw)
    if issues:
        print("⚠️  Config warnings:", file=sys.stderr)
        for issue in issues:
            print(f"   {issue}", file=sys.stderr)

    kwargs: dict[str, Any] = {}
    for bound in ("min", "max"):
        if f"{bound}_lock_months" in raw:
            kwargs[f"{bound}_lock_duration"] = as_int(raw[f"{bound}_lock_months"]) * SECONDS_PER_MONTH
        elif f"{bound}_lock_duration" in raw:
            kwargs[f"{bound}_lock_duration"] = as_int(raw[f"{bound}_lock_duration"])
    for name in ("max_bonus", "min_fee", "base_fee", "minimum_deposit", "min_lock_amount"):
        if name in raw:
            kwargs[name] = parse_amount(raw[name])
    if "curve" in raw:
        kwargs["curve"] = str(raw["curve"]).strip().lower()
    return VaultConfig(**kwargs)


def parse_proof_bundle(data: dict[str, Any]) -> ProofBundle:
    """Parse a `participation-v1` bundle. Entries are keyed by checksummed address."""
    entries = []
    for i, entry in enumerate(data.get("entries", []) or []):
        if not isinstance(entry, dict):
            raise ValueError(f"entries[{i}]: expected an object")
        proof = entry.get("proof") or []
        if not isinstance(proof, list):
            raise ValueError(f"entries[{i}].proof: expected a list of hashes")
        entries.append(
            ParticipationEntry(
                address=normalize_address(entry.get("address")),
                participation=as_int(entry.get("participation")),
                proof=tuple(normalize_hash(p) for p in proof),
            )
        )
    root = data.get("root")
    if root is None:
        raise ValueError("proof bundle has no root")
    return ProofBundle(format=str(data.get("format") or ""), root=normalize_hash(root), entries=tuple(entries))


def parse_scenario(data: dict[str, Any]) -> Scenario:
    """Parse a scenario document. Step contents are checked, not converted; the runner converts them."""
    deployer = data.get("deployer")
    if deployer is None:
        raise ValueError("scenario has no deployer")
    steps = data.get("steps") or []
    if not isinstance(steps, list) or not all(isinstance(s, dict) for s in steps):
        raise ValueError("scenario steps must be a list of objects")

    issues = validate_scenario_steps(steps)
    if issues:
        raise ValueError("invalid scenario:\n   " + "\n   ".join(issues))

    balances = {normalize_address(k): parse_amount(v) for k, v in (data.get("balances") or {}).items()}
    return Scenario(
        config=parse_vault_config(data.get("config")),
        deployer=normalize_address(deployer),
        balances=balances,
        steps=tuple(steps),
        gated=bool(data.get("gated", True)),
        start_time=as_int(data.get("start_time")),
    )
