import pytest

from conftest import ALICE, BOB, CAROL, DEPLOYER, T0, build_participation_tree
from shares_timelock.constants import (
    CURVE_LINEAR,
    ERR_OOB,
    PARTICIPATION_INACTIVE,
    PARTICIPATION_YES,
    PROOF_BUNDLE_FORMAT,
    SECONDS_PER_DAY,
    SECONDS_PER_MONTH,
    WAD,
)
from shares_timelock.models import VaultConfig
from shares_timelock.parsing import (
    load_json_object,
    parse_amount,
    parse_duration,
    parse_proof_bundle,
    parse_scenario,
    parse_vault_config,
)
from shares_timelock.scenario import run_scenario
from shares_timelock.validation import validate_proof_bundle, validate_scenario_steps

E18 = 10**18
DAY = SECONDS_PER_DAY


def bundle_data(entries, *, fmt=PROOF_BUNDLE_FORMAT):
    root, proofs = build_participation_tree(entries)
    return {
        "format": fmt,
        "root": root,
        "entries": [
            {"address": address, "participation": flag, "proof": proof}
            for (address, flag), proof in zip(entries, proofs)
        ],
    }


def scenario_data(steps, **extra):
    data = {
        "deployer": DEPLOYER,
        "config": {"min_lock_duration": 30 * DAY, "max_lock_duration": 90 * DAY},
        "balances": {ALICE: "10e18", BOB: "10e18", DEPLOYER: "10e18"},
        "start_time": T0,
        "steps": steps,
    }
    data.update(extra)
    return data


# -- primitives -------------------------------------------------------------------


@pytest.mark.parametrize(
    "value, expected",
    [
        (7, 7),
        ("1_000", 1000),
        ("0x10", 16),
        ("5e18", 5 * E18),
        ("1.5e18", 15 * 10**17),
        (None, 0),
    ],
)
def test_parse_amount(value, expected) -> None:
    assert parse_amount(value) == expected


@pytest.mark.parametrize("value", ["1.5", "abc", "1e"])
def test_parse_amount_rejects_junk(value) -> None:
    with pytest.raises(ValueError):
        parse_amount(value)


@pytest.mark.parametrize(
    "fields, expected",
    [
        ({"duration": "0x10"}, 16),
        ({"seconds": 5}, 5),
        ({"days": 2}, 2 * DAY),
        ({"months": 3}, 3 * SECONDS_PER_MONTH),
        ({"duration": 1, "days": 2}, 1),
    ],
)
def test_parse_duration(fields, expected) -> None:
    assert parse_duration(fields) == expected


def test_parse_duration_requires_a_unit() -> None:
    with pytest.raises(ValueError):
        parse_duration({"amount": 1})


def test_load_json_object_rejects_arrays() -> None:
    assert load_json_object(b'{"a": 1}') == {"a": 1}
    with pytest.raises(ValueError, match="expected JSON object"):
        load_json_object(b"[1, 2]", what="scenario")


# -- vault config -------------------------------------------------------------------


def test_parse_vault_config_defaults() -> None:
    assert parse_vault_config(None) == VaultConfig()


def test_parse_vault_config_months_and_amounts(capsys) -> None:
    config = parse_vault_config(
        {"min_lock_months": 6, "max_lock_months": 12, "base_fee": "1e17", "curve": " LINEAR ", "bogus": 1}
    )
    assert config.min_lock_duration == 6 * SECONDS_PER_MONTH
    assert config.max_lock_duration == 12 * SECONDS_PER_MONTH
    assert config.base_fee == 10**17
    assert config.max_bonus == WAD
    assert config.curve == CURVE_LINEAR
    assert "unknown config key 'bogus'" in capsys.readouterr().err


def test_parse_vault_config_rejects_invalid_ranges() -> None:
    with pytest.raises(ValueError, match="MIN_GE_MAX"):
        parse_vault_config({"min_lock_months": 12, "max_lock_months": 6})


# -- proof bundles ----------------------------------------------------------------


def test_parse_proof_bundle_normalizes_entries() -> None:
    data = bundle_data([(ALICE, PARTICIPATION_YES), (BOB, PARTICIPATION_INACTIVE)])
    data["entries"][0]["address"] = ALICE.lower()
    bundle = parse_proof_bundle(data)
    assert bundle.format == PROOF_BUNDLE_FORMAT
    assert bundle.entry_for(ALICE).participation == PARTICIPATION_YES
    assert bundle.entry_for(CAROL) is None


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda d: d.pop("root"), "no root"),
        (lambda d: d["entries"].append("x"), "expected an object"),
        (lambda d: d["entries"][0].update(proof="0x00"), "list of hashes"),
    ],
)
def test_parse_proof_bundle_rejects_malformed(mutate, message) -> None:
    data = bundle_data([(ALICE, PARTICIPATION_YES)])
    mutate(data)
    with pytest.raises(ValueError, match=message):
        parse_proof_bundle(data)


def test_validate_proof_bundle_accepts_consistent_bundle() -> None:
    data = bundle_data([(ALICE, PARTICIPATION_YES), (BOB, PARTICIPATION_INACTIVE), (CAROL, PARTICIPATION_YES)])
    bundle = parse_proof_bundle(data)
    assert validate_proof_bundle(bundle, expected_root=data["root"]) == []


def test_validate_proof_bundle_collects_issues_when_warn_only() -> None:
    data = bundle_data([(ALICE, PARTICIPATION_YES), (BOB, PARTICIPATION_INACTIVE)], fmt="v0")
    data["entries"].append(dict(data["entries"][0]))
    data["entries"][1]["participation"] = 2
    data["entries"].append({"address": CAROL, "participation": 1, "proof": []})
    bundle = parse_proof_bundle(data)

    issues = validate_proof_bundle(bundle, expected_root="0x" + "11" * 32, warn_only=True)

    assert len(issues) == 5
    assert "unexpected bundle format" in issues[0]
    assert "does not match expected root" in issues[1]
    assert any("invalid participation flag 2" in i for i in issues)
    assert any(f"duplicate entry for {ALICE}" in i for i in issues)
    assert f"{CAROL}: proof does not verify against bundle root" in issues


def test_validate_proof_bundle_raises_first_issue() -> None:
    bundle = parse_proof_bundle(bundle_data([(ALICE, PARTICIPATION_YES)], fmt="v0"))
    with pytest.raises(ValueError, match="unexpected bundle format"):
        validate_proof_bundle(bundle)


# -- scenarios --------------------------------------------------------------------


def test_validate_scenario_steps() -> None:
    issues = validate_scenario_steps(
        [
            {"op": "deposit", "account": ALICE, "amount": 1, "days": 30},
            {"op": "teleport"},
            {"op": "deposit", "account": ALICE},
            {"op": "redistribute", "accounts": [ALICE], "proofs": []},
            {"op": "advance"},
        ]
    )
    assert issues == [
        "steps[1]: unknown op 'teleport'",
        "steps[2] (deposit): missing amount, duration|seconds|days|months",
        "steps[3] (redistribute): accounts and proofs differ in length",
        "steps[4] (advance): missing duration|seconds|days|months",
    ]


def test_parse_scenario() -> None:
    scenario = parse_scenario(scenario_data([{"op": "advance", "days": 1}], gated=False))
    assert scenario.deployer == DEPLOYER
    assert scenario.balances[ALICE] == 10 * E18
    assert scenario.config.max_lock_duration == 90 * DAY
    assert scenario.start_time == T0
    assert not scenario.gated


@pytest.mark.parametrize(
    "data, message",
    [
        ({"steps": []}, "no deployer"),
        ({"deployer": DEPLOYER, "steps": {"op": "advance"}}, "list of objects"),
        ({"deployer": DEPLOYER, "steps": [{"op": "warp"}]}, "unknown op"),
    ],
)
def test_parse_scenario_rejects_invalid(data, message) -> None:
    with pytest.raises(ValueError, match=message):
        parse_scenario(data)


def test_run_scenario_full_cycle() -> None:
    scenario = parse_scenario(
        scenario_data(
            [
                {"op": "deposit", "account": ALICE, "amount": "5e18", "days": 30},
                {"op": "deposit", "account": BOB, "amount": "5e18", "days": 90},
                {"op": "advance", "days": 1},
                {"op": "withdraw", "account": ALICE, "lock_id": 0},
                {"op": "distribute_fees"},
                {"op": "advance", "days": 90},
                {"op": "eject", "lock_ids": [0, 1]},
            ]
        )
    )
    result = run_scenario(scenario, progress=False)

    assert result.failed == []
    assert [s.op for s in result.steps][-1] == "eject"
    assert result.steps[-1].value == [1]
    system = result.system
    fee = E18 * 29 // 30
    assert system.token.balance_of(ALICE) == 10 * E18 - fee
    assert system.token.balance_of(BOB) == 10 * E18
    assert system.token.balance_of(system.ledger.address) == fee
    assert system.chain.timestamp == T0 + 91 * DAY


def test_run_scenario_rolls_back_reverted_steps() -> None:
    steps = [
        {"op": "deposit", "account": ALICE, "amount": "5e18", "days": 30},
        {"op": "deposit", "account": ALICE, "amount": "5e18", "days": 29},
        {"op": "deposit", "account": ALICE, "amount": "1e18", "days": 60},
    ]
    stopped = run_scenario(parse_scenario(scenario_data(steps)), progress=False)
    assert [s.ok for s in stopped.steps] == [True, False]
    assert stopped.failed[0].error.reason == ERR_OOB

    result = run_scenario(parse_scenario(scenario_data(steps)), continue_on_error=True, progress=False)
    assert [s.ok for s in result.steps] == [True, False, True]
    vault = result.system.vault
    assert vault.get_locks_length() == 2
    # The approval made by the reverted step is gone with it.
    assert result.system.token.allowance(ALICE, vault.address) == 0


def test_run_scenario_with_plain_ledger() -> None:
    steps = [
        {"op": "deposit", "account": ALICE, "amount": "4e18", "days": 30},
        {"op": "distribute", "account": DEPLOYER, "amount": "1e18"},
        {"op": "collect", "account": ALICE},
    ]
    result = run_scenario(parse_scenario(scenario_data(steps, gated=False)), progress=False)
    assert result.failed == []
    collected = result.steps[-1].value
    assert E18 - 1 <= collected <= E18
    assert result.system.token.balance_of(ALICE) == 6 * E18 + collected


def test_run_scenario_participation_steps() -> None:
    root, proofs = build_participation_tree([(ALICE, PARTICIPATION_YES), (BOB, PARTICIPATION_INACTIVE)])
    steps = [
        {"op": "deposit", "account": ALICE, "amount": "5e18", "days": 30},
        {"op": "deposit", "account": BOB, "amount": "5e18", "days": 30},
        {"op": "distribute", "account": DEPLOYER, "amount": "2e18"},
        {"op": "set_root", "root": root},
        {"op": "redistribute", "accounts": [BOB], "proofs": [proofs[1]]},
        {"op": "claim", "account": ALICE, "proof": proofs[0]},
    ]
    result = run_scenario(parse_scenario(scenario_data(steps)), progress=False)
    assert result.failed == []
    claimed = result.steps[-1].value
    assert 1_500_000_000_000_000_000 - 2 <= claimed <= 1_500_000_000_000_000_000
