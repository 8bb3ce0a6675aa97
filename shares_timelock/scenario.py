"""Deploying a vault system and replaying scenarios against it."""

import sys
from dataclasses import dataclass, field
from typing import Any

from tqdm import tqdm

from shares_timelock.errors import Revert
from shares_timelock.formatters import as_int
from shares_timelock.ledger import NonTransferableRewardsLedger, RewardsLedger
from shares_timelock.models import Scenario, VaultConfig
from shares_timelock.parsing import parse_amount, parse_duration
from shares_timelock.runtime import Chain
from shares_timelock.token import VotingToken
from shares_timelock.vault import SharesTimeLock


@dataclass
class System:
    """A deployed token, ledger and vault sharing one chain."""

    chain: Chain
    token: VotingToken
    ledger: RewardsLedger
    vault: SharesTimeLock
    deployer: str


@dataclass(frozen=True)
class StepResult:
    index: int
    op: str
    ok: bool
    value: Any = None
    error: Revert | None = None


@dataclass
class ScenarioResult:
    system: System
    steps: list[StepResult] = field(default_factory=list)

    @property
    def failed(self) -> list[StepResult]:
        return [s for s in self.steps if not s.ok]


def build_system(
    config: VaultConfig,
    *,
    deployer: str,
    balances: dict[str, int] | None = None,
    gated: bool = True,
    timestamp: int = 0,
) -> System:
    """Deploy token, ledger and vault, hand the ledger's minter role to the vault and fund accounts."""
    chain = Chain(timestamp=timestamp)
    token = VotingToken(chain, "Staked Token", "STK", owner=deployer)
    if gated:
        ledger: RewardsLedger = NonTransferableRewardsLedger(chain, token, minter=deployer, maintainer=deployer)
    else:
        ledger = RewardsLedger(chain, token, minter=deployer)
    vault = SharesTimeLock(chain, token, ledger, maintainer=deployer, config=config)
    ledger.transfer_minter(deployer, vault.address)
    for account, amount in (balances or {}).items():
        token.mint(deployer, account, amount)
    return System(chain=chain, token=token, ledger=ledger, vault=vault, deployer=vault.maintainer)


def apply_step(system: System, step: dict[str, Any]) -> Any:
    """Execute one scenario step. Reverts propagate to the caller."""
    op = step["op"]
    vault, ledger, token = system.vault, system.ledger, system.token
    caller = step.get("caller", system.deployer)

    if op == "deposit":
        account = step["account"]
        amount = parse_amount(step["amount"])
        if step.get("approve", True):
            token.approve(account, vault.address, amount)
        return vault.deposit(account, amount, parse_duration(step), step.get("receiver", account))
    if op == "withdraw":
        return vault.withdraw(step["account"], as_int(step["lock_id"]))
    if op == "eject":
        return vault.eject(caller, [as_int(i) for i in step["lock_ids"]])
    if op == "boost":
        return vault.boost_to_max(step["account"], as_int(step["lock_id"]))
    if op == "distribute":
        amount = parse_amount(step["amount"])
        token.approve(step["account"], ledger.address, amount)
        return ledger.distribute(step["account"], amount)
    if op == "distribute_fees":
        return vault.distribute_fees(caller)
    if op == "collect":
        return ledger.collect(step["account"])
    if op == "claim":
        return ledger.collect_with_participation(step["account"], step["proof"])
    if op == "redistribute":
        return ledger.redistribute(caller, step["accounts"], step["proofs"])
    if op == "set_root":
        return ledger.set_participation_root(caller, step["root"])
    if op == "emergency_unlock":
        return vault.trigger_emergency_unlock(caller)
    if op == "set_minimum_deposit":
        return vault.set_minimum_deposit(caller, parse_amount(step["value"]))
    if op == "set_min_lock_amount":
        return vault.set_min_lock_amount(caller, parse_amount(step["value"]))
    if op == "delegate":
        return vault.delegate(step["account"], step["delegatee"])
    if op == "advance":
        return system.chain.advance(parse_duration(step))
    raise ValueError(f"unknown op {op!r}")


def run_scenario(scenario: Scenario, *, continue_on_error: bool = False, progress: bool = True) -> ScenarioResult:
    """
    Replay a scenario on a fresh deployment.

    A reverted step is recorded and, unless `continue_on_error`, ends the replay.
    State is never partially applied: each step commits fully or not at all.
    """
    system = build_system(
        scenario.config,
        deployer=scenario.deployer,
        balances=scenario.balances,
        gated=scenario.gated,
        timestamp=scenario.start_time,
    )
    result = ScenarioResult(system=system)

    with tqdm(
        scenario.steps, desc="▶️  Replaying steps", unit="step", file=sys.stderr, disable=not progress
    ) as pbar:
        for index, step in enumerate(pbar):
            op = step["op"]
            pbar.set_postfix(op=op)
            try:
                with system.chain.atomic():
                    value = apply_step(system, step)
            except Revert as ex:
                result.steps.append(StepResult(index=index, op=op, ok=False, error=ex))
                tqdm.write(f"⚠️  steps[{index}] ({op}) reverted: {ex}", file=sys.stderr)
                if not continue_on_error:
                    break
                continue
            result.steps.append(StepResult(index=index, op=op, ok=True, value=value))

    return result
