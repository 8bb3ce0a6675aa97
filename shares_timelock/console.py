"""Console output formatting."""

from collections.abc import Iterable
from typing import Any

from shares_timelock.formatters import (
    format_amount,
    format_duration,
    format_fee_fraction,
    format_multiplier,
    short_address,
)
from shares_timelock.models import LockAggregates, LockStatus
from shares_timelock.runtime import Event
from shares_timelock.scenario import ScenarioResult, System

STATUS_EMOJI = {
    LockStatus.ACTIVE: "🔒",
    LockStatus.WITHDRAWN: "📤",
    LockStatus.EJECTED: "⏏️ ",
    LockStatus.BOOSTED: "🚀",
}


def known_accounts(system: System) -> list[str]:
    """Every account that holds tokens, shares, or owns a lock."""
    accounts = set(system.token.balances) | set(system.ledger.balances)
    accounts |= {lock.owner for _, lock, _ in system.vault.all_locks() if lock.exists}
    contracts = set(system.chain.contracts)
    return sorted(a for a in accounts if a not in contracts)


def print_config(system: System) -> None:
    cfg = system.vault.config
    print("⚙️  Vault configuration")
    print(f"   Lock range:   {format_duration(cfg.min_lock_duration)} .. {format_duration(cfg.max_lock_duration)}")
    print(f"   Curve:        {cfg.curve} (max {format_multiplier(system.vault.get_multiplier(cfg.max_lock_duration))})")
    print(f"   Early exit:   {format_fee_fraction(cfg.min_fee)} + up to {format_fee_fraction(cfg.base_fee)}")
    print(f"   Min deposit:  {format_amount(system.vault.minimum_deposit, symbol=system.token.symbol)}")
    print(f"   Min lock:     {format_amount(system.vault.min_lock_amount, symbol=system.token.symbol)}")


def print_locks(system: System) -> None:
    vault = system.vault
    rows = vault.all_locks()
    print(f"\n📚 Locks ({len(rows)})")
    if not rows:
        print("   (none)")
        return
    for lock_id, lock, status in rows:
        emoji = STATUS_EMOJI[status]
        if not lock.exists:
            print(f"   {emoji} #{lock_id}  {status.value}")
            continue
        state = "expired" if lock.is_expired(vault.now) else f"ends t={lock.end_time}"
        fee = vault.get_early_withdrawal_fee(lock.amount, lock.start_time, lock.duration)
        print(
            f"   {emoji} #{lock_id}  {short_address(lock.owner)}  "
            f"{format_amount(lock.amount, symbol=system.token.symbol)}  "
            f"{format_duration(lock.duration)} ({format_multiplier(vault.get_multiplier(lock.duration))})  "
            f"{state}  exit fee {format_amount(fee)}"
        )


def print_accounts(system: System) -> None:
    print("\n👤 Accounts")
    for account in known_accounts(system):
        data = system.vault.get_staking_data(account)
        print(f"   {account}")
        print(f"      • Wallet:      {format_amount(system.token.balance_of(account), symbol=system.token.symbol)}")
        print(f"      • Locked:      {format_amount(data.locked_balance, symbol=system.token.symbol)}")
        print(f"      • Votes:       {format_amount(data.voting_power)}")
        print(f"      • Shares:      {format_amount(data.shares, symbol=system.ledger.symbol)}")
        print(f"      • Withdrawable {format_amount(data.withdrawable_rewards)} / withdrawn {format_amount(data.withdrawn_rewards)}")
        if data.active_lock_ids:
            print(f"      • Active locks: {', '.join(f'#{i}' for i in data.active_lock_ids)}")


def print_aggregates(aggregates: LockAggregates, *, symbol: str = "") -> None:
    print("\n📊 Totals")
    print(
        f"   Locks: {aggregates.locks_total} total  •  {aggregates.locks_active} active  •  "
        f"{aggregates.locks_expired} expired  •  {aggregates.locks_consumed} closed"
    )
    print(f"   Total locked:  {format_amount(aggregates.total_locked, symbol=symbol)}")
    print(f"   Total shares:  {format_amount(aggregates.total_shares)}")
    print(f"   Pending fees:  {format_amount(aggregates.pending_fees, symbol=symbol)}")
    if aggregates.emergency_unlocked:
        print("   🚨 Emergency unlock is active: deposits halted, exits are fee-free")


def print_staking_report(result: ScenarioResult, aggregates: LockAggregates) -> None:
    system = result.system
    print("=" * 70)
    print("🏦 SHARES TIME-LOCK REPORT")
    print(f"   🕐 t={system.chain.timestamp}  •  {len(result.steps)} steps, {len(result.failed)} reverted")
    print("=" * 70)
    print_config(system)
    print_locks(system)
    print_accounts(system)
    print_aggregates(aggregates, symbol=system.token.symbol)
    print("")


def event_to_json(event: Event) -> dict[str, Any]:
    return {
        "index": event.index,
        "timestamp": event.timestamp,
        "contract": event.contract,
        "event": event.name,
        "args": {k: list(v) if isinstance(v, tuple) else v for k, v in event.args.items()},
    }


def print_event_log(events: Iterable[Event]) -> None:
    for event in events:
        args = ", ".join(f"{k}={v}" for k, v in event.args.items())
        print(f"#{event.index:<4} t={event.timestamp:<10} {short_address(event.contract)} {event.name}({args})")
