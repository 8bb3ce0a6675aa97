"""Lock aggregation across a vault."""

from shares_timelock.models import LockAggregates, LockStatus
from shares_timelock.vault import SharesTimeLock


def compute_lock_aggregates(vault: SharesTimeLock) -> LockAggregates:
    """Count locks by state and sum what is still locked."""
    locks_active = 0
    locks_expired = 0
    locks_consumed = 0
    total_locked = 0

    for _, lock, status in vault.all_locks():
        if status is not LockStatus.ACTIVE:
            locks_consumed += 1
            continue
        total_locked += lock.amount
        if lock.is_expired(vault.now):
            locks_expired += 1
        else:
            locks_active += 1

    return LockAggregates(
        locks_total=vault.get_locks_length(),
        locks_active=locks_active,
        locks_expired=locks_expired,
        locks_consumed=locks_consumed,
        total_locked=total_locked,
        total_shares=vault.ledger.total_supply(),
        pending_fees=vault.pending_fees,
        emergency_unlocked=vault.emergency_unlocked,
    )
