"""Time-locked staking vault.

Depositors lock the deposit asset for a duration in `[min, max]` and receive
reward shares on the ledger scaled by the duration multiplier. Locked funds
live in the depositor's own delegation module, not in the vault. Exiting
before the lock ends costs a fee that decays linearly to zero over the lock;
collected fees are later folded into the ledger as rewards.
"""

from collections.abc import Iterable

from shares_timelock.constants import (
    ERR_ALREADY_UNLOCKED,
    ERR_BELOW_MIN_DEPOSIT,
    ERR_BELOW_MIN_LOCK,
    ERR_DEPOSITS_HALTED,
    ERR_FEE_ASSET,
    ERR_LOCK_NOT_FOUND,
    ERR_NO_FEES,
    ERR_NO_SHARES,
    ERR_NOT_LOCK_OWNER,
    ERR_NOT_MAINTAINER,
    ERR_ZERO_AMOUNT,
    SECONDS_PER_MONTH,
    WAD,
)
from shares_timelock.curves import build_curve
from shares_timelock.delegation import DelegationModuleFactory
from shares_timelock.errors import ArithmeticRevert, AuthorizationError, StateError, ValidationError
from shares_timelock.formatters import normalize_address, require_amount
from shares_timelock.ledger import RewardsLedger
from shares_timelock.models import ZERO_LOCK, Lock, LockStatus, StakingData, VaultConfig
from shares_timelock.runtime import Chain, Contract, transaction
from shares_timelock.token import VotingToken


class SharesTimeLock(Contract):
    _state_fields = (
        "_locks",
        "_statuses",
        "pending_fees",
        "emergency_unlocked",
        "minimum_deposit",
        "min_lock_amount",
        "maintainer",
    )

    def __init__(
        self,
        chain: Chain,
        deposit_token: VotingToken,
        ledger: RewardsLedger,
        *,
        maintainer: str,
        config: VaultConfig | None = None,
        address: str | None = None,
    ):
        super().__init__(chain, address=address, label="vault")
        self.config = config or VaultConfig()
        self.curve = build_curve(self.config)
        self.deposit_token = deposit_token
        self.ledger = ledger
        self.delegation = DelegationModuleFactory(chain, deposit_token, vault=self.address)
        self.maintainer = normalize_address(maintainer)
        self.minimum_deposit = self.config.minimum_deposit
        self.min_lock_amount = self.config.min_lock_amount
        self.pending_fees = 0
        self.emergency_unlocked = False
        self._locks: list[Lock] = []
        self._statuses: list[LockStatus] = []

    @property
    def min_lock_duration(self) -> int:
        return self.config.min_lock_duration

    @property
    def max_lock_duration(self) -> int:
        return self.config.max_lock_duration

    # -- reads -------------------------------------------------------------

    def get_multiplier(self, duration: int) -> int:
        return self.curve.multiplier(duration)

    def locks(self, lock_id: int) -> Lock:
        return self._locks[self._check_lock_id(lock_id)]

    def get_locks_length(self) -> int:
        return len(self._locks)

    def lock_status(self, lock_id: int) -> LockStatus:
        return self._statuses[self._check_lock_id(lock_id)]

    def all_locks(self) -> list[tuple[int, Lock, LockStatus]]:
        return [(i, lock, status) for i, (lock, status) in enumerate(zip(self._locks, self._statuses))]

    def compute_module_address(self, account: str) -> str:
        return self.delegation.compute_module_address(account)

    def shares_for(self, amount: int, duration: int) -> int:
        """Shares minted for locking `amount` for `duration`."""
        return amount * self.get_multiplier(duration) // WAD

    def get_early_withdrawal_fee(self, amount: int, start_time: int, duration: int) -> int:
        """Fee charged if a lock with these terms were withdrawn now."""
        if self.emergency_unlocked:
            return 0
        elapsed = self.now - start_time
        if elapsed >= duration:
            return 0
        remaining = duration - elapsed
        return amount * self.config.min_fee // WAD + amount * self.config.base_fee * remaining // (duration * WAD)

    def get_staking_data(self, account: str) -> StakingData:
        account = normalize_address(account)
        module = self.compute_module_address(account)
        return StakingData(
            account=account,
            module=module,
            module_deployed=self.delegation.module_for(account) is not None,
            locked_balance=self.deposit_token.balance_of(module),
            voting_power=self.deposit_token.get_votes(account),
            delegatee=self.deposit_token.delegates_of(module),
            shares=self.ledger.balance_of(account),
            withdrawable_rewards=self.ledger.withdrawable_rewards_of(account),
            withdrawn_rewards=self.ledger.withdrawn_rewards_of(account),
            active_lock_ids=tuple(i for i, lock in enumerate(self._locks) if lock.exists and lock.owner == account),
        )

    # -- depositor operations ----------------------------------------------

    @transaction
    def deposit(self, caller: str, amount: int, duration: int, receiver: str) -> int:
        """Lock `amount` for `duration` seconds and mint shares to `receiver`. Returns the lock id."""
        return self._deposit(caller, amount, duration, receiver)

    @transaction
    def deposit_by_months(self, caller: str, amount: int, months: int, receiver: str) -> int:
        require_amount(months)
        return self._deposit(caller, amount, months * SECONDS_PER_MONTH, receiver)

    def _deposit(self, caller: str, amount: int, duration: int, receiver: str) -> int:
        caller = normalize_address(caller)
        receiver = normalize_address(receiver)
        require_amount(amount)
        require_amount(duration)
        if amount == 0:
            raise ValidationError(ERR_ZERO_AMOUNT, "deposit of zero")
        if amount < self.minimum_deposit:
            raise ValidationError(ERR_BELOW_MIN_DEPOSIT, f"{amount} < {self.minimum_deposit}")
        if amount < self.min_lock_amount:
            raise ValidationError(ERR_BELOW_MIN_LOCK, f"{amount} < {self.min_lock_amount}")
        multiplier = self.get_multiplier(duration)
        if self.emergency_unlocked:
            raise StateError(ERR_DEPOSITS_HALTED, "emergency unlock is active")

        self.delegation.deposit_to_module(self.address, caller, amount)
        shares = amount * multiplier // WAD
        self.ledger.mint(self.address, receiver, shares)

        lock_id = self._append_lock(Lock(amount=amount, start_time=self.now, duration=duration, owner=caller))
        self.emit(
            "Deposited",
            lock_id=lock_id,
            owner=caller,
            receiver=receiver,
            amount=amount,
            duration=duration,
            shares=shares,
        )
        return lock_id

    @transaction
    def withdraw(self, caller: str, lock_id: int) -> int:
        """Close a lock. Returns the amount paid out to the owner."""
        caller = normalize_address(caller)
        lock = self._existing_lock(lock_id)
        if caller != lock.owner:
            raise AuthorizationError(ERR_NOT_LOCK_OWNER, f"lock {lock_id} belongs to {lock.owner}")
        fee = self.get_early_withdrawal_fee(lock.amount, lock.start_time, lock.duration)
        shares = self._release(lock_id, lock, LockStatus.WITHDRAWN, fee)
        self.emit(
            "Withdrawn",
            lock_id=lock_id,
            owner=lock.owner,
            amount=lock.amount,
            fee=fee,
            shares_burned=shares,
        )
        return lock.amount - fee

    @transaction
    def boost_to_max(self, caller: str, lock_id: int) -> int:
        """Re-lock at the maximum duration, minting the extra shares. Returns the new lock id."""
        caller = normalize_address(caller)
        lock = self._existing_lock(lock_id)
        if caller != lock.owner:
            raise AuthorizationError(ERR_NOT_LOCK_OWNER, f"lock {lock_id} belongs to {lock.owner}")
        if self.emergency_unlocked:
            raise StateError(ERR_DEPOSITS_HALTED, "emergency unlock is active")

        max_duration = self.config.max_lock_duration
        minted = self.shares_for(lock.amount, max_duration) - self.shares_for(lock.amount, lock.duration)
        self._locks[lock_id] = ZERO_LOCK
        self._statuses[lock_id] = LockStatus.BOOSTED
        if minted > 0:
            self.ledger.mint(self.address, lock.owner, minted)

        new_lock_id = self._append_lock(
            Lock(amount=lock.amount, start_time=self.now, duration=max_duration, owner=lock.owner)
        )
        self.emit(
            "BoostedToMax",
            old_lock_id=lock_id,
            new_lock_id=new_lock_id,
            owner=lock.owner,
            amount=lock.amount,
            shares_minted=minted,
        )
        return new_lock_id

    @transaction
    def delegate(self, caller: str, delegatee: str) -> None:
        """Point the votes of the caller's locked deposits at `delegatee`."""
        self.delegation.delegate_from_module(self.address, caller, delegatee)

    # -- fees --------------------------------------------------------------

    @transaction
    def distribute_fees(self, caller: str) -> int:
        """Hand accumulated early-exit fees to the ledger as rewards."""
        amount = self.pending_fees
        if amount == 0:
            raise StateError(ERR_NO_FEES, "no pending fees")
        if self.ledger.total_supply() == 0:
            raise ArithmeticRevert(ERR_NO_SHARES, "no shares to distribute fees over")
        if self.ledger.payout_token is not self.deposit_token:
            raise StateError(
                ERR_FEE_ASSET,
                f"ledger pays {self.ledger.payout_token.symbol}, fees are in {self.deposit_token.symbol}",
            )
        self.pending_fees = 0
        self.deposit_token.approve(self.address, self.ledger.address, amount)
        self.ledger.distribute(self.address, amount)
        self.emit("FeesDistributed", caller=normalize_address(caller), amount=amount)
        return amount

    # -- maintainer operations ---------------------------------------------

    def _require_maintainer(self, caller: str) -> str:
        caller = normalize_address(caller)
        if caller != self.maintainer:
            raise AuthorizationError(ERR_NOT_MAINTAINER, caller)
        return caller

    @transaction
    def eject(self, caller: str, lock_ids: Iterable[int]) -> list[int]:
        """Close expired locks on their owners' behalf. Ids that don't qualify are skipped."""
        self._require_maintainer(caller)
        ejected: list[int] = []
        for lock_id in lock_ids:
            if not self._is_lock_id(lock_id):
                continue
            lock = self._locks[lock_id]
            if not lock.exists or not lock.is_expired(self.now):
                continue
            # Shares minted to another receiver cannot be burned from the owner.
            if self.ledger.balance_of(lock.owner) < self.shares_for(lock.amount, lock.duration):
                continue
            self._release(lock_id, lock, LockStatus.EJECTED, 0)
            self.emit("Ejected", lock_id=lock_id, amount=lock.amount, owner=lock.owner)
            ejected.append(lock_id)
        return ejected

    @transaction
    def trigger_emergency_unlock(self, caller: str) -> None:
        caller = self._require_maintainer(caller)
        if self.emergency_unlocked:
            raise StateError(ERR_ALREADY_UNLOCKED, "emergency unlock already triggered")
        self.emergency_unlocked = True
        self.emit("EmergencyUnlockTriggered", caller=caller)

    @transaction
    def set_minimum_deposit(self, caller: str, value: int) -> None:
        self._require_maintainer(caller)
        previous, self.minimum_deposit = self.minimum_deposit, require_amount(value)
        self.emit("MinimumDepositChanged", previous=previous, value=value)

    @transaction
    def set_min_lock_amount(self, caller: str, value: int) -> None:
        self._require_maintainer(caller)
        previous, self.min_lock_amount = self.min_lock_amount, require_amount(value)
        self.emit("MinLockAmountChanged", previous=previous, value=value)

    @transaction
    def transfer_maintainer(self, caller: str, new_maintainer: str) -> None:
        previous = self._require_maintainer(caller)
        self.maintainer = normalize_address(new_maintainer)
        self.emit("MaintainerTransferred", previous_maintainer=previous, new_maintainer=self.maintainer)

    # -- internals ---------------------------------------------------------

    def _is_lock_id(self, lock_id) -> bool:
        return isinstance(lock_id, int) and not isinstance(lock_id, bool) and 0 <= lock_id < len(self._locks)

    def _check_lock_id(self, lock_id) -> int:
        if not self._is_lock_id(lock_id):
            raise StateError(ERR_LOCK_NOT_FOUND, f"lock {lock_id!r}")
        return lock_id

    def _existing_lock(self, lock_id) -> Lock:
        lock = self._locks[self._check_lock_id(lock_id)]
        if not lock.exists:
            raise StateError(ERR_LOCK_NOT_FOUND, f"lock {lock_id} already {self._statuses[lock_id].value}")
        return lock

    def _append_lock(self, lock: Lock) -> int:
        self._locks.append(lock)
        self._statuses.append(LockStatus.ACTIVE)
        return len(self._locks) - 1

    def _release(self, lock_id: int, lock: Lock, status: LockStatus, fee: int) -> int:
        """Zero the slot, burn the lock's shares and pay the owner. Returns the shares burned."""
        self._locks[lock_id] = ZERO_LOCK
        self._statuses[lock_id] = status
        shares = self.shares_for(lock.amount, lock.duration)
        self.ledger.burn(self.address, lock.owner, shares)

        if fee == 0:
            self.delegation.withdraw_from_module(self.address, lock.owner, lock.owner, lock.amount)
        else:
            self.delegation.withdraw_from_module(self.address, lock.owner, self.address, lock.amount)
            self.deposit_token.transfer(self.address, lock.owner, lock.amount - fee)
            self.pending_fees += fee
        return shares
