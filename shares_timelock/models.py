"""Data models for the shares time-lock vault."""

from dataclasses import dataclass, field
from enum import Enum

from shares_timelock.constants import (
    CURVE_LINEAR,
    DEFAULT_BASE_FEE,
    DEFAULT_MAX_BONUS,
    DEFAULT_MAX_LOCK_DURATION,
    DEFAULT_MIN_FEE,
    DEFAULT_MIN_LOCK_DURATION,
    ERR_BAD_AMOUNT,
    ERR_BAD_CURVE,
    ERR_MAX_FEE,
    ERR_MIN_GE_MAX,
    SUPPORTED_CURVES,
    WAD,
    ZERO_ADDRESS,
)
from shares_timelock.errors import ValidationError


@dataclass(frozen=True)
class Lock:
    """A time-locked deposit. Consumed slots hold the zero lock."""

    amount: int
    start_time: int
    duration: int
    owner: str

    @property
    def exists(self) -> bool:
        return self.amount > 0

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    def is_expired(self, now: int) -> bool:
        return now >= self.end_time


ZERO_LOCK = Lock(amount=0, start_time=0, duration=0, owner=ZERO_ADDRESS)


class LockStatus(str, Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"
    EJECTED = "ejected"
    BOOSTED = "boosted"


@dataclass(frozen=True)
class VaultConfig:
    """Deployment-time parameters of a vault.

    Fees are WAD fractions of the locked amount: an early exit pays
    `min_fee` plus `base_fee` scaled by the share of the lock still remaining.
    """

    min_lock_duration: int = DEFAULT_MIN_LOCK_DURATION
    max_lock_duration: int = DEFAULT_MAX_LOCK_DURATION
    max_bonus: int = DEFAULT_MAX_BONUS
    min_fee: int = DEFAULT_MIN_FEE
    base_fee: int = DEFAULT_BASE_FEE
    minimum_deposit: int = 0
    min_lock_amount: int = 0
    curve: str = CURVE_LINEAR

    def __post_init__(self) -> None:
        for name in ("min_lock_duration", "max_lock_duration", "max_bonus", "min_fee", "base_fee",
                     "minimum_deposit", "min_lock_amount"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(ERR_BAD_AMOUNT, f"{name}={value!r}")
        if self.min_lock_duration >= self.max_lock_duration:
            raise ValidationError(ERR_MIN_GE_MAX, f"{self.min_lock_duration} >= {self.max_lock_duration}")
        if self.min_fee + self.base_fee > WAD:
            raise ValidationError(ERR_MAX_FEE, f"min_fee + base_fee = {self.min_fee + self.base_fee} > {WAD}")
        if self.curve not in SUPPORTED_CURVES:
            raise ValidationError(ERR_BAD_CURVE, f"unknown curve {self.curve!r}")


@dataclass(frozen=True)
class StakingData:
    """Everything the vault knows about one account."""

    account: str
    module: str
    module_deployed: bool
    locked_balance: int
    voting_power: int
    delegatee: str
    shares: int
    withdrawable_rewards: int
    withdrawn_rewards: int
    active_lock_ids: tuple[int, ...]


@dataclass(frozen=True)
class LockAggregates:
    """Aggregated lock metrics across a vault."""

    locks_total: int
    locks_active: int
    locks_expired: int
    locks_consumed: int
    total_locked: int
    total_shares: int
    pending_fees: int
    emergency_unlocked: bool


@dataclass(frozen=True)
class ParticipationEntry:
    address: str
    participation: int
    proof: tuple[str, ...]


@dataclass(frozen=True)
class ProofBundle:
    """Participation proofs published alongside a snapshot root."""

    format: str
    root: str
    entries: tuple[ParticipationEntry, ...] = field(default_factory=tuple)

    def entry_for(self, address: str) -> ParticipationEntry | None:
        for entry in self.entries:
            if entry.address == address:
                return entry
        return None


@dataclass(frozen=True)
class Scenario:
    """A replayable sequence of vault operations against a fresh deployment."""

    config: VaultConfig
    deployer: str
    balances: dict[str, int]
    steps: tuple[dict, ...]
    gated: bool = True
    start_time: int = 0
