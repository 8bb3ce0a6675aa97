"""Duration to multiplier curves.

A curve maps a lock duration (seconds) in `[min_duration, max_duration]` to a
WAD-scaled multiplier between 1x and `1x + max_bonus`.
"""

from collections.abc import Sequence

from shares_timelock.constants import (
    CURVE_LINEAR,
    CURVE_MONTHLY,
    ERR_BAD_CURVE,
    ERR_MIN_GE_MAX,
    ERR_OOB,
    MONTHLY_BONUS_CURVE,
    MONTHLY_CURVE_FIRST_MONTH,
    SECONDS_PER_MONTH,
    WAD,
)
from shares_timelock.errors import ValidationError
from shares_timelock.models import VaultConfig


class LinearCurve:
    def __init__(self, min_duration: int, max_duration: int, max_bonus: int):
        if min_duration >= max_duration:
            raise ValidationError(ERR_MIN_GE_MAX, f"{min_duration} >= {max_duration}")
        self.min_duration = min_duration
        self.max_duration = max_duration
        self.max_bonus = max_bonus

    def check_bounds(self, duration: int) -> None:
        if duration < self.min_duration or duration > self.max_duration:
            raise ValidationError(ERR_OOB, f"duration {duration} not in [{self.min_duration}, {self.max_duration}]")

    def multiplier(self, duration: int) -> int:
        self.check_bounds(duration)
        span = self.max_duration - self.min_duration
        return WAD + self.max_bonus * (duration - self.min_duration) // span


class MonthlyTableCurve(LinearCurve):
    """Convex curve read from a table of bonus fractions, one per whole month.

    `table[i]` is the WAD fraction of `max_bonus` earned by a lock whose
    duration falls in month bucket `first_month + i`. Partial months round down.
    """

    def __init__(
        self,
        min_duration: int,
        max_duration: int,
        max_bonus: int,
        table: Sequence[int] = MONTHLY_BONUS_CURVE,
        *,
        first_month: int = MONTHLY_CURVE_FIRST_MONTH,
    ):
        super().__init__(min_duration, max_duration, max_bonus)
        table = tuple(table)
        if not table or table[0] != 0 or table[-1] != WAD:
            raise ValidationError(ERR_BAD_CURVE, "table must run from 0 to WAD")
        if any(b < a for a, b in zip(table, table[1:])):
            raise ValidationError(ERR_BAD_CURVE, "table must be non-decreasing")
        last_month = first_month + len(table) - 1
        if (
            min_duration != first_month * SECONDS_PER_MONTH
            or max_duration != last_month * SECONDS_PER_MONTH
        ):
            raise ValidationError(
                ERR_BAD_CURVE,
                f"bounds must be months {first_month}..{last_month} "
                f"({first_month * SECONDS_PER_MONTH}..{last_month * SECONDS_PER_MONTH}s)",
            )
        self.table = table
        self.first_month = first_month

    def multiplier(self, duration: int) -> int:
        self.check_bounds(duration)
        fraction = self.table[duration // SECONDS_PER_MONTH - self.first_month]
        return WAD + self.max_bonus * fraction // WAD


def build_curve(config: VaultConfig) -> LinearCurve:
    if config.curve == CURVE_LINEAR:
        return LinearCurve(config.min_lock_duration, config.max_lock_duration, config.max_bonus)
    if config.curve == CURVE_MONTHLY:
        return MonthlyTableCurve(config.min_lock_duration, config.max_lock_duration, config.max_bonus)
    raise ValidationError(ERR_BAD_CURVE, f"unknown curve {config.curve!r}")
