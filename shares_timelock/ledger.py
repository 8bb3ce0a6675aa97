"""Points-based proportional reward accounting.

Each distribution bumps a single global accumulator, `points_per_share`, by
`amount * POINTS_MULTIPLIER / total_shares`. An account's cumulative rewards are

    (points_per_share * balance + points_correction) // POINTS_MULTIPLIER

where `points_correction` absorbs every balance change so that the accumulator's
history before the change neither credits nor debits the account. All
operations are O(1) per account; there is no iteration over holders.

Rounding dust (`amount * M % total_shares`) stays in the ledger's payout
balance and is never attributed to anyone.
"""

from collections.abc import Sequence

from shares_timelock.constants import (
    ERR_BURN_EXCEEDS_BALANCE,
    ERR_INVALID_PROOF,
    ERR_LENGTH_MISMATCH,
    ERR_NO_SHARES,
    ERR_NOT_MINTER,
    ERR_OVERFLOW,
    ERR_PARTICIPATION_REQUIRED,
    ERR_ROOT_NOT_SET,
    ERR_TRANSFER_EXCEEDS_BALANCE,
    ERR_TRANSFER_NOT_SUPPORTED,
    ERR_ZERO_ADDRESS,
    MAX_INT256,
    MAX_UINT256,
    MIN_INT256,
    PARTICIPATION_INACTIVE,
    PARTICIPATION_YES,
    POINTS_MULTIPLIER,
    ZERO_ADDRESS,
)
from shares_timelock.errors import ArithmeticRevert, AuthorizationError, StateError, ValidationError
from shares_timelock.formatters import normalize_address, normalize_hash, require_amount
from shares_timelock.participation import ParticipationGate
from shares_timelock.runtime import Chain, Contract, transaction
from shares_timelock.token import VotingToken


def _checked_uint256(value: int) -> int:
    if value < 0 or value > MAX_UINT256:
        raise ArithmeticRevert(ERR_OVERFLOW, f"uint256 out of range: {value}")
    return value


def _checked_int256(value: int) -> int:
    if value < MIN_INT256 or value > MAX_INT256:
        raise ArithmeticRevert(ERR_OVERFLOW, f"int256 out of range: {value}")
    return value


class RewardsLedger(Contract):
    """Reward-bearing shares paying out in `payout_token`.

    Only `minter` may mint and burn. Shares are transferable in this variant;
    transfers move the correction so accrued rewards stay with the sender.
    """

    _state_fields = (
        "balances",
        "total_shares",
        "points_per_share",
        "points_correction",
        "withdrawn_rewards",
        "minter",
    )

    def __init__(
        self,
        chain: Chain,
        payout_token: VotingToken,
        *,
        minter: str,
        name: str = "Reward Shares",
        symbol: str = "rSHR",
        address: str | None = None,
    ):
        super().__init__(chain, address=address, label=f"ledger:{symbol}")
        self.payout_token = payout_token
        self.name = name
        self.symbol = symbol
        self.minter = normalize_address(minter)
        self.balances: dict[str, int] = {}
        self.total_shares = 0
        self.points_per_share = 0
        self.points_correction: dict[str, int] = {}
        self.withdrawn_rewards: dict[str, int] = {}

    # -- reads -------------------------------------------------------------

    def balance_of(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    def total_supply(self) -> int:
        return self.total_shares

    def get_points_correction(self, account: str) -> int:
        return self.points_correction.get(normalize_address(account), 0)

    def cumulative_rewards_of(self, account: str) -> int:
        account = normalize_address(account)
        points = _checked_uint256(self.points_per_share * self.balances.get(account, 0))
        corrected = _checked_int256(points + self.points_correction.get(account, 0))
        if corrected < 0:
            raise ArithmeticRevert(ERR_OVERFLOW, f"negative cumulative rewards for {account}")
        return corrected // POINTS_MULTIPLIER

    def withdrawn_rewards_of(self, account: str) -> int:
        return self.withdrawn_rewards.get(normalize_address(account), 0)

    def withdrawable_rewards_of(self, account: str) -> int:
        return self.cumulative_rewards_of(account) - self.withdrawn_rewards_of(account)

    # -- minter-gated supply -----------------------------------------------

    def _require_minter(self, caller: str) -> None:
        caller = normalize_address(caller)
        if caller != self.minter:
            raise AuthorizationError(ERR_NOT_MINTER, caller)

    @transaction
    def transfer_minter(self, caller: str, new_minter: str) -> None:
        self._require_minter(caller)
        previous, self.minter = self.minter, normalize_address(new_minter)
        self.emit("MinterTransferred", previous_minter=previous, new_minter=self.minter)

    @transaction
    def mint(self, caller: str, account: str, amount: int) -> None:
        self._require_minter(caller)
        self._mint(normalize_address(account), require_amount(amount))

    @transaction
    def burn(self, caller: str, account: str, amount: int) -> None:
        self._require_minter(caller)
        self._burn(normalize_address(account), require_amount(amount))

    @transaction
    def transfer(self, caller: str, to: str, amount: int) -> bool:
        self._transfer(normalize_address(caller), normalize_address(to), require_amount(amount))
        return True

    # -- distribution ------------------------------------------------------

    @transaction
    def distribute(self, caller: str, amount: int) -> None:
        """Pull `amount` of payout asset from `caller` and spread it over all shares."""
        caller = normalize_address(caller)
        require_amount(amount)
        if self.total_shares == 0:
            raise ArithmeticRevert(ERR_NO_SHARES, "distribute with zero total shares")
        if amount == 0:
            return
        self.payout_token.transfer_from(self.address, caller, self.address, amount)
        self._distribute(caller, amount)

    @transaction
    def collect(self, caller: str) -> int:
        """Pay the caller everything withdrawable. Zero owed is a no-op."""
        account = normalize_address(caller)
        amount = self._prepare_collect(account)
        if amount > 0:
            self.emit("RewardsWithdrawn", account=account, amount=amount)
            self.payout_token.transfer(self.address, account, amount)
        return amount

    # -- internals ---------------------------------------------------------

    def _mint(self, account: str, amount: int) -> None:
        if account == ZERO_ADDRESS:
            raise ValidationError(ERR_ZERO_ADDRESS, "mint to the zero address")
        self.balances[account] = self.balances.get(account, 0) + amount
        self.total_shares = _checked_uint256(self.total_shares + amount)
        correction = self.points_correction.get(account, 0) - _checked_uint256(self.points_per_share * amount)
        self.points_correction[account] = _checked_int256(correction)
        self.emit("Transfer", sender=ZERO_ADDRESS, recipient=account, value=amount)

    def _burn(self, account: str, amount: int) -> None:
        balance = self.balances.get(account, 0)
        if balance < amount:
            raise StateError(ERR_BURN_EXCEEDS_BALANCE, f"{account}: {balance} < {amount}")
        self.balances[account] = balance - amount
        self.total_shares -= amount
        correction = self.points_correction.get(account, 0) + _checked_uint256(self.points_per_share * amount)
        self.points_correction[account] = _checked_int256(correction)
        self.emit("Transfer", sender=account, recipient=ZERO_ADDRESS, value=amount)

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        if recipient == ZERO_ADDRESS:
            raise ValidationError(ERR_ZERO_ADDRESS, "transfer to the zero address")
        balance = self.balances.get(sender, 0)
        if balance < amount:
            raise StateError(ERR_TRANSFER_EXCEEDS_BALANCE, f"{sender}: {balance} < {amount}")
        self.balances[sender] = balance - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        magnitude = _checked_uint256(self.points_per_share * amount)
        self.points_correction[sender] = _checked_int256(self.points_correction.get(sender, 0) + magnitude)
        self.points_correction[recipient] = _checked_int256(self.points_correction.get(recipient, 0) - magnitude)
        self.emit("Transfer", sender=sender, recipient=recipient, value=amount)

    def _distribute(self, by: str, amount: int) -> None:
        if self.total_shares == 0:
            raise ArithmeticRevert(ERR_NO_SHARES, "distribute with zero total shares")
        if amount == 0:
            return
        self.points_per_share = _checked_uint256(
            self.points_per_share + _checked_uint256(amount * POINTS_MULTIPLIER) // self.total_shares
        )
        self.emit("RewardsDistributed", by=by, amount=amount, points_per_share=self.points_per_share)

    def _prepare_collect(self, account: str) -> int:
        """Mark everything withdrawable as withdrawn and return the amount."""
        amount = self.withdrawable_rewards_of(account)
        if amount > 0:
            self.withdrawn_rewards[account] = self.withdrawn_rewards.get(account, 0) + amount
        return amount


class NonTransferableRewardsLedger(RewardsLedger):
    """Locked-stake shares: no transfers, payouts gated by a participation snapshot.

    Holders claim with a proof of `(account, YES)`. The maintainer can claw back
    the unclaimed rewards of accounts proven `(account, INACTIVE)` and spread
    them over every current shareholder.
    """

    _state_fields = RewardsLedger._state_fields + ("gate",)

    def __init__(
        self,
        chain: Chain,
        payout_token: VotingToken,
        *,
        minter: str,
        maintainer: str,
        name: str = "Reward Shares",
        symbol: str = "rSHR",
        address: str | None = None,
    ):
        super().__init__(chain, payout_token, minter=minter, name=name, symbol=symbol, address=address)
        self.gate = ParticipationGate(maintainer)

    @property
    def maintainer(self) -> str:
        return self.gate.maintainer

    @property
    def participation_root(self) -> str | None:
        return self.gate.root

    @transaction
    def transfer(self, caller: str, to: str, amount: int) -> bool:
        raise StateError(ERR_TRANSFER_NOT_SUPPORTED, "shares represent locked stake")

    @transaction
    def collect(self, caller: str) -> int:
        raise StateError(ERR_PARTICIPATION_REQUIRED, "use collect_with_participation")

    @transaction
    def set_participation_root(self, caller: str, root: str) -> None:
        previous = self.gate.root
        self.gate.set_root(caller, root)
        self.emit("ParticipationRootUpdated", previous_root=previous, root=self.gate.root)

    @transaction
    def transfer_maintainer(self, caller: str, new_maintainer: str) -> None:
        previous = self.gate.require_maintainer(caller)
        self.gate.maintainer = normalize_address(new_maintainer)
        self.emit("MaintainerTransferred", previous_maintainer=previous, new_maintainer=self.gate.maintainer)

    def verify_participation(self, account: str, flag: int, proof: Sequence[str]) -> bool:
        return self.gate.verify(account, flag, proof)

    @transaction
    def collect_with_participation(self, caller: str, proof: Sequence[str]) -> int:
        account = normalize_address(caller)
        if not self.gate.verify(account, PARTICIPATION_YES, proof):
            raise StateError(ERR_INVALID_PROOF, f"no active participation proof for {account}")
        amount = self._prepare_collect(account)
        self.emit(
            "ClaimedWithParticipation",
            account=account,
            amount=amount,
            proof=tuple(normalize_hash(p) for p in proof),
        )
        if amount > 0:
            self.payout_token.transfer(self.address, account, amount)
        return amount

    @transaction
    def redistribute(self, caller: str, accounts: Sequence[str], proofs: Sequence[Sequence[str]]) -> int:
        """Claw back rewards of accounts proven inactive. Entries with a bad account or proof are skipped."""
        caller = self.gate.require_maintainer(caller)
        if len(accounts) != len(proofs):
            raise ValidationError(ERR_LENGTH_MISMATCH, f"{len(accounts)} accounts, {len(proofs)} proofs")
        if self.gate.root is None:
            raise StateError(ERR_ROOT_NOT_SET, "participation root not set")

        total = 0
        for raw_account, proof in zip(accounts, proofs):
            try:
                account = normalize_address(raw_account)
            except ValidationError:
                continue
            if not self.gate.verify(account, PARTICIPATION_INACTIVE, proof):
                continue
            amount = self._prepare_collect(account)
            self._distribute(caller, amount)
            self.emit("RewardsRedistributed", account=account, amount=amount)
            total += amount
        return total
