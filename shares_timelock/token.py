"""Fungible deposit/payout asset with vote delegation.

Only what the vault, ledger and delegation modules need from an ERC20Votes-like
token: balances, allowances, transfers and a delegate per holder whose voting
weight tracks the holder's balance.
"""

from shares_timelock.constants import (
    DEFAULT_TOKEN_DECIMALS,
    ERR_INSUFFICIENT_ALLOWANCE,
    ERR_NOT_TOKEN_OWNER,
    ERR_TRANSFER_EXCEEDS_BALANCE,
    ERR_ZERO_ADDRESS,
    ZERO_ADDRESS,
)
from shares_timelock.errors import AuthorizationError, StateError, ValidationError
from shares_timelock.formatters import normalize_address, require_amount
from shares_timelock.runtime import Chain, Contract, transaction


class VotingToken(Contract):
    _state_fields = ("balances", "allowances", "total_supply", "delegates", "votes")

    def __init__(
        self,
        chain: Chain,
        name: str,
        symbol: str,
        *,
        owner: str,
        decimals: int = DEFAULT_TOKEN_DECIMALS,
        address: str | None = None,
    ):
        super().__init__(chain, address=address, label=f"token:{symbol}")
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.owner = normalize_address(owner)
        self.balances: dict[str, int] = {}
        self.allowances: dict[tuple[str, str], int] = {}
        self.total_supply = 0
        self.delegates: dict[str, str] = {}
        self.votes: dict[str, int] = {}

    # -- reads -------------------------------------------------------------

    def balance_of(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def delegates_of(self, account: str) -> str:
        return self.delegates.get(normalize_address(account), ZERO_ADDRESS)

    def get_votes(self, account: str) -> int:
        return self.votes.get(normalize_address(account), 0)

    # -- writes ------------------------------------------------------------

    @transaction
    def mint(self, caller: str, to: str, amount: int) -> None:
        if normalize_address(caller) != self.owner:
            raise AuthorizationError(ERR_NOT_TOKEN_OWNER, caller)
        to = normalize_address(to)
        if to == ZERO_ADDRESS:
            raise ValidationError(ERR_ZERO_ADDRESS, "mint to the zero address")
        require_amount(amount)
        self.total_supply += amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self._move_votes(ZERO_ADDRESS, self.delegates_of(to), amount)
        self.emit("Transfer", sender=ZERO_ADDRESS, recipient=to, value=amount)

    @transaction
    def transfer(self, caller: str, to: str, amount: int) -> bool:
        self._transfer(normalize_address(caller), normalize_address(to), require_amount(amount))
        return True

    @transaction
    def approve(self, caller: str, spender: str, amount: int) -> bool:
        owner = normalize_address(caller)
        spender = normalize_address(spender)
        self.allowances[(owner, spender)] = require_amount(amount)
        self.emit("Approval", owner=owner, spender=spender, value=amount)
        return True

    @transaction
    def transfer_from(self, caller: str, owner: str, to: str, amount: int) -> bool:
        spender = normalize_address(caller)
        owner = normalize_address(owner)
        require_amount(amount)
        allowed = self.allowances.get((owner, spender), 0)
        if allowed < amount:
            raise StateError(ERR_INSUFFICIENT_ALLOWANCE, f"{allowed} < {amount}")
        self.allowances[(owner, spender)] = allowed - amount
        self._transfer(owner, normalize_address(to), amount)
        return True

    @transaction
    def delegate(self, caller: str, delegatee: str) -> None:
        delegator = normalize_address(caller)
        delegatee = normalize_address(delegatee)
        previous = self.delegates_of(delegator)
        self.delegates[delegator] = delegatee
        self.emit("DelegateChanged", delegator=delegator, from_delegate=previous, to_delegate=delegatee)
        self._move_votes(previous, delegatee, self.balances.get(delegator, 0))

    # -- internals ---------------------------------------------------------

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        if recipient == ZERO_ADDRESS:
            raise ValidationError(ERR_ZERO_ADDRESS, "transfer to the zero address")
        balance = self.balances.get(sender, 0)
        if balance < amount:
            raise StateError(ERR_TRANSFER_EXCEEDS_BALANCE, f"{sender}: {balance} < {amount}")
        self.balances[sender] = balance - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self.emit("Transfer", sender=sender, recipient=recipient, value=amount)
        self._move_votes(self.delegates_of(sender), self.delegates_of(recipient), amount)

    def _move_votes(self, source: str, destination: str, amount: int) -> None:
        if source == destination or amount == 0:
            return
        if source != ZERO_ADDRESS:
            old = self.votes.get(source, 0)
            self.votes[source] = old - amount
            self.emit("DelegateVotesChanged", delegate=source, previous_votes=old, new_votes=old - amount)
        if destination != ZERO_ADDRESS:
            old = self.votes.get(destination, 0)
            self.votes[destination] = old + amount
            self.emit("DelegateVotesChanged", delegate=destination, previous_votes=old, new_votes=old + amount)
