"""In-process execution substrate: clock, event log, contract registry and atomic transactions.

Contracts keep their durable state in the attributes listed in `_state_fields`.
A public mutating method wrapped with `@transaction` runs inside `Chain.atomic()`:
if it raises, every registered contract's state, the registry and the event log
are restored to what they were before the call.
"""

import copy
import functools
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from web3 import Web3

from shares_timelock.constants import ERR_CLOCK_BACKWARDS, ERR_REENTRANCY
from shares_timelock.errors import StateError, ValidationError

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class Event:
    """A structured record emitted by a state-changing operation."""

    index: int
    timestamp: int
    contract: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)


class Chain:
    """Shared clock, event log and contract registry."""

    def __init__(self, *, timestamp: int = 0):
        self.timestamp = int(timestamp)
        self.events: list[Event] = []
        self.contracts: dict[str, "Contract"] = {}
        self._deploy_nonce = 0
        self._depth = 0

    # -- clock -------------------------------------------------------------

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValidationError(ERR_CLOCK_BACKWARDS, f"advance({seconds})")
        self.timestamp += int(seconds)
        return self.timestamp

    def set_timestamp(self, timestamp: int) -> int:
        if timestamp < self.timestamp:
            raise ValidationError(ERR_CLOCK_BACKWARDS, f"{timestamp} < {self.timestamp}")
        self.timestamp = int(timestamp)
        return self.timestamp

    # -- registry ----------------------------------------------------------

    def allocate_address(self, label: str) -> str:
        """Deterministic address for the next deployed contract."""
        self._deploy_nonce += 1
        digest = Web3.keccak(text=f"{label}:{self._deploy_nonce}")
        return Web3.to_checksum_address(digest[12:])

    def register(self, contract: "Contract") -> None:
        if contract.address in self.contracts:
            raise StateError("ADDRESS_IN_USE", contract.address)
        self.contracts[contract.address] = contract

    def is_deployed(self, address: str) -> bool:
        return address in self.contracts

    # -- events ------------------------------------------------------------

    def emit(self, contract: str, name: str, **args: Any) -> Event:
        event = Event(index=len(self.events), timestamp=self.timestamp, contract=contract, name=name, args=args)
        self.events.append(event)
        return event

    def events_named(self, name: str, *, contract: str | None = None) -> list[Event]:
        return [e for e in self.events if e.name == name and (contract is None or e.contract == contract)]

    # -- transactions ------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """All-or-nothing scope. Nested scopes join the outermost one.

        The outermost scope deep-copies the `_state_fields` of every registered
        contract up front, so its cost grows with the total state on the chain
        (accounts, locks, modules), not with what the call touches.
        """
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        registry = dict(self.contracts)
        states = {address: c.snapshot_state() for address, c in registry.items()}
        events_len = len(self.events)
        deploy_nonce = self._deploy_nonce
        self._depth = 1
        try:
            yield
        except BaseException:
            self.contracts = registry
            self._deploy_nonce = deploy_nonce
            for address, state in states.items():
                registry[address].restore_state(state)
            del self.events[events_len:]
            raise
        finally:
            self._depth = 0


class Contract:
    """Base class for anything that lives at an address on a `Chain`."""

    _state_fields: tuple[str, ...] = ()

    def __init__(self, chain: Chain, *, address: str | None = None, label: str | None = None):
        self.chain = chain
        self.address = (
            Web3.to_checksum_address(address)
            if address is not None
            else chain.allocate_address(label or type(self).__name__)
        )
        self._entered = False
        chain.register(self)

    @property
    def now(self) -> int:
        return self.chain.timestamp

    def emit(self, name: str, **args: Any) -> Event:
        return self.chain.emit(self.address, name, **args)

    def snapshot_state(self) -> dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._state_fields}

    def restore_state(self, state: dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)


def transaction(method: F) -> F:
    """Run a public contract method atomically, guarded against re-entry."""

    @functools.wraps(method)
    def wrapper(self: Contract, *args: Any, **kwargs: Any) -> Any:
        if self._entered:
            raise StateError(ERR_REENTRANCY, f"{type(self).__name__}.{method.__name__}")
        self._entered = True
        try:
            with self.chain.atomic():
                return method(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper  # type: ignore[return-value]
