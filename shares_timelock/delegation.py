"""Per-depositor custody units that keep voting delegation individual.

Deposits are pooled by the vault but each depositor's tokens sit in their own
`DelegationModule`, so the depositor keeps control of where those votes go.
Module addresses are derived CREATE2-style from the vault address and the
account, which makes them computable before anything is deployed.
"""

from web3 import Web3

from shares_timelock.constants import (
    ERR_MODULE_NOT_DEPLOYED,
    ERR_NOT_PARENT_VAULT,
    ERR_STF,
    MODULE_INIT_CODE_LABEL,
)
from shares_timelock.errors import AuthorizationError, Revert, StateError
from shares_timelock.formatters import normalize_address, require_amount
from shares_timelock.runtime import Chain, Contract, transaction
from shares_timelock.token import VotingToken


def compute_module_address(vault: str, account: str) -> str:
    """keccak256(0xff ++ vault ++ keccak256(account) ++ init_code_hash)[12:]"""
    salt = Web3.solidity_keccak(["address"], [normalize_address(account)])
    init_code_hash = Web3.keccak(text=MODULE_INIT_CODE_LABEL)
    vault_bytes = bytes.fromhex(normalize_address(vault)[2:])
    digest = Web3.keccak(b"\xff" + vault_bytes + bytes(salt) + bytes(init_code_hash))
    return Web3.to_checksum_address(digest[12:])


class DelegationModule(Contract):
    """Holds one account's deposits; only the parent vault can move them or re-delegate."""

    def __init__(self, chain: Chain, token: VotingToken, *, vault: str, account: str, address: str):
        super().__init__(chain, address=address)
        self.token = token
        self.vault = normalize_address(vault)
        self.account = normalize_address(account)

    def _require_vault(self, caller: str) -> None:
        if normalize_address(caller) != self.vault:
            raise AuthorizationError(ERR_NOT_PARENT_VAULT, caller)

    @transaction
    def delegate(self, caller: str, delegatee: str) -> None:
        self._require_vault(caller)
        self.token.delegate(self.address, delegatee)

    @transaction
    def transfer(self, caller: str, to: str, amount: int) -> None:
        self._require_vault(caller)
        self.token.transfer(self.address, to, amount)


class DelegationModuleFactory(Contract):
    """Registry of delegation modules owned by a single vault.

    Mutating calls must come from that vault.
    """

    _state_fields = ("modules",)

    def __init__(self, chain: Chain, token: VotingToken, *, vault: str):
        super().__init__(chain, label="delegation")
        self.token = token
        self.vault = normalize_address(vault)
        self.modules: dict[str, str] = {}

    def compute_module_address(self, account: str) -> str:
        return compute_module_address(self.vault, account)

    def module_for(self, account: str) -> str | None:
        return self.modules.get(normalize_address(account))

    def _require_vault(self, caller: str) -> None:
        if normalize_address(caller) != self.vault:
            raise AuthorizationError(ERR_NOT_PARENT_VAULT, caller)

    def _deployed_module(self, account: str) -> DelegationModule:
        address = self.modules.get(account)
        if address is None:
            raise StateError(ERR_MODULE_NOT_DEPLOYED, f"{account} -> {self.compute_module_address(account)}")
        return self.chain.contracts[address]

    @transaction
    def get_or_create_module(self, caller: str, account: str) -> str:
        self._require_vault(caller)
        return self._get_or_create(normalize_address(account))

    @transaction
    def deposit_to_module(self, caller: str, account: str, amount: int) -> str:
        """Pull `amount` from `account` (using the vault's allowance) into its module."""
        self._require_vault(caller)
        account = normalize_address(account)
        require_amount(amount)
        module = self._get_or_create(account)
        try:
            self.token.transfer_from(self.vault, account, module, amount)
        except Revert as ex:
            raise StateError(ERR_STF, f"{ex.reason} moving {amount} from {account}") from ex
        return module

    @transaction
    def withdraw_from_module(self, caller: str, account: str, recipient: str, amount: int) -> None:
        self._require_vault(caller)
        module = self._deployed_module(normalize_address(account))
        module.transfer(self.vault, recipient, amount)

    @transaction
    def delegate_from_module(self, caller: str, account: str, delegatee: str) -> None:
        self._require_vault(caller)
        module = self._deployed_module(normalize_address(account))
        module.delegate(self.vault, delegatee)

    def _get_or_create(self, account: str) -> str:
        existing = self.modules.get(account)
        if existing is not None:
            return existing
        module = DelegationModule(
            self.chain,
            self.token,
            vault=self.vault,
            account=account,
            address=self.compute_module_address(account),
        )
        self.modules[account] = module.address
        self.emit("DelegationModuleCreated", account=account, module=module.address)
        module.delegate(self.vault, account)
        return module.address
