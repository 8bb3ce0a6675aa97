import pytest
from web3 import Web3

from shares_timelock.constants import SECONDS_PER_DAY, WAD
from shares_timelock.ledger import NonTransferableRewardsLedger, RewardsLedger
from shares_timelock.models import VaultConfig
from shares_timelock.participation import hash_pair, participation_leaf
from shares_timelock.runtime import Chain
from shares_timelock.scenario import System, build_system
from shares_timelock.token import VotingToken

T0 = 1_700_000_000


def account(n: int) -> str:
    return Web3.to_checksum_address("0x" + f"{n:02x}" * 20)


DEPLOYER = account(0xD0)
ALICE = account(0xA1)
BOB = account(0xB0)
CAROL = account(0xC0)
MALLORY = account(0xEE)


def build_participation_tree(entries: list[tuple[str, int]]) -> tuple[str, list[list[str]]]:
    """Sorted-pair Merkle tree over participation leaves. Returns (root, proof per entry)."""
    layers = [[participation_leaf(address, flag) for address, flag in entries]]
    while len(layers[-1]) > 1:
        prev = layers[-1]
        layers.append(
            [hash_pair(prev[i], prev[i + 1]) if i + 1 < len(prev) else prev[i] for i in range(0, len(prev), 2)]
        )
    proofs = []
    for index in range(len(entries)):
        proof, i = [], index
        for layer in layers[:-1]:
            if i ^ 1 < len(layer):
                proof.append(layer[i ^ 1])
            i //= 2
        proofs.append(proof)
    return layers[-1][0], proofs


def fund_and_distribute(ledger: RewardsLedger, token: VotingToken, amount: int) -> None:
    """Mint `amount` of payout asset to the deployer and distribute it on `ledger`."""
    token.mint(DEPLOYER, DEPLOYER, amount)
    token.approve(DEPLOYER, ledger.address, amount)
    ledger.distribute(DEPLOYER, amount)


@pytest.fixture
def chain() -> Chain:
    return Chain(timestamp=T0)


@pytest.fixture
def token(chain: Chain) -> VotingToken:
    return VotingToken(chain, "Test", "TST", owner=DEPLOYER)


@pytest.fixture
def ledger(chain: Chain, token: VotingToken) -> NonTransferableRewardsLedger:
    return NonTransferableRewardsLedger(chain, token, minter=DEPLOYER, maintainer=DEPLOYER)


@pytest.fixture
def plain_ledger(chain: Chain, token: VotingToken) -> RewardsLedger:
    return RewardsLedger(chain, token, minter=DEPLOYER)


@pytest.fixture
def days_config() -> VaultConfig:
    """30..90 day locks, up to 2x, 20% maximum early-exit fee."""
    return VaultConfig(
        min_lock_duration=30 * SECONDS_PER_DAY,
        max_lock_duration=90 * SECONDS_PER_DAY,
        max_bonus=WAD,
        min_fee=0,
        base_fee=2 * 10**17,
    )


@pytest.fixture
def system(days_config: VaultConfig) -> System:
    return build_system(days_config, deployer=DEPLOYER, balances={ALICE: 10 * WAD, BOB: 10 * WAD}, timestamp=T0)


def approve_and_deposit(system: System, owner: str, amount: int, duration: int, receiver: str | None = None) -> int:
    system.token.approve(owner, system.vault.address, amount)
    return system.vault.deposit(owner, amount, duration, receiver or owner)
