"""Merkle participation snapshot verification.

Leaves commit to `(address, participation_flag)` packed the way Solidity's
`abi.encodePacked(address, uint256)` does, hashed with keccak256. Inner nodes
hash the sorted pair of children, so proofs carry no left/right markers
(the OpenZeppelin `MerkleProof` convention).
"""

from collections.abc import Sequence

from web3 import Web3

from shares_timelock.constants import (
    ERR_BAD_FLAG,
    ERR_NOT_MAINTAINER,
    PARTICIPATION_INACTIVE,
    PARTICIPATION_YES,
)
from shares_timelock.errors import AuthorizationError, ValidationError
from shares_timelock.formatters import normalize_address, normalize_hash


def participation_leaf(account: str, flag: int) -> str:
    """Leaf hash for an account's participation flag."""
    if flag not in (PARTICIPATION_INACTIVE, PARTICIPATION_YES):
        raise ValidationError(ERR_BAD_FLAG, repr(flag))
    digest = Web3.solidity_keccak(["address", "uint256"], [normalize_address(account), flag])
    return normalize_hash(digest)


def hash_pair(a: str, b: str) -> str:
    left, right = sorted((bytes.fromhex(normalize_hash(a)[2:]), bytes.fromhex(normalize_hash(b)[2:])))
    return normalize_hash(Web3.keccak(left + right))


def process_proof(leaf: str, proof: Sequence[str]) -> str:
    """Walk `proof` up from `leaf` and return the implied root."""
    computed = normalize_hash(leaf)
    for node in proof:
        computed = hash_pair(computed, node)
    return computed


def verify_proof(proof: Sequence[str], root: str | None, leaf: str) -> bool:
    if root is None:
        return False
    try:
        return process_proof(leaf, proof) == normalize_hash(root)
    except ValidationError:
        # A malformed proof node cannot prove anything.
        return False


class ParticipationGate:
    """Current participation root plus the maintainer allowed to replace it."""

    def __init__(self, maintainer: str):
        self.maintainer = normalize_address(maintainer)
        self.root: str | None = None

    def require_maintainer(self, caller: str) -> str:
        caller = normalize_address(caller)
        if caller != self.maintainer:
            raise AuthorizationError(ERR_NOT_MAINTAINER, caller)
        return caller

    def set_root(self, caller: str, root: str) -> str:
        self.require_maintainer(caller)
        self.root = normalize_hash(root)
        return self.root

    def verify(self, account: str, flag: int, proof: Sequence[str]) -> bool:
        return verify_proof(proof, self.root, participation_leaf(account, flag))
