"""Constants and configuration for the shares time-lock vault."""

# Fixed-point scale for multipliers and fee fractions (1.0 == WAD).
WAD = 10**18

# Scale of the points-per-share accumulator. Largest value such that `amount * M`
# stays within uint256 for any realistic amount.
POINTS_MULTIPLIER = 2**128 - 1

MAX_UINT256 = 2**256 - 1
MIN_INT256 = -(2**255)
MAX_INT256 = 2**255 - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Average month (365 days / 12), used by month-bucketed curves and deposit_by_months.
SECONDS_PER_MONTH = 2_628_000
SECONDS_PER_DAY = 86_400

# Participation flags committed to in the Merkle snapshot leaves.
PARTICIPATION_INACTIVE = 0
PARTICIPATION_YES = 1

# Label hashed into the init-code hash of delegation modules (CREATE2-style derivation).
MODULE_INIT_CODE_LABEL = "shares_timelock.DelegationModule"

CURVE_LINEAR = "linear"
CURVE_MONTHLY = "monthly"
SUPPORTED_CURVES = (CURVE_LINEAR, CURVE_MONTHLY)

# Bonus fraction (WAD) per whole month of lock duration, months 6..36.
# Quadratic in (month - 6): convex, 0 at the shortest bucket and WAD at the longest.
MONTHLY_CURVE_FIRST_MONTH = 6
MONTHLY_BONUS_CURVE: tuple[int, ...] = (
    0,  # 6
    1111111111111111,  # 7
    4444444444444444,  # 8
    10000000000000000,  # 9
    17777777777777777,  # 10
    27777777777777777,  # 11
    40000000000000000,  # 12
    54444444444444444,  # 13
    71111111111111111,  # 14
    90000000000000000,  # 15
    111111111111111111,  # 16
    134444444444444444,  # 17
    160000000000000000,  # 18
    187777777777777777,  # 19
    217777777777777777,  # 20
    250000000000000000,  # 21
    284444444444444444,  # 22
    321111111111111111,  # 23
    360000000000000000,  # 24
    401111111111111111,  # 25
    444444444444444444,  # 26
    490000000000000000,  # 27
    537777777777777777,  # 28
    587777777777777777,  # 29
    640000000000000000,  # 30
    694444444444444444,  # 31
    751111111111111111,  # 32
    810000000000000000,  # 33
    871111111111111111,  # 34
    934444444444444444,  # 35
    1000000000000000000,  # 36
)

# Default deployment parameters (6..36 months, up to 2x, 20% max early-exit fee).
DEFAULT_MIN_LOCK_DURATION = 6 * SECONDS_PER_MONTH
DEFAULT_MAX_LOCK_DURATION = 36 * SECONDS_PER_MONTH
DEFAULT_MAX_BONUS = WAD
DEFAULT_MIN_FEE = 0
DEFAULT_BASE_FEE = 2 * 10**17

# ---------------------------------------------------------------------------
# Revert reason codes (stable, greppable)
# ---------------------------------------------------------------------------

# validation
ERR_BAD_ADDRESS = "BAD_ADDRESS"
ERR_BAD_AMOUNT = "BAD_AMOUNT"
ERR_ZERO_ADDRESS = "ZERO_ADDRESS"
ERR_ZERO_AMOUNT = "ZERO_AMOUNT"
ERR_BELOW_MIN_DEPOSIT = "BELOW_MIN_DEPOSIT"
ERR_BELOW_MIN_LOCK = "BELOW_MIN_LOCK"
ERR_OOB = "OOB"
ERR_LENGTH_MISMATCH = "LENGTH_MISMATCH"
ERR_MIN_GE_MAX = "MIN_GE_MAX"
ERR_MAX_FEE = "MAX_FEE"
ERR_BAD_CURVE = "BAD_CURVE"
ERR_BAD_HASH = "BAD_HASH"
ERR_BAD_FLAG = "BAD_FLAG"
ERR_CLOCK_BACKWARDS = "CLOCK_BACKWARDS"

# authorization
ERR_NOT_LOCK_OWNER = "NOT_LOCK_OWNER"
ERR_NOT_MAINTAINER = "NOT_MAINTAINER"
ERR_NOT_MINTER = "NOT_MINTER"
ERR_NOT_PARENT_VAULT = "NOT_PARENT_VAULT"
ERR_NOT_TOKEN_OWNER = "NOT_TOKEN_OWNER"

# state preconditions
ERR_STF = "STF"
ERR_TRANSFER_EXCEEDS_BALANCE = "TRANSFER_EXCEEDS_BALANCE"
ERR_INSUFFICIENT_ALLOWANCE = "INSUFFICIENT_ALLOWANCE"
ERR_BURN_EXCEEDS_BALANCE = "BURN_EXCEEDS_BALANCE"
ERR_LOCK_NOT_FOUND = "LOCK_NOT_FOUND"
ERR_ROOT_NOT_SET = "ROOT_NOT_SET"
ERR_INVALID_PROOF = "INVALID_PROOF"
ERR_DEPOSITS_HALTED = "DEPOSITS_HALTED"
ERR_ALREADY_UNLOCKED = "ALREADY_UNLOCKED"
ERR_NO_FEES = "NO_FEES"
ERR_FEE_ASSET = "FEE_ASSET"
ERR_MODULE_NOT_DEPLOYED = "MODULE_NOT_DEPLOYED"
ERR_TRANSFER_NOT_SUPPORTED = "TRANSFER_NOT_SUPPORTED"
ERR_PARTICIPATION_REQUIRED = "PARTICIPATION_REQUIRED"
ERR_REENTRANCY = "REENTRANCY"

# arithmetic
ERR_NO_SHARES = "NO_SHARES"
ERR_OVERFLOW = "OVERFLOW"

# ---------------------------------------------------------------------------
# Tooling (proof bundles, IPFS, cache)
# ---------------------------------------------------------------------------

PROOF_BUNDLE_FORMAT = "participation-v1"

DEFAULT_IPFS_GATEWAYS = (
    "https://ipfs.io/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
)
DEFAULT_TIMEOUT = 30

CACHE_DIR_NAME = ".shares_timelock_cache"
CACHE_VERSION = "1"  # Increment to invalidate all caches

DEFAULT_TOKEN_DECIMALS = 18
