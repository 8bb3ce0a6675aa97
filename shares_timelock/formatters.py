"""Formatting and conversion utilities."""

from decimal import Decimal

from web3 import Web3

from shares_timelock.constants import (
    DEFAULT_TOKEN_DECIMALS,
    ERR_BAD_ADDRESS,
    ERR_BAD_AMOUNT,
    ERR_BAD_HASH,
    MAX_UINT256,
    SECONDS_PER_DAY,
    SECONDS_PER_MONTH,
    WAD,
)
from shares_timelock.errors import ValidationError


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling various types."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip().replace("_", "")
        if v.lower().startswith("0x"):
            return int(v, 16)
        return int(v)
    return int(value)


def normalize_hex_str(value) -> str:
    """Normalize hex string to 0x-prefixed format."""
    if isinstance(value, (bytes, bytearray)):
        return f"0x{bytes(value).hex()}"
    if hasattr(value, "hex") and not isinstance(value, str):
        hex_str = value.hex()
        return hex_str if hex_str.startswith("0x") else f"0x{hex_str}"
    s = str(value).strip()
    if s.lower().startswith("0x"):
        return f"0x{s[2:]}"
    return f"0x{s}"


def normalize_address(value) -> str:
    """Return the EIP-55 checksummed form of an address, raising BAD_ADDRESS otherwise."""
    if not isinstance(value, (str, bytes, bytearray)) or not Web3.is_address(value):
        raise ValidationError(ERR_BAD_ADDRESS, repr(value))
    return Web3.to_checksum_address(value)


def normalize_hash(value) -> str:
    """Normalize a 32-byte hash (bytes or hex) to lowercase 0x-prefixed hex."""
    h = normalize_hex_str(value).lower()
    try:
        raw = bytes.fromhex(h[2:])
    except ValueError as ex:
        raise ValidationError(ERR_BAD_HASH, repr(value)) from ex
    if len(raw) != 32:
        raise ValidationError(ERR_BAD_HASH, f"expected 32 bytes, got {len(raw)}")
    return h


def require_amount(amount) -> int:
    """Amounts are plain ints in [0, 2**256 - 1]."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0 or amount > MAX_UINT256:
        raise ValidationError(ERR_BAD_AMOUNT, repr(amount))
    return amount


def format_amount(value: int, *, decimals: int = DEFAULT_TOKEN_DECIMALS, places: int = 4, symbol: str = "") -> str:
    """Format a base-unit amount as a decimal token amount."""
    amount = Decimal(value) / Decimal(10**decimals)
    s = f"{amount:.{places}f}".rstrip("0").rstrip(".")
    return f"{s} {symbol}".rstrip()


def format_multiplier(value: int) -> str:
    """Format a WAD-scaled multiplier, e.g. 1.5x."""
    m = Decimal(value) / Decimal(WAD)
    s = f"{m:.4f}".rstrip("0").rstrip(".")
    return f"{s}x"


def format_fee_fraction(value: int) -> str:
    """Format a WAD-scaled fraction as percentage."""
    return f"{(Decimal(value) * 100 / Decimal(WAD)):.2f}%"


def format_duration(seconds: int) -> str:
    """Format a lock duration in months (when whole) or days."""
    if seconds > 0 and seconds % SECONDS_PER_MONTH == 0:
        months = seconds // SECONDS_PER_MONTH
        return f"{months} month{'s' if months != 1 else ''}"
    days = Decimal(seconds) / Decimal(SECONDS_PER_DAY)
    s = f"{days:.2f}".rstrip("0").rstrip(".")
    return f"{s} days"


def short_address(address: str) -> str:
    """Shorten an address for tables: 0x1234...abcd."""
    return f"{address[:6]}...{address[-4:]}"
