"""Formatting and conversion utilities."""

import re
from decimal import Decimal, InvalidOperation

from staking_vault.constants import WEI_PER_ETH

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling various types."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.startswith("0x"):
            return int(v, 16)
        return int(v)
    return int(value)


def normalize_address(value) -> str:
    """Normalize an address to lowercase 0x-prefixed hex; raises ValueError if malformed."""
    if isinstance(value, (bytes, bytearray)):
        s = f"0x{value.hex()}"
    else:
        s = str(value).strip().lower()
        if not s.startswith("0x"):
            s = f"0x{s}"
    if not _ADDRESS_RE.match(s):
        raise ValueError(f"Invalid address: {value!r}")
    return s


def to_base_units(amount: str | int | Decimal, *, decimals: int = 18) -> int:
    """Parse a decimal amount ("10", "0.5") into integer base units."""
    try:
        d = Decimal(str(amount).strip())
    except InvalidOperation as ex:
        raise ValueError(f"Invalid amount: {amount!r}") from ex
    if not d.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    scaled = d * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount!r} has more than {decimals} decimal places")
    return int(scaled)


def format_bp(bp: int) -> str:
    """Format basis points as percentage."""
    return f"{(Decimal(bp) / Decimal(100)):.2f}%"


def format_eth(value_wei: int, *, decimals: int = 9, approx: bool = False) -> str:
    """Format wei value as ETH."""
    eth = Decimal(value_wei) / WEI_PER_ETH
    s = f"{eth:.{decimals}f}".rstrip("0").rstrip(".")
    prefix = "~" if approx else ""
    return f"{prefix}{s} ETH"


def format_units(value: int, *, symbol: str, token_decimals: int = 18, decimals: int = 6) -> str:
    """Format a token amount in base units."""
    units = Decimal(value) / (Decimal(10) ** token_decimals)
    s = f"{units:.{decimals}f}".rstrip("0").rstrip(".")
    return f"{s} {symbol}"


def format_rate(annual_rate_bp: int) -> str:
    """Format an annual rate in basis points as an APR label."""
    return f"{format_bp(annual_rate_bp)} APR"


def short_address(address: str) -> str:
    """Shorten an address for console output."""
    return f"{address[:10]}...{address[-6:]}"
