"""Fixed-point conversions between display strings and on-chain integers."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MAX_UINT128 = 2**128 - 1
WAD = 10**18

# Relative caps are WAD-scaled; a percent is therefore 16 decimals.
RELATIVE_CAP_DECIMALS = 16
FULL_RELATIVE_CAP = 100 * 10**RELATIVE_CAP_DECIMALS


def parse_units(value: str, decimals: int) -> int:
    """Parse a decimal string into an integer scaled by ``10**decimals``.

    Digits beyond ``decimals`` places are rounded half-up.

    Raises:
        ValueError: if ``value`` is not a finite decimal number.
    """
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid decimal amount: {value!r}")
    scaled = (amount * (Decimal(10) ** decimals)).quantize(
        Decimal(1), rounding=ROUND_HALF_UP
    )
    return int(scaled)


def format_units(value: int | str, decimals: int) -> str:
    """Render an integer amount as a plain decimal string ("12.5", "100")."""
    amount = Decimal(int(value)) / (Decimal(10) ** decimals)
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def is_positive_amount(value: str | None) -> bool:
    """True when ``value`` is a non-blank number strictly greater than zero."""
    if value is None or not str(value).strip():
        return False
    try:
        return Decimal(str(value).strip()) > 0
    except InvalidOperation:
        return False


def relative_cap_to_percent(relative_cap: int | str) -> str:
    """WAD-scaled relative cap to a percent string (1e18 → "100")."""
    return format_units(relative_cap or 0, RELATIVE_CAP_DECIMALS)


def percent_to_relative_cap(percent: str | None) -> int:
    """Percent string to WAD-scaled cap; blank or non-positive means 0."""
    if not is_positive_amount(percent):
        return 0
    return parse_units(str(percent), RELATIVE_CAP_DECIMALS)


def absolute_cap_to_display(absolute_cap: int | str, decimals: int) -> str:
    """Absolute cap to a display string; zero or the sentinel becomes ""."""
    value = int(absolute_cap or 0)
    if value == 0 or value >= MAX_UINT128:
        return ""
    return format_units(value, decimals)


def display_to_absolute_cap(amount: str | None, decimals: int) -> int:
    """Display string to absolute cap; blank or non-positive means unlimited."""
    if not is_positive_amount(amount):
        return MAX_UINT128
    return parse_units(str(amount), decimals)
