"""
View Model - Token Formatting.

Converts smallest-unit integer amounts into display values.
All arithmetic uses Decimal so large balances keep every digit.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from core.constants import DISPLAY_DUST_THRESHOLD, DISPLAY_SIGNIFICANT_DIGITS


_DUST = Decimal(DISPLAY_DUST_THRESHOLD)
_THOUSAND = Decimal(1000)
_SUFFIXES = ("", "K", "M", "B", "T")


def to_display_units(amount: int, decimals: Optional[int] = None) -> Decimal:
    """
    Convert a smallest-unit amount to display units.

    Args:
        amount: Amount in the smallest token unit
        decimals: Mint decimals; None leaves the amount unscaled

    Returns:
        Decimal amount in display units
    """
    value = Decimal(amount)
    if decimals is not None:
        value = value.scaleb(-decimals)
    return value


def _round_significant(value: Decimal, digits: int) -> Decimal:
    if value == 0:
        return value
    places = max(digits - (value.adjusted() + 1), 0)
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _plain(value: Decimal) -> str:
    text = f"{value:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_compact(value: Decimal, significant_digits: int = DISPLAY_SIGNIFICANT_DIGITS) -> str:
    """
    Compact notation: 1234 -> "1.23K", 4500000 -> "4.5M".

    Values past the largest suffix keep the "T" suffix.
    """
    sign = "-" if value < 0 else ""
    value = abs(value)

    tier = 0
    while value >= _THOUSAND and tier < len(_SUFFIXES) - 1:
        value /= _THOUSAND
        tier += 1

    rounded = _round_significant(value, significant_digits)

    # 999.6 rounds to 1000, which belongs to the next tier
    if rounded >= _THOUSAND and tier < len(_SUFFIXES) - 1:
        rounded = _round_significant(rounded / _THOUSAND, significant_digits)
        tier += 1

    return f"{sign}{_plain(rounded)}{_SUFFIXES[tier]}"


def format_tokens(amount: int, decimals: Optional[int] = None, short: bool = False) -> str:
    """
    Format a token amount for display.

    Amounts below 0.001 display units render as "~0".

    Args:
        amount: Amount in the smallest token unit
        decimals: Mint decimals
        short: Two significant digits instead of three, for tight labels
    """
    value = to_display_units(amount, decimals)
    if value < _DUST:
        return "~0"
    digits = DISPLAY_SIGNIFICANT_DIGITS - 1 if short else DISPLAY_SIGNIFICANT_DIGITS
    return format_compact(value, digits)
