"""Decimal helpers for monetary amounts.

Contribution and tax amounts are carried as unrounded Decimals while a
calculation runs and rounded to cents only when a record is emitted, so
running totals do not drift from per-line rounding. Relief lines are the
exception: they are rounded when built because the tax base is their sum.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Optional, Union

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = Decimal("12")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert a number to Decimal (None -> 0).

    Floats go through str() so 0.1 becomes Decimal('0.1'), not the binary
    approximation.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half up (standard payroll rounding).

    Example: Decimal('394.665') -> Decimal('394.67')
    """
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, rate: Optional[Decimal]) -> Decimal:
    """Apply a percentage rate (5 = 5%) to an amount."""
    if not rate:
        return ZERO
    return amount * rate / HUNDRED


def clamp_to_cap(amount: Decimal, cap: Optional[Decimal], used: Decimal = ZERO) -> Decimal:
    """Clamp an amount to whatever is left under a cap.

    The remainder is truncated to whole cents, so the amount still fits
    under the cap once it is rounded for emission.

    Args:
        amount: Newly computed amount
        cap: Cap for the window (None = uncapped)
        used: Amount already consumed against the cap in the window

    Returns:
        min(amount, max(0, cap - used) truncated to cents), or amount if uncapped
    """
    if cap is None:
        return amount
    remaining = max(ZERO, cap - used).quantize(CENT, rounding=ROUND_DOWN)
    return min(amount, remaining)
