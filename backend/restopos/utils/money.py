"""Fixed-point currency helpers.

All amounts are stored as integer cents. The API speaks ``Decimal`` with two
places; nothing in between touches binary floating point.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("1")


def to_cents(value: Any) -> int:
    """
    Convert a decimal amount (Decimal, int or numeric string) to integer cents.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"invalid amount: {value!r}")
    return int((amount * 100).quantize(CENT, rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a two-place Decimal (e.g. 599 -> Decimal('5.99'))."""
    return Decimal(int(cents or 0)).scaleb(-2)
