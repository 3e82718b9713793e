"""Discount application: a pure function of (subtotal, discount)."""

from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Optional

from restopos.db.models import Discount, DISCOUNT_PERCENTAGE, DISCOUNT_FIXED


class Totals(NamedTuple):
    """Order totals in cents; ``total_price == subtotal - discount_amount``."""
    subtotal: int
    discount_amount: int
    total_price: int


def compute_discount_amount(subtotal: int, discount_type: str, value: int) -> int:
    """
    Discount in cents for a subtotal in cents.

    Args:
        subtotal: Order subtotal in cents
        discount_type: "Percentage" or "Fixed"
        value: Hundredths (basis points of a percent for Percentage, cents for Fixed)

    Returns:
        Discount amount in cents, clamped to [0, subtotal]
    """
    if subtotal <= 0 or value <= 0:
        return 0
    if discount_type == DISCOUNT_PERCENTAGE:
        # subtotal * (value / 100) / 100, rounded half-up to the cent
        amount = (Decimal(subtotal) * Decimal(value) / Decimal(10000)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        amount = int(amount)
    elif discount_type == DISCOUNT_FIXED:
        amount = value
    else:
        raise ValueError(f"unknown discount type: {discount_type!r}")
    return max(0, min(amount, subtotal))


def apply_discount(subtotal: int, discount: Optional[Discount] = None) -> Totals:
    """Derive discount and total for a subtotal; no discount means zero."""
    if discount is None:
        return Totals(subtotal, 0, subtotal)
    discount_amount = compute_discount_amount(subtotal, discount.type, discount.value)
    return Totals(subtotal, discount_amount, subtotal - discount_amount)
