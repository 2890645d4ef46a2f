from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


def final_price(price: int, discount_percentage: int | None) -> int:
    """Price after a percentage discount, rounded half-up to a whole unit."""
    discount = discount_percentage or 0
    value = Decimal(price) * (Decimal(100) - Decimal(discount)) / Decimal(100)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def apply_percentage_change(price: int, percent: int) -> int:
    """Raise (positive) or lower (negative) a price by a whole percentage, never below zero."""
    value = Decimal(price) * (Decimal(100) + Decimal(percent)) / Decimal(100)
    return max(0, int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP)))
