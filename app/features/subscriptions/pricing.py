"""Price calculation for subscription plans"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.features.subscriptions.domain import (
    Discount,
    DiscountType,
    PriceResult,
    validate_amount,
)

_CENT = Decimal("0.01")
_HUNDRED = Decimal(100)


def round_money(value: Decimal | float) -> float:
    """Round to 2 decimal places, halves away from zero"""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def apply_discount(base_price: float, discount: Optional[Discount]) -> float:
    """Final per-cycle price for a validated discount"""
    if discount is None:
        return base_price

    base = Decimal(str(base_price))
    value = Decimal(str(discount.value))

    if discount.type == DiscountType.PERCENTAGE:
        final = base * (1 - value / _HUNDRED)
    elif discount.type == DiscountType.FIXED:
        final = max(Decimal(0), base - value)
    else:
        raise ValueError(f"Unhandled discount type: {discount.type}")

    return round_money(final)


def compute_price(
    base_price: float,
    discount_type: Optional[DiscountType | str] = None,
    discount_value: Optional[float] = None,
) -> PriceResult:
    """
    Apply a discount to a base price.

    A missing discount type, or a missing/zero discount value, is
    normalized to no discount at all and the base price is returned
    untouched. Otherwise the result is rounded half-up to cents:

    - percentage: base * (1 - value / 100)
    - fixed: max(0, base - value)

    Raises:
        InvalidPricingError: negative or non-numeric base price, a
            percentage outside [0, 100], or a negative fixed amount
    """
    validate_amount(base_price, "base_price")
    discount = Discount.from_fields(discount_type, discount_value)

    return PriceResult(
        base_price=base_price,
        discount_type=discount.type if discount else None,
        discount_value=discount.value if discount else None,
        final_price=apply_discount(base_price, discount),
    )
