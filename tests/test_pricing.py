import pytest

from app.features.subscriptions.domain import Discount, DiscountType
from app.features.subscriptions.exceptions import InvalidPricingError
from app.features.subscriptions.pricing import compute_price, round_money


@pytest.mark.parametrize("base_price", [0, 1, 2500, 1234.56])
def test_no_discount_returns_base_price(base_price):
    result = compute_price(base_price)

    assert result.final_price == base_price
    assert result.discount_type is None
    assert result.discount_value is None


@pytest.mark.parametrize(
    "discount_type,discount_value",
    [(None, 10), ("percentage", None), ("percentage", 0), ("fixed", 0)],
)
def test_noop_discount_is_normalized_away(discount_type, discount_value):
    result = compute_price(1000, discount_type, discount_value)

    assert result.final_price == 1000
    assert (result.discount_type, result.discount_value) == (None, None)


def test_percentage_discount():
    result = compute_price(1000, "percentage", 7)

    assert result.final_price == 930.00
    assert result.discount_type == DiscountType.PERCENTAGE
    assert result.discount_value == 7
    assert result.base_price == 1000


def test_percentage_discount_rounds_half_up():
    assert compute_price(0.5, "percentage", 10).final_price == 0.45
    assert compute_price(10.05, "percentage", 50).final_price == 5.03


@pytest.mark.parametrize("base_price,discount_value", [(100, 100), (100, 250), (0, 5)])
def test_fixed_discount_floors_at_zero(base_price, discount_value):
    assert compute_price(base_price, "fixed", discount_value).final_price == 0


def test_fixed_discount_subtracts():
    result = compute_price(2500, DiscountType.FIXED, 500)

    assert result.final_price == 2000
    assert result.discount_type == DiscountType.FIXED


def test_full_percentage_discount_is_free():
    assert compute_price(5000, "percentage", 100).final_price == 0


@pytest.mark.parametrize(
    "base_price,discount_type,discount_value",
    [
        (-1, None, None),
        ("100", None, None),
        (float("nan"), None, None),
        (100, "percentage", 101),
        (100, "percentage", -5),
        (100, "fixed", -1),
        (100, "coupon", 5),
    ],
)
def test_invalid_pricing_input_is_rejected(base_price, discount_type, discount_value):
    with pytest.raises(InvalidPricingError):
        compute_price(base_price, discount_type, discount_value)


def test_invalid_pricing_error_is_a_value_error():
    with pytest.raises(ValueError):
        Discount(type=DiscountType.PERCENTAGE, value=150)


def test_round_money():
    assert round_money(2.675) == 2.68
    assert round_money(929.9999999999999) == 930.0
