from datetime import datetime
from decimal import Decimal

import pytest

from app.services.margin import (
    add_days, calculate_estimated_margin, parse_decimal_input, round_money, round_rate,
    sum_paid_amount,
)


def test_margin_regression_values():
    result = calculate_estimated_margin(10, 6, 100, Decimal("0.1"))

    assert result.customer_revenue == Decimal("1000.00")
    assert result.vendor_cost == Decimal("600.00")
    assert result.duty_cost == Decimal("60.00")
    assert result.estimated_3pl == Decimal("40.00")
    assert result.estimated_margin == Decimal("360.00")
    assert result.margin_rate == Decimal("0.3600")


def test_duty_is_not_subtracted_twice():
    result = calculate_estimated_margin("12.50", "7.25", 40, "0.2")

    expected = result.customer_revenue - result.vendor_cost - result.estimated_3pl
    assert result.estimated_margin == expected
    assert result.estimated_margin != expected - result.duty_cost


def test_negative_inputs_clamp_to_zero():
    result = calculate_estimated_margin(-5, -3, -10, -0.5)

    assert result.customer_revenue == Decimal("0.00")
    assert result.estimated_3pl == Decimal("0.00")
    assert result.estimated_margin == Decimal("0.00")
    assert result.margin_rate == Decimal("0.0000")


def test_zero_revenue_gives_zero_rate():
    result = calculate_estimated_margin(0, 4, 10, 0.1)

    assert result.margin_rate == Decimal("0.0000")
    assert result.estimated_margin == Decimal("-45.00")


def test_rounding_only_on_returned_values():
    # 3 × 0.335 = 1.005，中间值不截断
    result = calculate_estimated_margin("0.335", 0, 3, 0)
    assert result.customer_revenue == Decimal("1.01")


@pytest.mark.parametrize("value, expected", [
    (Decimal("2.345"), Decimal("2.35")),
    (Decimal("-2.345"), Decimal("-2.35")),
    (1.005, Decimal("1.01")),
])
def test_round_money_half_away_from_zero(value, expected):
    assert round_money(value) == expected


def test_round_rate_four_places():
    assert round_rate(Decimal("0.32505")) == Decimal("0.3251")


@pytest.mark.parametrize("value, expected", [
    ("1,200.50", Decimal("1200.50")),
    (" 42 ", Decimal("42")),
    ("$9.99", Decimal("9.99")),
    (7, Decimal("7")),
    ("abc", Decimal("0")),
    ("", Decimal("0")),
    (None, Decimal("0")),
    (True, Decimal("0")),
    ("NaN", Decimal("0")),
])
def test_parse_decimal_input(value, expected):
    assert parse_decimal_input(value, Decimal("0")) == expected


def test_parse_decimal_input_custom_fallback():
    assert parse_decimal_input("n/a", None) is None


def test_add_days_and_sum_paid():
    assert add_days(datetime(2024, 1, 30), 30) == datetime(2024, 2, 29)
    assert sum_paid_amount([Decimal("100.10"), "50", 0.4]) == Decimal("150.50")
