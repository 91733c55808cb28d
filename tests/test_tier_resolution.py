from decimal import Decimal

import pytest

from tiercart.tiers import (
    STANDARD_VOLUME_TIERS,
    applicable_tier,
    check_tier_table,
    discount_percent_for,
    format_discount,
    format_money,
    next_tier,
    quote,
    resolve_tier,
)
from tiercart.types import PriceTier


@pytest.mark.parametrize(
    "quantity, effective_price, subtotal, savings",
    [
        pytest.param(4, Decimal("100"), Decimal("400"), Decimal("0"), id="last_full_price_unit"),
        pytest.param(5, Decimal("90"), Decimal("450"), Decimal("50"), id="first_ten_percent_unit"),
        pytest.param(9, Decimal("90"), Decimal("810"), Decimal("90"), id="last_ten_percent_unit"),
        pytest.param(10, Decimal("80"), Decimal("800"), Decimal("200"), id="unbounded_band"),
    ],
)
def test_standard_tier_boundaries(quantity, effective_price, subtotal, savings):
    result = quote(100, quantity, STANDARD_VOLUME_TIERS)

    assert result.effective_price == effective_price
    assert result.subtotal == subtotal
    assert result.savings == savings


def test_resolution_reports_matched_tier():
    tier, price = resolve_tier(STANDARD_VOLUME_TIERS, 5, 100)

    assert tier is STANDARD_VOLUME_TIERS[1]
    assert price == Decimal("90.00")


def test_missing_tiers_fall_back_to_base_price():
    assert resolve_tier(None, 3, Decimal("12.5")) == (None, Decimal("12.50"))
    assert resolve_tier([], 3, Decimal("12.5")) == (None, Decimal("12.50"))


def test_unmatched_quantity_falls_back_to_base_price():
    tiers = [PriceTier(min_quantity=10, max_quantity=None, discount_percent=Decimal(20))]

    tier, price = resolve_tier(tiers, 3, 40)

    assert tier is None
    assert price == Decimal("40.00")


def test_untiered_price_passes_through_unrounded():
    assert resolve_tier(None, 3, Decimal("10.005")) == (None, Decimal("10.005"))

    tier, price = resolve_tier([], 2, "99.50", minor_unit=Decimal("1"))

    assert tier is None
    assert price == Decimal("99.50")


def test_zero_percent_band_keeps_base_price():
    tiers = [PriceTier(min_quantity=1, max_quantity=None, discount_percent=Decimal(0))]

    result = quote("99.50", 2, tiers, minor_unit=Decimal("1"))

    assert result.tier is tiers[0]
    assert result.effective_price == Decimal("99.50")
    assert result.savings == Decimal(0)


def test_rounding_never_exceeds_base_price():
    tiers = [PriceTier(min_quantity=1, max_quantity=None, discount_percent=Decimal("0.1"))]

    _, price = resolve_tier(tiers, 1, "99.6", minor_unit=Decimal("1"))

    assert price == Decimal("99.6")


def test_overlapping_bands_use_first_declared_match():
    first = PriceTier(min_quantity=1, max_quantity=10, discount_percent=Decimal(5))
    second = PriceTier(min_quantity=5, max_quantity=None, discount_percent=Decimal(20))

    tier, price = resolve_tier([first, second], 7, 100)

    assert tier is first
    assert price == Decimal("95.00")


@pytest.mark.parametrize(
    "base_price, percent, expected",
    [
        pytest.param("9.99", 15, Decimal("8.49"), id="round_down"),
        pytest.param("0.05", 50, Decimal("0.03"), id="half_rounds_up"),
        pytest.param("1.25", 10, Decimal("1.13"), id="half_up_not_bankers"),
    ],
)
def test_discount_rounds_half_up_to_minor_unit(base_price, percent, expected):
    tiers = [PriceTier(min_quantity=1, max_quantity=None, discount_percent=Decimal(percent))]

    _, price = resolve_tier(tiers, 1, base_price)

    assert price == expected
    assert price.as_tuple().exponent == -2


def test_whole_unit_currency_rounding():
    tiers = [PriceTier(min_quantity=1, max_quantity=None, discount_percent=Decimal(15))]

    _, price = resolve_tier(tiers, 2, 99, minor_unit=Decimal("1"))

    assert price == Decimal("84")


def test_resolution_is_idempotent():
    tiers = [PriceTier(min_quantity=1, max_quantity=None, discount_percent=Decimal("33.3333"))]

    first = resolve_tier(tiers, 7, "19.99")
    second = resolve_tier(tiers, 7, "19.99")

    assert first == second
    assert str(first.effective_price) == str(second.effective_price)


@pytest.mark.parametrize("quantity", [0, -1, True, 2.0])
def test_invalid_quantity_fails_fast(quantity):
    with pytest.raises(ValueError):
        resolve_tier(STANDARD_VOLUME_TIERS, quantity, 100)


def test_negative_base_price_is_rejected():
    with pytest.raises(ValueError):
        resolve_tier(STANDARD_VOLUME_TIERS, 1, -1)


def test_applicable_tier_and_discount_helpers():
    assert applicable_tier(STANDARD_VOLUME_TIERS, 1) is STANDARD_VOLUME_TIERS[0]
    assert discount_percent_for(STANDARD_VOLUME_TIERS, 12) == Decimal(20)
    assert discount_percent_for([], 12) == Decimal(0)


def test_next_tier_reports_items_needed():
    hint = next_tier(STANDARD_VOLUME_TIERS, 3)

    assert hint is not None
    assert hint.min_quantity == 5
    assert hint.items_needed == 2
    assert hint.discount_percent == Decimal(10)


def test_next_tier_is_none_in_last_band_or_without_tiers():
    assert next_tier(STANDARD_VOLUME_TIERS, 25) is None
    assert next_tier([], 3) is None


def test_standard_table_is_well_formed():
    assert check_tier_table(STANDARD_VOLUME_TIERS) == []


def test_check_tier_table_reports_each_problem():
    gap = [PriceTier(1, 4, Decimal(0)), PriceTier(6, None, Decimal(10))]
    overlap = [PriceTier(1, 5, Decimal(0)), PriceTier(5, None, Decimal(10))]
    unbounded_first = [PriceTier(1, None, Decimal(0)), PriceTier(5, 9, Decimal(10))]
    late_start = [PriceTier(2, None, Decimal(0))]

    assert [issue.code for issue in check_tier_table(gap)] == ["GAP"]
    assert [issue.code for issue in check_tier_table(overlap)] == ["OVERLAP"]
    assert [issue.code for issue in check_tier_table(unbounded_first)] == ["UNBOUNDED_NOT_LAST"]
    assert [issue.code for issue in check_tier_table(late_start)] == ["FIRST_BAND_START"]


def test_money_and_discount_formatting():
    assert format_money(Decimal("1234.5")) == "฿1,234.50"
    assert format_money(Decimal("80"), symbol="$", places=0) == "$80"
    assert format_discount(Decimal("10")) == "10% OFF"
    assert format_discount(Decimal("0")) == "regular price"
