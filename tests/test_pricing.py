"""
Tests for the pricing engine.
"""

from datetime import date

import pytest

from ticketing.core.config import PricingConfig
from ticketing.services.pricing import MembershipDiscount, RideSelection, price, price_from_config

RATES = dict(entry_price_base=500, extra_guardian_rate=100, extra_child_rate=200, socks_rate=50)
ON = date(2026, 6, 15)


def _membership(percent=100, status="active", start=date(2026, 6, 1), end=date(2026, 6, 30)):
    return MembershipDiscount(
        membership_id=7, discount_percent=percent, status=status, valid_from=start, valid_till=end
    )


def test_base_ticket():
    """One guardian, one child, nothing else: just the base price."""
    result = price(**RATES)
    assert result.entry_price == 500
    assert result.subtotal == 500
    assert result.total == 500
    assert result.discount_amount == 0
    assert result.membership_applied is False


def test_full_composition():
    """Extra guardians/children, socks and rides all add up."""
    result = price(
        **RATES,
        guardian_count=2,
        child_count=3,
        socks_count=2,
        ride_selections=[RideSelection(1, 2, 150), RideSelection(2, 1, 80)],
    )
    assert result.entry_price == 500 + 100 + 2 * 200
    assert result.socks_price == 100
    assert result.rides_price == 380
    assert result.subtotal == 1000 + 100 + 380
    assert result.total == result.subtotal
    assert [line.total_price for line in result.rides] == [300, 80]


def test_none_counts_take_defaults():
    assert price(**RATES, guardian_count=None, child_count=None, socks_count=None) == price(**RATES)


def test_full_membership_discounts_entry_only():
    """100% membership makes the entry free but not socks or rides."""
    result = price(
        **RATES,
        child_count=2,
        socks_count=1,
        ride_selections=[RideSelection(1, 1, 150)],
        membership=_membership(100),
        on_date=ON,
    )
    assert result.discount_amount == result.entry_price == 700
    assert result.total == 50 + 150
    assert result.membership_applied is True
    assert result.membership_id == 7


def test_partial_discount_is_floored():
    result = price(**RATES, membership=_membership(33), on_date=ON)
    assert result.discount_amount == 165
    assert result.total == 335


@pytest.mark.parametrize(
    "membership,on_date",
    [
        (_membership(status="expired"), ON),
        (_membership(start=date(2026, 7, 1), end=date(2026, 7, 31)), ON),
        (_membership(), None),
    ],
)
def test_membership_outside_window_not_applied(membership, on_date):
    result = price(**RATES, membership=membership, on_date=on_date)
    assert result.discount_amount == 0
    assert result.membership_applied is False
    assert result.membership_id is None


def test_membership_valid_on_boundaries():
    m = _membership()
    assert price(**RATES, membership=m, on_date=date(2026, 6, 1)).membership_applied
    assert price(**RATES, membership=m, on_date=date(2026, 6, 30)).membership_applied


def test_deterministic():
    args = dict(RATES, guardian_count=3, child_count=2, ride_selections=[RideSelection(4, 2, 90)])
    assert price(**args) == price(**args)


@pytest.mark.parametrize(
    "overrides",
    [
        {"guardian_count": 0},
        {"child_count": 0},
        {"socks_count": -1},
        {"socks_rate": -5},
        {"ride_selections": [RideSelection(1, 0, 100)]},
    ],
)
def test_invalid_inputs_rejected(overrides):
    with pytest.raises(ValueError):
        price(**{**RATES, **overrides})


def test_price_from_config():
    config = PricingConfig(entry_price=600, extra_guardian_price=0, extra_child_price=250, socks_price=40)
    result = price_from_config(config, guardian_count=3, child_count=2, socks_count=1)
    assert result.entry_price == 850
    assert result.total == 890


def test_breakdown_to_dict():
    data = price(**RATES, ride_selections=[RideSelection(1, 1, 150)]).to_dict()
    assert data["total"] == 650
    assert data["rides"] == [{"ride_id": 1, "quantity": 1, "unit_price": 150, "total_price": 150}]
