"""
Pricing engine: entry composition + membership -> price breakdown.

Pure computation, no I/O. The same inputs always produce the same (frozen,
value-equal) breakdown, which is what lets a refund or audit recompute a
ticket's price from its stored composition.

Rules, in order:
  1. entry    = base + max(0, guardians-1) * extra_guardian + max(0, children-1) * extra_child
  2. socks    = socks_count * socks_rate
  3. rides    = sum(unit_price * quantity), unit prices captured at selection time
  4. subtotal = entry + socks + rides
  5. discount = entry * membership.discount_percent // 100   (entry only, valid membership only)
  6. total    = subtotal - discount

All amounts are non-negative integers in the smallest currency unit.
"""

from dataclasses import dataclass, asdict
from datetime import date
from typing import Optional, Sequence, Tuple

from ticketing.core.config import PricingConfig


@dataclass(frozen=True)
class RideSelection:
    ride_id: int
    quantity: int
    unit_price: int


@dataclass(frozen=True)
class RideLine:
    ride_id: int
    quantity: int
    unit_price: int
    total_price: int


@dataclass(frozen=True)
class MembershipDiscount:
    membership_id: int
    discount_percent: int
    status: str
    valid_from: date
    valid_till: date

    def is_valid_on(self, day: date) -> bool:
        return self.status == "active" and self.valid_from <= day <= self.valid_till

    @classmethod
    def from_membership(cls, membership) -> "MembershipDiscount":
        return cls(
            membership_id=membership.id,
            discount_percent=membership.discount_percent,
            status=membership.status,
            valid_from=membership.valid_from,
            valid_till=membership.valid_till,
        )


@dataclass(frozen=True)
class PriceBreakdown:
    entry_price: int
    socks_price: int
    rides_price: int
    subtotal: int
    discount_amount: int
    total: int
    membership_applied: bool
    membership_id: Optional[int]
    rides: Tuple[RideLine, ...] = ()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["rides"] = [asdict(line) for line in self.rides]
        return data


def _non_negative(name: str, value: int) -> int:
    if value < 0:
        raise ValueError(f"{name} must be >= 0")
    return value


def price(
    entry_price_base: int,
    extra_guardian_rate: int,
    extra_child_rate: int,
    socks_rate: int,
    guardian_count: Optional[int] = 1,
    child_count: Optional[int] = 1,
    socks_count: Optional[int] = 0,
    ride_selections: Sequence[RideSelection] = (),
    membership: Optional[MembershipDiscount] = None,
    on_date: Optional[date] = None,
) -> PriceBreakdown:
    """
    Compute a ticket's price breakdown.

    `membership` is only applied when it is active and `on_date` falls inside
    its validity window. Counts left as None take their defaults (one guardian,
    one child, no socks).
    """
    guardians = 1 if guardian_count is None else guardian_count
    children = 1 if child_count is None else child_count
    socks = 0 if socks_count is None else socks_count

    for name, value in (
        ("entry_price_base", entry_price_base),
        ("extra_guardian_rate", extra_guardian_rate),
        ("extra_child_rate", extra_child_rate),
        ("socks_rate", socks_rate),
        ("socks_count", socks),
    ):
        _non_negative(name, value)
    if guardians < 1 or children < 1:
        raise ValueError("a ticket covers at least one guardian and one child")

    entry = (
        entry_price_base
        + max(0, guardians - 1) * extra_guardian_rate
        + max(0, children - 1) * extra_child_rate
    )
    socks_price = socks * socks_rate

    lines = []
    for selection in ride_selections:
        if selection.quantity < 1:
            raise ValueError("ride quantity must be >= 1")
        _non_negative("unit_price", selection.unit_price)
        lines.append(
            RideLine(
                ride_id=selection.ride_id,
                quantity=selection.quantity,
                unit_price=selection.unit_price,
                total_price=selection.unit_price * selection.quantity,
            )
        )
    rides_price = sum(line.total_price for line in lines)

    subtotal = entry + socks_price + rides_price

    applied = membership is not None and on_date is not None and membership.is_valid_on(on_date)
    discount = entry * membership.discount_percent // 100 if applied else 0

    return PriceBreakdown(
        entry_price=entry,
        socks_price=socks_price,
        rides_price=rides_price,
        subtotal=subtotal,
        discount_amount=discount,
        total=subtotal - discount,
        membership_applied=applied,
        membership_id=membership.membership_id if applied else None,
        rides=tuple(lines),
    )


def price_from_config(
    config: PricingConfig,
    guardian_count: Optional[int] = 1,
    child_count: Optional[int] = 1,
    socks_count: Optional[int] = 0,
    ride_selections: Sequence[RideSelection] = (),
    membership: Optional[MembershipDiscount] = None,
    on_date: Optional[date] = None,
) -> PriceBreakdown:
    return price(
        config.entry_price,
        config.extra_guardian_price,
        config.extra_child_price,
        config.socks_price,
        guardian_count=guardian_count,
        child_count=child_count,
        socks_count=socks_count,
        ride_selections=ride_selections,
        membership=membership,
        on_date=on_date,
    )
