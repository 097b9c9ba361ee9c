"""
Membership: a phone-keyed discount entitlement with a validity window.
"""

from sqlalchemy import Column, Integer, String, Date, Text, Index, CheckConstraint

from ticketing.db.base import Base, TimestampMixin


class Membership(Base, TimestampMixin):
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True)
    member_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)
    child_count = Column(Integer, nullable=False, default=1)
    membership_type = Column(String(20), nullable=False)
    discount_percent = Column(Integer, nullable=False, default=100)
    valid_from = Column(Date, nullable=False)
    valid_till = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="active")
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="check_membership_discount_range",
        ),
        CheckConstraint(
            "membership_type IN ('monthly', 'quarterly', 'yearly')",
            name="check_membership_type",
        ),
        CheckConstraint(
            "status IN ('active', 'expired', 'cancelled')", name="check_membership_status"
        ),
        CheckConstraint("valid_till >= valid_from", name="check_membership_window"),
        Index("ix_memberships_phone_status", "phone", "status"),
    )

    def is_valid_on(self, day) -> bool:
        return self.status == "active" and self.valid_from <= day <= self.valid_till
