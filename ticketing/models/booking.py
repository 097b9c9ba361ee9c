"""
Booking model: a scheduled visit tied to a slot.

Key design decisions:
- Never hard-deleted; cancellation is a status change
- `notes` is an append-only audit trail of administrative actions
- slot_date / time_slot are denormalized so listings and reminders skip the join
"""

from sqlalchemy import Column, Integer, String, Date, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=True, index=True)
    slot_date = Column(Date, nullable=False)
    time_slot = Column(String(32), nullable=False)
    parent_name = Column(String(100), nullable=False)
    parent_phone = Column(String(20), nullable=False, index=True)
    child_count = Column(Integer, nullable=False, default=1)
    booking_type = Column(String(30), nullable=False, default="hourly_play")
    status = Column(String(20), nullable=False, default="confirmed")
    payment_status = Column(String(20), nullable=False, default="unpaid")
    notes = Column(Text, nullable=True)

    slot = relationship("Slot", lazy="selectin")
    payments = relationship("Payment", back_populates="booking", lazy="selectin")

    __table_args__ = (
        CheckConstraint("child_count > 0", name="check_booking_child_count_positive"),
        CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"),
        CheckConstraint(
            "payment_status IN ('unpaid', 'pending', 'paid', 'refunded')",
            name="check_booking_payment_status",
        ),
        Index("ix_bookings_date_status", "slot_date", "status"),
    )

    def append_note(self, entry: str) -> None:
        self.notes = f"{self.notes}\n{entry}" if self.notes else entry

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, slot={self.slot_id}, status={self.status})>"
