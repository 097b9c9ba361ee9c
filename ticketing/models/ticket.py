"""
Ticket model: a pass for venue entry, walk-in or derived from a booking.

Key design decisions:
- Price columns are written once at issuance and never recomputed
- `status` and `inside_venue` are mutated only by the gate controller and
  explicit cancellation/expiry; gate_logs is the source of truth for
  `inside_venue`
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Text, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin

TICKET_ACTIVE = "active"
TICKET_USED = "used"
TICKET_CANCELLED = "cancelled"
TICKET_EXPIRED = "expired"


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    ticket_number = Column(String(32), unique=True, index=True, nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    slot_date = Column(Date, nullable=False)
    time_slot = Column(String(32), nullable=True)

    guardian_name = Column(String(100), nullable=False, default="Walk-in Customer")
    guardian_phone = Column(String(20), nullable=False, index=True)
    guardian_count = Column(Integer, nullable=False, default=1)
    child_count = Column(Integer, nullable=False, default=1)
    socks_count = Column(Integer, nullable=False, default=0)

    entry_price = Column(Integer, nullable=False)
    socks_price = Column(Integer, nullable=False, default=0)
    addons_price = Column(Integer, nullable=False, default=0)
    discount_applied = Column(Integer, nullable=False, default=0)
    total_price = Column(Integer, nullable=False)

    payment_type = Column(String(20), nullable=False)
    payment_status = Column(String(20), nullable=False, default="pending")
    source = Column(String(20), nullable=False, default="physical")
    ticket_type = Column(String(30), nullable=False, default="hourly_play")
    status = Column(String(20), nullable=False, default=TICKET_ACTIVE)
    inside_venue = Column(Boolean, nullable=False, default=False)

    membership_id = Column(Integer, ForeignKey("memberships.id"), nullable=True)
    in_time = Column(DateTime(timezone=True), nullable=True)
    out_time = Column(DateTime(timezone=True), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(String(64), nullable=True)
    created_by_name = Column(String(100), nullable=True)

    rides = relationship("TicketRide", back_populates="ticket", lazy="selectin")

    __table_args__ = (
        CheckConstraint("guardian_count >= 1", name="check_ticket_guardian_count"),
        CheckConstraint("child_count >= 1", name="check_ticket_child_count"),
        CheckConstraint("socks_count >= 0", name="check_ticket_socks_count"),
        CheckConstraint("total_price >= 0", name="check_ticket_total_non_negative"),
        CheckConstraint("payment_type IN ('cash', 'online')", name="check_ticket_payment_type"),
        CheckConstraint("payment_status IN ('pending', 'paid')", name="check_ticket_payment_status"),
        CheckConstraint(
            "status IN ('active', 'used', 'cancelled', 'expired')", name="check_ticket_status"
        ),
        Index("ix_tickets_date_status", "slot_date", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Ticket(id={self.id}, number={self.ticket_number}, "
            f"status={self.status}, inside={self.inside_venue})>"
        )
