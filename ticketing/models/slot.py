"""
Slot model: one bookable (date, time range) unit of capacity.

Key design decisions:
- Unique constraint on (slot_date, time_slot) so lazy creation cannot produce duplicates
- `status` is the only exclusive-claim column in the system; it is flipped
  with a conditional UPDATE (available -> booked), never read-then-written
"""

from sqlalchemy import Column, Integer, String, Date, Time, Index, UniqueConstraint, CheckConstraint

from ticketing.db.base import Base, TimestampMixin

SLOT_AVAILABLE = "available"
SLOT_BOOKED = "booked"


class Slot(Base, TimestampMixin):
    __tablename__ = "slots"

    id = Column(Integer, primary_key=True, index=True)
    slot_date = Column(Date, nullable=False)
    time_slot = Column(String(32), nullable=False)  # "10:00 - 11:00"
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=SLOT_AVAILABLE)

    __table_args__ = (
        UniqueConstraint("slot_date", "time_slot", name="uq_slot_date_time"),
        CheckConstraint("status IN ('available', 'booked')", name="check_slot_status"),
        Index("ix_slots_date_status", "slot_date", "status"),
    )

    def __repr__(self) -> str:
        return f"<Slot(id={self.id}, date={self.slot_date}, slot={self.time_slot}, status={self.status})>"
