"""
Ride add-on catalogue and the per-ticket ride lines.

TicketRide.unit_price is captured at issuance; later catalogue price changes
never reach an issued ticket.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class Ride(Base, TimestampMixin):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_ride_price_non_negative"),
    )


class TicketRide(Base):
    __tablename__ = "ticket_rides"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False, index=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=False)

    ticket = relationship("Ticket", back_populates="rides")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_ticket_ride_quantity_positive"),
    )
