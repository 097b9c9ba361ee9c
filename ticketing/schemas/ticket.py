"""
Pydantic schemas for ticket issuance and lifecycle.
"""

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class RideRequest(BaseModel):
    ride_id: int
    quantity: int = Field(default=1, ge=1, le=50)


class TicketCreate(BaseModel):
    guardian_name: Optional[str] = Field(None, max_length=100)
    guardian_phone: str = Field(..., max_length=20)
    slot_date: date = Field(..., alias="date")
    time_slot: Optional[str] = Field(None, max_length=32)
    guardian_count: int = Field(default=1, ge=1, le=20)
    child_count: int = Field(default=1, ge=1, le=20)
    socks_count: int = Field(default=0, ge=0, le=50)
    rides: list[RideRequest] = Field(default_factory=list)
    payment_type: str = Field(default="cash", pattern=r"^(cash|online)$")
    source: str = Field(default="physical", max_length=20)
    booking_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=500)

    model_config = {"populate_by_name": True}


class TicketRideResponse(BaseModel):
    ride_id: int
    quantity: int
    unit_price: int
    total_price: int

    model_config = {"from_attributes": True}


class PriceBreakdownResponse(BaseModel):
    entry_price: int
    socks_price: int
    rides_price: int
    subtotal: int
    discount_amount: int
    total: int
    membership_applied: bool
    membership_id: Optional[int]


class TicketResponse(BaseModel):
    id: int
    ticket_number: str
    booking_id: Optional[int]
    slot_date: date
    time_slot: Optional[str]
    guardian_name: str
    guardian_phone: str
    guardian_count: int
    child_count: int
    socks_count: int
    payment_type: str
    payment_status: str
    source: str
    status: str
    inside_venue: bool
    in_time: Optional[datetime]
    out_time: Optional[datetime]
    used_at: Optional[datetime]
    notes: Optional[str]
    rides: list[TicketRideResponse] = []
    price_breakdown: PriceBreakdownResponse

    model_config = {"from_attributes": True}

    @classmethod
    def from_ticket(cls, ticket) -> "TicketResponse":
        """The stored breakdown, exactly as frozen at issuance."""
        rides_price = ticket.addons_price
        subtotal = ticket.entry_price + ticket.socks_price + rides_price
        breakdown = PriceBreakdownResponse(
            entry_price=ticket.entry_price,
            socks_price=ticket.socks_price,
            rides_price=rides_price,
            subtotal=subtotal,
            discount_amount=ticket.discount_applied,
            total=ticket.total_price,
            membership_applied=ticket.membership_id is not None,
            membership_id=ticket.membership_id,
        )
        base = {
            name: getattr(ticket, name)
            for name in cls.model_fields
            if name not in ("rides", "price_breakdown")
        }
        return cls(
            **base,
            rides=[TicketRideResponse.model_validate(line) for line in ticket.rides],
            price_breakdown=breakdown,
        )


class TicketCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class TicketLookup(BaseModel):
    ticket_id: Optional[int] = None
    ticket_number: Optional[str] = Field(None, max_length=32)


class TicketValidationResponse(BaseModel):
    valid: bool
    code: str
    reason: str
    ticket_id: Optional[int] = None
    ticket_number: Optional[str] = None


class ExpireRequest(BaseModel):
    today: Optional[date] = None


class ExpireResponse(BaseModel):
    expired: int
