"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    parent_name: str = Field(..., max_length=200)
    parent_phone: str = Field(..., max_length=20)
    slot_date: date = Field(..., alias="date")
    time_slot: str = Field(..., max_length=32)
    child_count: int = Field(default=1, ge=1, le=20)
    notes: Optional[str] = Field(None, max_length=500)

    model_config = {"populate_by_name": True}


class BookingUpdate(BaseModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None
    amount: Optional[int] = Field(None, ge=0)
    payment_method: str = Field(default="cash", max_length=30)


class BookingCancelRequest(BaseModel):
    refund: bool = False
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(BaseModel):
    id: int
    slot_id: Optional[int]
    slot_date: date
    time_slot: str
    parent_name: str
    parent_phone: str
    child_count: int
    booking_type: str
    status: str
    payment_status: str
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class RefundInfo(BaseModel):
    amount: int
    status: str
    message: str


class BookingCancelResponse(BaseModel):
    message: str
    booking: BookingResponse
    refund_info: Optional[RefundInfo] = None


class ReminderRequest(BaseModel):
    target_date: Optional[date] = None


class ReminderSummary(BaseModel):
    target_date: date
    total: int
    sent: int
    failed: int
    duplicate: int
