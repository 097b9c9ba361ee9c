"""
Pydantic schemas for slot listing and reservation.
"""

from datetime import date, time
from pydantic import BaseModel, Field


class SlotReserveRequest(BaseModel):
    slot_date: date = Field(..., alias="date")
    time_slot: str = Field(..., min_length=1, max_length=32)

    model_config = {"populate_by_name": True}


class SlotResponse(BaseModel):
    id: int
    slot_date: date
    time_slot: str
    start_time: time
    end_time: time
    status: str

    model_config = {"from_attributes": True}


class SlotListResponse(BaseModel):
    slot_date: date
    slots: list[SlotResponse]
    cached: bool = False


class SlotReserveResponse(BaseModel):
    slot_id: int
    slot_date: date
    time_slot: str
    status: str = "booked"
