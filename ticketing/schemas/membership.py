"""
Pydantic schemas for memberships.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class MembershipCreate(BaseModel):
    member_name: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., max_length=20)
    membership_type: str = Field(..., pattern=r"^(monthly|quarterly|yearly)$")
    child_count: int = Field(default=1, ge=1, le=20)
    discount_percent: int = Field(default=100, ge=0, le=100)
    valid_from: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=500)


class MembershipStatusUpdate(BaseModel):
    status: str = Field(..., pattern=r"^(active|expired|cancelled)$")


class MembershipResponse(BaseModel):
    id: int
    member_name: str
    phone: str
    child_count: int
    membership_type: str
    discount_percent: int
    valid_from: date
    valid_till: date
    status: str

    model_config = {"from_attributes": True}


class MembershipLookupResponse(BaseModel):
    found: bool
    membership: Optional[MembershipResponse] = None


class MembershipExpireResponse(BaseModel):
    expired: int
