"""
Pydantic schemas for the notification endpoint.
"""

from typing import Optional
from pydantic import BaseModel, Field


class NotificationRequest(BaseModel):
    phone: str = Field(..., max_length=20)
    message: str = Field(..., min_length=1, max_length=1600)
    channel: str = Field(default="sms", pattern=r"^(sms|whatsapp|both)$")
    reference_id: Optional[str] = Field(None, max_length=64)
    reference_type: Optional[str] = Field(None, max_length=30)


class ChannelOutcomeResponse(BaseModel):
    channel: str
    success: bool
    attempts: int
    duplicate: bool
    error: Optional[str] = None


class NotificationResponse(BaseModel):
    success: bool
    duplicate: bool
    results: dict[str, ChannelOutcomeResponse]
