"""
Pydantic schemas for gate scans and the gate log.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class GateScanRequest(BaseModel):
    ticket_id: Optional[int] = None
    ticket_number: Optional[str] = Field(None, max_length=32)
    action: str = Field(..., pattern=r"^(entry|exit)$")
    gate_id: str = Field(default="main_gate", min_length=1, max_length=50)


class GateLogResponse(BaseModel):
    id: int
    ticket_id: int
    entry_type: str
    gate_id: str
    camera_ref: Optional[str]
    scanned_by_id: Optional[str]
    scanned_by_name: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class GateScanResponse(BaseModel):
    success: bool = True
    action: str
    ticket_id: int
    ticket_number: str
    guardian_name: str
    child_count: int
    inside_venue: bool
    status: str
    log: GateLogResponse


class GateLogListResponse(BaseModel):
    logs: list[GateLogResponse]
    total: int
    page: int
    page_size: int
