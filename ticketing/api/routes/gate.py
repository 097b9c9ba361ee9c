"""
Gate endpoints: entry/exit scans and the gate log.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.gate import GateLogListResponse, GateLogResponse, GateScanRequest, GateScanResponse
from ticketing.services.gate_service import list_gate_logs, scan
from ticketing.core.security import StaffIdentity, get_current_staff

router = APIRouter(prefix="/gate", tags=["Gate"])


@router.post("/scan", response_model=GateScanResponse)
async def scan_endpoint(
    request: GateScanRequest,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    """
    Process a gate scan.

    Rejections come back as 409 with a reason code (ALREADY_INSIDE,
    TICKET_COMPLETED, NOT_INSIDE, ...), or 404 TICKET_NOT_FOUND.
    """
    result = await scan(
        db,
        action=request.action,
        gate_id=request.gate_id,
        staff=staff,
        ticket_id=request.ticket_id,
        ticket_number=request.ticket_number,
    )
    ticket = result.ticket
    return GateScanResponse(
        action=request.action,
        ticket_id=ticket.id,
        ticket_number=ticket.ticket_number,
        guardian_name=ticket.guardian_name,
        child_count=ticket.child_count,
        inside_venue=ticket.inside_venue,
        status=ticket.status,
        log=GateLogResponse.model_validate(result.log),
    )


@router.get("/logs", response_model=GateLogListResponse)
async def list_gate_logs_endpoint(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    gate_id: Optional[str] = Query(None, max_length=50),
    entry_type: Optional[str] = Query(None, pattern=r"^(entry|exit)$"),
    ticket_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    logs, total = await list_gate_logs(
        db,
        date_from=date_from,
        date_to=date_to,
        gate_id=gate_id,
        entry_type=entry_type,
        ticket_id=ticket_id,
        page=page,
        page_size=page_size,
    )
    return GateLogListResponse(
        logs=[GateLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
    )
