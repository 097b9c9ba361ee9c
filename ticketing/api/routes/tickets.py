"""
Ticket endpoints: issuance at the counter or online, payment, cancellation,
validation and the expiry sweep trigger.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import get_dispatcher
from ticketing.db.session import get_db
from ticketing.schemas.ticket import (
    ExpireRequest,
    ExpireResponse,
    TicketCancelRequest,
    TicketCreate,
    TicketLookup,
    TicketResponse,
    TicketValidationResponse,
)
from ticketing.services.ticket_service import (
    cancel_ticket,
    create_ticket,
    expire_tickets,
    get_ticket,
    mark_ticket_paid,
    validate_ticket,
)
from ticketing.services.notification_service import NotificationDispatcher
from ticketing.core.security import StaffIdentity, get_current_staff

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post("/", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket_endpoint(
    ticket_data: TicketCreate,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Issue a ticket with its price breakdown frozen at issuance.
    Cash tickets are paid immediately; online tickets stay pending.
    """
    ticket = await create_ticket(db, ticket_data, staff=staff, dispatcher=dispatcher)
    return TicketResponse.from_ticket(ticket)


@router.post("/validate", response_model=TicketValidationResponse)
async def validate_ticket_endpoint(
    lookup: TicketLookup,
    db: AsyncSession = Depends(get_db),
):
    result = await validate_ticket(db, lookup.ticket_id, lookup.ticket_number)
    return TicketValidationResponse(
        valid=result.valid,
        code=result.code,
        reason=result.reason,
        ticket_id=result.ticket.id if result.ticket else None,
        ticket_number=result.ticket.ticket_number if result.ticket else None,
    )


@router.post("/expire", response_model=ExpireResponse)
async def expire_tickets_endpoint(
    request: ExpireRequest,
    db: AsyncSession = Depends(get_db),
):
    """Sweep trigger for an external scheduler."""
    return ExpireResponse(expired=await expire_tickets(db, request.today))


@router.get("/{ref}", response_model=TicketResponse)
async def get_ticket_endpoint(
    ref: str,
    db: AsyncSession = Depends(get_db),
):
    """Look a ticket up by numeric id or by ticket number."""
    if ref.isdigit():
        ticket = await get_ticket(db, ticket_id=int(ref))
    else:
        ticket = await get_ticket(db, ticket_number=ref)
    return TicketResponse.from_ticket(ticket)


@router.post("/{ticket_id}/cancel", response_model=TicketResponse)
async def cancel_ticket_endpoint(
    ticket_id: int,
    request: TicketCancelRequest,
    db: AsyncSession = Depends(get_db),
):
    ticket = await cancel_ticket(db, ticket_id, request.reason)
    return TicketResponse.from_ticket(ticket)


@router.post("/{ticket_id}/pay", response_model=TicketResponse)
async def mark_ticket_paid_endpoint(
    ticket_id: int,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    ticket = await mark_ticket_paid(db, ticket_id, dispatcher)
    return TicketResponse.from_ticket(ticket)
