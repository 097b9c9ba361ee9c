"""
Ticket lifecycle: issuance, payment, cancellation, validation and expiry.

Prices are computed once, at issuance, and written to the ticket row. No
code path in this module recomputes them, so later changes to the price
table or to a membership never alter an issued ticket.

Status transitions that race with the gate (cancel, expire) are written
as conditional UPDATEs on the expected current state, the same way the
slot claim is, so a ticket cannot be cancelled while someone walks in on it.
"""

import random
import string
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import PricingConfig, get_settings, venue_today
from ticketing.core.errors import ConflictError, NotFoundError, ValidationError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_ticket_issued
from ticketing.core.phone import mask_phone, normalize_phone
from ticketing.core.security import StaffIdentity
from ticketing.models.ride import Ride, TicketRide
from ticketing.models.ticket import (
    Ticket, TICKET_ACTIVE, TICKET_USED, TICKET_CANCELLED, TICKET_EXPIRED,
)
from ticketing.schemas.ticket import TicketCreate
from ticketing.services.membership_service import find_active_membership
from ticketing.services.notification_service import NotificationDispatcher, Reference, notify_safely
from ticketing.services.pricing import MembershipDiscount, RideSelection, price_from_config

logger = get_logger(__name__)

TICKET_NUMBER_ATTEMPTS = 5
_BASE36 = string.digits + string.ascii_uppercase
_SUFFIX_CHARS = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class TicketValidation:
    valid: bool
    code: str
    reason: str
    ticket: Optional[Ticket] = None


def _base36(n: int) -> str:
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_ticket_number() -> str:
    """TK + base-36 epoch milliseconds + 3 random characters."""
    suffix = "".join(random.choices(_SUFFIX_CHARS, k=3))
    return f"TK{_base36(int(time.time() * 1000))}{suffix}"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def _unused_ticket_number(db: AsyncSession) -> str:
    for _ in range(TICKET_NUMBER_ATTEMPTS):
        number = generate_ticket_number()
        taken = await db.execute(select(Ticket.id).where(Ticket.ticket_number == number))
        if taken.scalar_one_or_none() is None:
            return number
    raise ConflictError("Could not allocate a ticket number, please retry", code="TICKET_NUMBER_COLLISION")


async def _load_ride_selections(db: AsyncSession, data: TicketCreate) -> list:
    if not data.rides:
        return []
    for ride in data.rides:
        if ride.quantity < 1:
            raise ValidationError("Ride quantity must be at least 1")

    ride_ids = {r.ride_id for r in data.rides}
    rows = await db.execute(select(Ride).where(Ride.id.in_(ride_ids), Ride.is_active.is_(True)))
    catalogue = {ride.id: ride for ride in rows.scalars().all()}
    missing = sorted(ride_ids - set(catalogue))
    if missing:
        raise ValidationError(
            "One or more rides are unknown or inactive",
            code="RIDE_UNAVAILABLE",
            ride_ids=missing,
        )
    return [
        RideSelection(ride_id=r.ride_id, quantity=r.quantity, unit_price=catalogue[r.ride_id].price)
        for r in data.rides
    ]


async def create_ticket(
    db: AsyncSession,
    data: TicketCreate,
    staff: Optional[StaffIdentity] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    pricing: Optional[PricingConfig] = None,
) -> Ticket:
    """
    Issue a ticket. Cash tickets are paid on the spot; online tickets stay
    pending until mark_ticket_paid().
    """
    try:
        phone = normalize_phone(data.guardian_phone)
    except ValueError:
        raise ValidationError("Invalid Bangladesh phone number format", code="INVALID_PHONE")
    if data.slot_date < venue_today():
        raise ValidationError("Cannot issue a ticket for a past date", code="PAST_DATE")
    if data.guardian_count < 1 or data.child_count < 1:
        raise ValidationError("A ticket covers at least one guardian and one child")
    if data.socks_count < 0:
        raise ValidationError("socks_count must be >= 0")
    if data.payment_type not in ("cash", "online"):
        raise ValidationError("payment_type must be cash or online")

    selections = await _load_ride_selections(db, data)
    membership = await find_active_membership(db, phone, data.slot_date)

    breakdown = price_from_config(
        pricing or get_settings().PRICING,
        guardian_count=data.guardian_count,
        child_count=data.child_count,
        socks_count=data.socks_count,
        ride_selections=selections,
        membership=MembershipDiscount.from_membership(membership) if membership else None,
        on_date=data.slot_date,
    )

    in_time = datetime.now(timezone.utc)
    out_time = in_time + timedelta(minutes=get_settings().TICKET_DURATION_MINUTES)
    staff = staff or StaffIdentity()

    ticket = None
    for attempt in range(1, TICKET_NUMBER_ATTEMPTS + 1):
        ticket = Ticket(
            ticket_number=await _unused_ticket_number(db),
            booking_id=data.booking_id,
            slot_date=data.slot_date,
            time_slot=data.time_slot,
            guardian_name=(data.guardian_name or "").strip() or "Walk-in Customer",
            guardian_phone=phone,
            guardian_count=data.guardian_count,
            child_count=data.child_count,
            socks_count=data.socks_count,
            entry_price=breakdown.entry_price,
            socks_price=breakdown.socks_price,
            addons_price=breakdown.rides_price,
            discount_applied=breakdown.discount_amount,
            total_price=breakdown.total,
            payment_type=data.payment_type,
            payment_status="paid" if data.payment_type == "cash" else "pending",
            source=data.source,
            status=TICKET_ACTIVE,
            inside_venue=False,
            membership_id=breakdown.membership_id,
            in_time=in_time,
            out_time=out_time,
            notes=data.notes,
            created_by_id=staff.id,
            created_by_name=staff.name,
        )
        db.add(ticket)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a ticket-number race between the check and the insert
            await db.rollback()
            logger.warning("ticket_number_collision", attempt=attempt)
            ticket = None
            continue

        for line in breakdown.rides:
            db.add(
                TicketRide(
                    ticket_id=ticket.id,
                    ride_id=line.ride_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total_price,
                )
            )
        await db.commit()
        break

    if ticket is None:
        raise ConflictError("Could not allocate a ticket number, please retry", code="TICKET_NUMBER_COLLISION")

    await db.refresh(ticket, attribute_names=["rides"])
    record_ticket_issued(ticket.payment_type)
    logger.info(
        "ticket_issued",
        ticket_id=ticket.id,
        ticket_number=ticket.ticket_number,
        total=ticket.total_price,
        discount=ticket.discount_applied,
        payment_type=ticket.payment_type,
        phone=mask_phone(phone),
    )

    if ticket.payment_status == "paid":
        await _notify_payment(dispatcher, ticket)
    return ticket


async def _notify_payment(dispatcher: Optional[NotificationDispatcher], ticket: Ticket) -> None:
    await notify_safely(
        dispatcher,
        ticket.guardian_phone,
        "ticket_payment",
        {
            "ticket_number": ticket.ticket_number,
            "date": str(ticket.slot_date),
            "time_slot": ticket.time_slot or "",
            "total": ticket.total_price,
            "name": ticket.guardian_name,
        },
        Reference(str(ticket.id), "ticket"),
    )


async def find_ticket(
    db: AsyncSession, ticket_id: Optional[int] = None, ticket_number: Optional[str] = None
) -> Optional[Ticket]:
    if ticket_id is None and not ticket_number:
        raise ValidationError("ticket_id or ticket_number is required")
    query = select(Ticket).execution_options(populate_existing=True)
    if ticket_id is not None:
        query = query.where(Ticket.id == ticket_id)
    else:
        query = query.where(Ticket.ticket_number == ticket_number.strip().upper())
    return (await db.execute(query)).scalar_one_or_none()


async def get_ticket(
    db: AsyncSession, ticket_id: Optional[int] = None, ticket_number: Optional[str] = None
) -> Ticket:
    ticket = await find_ticket(db, ticket_id, ticket_number)
    if ticket is None:
        raise NotFoundError("Ticket not found", code="TICKET_NOT_FOUND")
    return ticket


async def cancel_ticket(db: AsyncSession, ticket_id: int, reason: Optional[str] = None) -> Ticket:
    """Only an active ticket whose holder is not inside can be cancelled."""
    ticket = await get_ticket(db, ticket_id=ticket_id)
    note = f"[Cancelled: {(reason or '').strip() or 'No reason provided'}]"
    notes = f"{ticket.notes}\n{note}" if ticket.notes else note

    result = await db.execute(
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.status == TICKET_ACTIVE, Ticket.inside_venue.is_(False))
        .values(status=TICKET_CANCELLED, notes=notes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        ticket = await get_ticket(db, ticket_id=ticket_id)
        raise ConflictError(
            "Only an active ticket that is not inside the venue can be cancelled",
            code="TICKET_NOT_CANCELLABLE",
            status=ticket.status,
            inside_venue=ticket.inside_venue,
        )

    await db.commit()
    await db.refresh(ticket)
    logger.info("ticket_cancelled", ticket_id=ticket_id)
    return ticket


async def mark_ticket_paid(
    db: AsyncSession, ticket_id: int, dispatcher: Optional[NotificationDispatcher] = None
) -> Ticket:
    """Pending -> paid. Already-paid tickets are returned unchanged."""
    ticket = await get_ticket(db, ticket_id=ticket_id)
    if ticket.status in (TICKET_CANCELLED, TICKET_EXPIRED):
        raise ConflictError(f"Ticket is {ticket.status}", code="TICKET_NOT_PAYABLE", status=ticket.status)

    result = await db.execute(
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.payment_status == "pending")
        .values(payment_status="paid")
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(ticket)
    if result.rowcount != 1:
        return ticket

    logger.info("ticket_paid", ticket_id=ticket_id, total=ticket.total_price)
    await _notify_payment(dispatcher, ticket)
    return ticket


async def validate_ticket(
    db: AsyncSession, ticket_id: Optional[int] = None, ticket_number: Optional[str] = None
) -> TicketValidation:
    """
    Counter-side check: is this ticket good for entry right now?

    A ticket found past its out_time is marked expired as a side effect.
    """
    ticket = await find_ticket(db, ticket_id, ticket_number)
    if ticket is None:
        return TicketValidation(False, "NOT_FOUND", "Ticket not found")

    today = venue_today()
    if ticket.slot_date < today:
        return TicketValidation(False, "DATE_PASSED", "Ticket date has passed", ticket)
    if ticket.slot_date > today:
        return TicketValidation(False, "FUTURE_DATE", f"Ticket is valid on {ticket.slot_date}", ticket)
    if ticket.status == TICKET_CANCELLED:
        return TicketValidation(False, "CANCELLED", "Ticket is cancelled", ticket)
    if ticket.status == TICKET_EXPIRED:
        return TicketValidation(False, "EXPIRED", "Ticket is expired", ticket)
    if ticket.status == TICKET_USED:
        return TicketValidation(False, "ALREADY_USED", "Ticket has already been used", ticket)

    out_time = _as_utc(ticket.out_time)
    if out_time is not None and datetime.now(timezone.utc) > out_time:
        await db.execute(
            update(Ticket)
            .where(Ticket.id == ticket.id, Ticket.status == TICKET_ACTIVE, Ticket.inside_venue.is_(False))
            .values(status=TICKET_EXPIRED)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(ticket)
        logger.info("ticket_time_expired", ticket_id=ticket.id)
        return TicketValidation(False, "TIME_EXPIRED", "Ticket time has expired", ticket)

    return TicketValidation(True, "VALID", "Ticket is valid", ticket)


async def expire_tickets(db: AsyncSession, today: Optional[date] = None) -> int:
    """Sweep: active tickets dated before today become expired."""
    today = today or venue_today()
    result = await db.execute(
        update(Ticket)
        .where(Ticket.status == TICKET_ACTIVE, Ticket.slot_date < today, Ticket.inside_venue.is_(False))
        .values(status=TICKET_EXPIRED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("tickets_expired", count=result.rowcount, today=str(today))
    return result.rowcount
