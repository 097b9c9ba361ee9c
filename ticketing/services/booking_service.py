"""
Booking service: scheduled visits on top of the slot reservation.

CONSISTENCY STRATEGY: Claim, Persist, Compensate
================================================

A booking is two writes that cannot share one short transaction without
holding the slot row locked while the booking row is built:

  1. reserve_slot() claims the slot with a conditional UPDATE and commits
  2. the booking row is inserted and committed

If step 2 fails for any reason the slot is released again (the
compensating action) and the caller gets a BookingFailedError. A failed
booking therefore never leaves a slot stuck in 'booked'.

Cancellation is the inverse: the booking is flipped to cancelled with a
conditional UPDATE (so two cancels cannot both succeed) and the slot is
released in the same transaction.

Notifications go out after the commit through notify_safely(), so a
provider outage can never undo or fail a booking.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import venue_today
from ticketing.core.errors import BookingFailedError, ConflictError, NotFoundError, ValidationError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_slot_release
from ticketing.core.phone import mask_phone, normalize_phone
from ticketing.core.security import StaffIdentity
from ticketing.models.booking import Booking
from ticketing.models.payment import Payment
from ticketing.schemas.booking import BookingCreate
from ticketing.services.notification_service import NotificationDispatcher, Reference, notify_safely
from ticketing.services.slot_service import SlotHandle, release_slot, reserve_slot, mark_slot_available

logger = get_logger(__name__)

BOOKING_STATUSES = ("pending", "confirmed", "cancelled")
PAYMENT_STATUSES = ("unpaid", "pending", "paid", "refunded")
NOTES_LIMIT = 500

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass
class CancellationResult:
    booking: Booking
    refund_info: Optional[dict] = None


def sanitize_text(value: Optional[str]) -> str:
    """Strip markup and surrounding whitespace from free text."""
    return _TAG_RE.sub("", value or "").strip()


def _validate_request(data: BookingCreate) -> tuple:
    name = sanitize_text(data.parent_name)
    if not 2 <= len(name) <= 100:
        raise ValidationError("Name must be between 2 and 100 characters", code="INVALID_NAME")
    try:
        phone = normalize_phone(data.parent_phone)
    except ValueError:
        raise ValidationError("Invalid Bangladesh phone number format", code="INVALID_PHONE")
    if data.slot_date < venue_today():
        raise ValidationError("Cannot book a past date", code="PAST_DATE")
    if data.child_count < 1:
        raise ValidationError("child_count must be at least 1")
    notes = sanitize_text(data.notes)
    if len(notes) > NOTES_LIMIT:
        raise ValidationError(f"Notes must be at most {NOTES_LIMIT} characters")
    return name, phone, notes or None


async def _persist_booking(
    db: AsyncSession,
    handle: SlotHandle,
    name: str,
    phone: str,
    child_count: int,
    notes: Optional[str],
) -> Booking:
    booking = Booking(
        slot_id=handle.slot_id,
        slot_date=handle.slot_date,
        time_slot=handle.time_slot,
        parent_name=name,
        parent_phone=phone,
        child_count=child_count,
        status="confirmed",
        payment_status="unpaid",
        notes=notes,
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    return booking


async def create_booking(
    db: AsyncSession,
    data: BookingCreate,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Booking:
    """
    Reserve the slot, then record the booking.
    Raises ConflictError(SLOT_UNAVAILABLE) when the slot is taken and
    BookingFailedError when the booking row could not be written.
    """
    name, phone, notes = _validate_request(data)

    handle = await reserve_slot(db, data.slot_date, data.time_slot)

    try:
        booking = await _persist_booking(db, handle, name, phone, data.child_count, notes)
    except Exception as e:
        await db.rollback()
        await release_slot(db, handle.slot_id, reason="rollback")
        logger.error(
            "booking_failed_slot_released",
            slot_id=handle.slot_id,
            error=str(e),
        )
        raise BookingFailedError("Could not complete your booking. Please try again.") from e

    logger.info(
        "booking_created",
        booking_id=booking.id,
        slot_id=handle.slot_id,
        slot_date=str(handle.slot_date),
        phone=mask_phone(phone),
    )

    await notify_safely(
        dispatcher,
        phone,
        "booking_confirmed",
        {"date": str(booking.slot_date), "time_slot": booking.time_slot, "name": booking.parent_name},
        Reference(str(booking.id), "booking"),
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    booking = await db.get(Booking, booking_id, populate_existing=True)
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    refund: bool = False,
    reason: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> CancellationResult:
    """
    Cancel a booking and release its slot.
    A refund on a paid booking is recorded for manual processing; no money moves here.
    """
    booking = await get_booking(db, booking_id)
    if booking.status == "cancelled":
        raise ConflictError("Booking is already cancelled", code="BOOKING_ALREADY_CANCELLED")

    note = f"[Cancelled: {sanitize_text(reason) or 'No reason provided'}]"
    notes = f"{booking.notes}\n{note}" if booking.notes else note
    values = {"status": "cancelled", "notes": notes}

    refund_info = None
    if refund and booking.payment_status == "paid":
        payment = (
            await db.execute(
                select(Payment)
                .where(Payment.booking_id == booking.id, Payment.status == "completed")
                .order_by(Payment.id.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
        amount = payment.amount if payment else 0
        if payment:
            payment.status = "refunded"
            payment.refunded_at = datetime.now(timezone.utc)
            payment.refund_reason = sanitize_text(reason) or "Booking cancelled"
        values["payment_status"] = "refunded"
        refund_info = {
            "amount": amount,
            "status": "manual_refund_required",
            "message": "Refund must be processed manually through the payment provider",
        }

    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status != "cancelled")
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise ConflictError("Booking is already cancelled", code="BOOKING_ALREADY_CANCELLED")

    released = False
    if booking.slot_id is not None:
        released = await mark_slot_available(db, booking.slot_id)

    await db.commit()
    await db.refresh(booking)

    if released:
        record_slot_release("cancellation")
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        slot_id=booking.slot_id,
        slot_released=released,
        refund_requested=refund_info is not None,
    )

    refund_note = ""
    if refund_info:
        refund_note = f"Refund of ৳{refund_info['amount']} will be processed manually."
    await notify_safely(
        dispatcher,
        booking.parent_phone,
        "booking_cancelled",
        {
            "date": str(booking.slot_date),
            "time_slot": booking.time_slot,
            "name": booking.parent_name,
            "refund_note": refund_note,
        },
        Reference(str(booking.id), "booking_cancellation"),
    )
    return CancellationResult(booking=booking, refund_info=refund_info)


async def update_booking(
    db: AsyncSession,
    booking_id: int,
    staff: StaffIdentity,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    amount: Optional[int] = None,
    payment_method: str = "cash",
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Booking:
    """
    Staff edits to status / payment status, each recorded as an audit note.

    Marking a booking paid with an amount records a completed Payment and
    sends the payment confirmation.
    """
    if status is not None and status not in BOOKING_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(BOOKING_STATUSES)}")
    if status == "cancelled":
        raise ValidationError("Use the cancel endpoint to cancel a booking", code="USE_CANCEL")
    if payment_status is not None and payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
    if amount is not None and amount < 0:
        raise ValidationError("amount must be >= 0")

    booking = await get_booking(db, booking_id)
    if booking.status == "cancelled":
        raise ConflictError("Cancelled bookings cannot be edited", code="BOOKING_ALREADY_CANCELLED")

    newly_paid = False
    if status is not None and status != booking.status:
        booking.append_note(f"[status: {booking.status} → {status} by {staff.display_name}]")
        booking.status = status
    if payment_status is not None and payment_status != booking.payment_status:
        booking.append_note(
            f"[payment_status: {booking.payment_status} → {payment_status} by {staff.display_name}]"
        )
        newly_paid = payment_status == "paid"
        booking.payment_status = payment_status

    if newly_paid and amount is not None:
        db.add(Payment(booking_id=booking.id, amount=amount, method=payment_method, status="completed"))

    await db.commit()
    await db.refresh(booking)
    logger.info(
        "booking_updated",
        booking_id=booking.id,
        status=booking.status,
        payment_status=booking.payment_status,
        staff_id=staff.id,
    )

    if newly_paid and amount is not None:
        await notify_safely(
            dispatcher,
            booking.parent_phone,
            "booking_payment",
            {
                "date": str(booking.slot_date),
                "time_slot": booking.time_slot,
                "total": amount,
                "name": booking.parent_name,
            },
            Reference(str(booking.id), "booking_payment"),
        )
    return booking


async def send_booking_reminders(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    target_date: Optional[date] = None,
) -> dict:
    """Remind every confirmed booking on target_date (default tomorrow). Safe to re-run."""
    target_date = target_date or venue_today() + timedelta(days=1)
    bookings = (
        await db.execute(
            select(Booking)
            .where(Booking.slot_date == target_date, Booking.status == "confirmed")
            .order_by(Booking.id)
        )
    ).scalars().all()

    summary = {"target_date": target_date, "total": len(bookings), "sent": 0, "failed": 0, "duplicate": 0}
    for booking in bookings:
        result = await notify_safely(
            dispatcher,
            booking.parent_phone,
            "booking_reminder",
            {"date": str(booking.slot_date), "time_slot": booking.time_slot, "name": booking.parent_name},
            Reference(str(booking.id), "booking_reminder"),
        )
        if result is None or not result.success:
            summary["failed"] += 1
        elif result.duplicate:
            summary["duplicate"] += 1
        else:
            summary["sent"] += 1

    logger.info(
        "booking_reminders_sent",
        target_date=str(target_date),
        total=summary["total"],
        sent=summary["sent"],
        failed=summary["failed"],
        duplicate=summary["duplicate"],
    )
    return summary
