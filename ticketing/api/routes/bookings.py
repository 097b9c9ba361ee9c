"""
Booking endpoints: create on top of the slot claim, cancel, staff edits, reminders.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import get_dispatcher
from ticketing.db.session import get_db
from ticketing.schemas.booking import (
    BookingCancelRequest,
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    ReminderRequest,
    ReminderSummary,
)
from ticketing.services.booking_service import (
    cancel_booking,
    create_booking,
    send_booking_reminders,
    update_booking,
)
from ticketing.services.cache_service import invalidate_slot_cache
from ticketing.services.notification_service import NotificationDispatcher
from ticketing.core.security import StaffIdentity, get_current_staff
from ticketing.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Book a (date, time slot).

    Returns 409 SLOT_UNAVAILABLE if someone else holds the slot, and 500
    BOOKING_FAILED (with the slot released again) if the booking could not
    be recorded.
    """
    booking = await create_booking(db, booking_data, dispatcher)
    await invalidate_slot_cache(booking.slot_date)
    return booking


# Registered before /{booking_id} so "reminders" is not parsed as an id
@router.post("/reminders", response_model=ReminderSummary)
async def send_reminders_endpoint(
    request: ReminderRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Cron trigger: remind tomorrow's (or target_date's) confirmed bookings."""
    return await send_booking_reminders(db, dispatcher, request.target_date)


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    request: BookingCancelRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Cancel a booking and release its slot for rebooking."""
    result = await cancel_booking(db, booking_id, request.refund, request.reason, dispatcher)
    await invalidate_slot_cache(result.booking.slot_date)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking=BookingResponse.model_validate(result.booking),
        refund_info=result.refund_info,
    )


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking_endpoint(
    booking_id: int,
    request: BookingUpdate,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return await update_booking(
        db,
        booking_id,
        staff,
        status=request.status,
        payment_status=request.payment_status,
        amount=request.amount,
        payment_method=request.payment_method,
        dispatcher=dispatcher,
    )
