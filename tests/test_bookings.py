"""
Tests for booking endpoints: slot claim, rollback on failure, cancellation and refunds.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from ticketing.api.deps import get_dispatcher
from ticketing.core.errors import BookingFailedError, ConflictError
from ticketing.core.security import StaffIdentity
from ticketing.main import app
from ticketing.models.booking import Booking
from ticketing.models.notification_log import NotificationLog
from ticketing.models.payment import Payment
from ticketing.models.slot import Slot
from ticketing.schemas.booking import BookingCreate
from ticketing.services import booking_service
from ticketing.services.booking_service import (
    cancel_booking,
    create_booking,
    send_booking_reminders,
    update_booking,
)

LABEL = "11:00 - 12:00"


def _payload(day, **overrides):
    body = {
        "parent_name": "Karim Ahmed",
        "parent_phone": "+8801812345678",
        "date": day.isoformat(),
        "time_slot": LABEL,
        "child_count": 2,
    }
    body.update(overrides)
    return body


async def _slot_status(session, slot_id):
    return (await session.execute(select(Slot.status).where(Slot.id == slot_id))).scalar_one()


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, senders, tomorrow):
    """Booking is confirmed, phone normalised, slot claimed, guest notified."""
    response = await client.post("/api/v1/bookings/", json=_payload(tomorrow))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["payment_status"] == "unpaid"
    assert data["parent_phone"] == "01812345678"
    assert data["time_slot"] == LABEL

    assert len(senders["sms"].calls) == 1
    phone, message = senders["sms"].calls[0]
    assert phone == "01812345678"
    assert "Karim Ahmed" in message


@pytest.mark.asyncio
async def test_double_booking_conflicts(client: AsyncClient, tomorrow):
    first = await client.post("/api/v1/bookings/", json=_payload(tomorrow))
    assert first.status_code == 201

    second = await client.post("/api/v1/bookings/", json=_payload(tomorrow, parent_name="Someone Else"))
    assert second.status_code == 409
    assert second.json()["code"] == "SLOT_UNAVAILABLE"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"parent_phone": "12345"}, "INVALID_PHONE"),
        ({"parent_name": "<b>A</b>"}, "INVALID_NAME"),
    ],
)
async def test_validation_rejects_before_any_write(client: AsyncClient, db_session, tomorrow, overrides, code):
    response = await client.post("/api/v1/bookings/", json=_payload(tomorrow, **overrides))
    assert response.status_code == 400
    assert response.json()["code"] == code

    slots = (await db_session.execute(select(func.count(Slot.id)))).scalar_one()
    bookings = (await db_session.execute(select(func.count(Booking.id)))).scalar_one()
    assert slots == 0 and bookings == 0


@pytest.mark.asyncio
async def test_past_date_rejected(client: AsyncClient, today):
    response = await client.post("/api/v1/bookings/", json=_payload(today - timedelta(days=1)))
    assert response.status_code == 400
    assert response.json()["code"] == "PAST_DATE"


@pytest.mark.asyncio
async def test_zero_children_rejected_by_schema(client: AsyncClient, tomorrow):
    response = await client.post("/api/v1/bookings/", json=_payload(tomorrow, child_count=0))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_failed_insert_releases_slot(db_session, monkeypatch, tomorrow):
    """If the booking row cannot be written the claimed slot is given back."""

    async def broken_persist(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(booking_service, "_persist_booking", broken_persist)

    with pytest.raises(BookingFailedError):
        await create_booking(db_session, BookingCreate(**_payload(tomorrow)))

    slot = (
        await db_session.execute(select(Slot).where(Slot.slot_date == tomorrow, Slot.time_slot == LABEL))
    ).scalar_one()
    assert await _slot_status(db_session, slot.id) == "available"
    assert (await db_session.execute(select(func.count(Booking.id)))).scalar_one() == 0

    monkeypatch.undo()
    booking = await create_booking(db_session, BookingCreate(**_payload(tomorrow)))
    assert booking.slot_id == slot.id


@pytest.mark.asyncio
async def test_failed_booking_endpoint_returns_500(client: AsyncClient, monkeypatch, tomorrow):
    async def broken_persist(*args, **kwargs):
        raise RuntimeError("constraint violated")

    monkeypatch.setattr(booking_service, "_persist_booking", broken_persist)
    response = await client.post("/api/v1/bookings/", json=_payload(tomorrow))
    assert response.status_code == 500
    assert response.json()["code"] == "BOOKING_FAILED"


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_booking(db_session, ledger_down_dispatcher, tomorrow):
    booking = await create_booking(db_session, BookingCreate(**_payload(tomorrow)), ledger_down_dispatcher)
    assert booking.status == "confirmed"
    assert booking.parent_phone == "01812345678"

    stored = (await db_session.execute(select(Booking).where(Booking.id == booking.id))).scalar_one()
    assert stored.status == "confirmed"


@pytest.mark.asyncio
async def test_booking_endpoint_survives_notification_failure(client: AsyncClient, ledger_down_dispatcher, tomorrow):
    app.dependency_overrides[get_dispatcher] = lambda: ledger_down_dispatcher

    response = await client.post("/api/v1/bookings/", json=_payload(tomorrow))
    assert response.status_code == 201
    assert response.json()["status"] == "confirmed"

    cancelled = await client.post(f"/api/v1/bookings/{response.json()['id']}/cancel", json={})
    assert cancelled.status_code == 200
    assert cancelled.json()["booking"]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_cancel_releases_slot(client: AsyncClient, db_session, tomorrow):
    """Cancelling frees the slot for the next guest."""
    created = (await client.post("/api/v1/bookings/", json=_payload(tomorrow))).json()

    response = await client.post(f"/api/v1/bookings/{created['id']}/cancel", json={"reason": "Sick child"})
    assert response.status_code == 200
    data = response.json()
    assert data["booking"]["status"] == "cancelled"
    assert "[Cancelled: Sick child]" in data["booking"]["notes"]
    assert data["refund_info"] is None
    assert await _slot_status(db_session, created["slot_id"]) == "available"

    rebook = await client.post("/api/v1/bookings/", json=_payload(tomorrow, parent_name="Next Guest"))
    assert rebook.status_code == 201


@pytest.mark.asyncio
async def test_cancel_twice_conflicts(client: AsyncClient, tomorrow):
    created = (await client.post("/api/v1/bookings/", json=_payload(tomorrow))).json()
    await client.post(f"/api/v1/bookings/{created['id']}/cancel", json={})

    again = await client.post(f"/api/v1/bookings/{created['id']}/cancel", json={})
    assert again.status_code == 409
    assert again.json()["code"] == "BOOKING_ALREADY_CANCELLED"


@pytest.mark.asyncio
async def test_cancel_missing_booking(client: AsyncClient):
    response = await client.post("/api/v1/bookings/9999/cancel", json={})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_default_reason(db_session, tomorrow):
    booking = await create_booking(db_session, BookingCreate(**_payload(tomorrow)))
    result = await cancel_booking(db_session, booking.id)
    assert result.booking.notes.endswith("[Cancelled: No reason provided]")


@pytest.mark.asyncio
async def test_refund_only_when_paid(db_session, tomorrow):
    unpaid = await create_booking(db_session, BookingCreate(**_payload(tomorrow)))
    result = await cancel_booking(db_session, unpaid.id, refund=True)
    assert result.refund_info is None
    assert result.booking.payment_status == "unpaid"


@pytest.mark.asyncio
async def test_refund_for_paid_booking(db_session, tomorrow):
    booking = await create_booking(db_session, BookingCreate(**_payload(tomorrow)))
    staff = StaffIdentity(id="s-1", name="Counter One")
    await update_booking(db_session, booking.id, staff, payment_status="paid", amount=1200)

    result = await cancel_booking(db_session, booking.id, refund=True, reason="Venue closed")
    assert result.refund_info == {
        "amount": 1200,
        "status": "manual_refund_required",
        "message": "Refund must be processed manually through the payment provider",
    }
    assert result.booking.payment_status == "refunded"

    payment = (await db_session.execute(select(Payment).where(Payment.booking_id == booking.id))).scalar_one()
    assert payment.status == "refunded"
    assert payment.refund_reason == "Venue closed"
    assert payment.refunded_at is not None


@pytest.mark.asyncio
async def test_update_booking_audit_note(client: AsyncClient, tomorrow):
    created = (await client.post("/api/v1/bookings/", json=_payload(tomorrow))).json()

    response = await client.patch(
        f"/api/v1/bookings/{created['id']}",
        json={"status": "pending", "payment_status": "pending"},
        headers={"X-Staff-Id": "s-9", "X-Staff-Name": "Rafi"},
    )
    assert response.status_code == 200
    notes = response.json()["notes"]
    assert "[status: confirmed → pending by Rafi]" in notes
    assert "[payment_status: unpaid → pending by Rafi]" in notes


@pytest.mark.asyncio
async def test_update_cannot_cancel(client: AsyncClient, tomorrow):
    created = (await client.post("/api/v1/bookings/", json=_payload(tomorrow))).json()
    response = await client.patch(f"/api/v1/bookings/{created['id']}", json={"status": "cancelled"})
    assert response.status_code == 400
    assert response.json()["code"] == "USE_CANCEL"


@pytest.mark.asyncio
async def test_reminders_are_sent_once(db_session, dispatcher, senders, tomorrow):
    first = await create_booking(db_session, BookingCreate(**_payload(tomorrow)))
    second = await create_booking(
        db_session, BookingCreate(**_payload(tomorrow, time_slot="12:00 - 13:00", parent_phone="01912345678"))
    )
    cancelled = await create_booking(db_session, BookingCreate(**_payload(tomorrow, time_slot="13:00 - 14:00")))
    await cancel_booking(db_session, cancelled.id)

    summary = await send_booking_reminders(db_session, dispatcher, tomorrow)
    assert summary["total"] == 2
    assert summary["sent"] == 2
    assert len(senders["sms"].calls) == 2

    rerun = await send_booking_reminders(db_session, dispatcher, tomorrow)
    assert rerun["duplicate"] == 2
    assert len(senders["sms"].calls) == 2

    references = (
        await db_session.execute(
            select(NotificationLog.reference_id).where(NotificationLog.reference_type == "booking_reminder")
        )
    ).scalars().all()
    assert sorted(references) == sorted([str(first.id), str(second.id)])


@pytest.mark.asyncio
async def test_reminders_endpoint(client: AsyncClient, tomorrow):
    await client.post("/api/v1/bookings/", json=_payload(tomorrow))
    response = await client.post("/api/v1/bookings/reminders", json={"target_date": tomorrow.isoformat()})
    assert response.status_code == 200
    assert response.json()["sent"] == 1


@pytest.mark.asyncio
async def test_reserved_slot_blocks_booking(db_session, tomorrow):
    from ticketing.services.slot_service import reserve_slot

    await reserve_slot(db_session, tomorrow, LABEL)
    with pytest.raises(ConflictError):
        await create_booking(db_session, BookingCreate(**_payload(tomorrow)))
