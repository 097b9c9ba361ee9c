"""
Slot reservation with a store-level compare-and-swap.

CONCURRENCY STRATEGY: Conditional Update, No Retry
==================================================

Problem:
  Two guests pick the same (date, time slot) at the same moment.
  Both read status='available', both write 'booked', both get a booking.

Solution:
  The claim is a single conditional statement:

    UPDATE slots SET status = 'booked'
    WHERE id = :slot_id AND status = 'available'

  The database serializes writers on the row, so exactly one caller sees
  rows_affected == 1. Everyone else sees 0 and gets a Conflict.

  Unlike seat inventory there is nothing to retry: a lost race means the
  slot is gone, so the caller must pick a different one.

  The claim is committed on its own. The booking row is written afterwards,
  and if that fails the caller releases the slot (compensating action).
  A released slot is immediately re-bookable.

Slots are created lazily: the first request for a date/label pair inserts
the row. Two first requests racing on the insert are resolved by the unique
constraint on (slot_date, time_slot); the loser simply re-reads the row.
"""

import re
import time
from dataclasses import dataclass
from datetime import date, time as dt_time
from typing import List, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.errors import ConflictError, ValidationError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_reservation, record_slot_release, reservation_latency
from ticketing.models.slot import Slot, SLOT_AVAILABLE, SLOT_BOOKED

logger = get_logger(__name__)

# Opening hours 10:00 - 21:00, one slot per hour
DEFAULT_SLOT_HOURS = range(10, 21)

_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*$")


@dataclass(frozen=True)
class SlotHandle:
    slot_id: int
    slot_date: date
    time_slot: str


def make_label(start_hour: int) -> str:
    return f"{start_hour:02d}:00 - {start_hour + 1:02d}:00"


def parse_time_slot(label: str) -> Tuple[dt_time, dt_time]:
    """Parse a "HH:MM - HH:MM" label into (start, end)."""
    match = _LABEL_RE.match(label or "")
    if not match:
        raise ValidationError("Invalid time slot. Use 'HH:MM - HH:MM'", code="INVALID_TIME_SLOT")
    h1, m1, h2, m2 = (int(g) for g in match.groups())
    try:
        start, end = dt_time(h1, m1), dt_time(h2, m2)
    except ValueError:
        raise ValidationError("Invalid time slot. Use 'HH:MM - HH:MM'", code="INVALID_TIME_SLOT")
    if end <= start:
        raise ValidationError("Time slot must end after it starts", code="INVALID_TIME_SLOT")
    return start, end


def canonical_label(label: str) -> str:
    start, end = parse_time_slot(label)
    return f"{start:%H:%M} - {end:%H:%M}"


async def _find_slot(db: AsyncSession, slot_date: date, time_slot: str):
    result = await db.execute(
        select(Slot)
        .where(Slot.slot_date == slot_date, Slot.time_slot == time_slot)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_slot(db: AsyncSession, slot_date: date, time_slot: str) -> Slot:
    label = canonical_label(time_slot)
    slot = await _find_slot(db, slot_date, label)
    if slot:
        return slot

    start, end = parse_time_slot(label)
    db.add(Slot(slot_date=slot_date, time_slot=label, start_time=start, end_time=end, status=SLOT_AVAILABLE))
    try:
        await db.commit()
    except IntegrityError:
        # Someone else created it first
        await db.rollback()
    slot = await _find_slot(db, slot_date, label)
    if slot is None:
        raise ConflictError("Slot could not be created", code="SLOT_UNAVAILABLE")
    logger.info("slot_created", slot_id=slot.id, slot_date=str(slot_date), time_slot=label)
    return slot


async def reserve_slot(db: AsyncSession, slot_date: date, time_slot: str) -> SlotHandle:
    """
    Claim a (date, time slot) exactly once.
    Raises ConflictError(SLOT_UNAVAILABLE) if anyone else holds it.
    """
    started = time.perf_counter()
    slot = await get_or_create_slot(db, slot_date, time_slot)
    # Plain values only past this point: a rollback expires the instance
    slot_id, label = slot.id, slot.time_slot

    claimed = False
    if slot.status == SLOT_AVAILABLE:
        result = await db.execute(
            update(Slot)
            .where(Slot.id == slot_id, Slot.status == SLOT_AVAILABLE)
            .values(status=SLOT_BOOKED)
            .execution_options(synchronize_session=False)
        )
        claimed = result.rowcount == 1

    reservation_latency.observe(time.perf_counter() - started)

    if not claimed:
        await db.rollback()
        record_reservation("conflict")
        logger.info("slot_conflict", slot_id=slot_id, slot_date=str(slot_date), time_slot=label)
        raise ConflictError(
            "Slot no longer available. Please select another time.",
            code="SLOT_UNAVAILABLE",
            slot_id=slot_id,
        )

    await db.commit()
    record_reservation("reserved")
    logger.info("slot_reserved", slot_id=slot_id, slot_date=str(slot_date), time_slot=label)
    return SlotHandle(slot_id=slot_id, slot_date=slot_date, time_slot=label)


async def mark_slot_available(db: AsyncSession, slot_id: int) -> bool:
    """Flip a slot back to available without committing. Returns True if it was booked."""
    result = await db.execute(
        update(Slot)
        .where(Slot.id == slot_id, Slot.status == SLOT_BOOKED)
        .values(status=SLOT_AVAILABLE)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_slot(db: AsyncSession, slot_id: int, reason: str = "rollback") -> bool:
    """Compensating action: make a claimed slot bookable again."""
    released = await mark_slot_available(db, slot_id)
    await db.commit()
    if released:
        record_slot_release(reason)
        logger.info("slot_released", slot_id=slot_id, reason=reason)
    return released


async def list_slots(db: AsyncSession, slot_date: date) -> List[Slot]:
    """
    A day's slots ordered by start time.
    Generates the default opening-hours slots the first time a date is viewed.
    """
    query = (
        select(Slot)
        .where(Slot.slot_date == slot_date)
        .order_by(Slot.start_time.asc())
        .execution_options(populate_existing=True)
    )
    slots = list((await db.execute(query)).scalars().all())
    existing = {s.time_slot for s in slots}
    missing = [make_label(h) for h in DEFAULT_SLOT_HOURS if make_label(h) not in existing]
    if not missing:
        return slots

    for label in missing:
        start, end = parse_time_slot(label)
        db.add(Slot(slot_date=slot_date, time_slot=label, start_time=start, end_time=end, status=SLOT_AVAILABLE))
    try:
        await db.commit()
        logger.info("slots_generated", slot_date=str(slot_date), count=len(missing))
    except IntegrityError:
        # A concurrent viewer or reservation got there first; insert one by one
        await db.rollback()
        for label in missing:
            start, end = parse_time_slot(label)
            db.add(Slot(slot_date=slot_date, time_slot=label, start_time=start, end_time=end, status=SLOT_AVAILABLE))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()

    return list((await db.execute(query)).scalars().all())
