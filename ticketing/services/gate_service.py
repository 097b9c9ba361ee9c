"""
Gate access controller: entry/exit scans against the ticket state machine.

SOURCE OF TRUTH
===============

gate_logs is append-only. Whether a guest is inside, and whether a ticket
has completed its single visit, is re-derived from that log on every scan
by a pure fold (fold_gate_history). The ticket's `inside_venue` column is
a cached copy used by listings; when it disagrees with the fold the drift
is logged and the next accepted scan writes the derived value back.

State machine (one visit per ticket, no re-entry):

    active/outside --entry--> used/inside --exit--> used/outside (completed)

CONCURRENCY
===========

An accepted scan inserts its gate log first, then updates the ticket with
a conditional UPDATE on the status and `inside_venue` it observed. Two
simultaneous entry scans both insert a log row, but only one sees
rows_affected == 1; the other rolls back (taking its log row with it) and
is rejected. Rejected scans never write anything.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, NoReturn, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import get_settings
from ticketing.core.errors import GateScanRejected, ScanRejection, ValidationError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_gate_scan
from ticketing.core.security import StaffIdentity
from ticketing.models.gate_log import GateCamera, GateLog
from ticketing.models.ticket import Ticket, TICKET_CANCELLED, TICKET_EXPIRED, TICKET_USED
from ticketing.services.ticket_service import find_ticket

logger = get_logger(__name__)

ENTRY = "entry"
EXIT = "exit"
GATE_ACTIONS = (ENTRY, EXIT)


@dataclass(frozen=True)
class GateState:
    inside: bool = False
    entries: int = 0
    exits: int = 0
    completed: bool = False


@dataclass
class ScanResult:
    ticket: Ticket
    log: GateLog
    state: GateState


def fold_gate_history(entry_types: Iterable[str]) -> GateState:
    """Derive a ticket's gate state from its ordered entry/exit history."""
    inside = False
    entries = exits = 0
    completed = False
    for entry_type in entry_types:
        if entry_type == ENTRY:
            entries += 1
            inside = True
        elif entry_type == EXIT:
            exits += 1
            if inside:
                completed = True
            inside = False
        else:
            raise ValueError(f"Unknown gate entry type: {entry_type!r}")
    return GateState(inside=inside, entries=entries, exits=exits, completed=completed)


async def load_gate_state(db: AsyncSession, ticket_id: int) -> GateState:
    result = await db.execute(
        select(GateLog.entry_type).where(GateLog.ticket_id == ticket_id).order_by(GateLog.id.asc())
    )
    return fold_gate_history(result.scalars().all())


def _rejection_for(action: str, ticket: Ticket, state: GateState) -> Optional[ScanRejection]:
    if action == ENTRY:
        if ticket.status == TICKET_CANCELLED:
            return ScanRejection.TICKET_CANCELLED
        if ticket.status == TICKET_EXPIRED:
            return ScanRejection.TICKET_EXPIRED
        if state.inside:
            return ScanRejection.ALREADY_INSIDE
        if state.completed:
            return ScanRejection.TICKET_COMPLETED
        return None
    if not state.inside:
        return ScanRejection.NOT_INSIDE
    return None


def _reject(action: str, reason: ScanRejection, ticket: Optional[Ticket] = None, gate_id: str = "") -> NoReturn:
    record_gate_scan(action, reason.value)
    logger.info(
        "gate_scan_rejected",
        action=action,
        reason=reason.value,
        gate_id=gate_id,
        ticket_id=ticket.id if ticket else None,
    )
    details = {}
    if ticket is not None:
        details = {"ticket_id": ticket.id, "ticket_number": ticket.ticket_number, "status": ticket.status}
    raise GateScanRejected(reason, **details)


async def _camera_ref(db: AsyncSession, gate_id: str) -> Optional[str]:
    result = await db.execute(select(GateCamera.camera_ref).where(GateCamera.gate_id == gate_id))
    return result.scalar_one_or_none()


async def scan(
    db: AsyncSession,
    action: str,
    gate_id: str,
    staff: Optional[StaffIdentity] = None,
    ticket_id: Optional[int] = None,
    ticket_number: Optional[str] = None,
) -> ScanResult:
    """
    Process one gate scan. Returns the updated ticket and the new log row,
    or raises GateScanRejected with the reason code.
    """
    if action not in GATE_ACTIONS:
        raise ValidationError("action must be 'entry' or 'exit'", code="INVALID_ACTION")
    staff = staff or StaffIdentity()

    ticket = await find_ticket(db, ticket_id, ticket_number)
    if ticket is None:
        _reject(action, ScanRejection.TICKET_NOT_FOUND, gate_id=gate_id)

    # Plain values only past this point: a rollback expires the instance
    ticket_pk, observed_status, observed_inside = ticket.id, ticket.status, ticket.inside_venue

    state = await load_gate_state(db, ticket_pk)
    if state.inside != observed_inside:
        logger.warning(
            "gate_state_drift",
            ticket_id=ticket_pk,
            cached_inside=observed_inside,
            derived_inside=state.inside,
        )

    rejection = _rejection_for(action, ticket, state)
    if rejection is not None:
        _reject(action, rejection, ticket, gate_id)

    log = GateLog(
        ticket_id=ticket_pk,
        entry_type=action,
        gate_id=gate_id,
        camera_ref=await _camera_ref(db, gate_id),
        scanned_by_id=staff.id,
        scanned_by_name=staff.name,
    )
    db.add(log)
    await db.flush()

    values = {"inside_venue": action == ENTRY}
    if action == ENTRY:
        values["status"] = TICKET_USED
        values["used_at"] = func.coalesce(Ticket.used_at, datetime.now(timezone.utc))

    result = await db.execute(
        update(Ticket)
        .where(
            Ticket.id == ticket_pk,
            Ticket.status == observed_status,
            Ticket.inside_venue == observed_inside,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Another scan or a cancellation changed the ticket under us
        await db.rollback()
        ticket = await find_ticket(db, ticket_id=ticket_pk)
        state = await load_gate_state(db, ticket_pk)
        rejection = _rejection_for(action, ticket, state)
        if rejection is None:
            rejection = ScanRejection.ALREADY_INSIDE if action == ENTRY else ScanRejection.NOT_INSIDE
        _reject(action, rejection, ticket, gate_id)

    await db.commit()
    await db.refresh(ticket)
    await db.refresh(log)

    new_state = await load_gate_state(db, ticket_pk)

    record_gate_scan(action, "accepted")
    logger.info(
        "gate_scan_accepted",
        action=action,
        gate_id=gate_id,
        ticket_id=ticket.id,
        ticket_number=ticket.ticket_number,
        staff_id=staff.id,
    )
    return ScanResult(ticket=ticket, log=log, state=new_state)


async def list_gate_logs(
    db: AsyncSession,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    gate_id: Optional[str] = None,
    entry_type: Optional[str] = None,
    ticket_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[GateLog], int]:
    """Gate log listing, newest first. Dates are venue-local calendar days."""
    if entry_type is not None and entry_type not in GATE_ACTIONS:
        raise ValidationError("entry_type must be 'entry' or 'exit'")

    conditions = []
    tz = get_settings().venue_tz
    if date_from is not None:
        start = datetime.combine(date_from, time.min, tzinfo=tz).astimezone(timezone.utc)
        conditions.append(GateLog.created_at >= start)
    if date_to is not None:
        end = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc)
        conditions.append(GateLog.created_at < end)
    if gate_id:
        conditions.append(GateLog.gate_id == gate_id)
    if entry_type:
        conditions.append(GateLog.entry_type == entry_type)
    if ticket_id is not None:
        conditions.append(GateLog.ticket_id == ticket_id)

    total = (await db.execute(select(func.count(GateLog.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(GateLog)
        .where(*conditions)
        .order_by(GateLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total
