"""
Membership service: phone-keyed discount entitlements.
"""

import calendar
from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import venue_today
from ticketing.core.errors import ConflictError, NotFoundError, ValidationError
from ticketing.core.logging import get_logger
from ticketing.core.phone import normalize_phone
from ticketing.models.membership import Membership

logger = get_logger(__name__)

MEMBERSHIP_MONTHS = {"monthly": 1, "quarterly": 3, "yearly": 12}
MEMBERSHIP_STATUSES = ("active", "expired", "cancelled")


def add_months(start: date, months: int) -> date:
    """Same day N months later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


async def find_active_membership(db: AsyncSession, phone: str, on_date: date) -> Optional[Membership]:
    """The membership that is active and valid for this phone on this date, if any."""
    result = await db.execute(
        select(Membership)
        .where(
            Membership.phone == phone,
            Membership.status == "active",
            Membership.valid_from <= on_date,
            Membership.valid_till >= on_date,
        )
        .order_by(Membership.valid_till.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_membership(
    db: AsyncSession,
    member_name: str,
    phone: str,
    membership_type: str,
    child_count: int = 1,
    discount_percent: int = 100,
    valid_from: Optional[date] = None,
    notes: Optional[str] = None,
) -> Membership:
    try:
        phone = normalize_phone(phone)
    except ValueError:
        raise ValidationError("Invalid Bangladesh phone number format", code="INVALID_PHONE")
    if membership_type not in MEMBERSHIP_MONTHS:
        raise ValidationError("membership_type must be monthly, quarterly or yearly")
    if not 0 <= discount_percent <= 100:
        raise ValidationError("discount_percent must be between 0 and 100")
    if child_count < 1:
        raise ValidationError("child_count must be at least 1")

    existing = (
        await db.execute(
            select(Membership).where(Membership.phone == phone, Membership.status == "active").limit(1)
        )
    ).scalar_one_or_none()
    if existing:
        raise ConflictError(
            "Active membership already exists for this phone number",
            code="MEMBERSHIP_EXISTS",
            existing_membership_id=existing.id,
            valid_till=existing.valid_till.isoformat(),
        )

    start = valid_from or venue_today()
    membership = Membership(
        member_name=member_name.strip(),
        phone=phone,
        child_count=child_count,
        membership_type=membership_type,
        discount_percent=discount_percent,
        valid_from=start,
        valid_till=add_months(start, MEMBERSHIP_MONTHS[membership_type]),
        status="active",
        notes=notes,
    )
    db.add(membership)
    await db.commit()
    await db.refresh(membership)

    logger.info(
        "membership_created",
        membership_id=membership.id,
        membership_type=membership_type,
        valid_till=str(membership.valid_till),
    )
    return membership


async def update_membership_status(db: AsyncSession, membership_id: int, status: str) -> Membership:
    if status not in MEMBERSHIP_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(MEMBERSHIP_STATUSES)}")
    membership = await db.get(Membership, membership_id)
    if not membership:
        raise NotFoundError(f"Membership {membership_id} not found")

    membership.status = status
    await db.commit()
    await db.refresh(membership)
    logger.info("membership_status_updated", membership_id=membership_id, status=status)
    return membership


async def expire_memberships(db: AsyncSession, today: Optional[date] = None) -> int:
    """Sweep: active memberships whose window ended before today become expired."""
    today = today or venue_today()
    result = await db.execute(
        update(Membership)
        .where(Membership.status == "active", Membership.valid_till < today)
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("memberships_expired", count=result.rowcount, today=str(today))
    return result.rowcount
