"""
Membership endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.membership import (
    MembershipCreate,
    MembershipExpireResponse,
    MembershipLookupResponse,
    MembershipResponse,
    MembershipStatusUpdate,
)
from ticketing.services.membership_service import (
    create_membership,
    expire_memberships,
    find_active_membership,
    update_membership_status,
)
from ticketing.core.config import venue_today
from ticketing.core.errors import ValidationError
from ticketing.core.phone import normalize_phone

router = APIRouter(prefix="/memberships", tags=["Memberships"])


@router.post("/", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
async def create_membership_endpoint(
    data: MembershipCreate,
    db: AsyncSession = Depends(get_db),
):
    return await create_membership(
        db,
        member_name=data.member_name,
        phone=data.phone,
        membership_type=data.membership_type,
        child_count=data.child_count,
        discount_percent=data.discount_percent,
        valid_from=data.valid_from,
        notes=data.notes,
    )


@router.get("/lookup", response_model=MembershipLookupResponse)
async def lookup_membership_endpoint(
    phone: str = Query(..., max_length=20),
    db: AsyncSession = Depends(get_db),
):
    """Counter lookup: the membership valid today for this phone, if any."""
    try:
        normalized = normalize_phone(phone)
    except ValueError:
        raise ValidationError("Invalid Bangladesh phone number format", code="INVALID_PHONE")
    membership = await find_active_membership(db, normalized, venue_today())
    if membership is None:
        return MembershipLookupResponse(found=False)
    return MembershipLookupResponse(found=True, membership=MembershipResponse.model_validate(membership))


@router.post("/expire", response_model=MembershipExpireResponse)
async def expire_memberships_endpoint(db: AsyncSession = Depends(get_db)):
    return MembershipExpireResponse(expired=await expire_memberships(db))


@router.patch("/{membership_id}", response_model=MembershipResponse)
async def update_membership_endpoint(
    membership_id: int,
    data: MembershipStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await update_membership_status(db, membership_id, data.status)
