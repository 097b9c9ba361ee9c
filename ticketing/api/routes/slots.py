"""
Slot endpoints: per-date listing (cached) and the reservation claim.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.slot import SlotListResponse, SlotReserveRequest, SlotReserveResponse, SlotResponse
from ticketing.services.slot_service import list_slots, reserve_slot
from ticketing.services.cache_service import get_cached_slots, set_cached_slots, invalidate_slot_cache
from ticketing.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/slots", tags=["Slots"])


@router.get("/", response_model=SlotListResponse)
async def list_slots_endpoint(
    slot_date: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """
    A day's slots with their availability.
    Cached per date; invalidated whenever a slot on that date changes hands.
    """
    cached = await get_cached_slots(slot_date)
    if cached is not None:
        logger.info("slots_list_cache_hit", slot_date=str(slot_date))
        return SlotListResponse(slot_date=slot_date, slots=cached, cached=True)

    slots = await list_slots(db, slot_date)
    data = [SlotResponse.model_validate(s).model_dump(mode="json") for s in slots]
    await set_cached_slots(slot_date, data)
    return SlotListResponse(slot_date=slot_date, slots=data, cached=False)


@router.post("/reserve", response_model=SlotReserveResponse, status_code=status.HTTP_201_CREATED)
async def reserve_slot_endpoint(
    request: SlotReserveRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Claim a slot. Exactly one of any number of concurrent callers wins;
    the rest get 409 SLOT_UNAVAILABLE.
    """
    handle = await reserve_slot(db, request.slot_date, request.time_slot)
    await invalidate_slot_cache(handle.slot_date)
    return SlotReserveResponse(slot_id=handle.slot_id, slot_date=handle.slot_date, time_slot=handle.time_slot)
