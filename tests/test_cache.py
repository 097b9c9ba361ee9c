"""
Tests for the per-date slot listing cache against an in-memory Redis.
"""

import json

import fakeredis
import pytest
from httpx import AsyncClient

from ticketing.services import cache_service
from ticketing.services.cache_service import get_cached_slots, invalidate_slot_cache, set_cached_slots

LABEL = "14:00 - 15:00"


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis(monkeypatch, redis_server):
    client = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
    monkeypatch.setattr(cache_service.settings, "REDIS_ENABLED", True)
    monkeypatch.setattr(cache_service, "_redis_client", client)
    return client


def _key(day):
    return f"slots:list:date={day.isoformat()}"


@pytest.mark.asyncio
async def test_set_and_get_slots(fake_redis, tomorrow):
    slots = [{"id": 1, "time_slot": LABEL, "status": "available"}]
    await set_cached_slots(tomorrow, slots)

    assert json.loads(await fake_redis.get(_key(tomorrow))) == slots
    assert 0 < await fake_redis.ttl(_key(tomorrow)) <= cache_service.settings.REDIS_CACHE_TTL
    assert await get_cached_slots(tomorrow) == slots

    await invalidate_slot_cache(tomorrow)
    assert await fake_redis.exists(_key(tomorrow)) == 0
    assert await get_cached_slots(tomorrow) is None


@pytest.mark.asyncio
async def test_unreachable_redis_is_a_miss(fake_redis, redis_server, tomorrow):
    redis_server.connected = False
    await set_cached_slots(tomorrow, [])
    assert await get_cached_slots(tomorrow) is None
    await invalidate_slot_cache(tomorrow)


@pytest.mark.asyncio
async def test_listing_served_from_cache(client: AsyncClient, fake_redis, tomorrow):
    params = {"date": tomorrow.isoformat()}
    first = await client.get("/api/v1/slots/", params=params)
    assert first.json()["cached"] is False
    assert await fake_redis.exists(_key(tomorrow)) == 1

    second = await client.get("/api/v1/slots/", params=params)
    assert second.json()["cached"] is True
    assert second.json()["slots"] == first.json()["slots"]


@pytest.mark.asyncio
async def test_reservation_invalidates_listing(client: AsyncClient, fake_redis, tomorrow):
    params = {"date": tomorrow.isoformat()}
    await client.get("/api/v1/slots/", params=params)

    reserved = await client.post("/api/v1/slots/reserve", json={"date": tomorrow.isoformat(), "time_slot": LABEL})
    assert reserved.status_code == 201
    assert await fake_redis.exists(_key(tomorrow)) == 0

    listing = await client.get("/api/v1/slots/", params=params)
    assert listing.json()["cached"] is False
    assert [s["status"] for s in listing.json()["slots"] if s["time_slot"] == LABEL] == ["booked"]


@pytest.mark.asyncio
async def test_booking_and_cancellation_invalidate_listing(client: AsyncClient, fake_redis, tomorrow):
    params = {"date": tomorrow.isoformat()}
    await client.get("/api/v1/slots/", params=params)

    booking = await client.post(
        "/api/v1/bookings/",
        json={"parent_name": "Karim Ahmed", "parent_phone": "01812345678", "date": tomorrow.isoformat(), "time_slot": LABEL},
    )
    assert booking.status_code == 201
    assert await fake_redis.exists(_key(tomorrow)) == 0

    await client.get("/api/v1/slots/", params=params)
    await client.post(f"/api/v1/bookings/{booking.json()['id']}/cancel", json={})
    assert await fake_redis.exists(_key(tomorrow)) == 0
