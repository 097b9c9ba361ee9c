"""
Redis caching service for per-date slot listings.

CACHING STRATEGY
================

What we cache:
  - The slot listing for one date (JSON-serialized list of slots)
  - Cache key pattern: "slots:list:date={YYYY-MM-DD}"

Why:
  - The slot picker is the most frequent read on the booking page
  - A day's listing only changes when a slot is reserved, released or generated

Invalidation strategy:
  - On reservation, release or generation: delete that date's key
  - TTL-based expiry as safety net (5 minutes)

The cache is advisory only. Reservations never consult it; the conditional
UPDATE in slot_service is the only thing that decides who gets a slot.
"""

import json
from datetime import date
from typing import Optional

import redis.asyncio as redis
from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            # Test connection
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_slot_list_key(slot_date: date) -> str:
    return f"slots:list:date={slot_date.isoformat()}"


async def get_cached_slots(slot_date: date) -> Optional[list]:
    """Retrieve the cached slot listing for a date."""
    client = await get_redis()
    if not client:
        return None

    key = _make_slot_list_key(slot_date)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_slots(slot_date: date, slots: list) -> None:
    """Cache a date's slot listing with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_slot_list_key(slot_date)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(slots, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_slot_cache(slot_date: date) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_slot_list_key(slot_date)
    try:
        await client.delete(key)
        logger.debug("cache_invalidated", key=key)
    except Exception as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
