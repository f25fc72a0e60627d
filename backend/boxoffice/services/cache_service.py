"""
Redis caching for seat maps.

CACHING STRATEGY
================

What we cache:
  - The availability listing of one show (every seat with its status)
  - Cache key pattern: "seatmap:{show_id}"

Why:
  - The seat map is what every client polls while choosing seats
  - A large venue is hundreds of rows joined across three tables

Invalidation strategy:
  - On hold, release, finalize: delete that show's key
  - On sweeps (which may touch any show): delete every "seatmap:*" key
  - Short TTL (SEAT_MAP_CACHE_TTL, seconds) as safety net

The cache is advisory only. Holds and bookings never read it; they go
through AvailabilityStore.try_transition against the database, so a stale
map can at worst show a seat as free that a hold attempt then rejects.
With Redis disabled or unreachable every call here is a no-op.
"""

import json
import uuid
from typing import Iterable, Optional

import redis.asyncio as redis
from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

SEAT_MAP_PREFIX = "seatmap:"

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
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except redis.RedisError as e:
            redis_connection_errors.inc()
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


def _make_seat_map_key(show_id: uuid.UUID) -> str:
    return f"{SEAT_MAP_PREFIX}{show_id}"


async def get_cached_seat_map(show_id: uuid.UUID) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_seat_map_key(show_id)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_seat_map(show_id: uuid.UUID, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_seat_map_key(show_id)
    try:
        await client.setex(key, settings.SEAT_MAP_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.SEAT_MAP_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_seat_map(show_id: uuid.UUID) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_seat_map_key(show_id)
    try:
        await client.delete(key)
        logger.debug("cache_invalidated", key=key)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


async def invalidate_seat_maps(show_ids: Iterable[uuid.UUID]) -> None:
    for show_id in set(show_ids):
        await invalidate_seat_map(show_id)


async def invalidate_all_seat_maps() -> None:
    """
    Invalidate every cached seat map.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{SEAT_MAP_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


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
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}
