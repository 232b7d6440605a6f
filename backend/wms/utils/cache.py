"""Redis client and JSON cache helpers for authorization contexts.

Redis is an accelerator only.  Every helper here swallows `RedisError`,
logs a warning and reports a miss (or zero deletions), so an outage means
contexts are rebuilt per request rather than requests failing.  A value
that does not decode is also a miss.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from wms.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Shared client; the pool is created on first use."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Release the pool (application shutdown)."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


async def get_json(key: str) -> Any | None:
    try:
        raw = await (await get_redis()).get(key)
    except redis.RedisError as e:
        logger.warning(f"Redis read failed for {key}, rebuilding: {e}")
        return None
    if raw is None:
        logger.debug(f"Cache MISS: {key}")
        return None
    try:
        value = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Undecodable cache value at {key}, rebuilding: {e}")
        return None
    logger.debug(f"Cache HIT: {key}")
    return value


async def set_json(key: str, value: Any, ttl: int) -> None:
    """Store `value` for `ttl` seconds; a non-positive ttl stores nothing."""
    if ttl <= 0:
        return
    try:
        await (await get_redis()).setex(key, ttl, json.dumps(value))
    except redis.RedisError as e:
        logger.warning(f"Redis write failed for {key}, not cached: {e}")


async def invalidate_cache(pattern: str) -> int:
    """Delete every key matching a glob pattern; returns the count removed.

    Example:
        await invalidate_cache("authz:ctx:<user_id>:*")
    """
    try:
        client = await get_redis()
        keys = [key async for key in client.scan_iter(match=pattern)]
        if keys:
            await client.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching {pattern}")
        return len(keys)
    except redis.RedisError as e:
        logger.warning(f"Failed to invalidate {pattern}: {e}")
        return 0


async def get_counter(key: str) -> int | None:
    """Integer counter value (0 when unset); None when it cannot be read."""
    try:
        raw = await (await get_redis()).get(key)
    except redis.RedisError as e:
        logger.warning(f"Redis read failed for {key}: {e}")
        return None
    try:
        return int(raw or 0)
    except ValueError:
        logger.warning(f"Non-integer counter at {key}: {raw!r}")
        return None


async def bump_counter(key: str) -> int | None:
    try:
        return await (await get_redis()).incr(key)
    except redis.RedisError as e:
        logger.warning(f"Failed to increment {key}: {e}")
        return None
