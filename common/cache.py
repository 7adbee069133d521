# common/cache.py
import json
import logging
import os
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)

ROOMS_ALL_KEY = "rooms:all"
AVAILABILITY_PREFIX = "rooms:availability:"
AVAILABILITY_GENERATION_KEY = "rooms:availability-generation"

_redis_client: Optional[redis.Redis] = None


def room_key(room_id: int) -> str:
    return f"room:{room_id}"


def availability_key(generation: int, start, end) -> str:
    return f"{AVAILABILITY_PREFIX}{generation}:{start.isoformat()}:{end.isoformat()}"


def get_redis_client() -> Optional[redis.Redis]:
    """
    Return a Redis client if REDIS_URL is configured, otherwise None.
    Fails gracefully (no caching) if Redis is not reachable.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return None

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
    except redis.RedisError:
        logger.warning("Redis at %s is not reachable; caching disabled", redis_url)
        return None

    _redis_client = client
    return _redis_client


def get_cached_json(key: str) -> Optional[Any]:
    client = get_redis_client()
    if client is None:
        return None

    try:
        raw = client.get(key)
    except redis.RedisError:
        logger.warning("Cache read failed for %s", key)
        return None
    if raw is None:
        return None
    return json.loads(raw)


def set_cached_json(key: str, value: Any, ttl_seconds: int = 60) -> None:
    client = get_redis_client()
    if client is None:
        return

    try:
        client.setex(key, ttl_seconds, json.dumps(value, default=str))
    except redis.RedisError:
        logger.warning("Cache write failed for %s", key)


def delete_keys(*keys: str) -> None:
    client = get_redis_client()
    if client is None or not keys:
        return

    try:
        client.delete(*keys)
    except redis.RedisError:
        logger.warning("Cache delete failed for %s", keys)


def get_availability_generation() -> int:
    """
    Current availability generation, part of every availability key.

    Read it before querying the database: a change committed while the
    query runs bumps the generation, so the stale result is written under
    a key no later reader looks up.
    """
    client = get_redis_client()
    if client is None:
        return 0

    try:
        raw = client.get(AVAILABILITY_GENERATION_KEY)
    except redis.RedisError:
        logger.warning("Cache read failed for %s", AVAILABILITY_GENERATION_KEY)
        return 0
    return int(raw) if raw is not None else 0


def bump_availability_generation() -> None:
    """Invalidate every cached availability result."""
    client = get_redis_client()
    if client is None:
        return

    try:
        client.incr(AVAILABILITY_GENERATION_KEY)
    except redis.RedisError:
        logger.warning("Cache invalidation failed for %s", AVAILABILITY_GENERATION_KEY)
