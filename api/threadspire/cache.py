"""Redis cache utility functions.

Redis is optional: with no ``REDIS_URL`` configured every helper is a no-op
and callers recompute.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import redis

logger = logging.getLogger(__name__)

# Redis connection
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """
    Get or create the Redis client.

    Returns None if REDIS_URL is not set or the connection fails.
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
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable: {e}. Continuing without cache.")
        return None

    logger.info("Redis cache connected successfully")
    _redis_client = client
    return _redis_client


def cache_get(key: str) -> Any | None:
    """Return the cached JSON value for ``key``, or None on a miss."""
    client = get_redis_client()
    if not client:
        return None

    try:
        value = client.get(key)
    except redis.RedisError as e:
        logger.warning(f"Cache get error for key '{key}': {e}")
        return None

    if value is None:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Discarding undecodable cache entry '{key}'")
        return None


def cache_set(key: str, value: Any, ttl: int = 300) -> bool:
    """
    Store a JSON-serializable value with a TTL in seconds.

    Returns True if the value was written.
    """
    client = get_redis_client()
    if not client:
        return False

    try:
        client.setex(key, ttl, json.dumps(value, default=str))
        return True
    except redis.RedisError as e:
        logger.warning(f"Cache set error for key '{key}': {e}")
        return False


def cache_invalidate(pattern: str) -> int:
    """
    Invalidate cache entries matching a pattern (e.g. ``"discovery:*"``).

    Returns the number of keys deleted.
    """
    client = get_redis_client()
    if not client:
        return 0

    try:
        keys = client.keys(pattern)
        if not keys:
            return 0
        deleted = client.delete(*keys)
    except redis.RedisError as e:
        logger.warning(f"Cache invalidate error for pattern '{pattern}': {e}")
        return 0

    logger.info(f"Invalidated {deleted} cache entries matching pattern '{pattern}'")
    return deleted


def publish(channel: str, payload: dict) -> bool:
    """Publish a JSON payload on a pub/sub channel. Returns False without Redis."""
    client = get_redis_client()
    if not client:
        return False

    try:
        client.publish(channel, json.dumps(payload, default=str))
        return True
    except redis.RedisError as e:
        logger.warning(f"Publish to '{channel}' failed: {e}")
        return False
