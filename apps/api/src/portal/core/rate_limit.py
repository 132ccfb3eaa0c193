"""
Rate Limiting Module

Provides rate limiting for privileged API actions using Redis as the
backend. Falls back to in-memory storage if Redis is unavailable.

Limits are keyed by the authenticated caller, so one admin provisioning
accounts in bulk does not throttle another, and a leaked token cannot be
used to flood notification channels.
"""

import logging
import time

from fastapi import HTTPException, status
from redis.asyncio import Redis

from portal.core.redis import get_redis

logger = logging.getLogger(__name__)

# In-memory rate limit storage (fallback when Redis unavailable)
# Format: {key: [timestamp, ...]}
_memory_store: dict[str, list[float]] = {}
# Window length per key, used to expire idle keys
_memory_windows: dict[str, int] = {}


class RateLimitExceeded(HTTPException):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_rate_limit_redis(
    client: Redis,
    key: str,
    limit: int,
    window_seconds: int,
) -> bool:
    """
    Check rate limit using Redis.

    Uses a sliding window algorithm with Redis sorted sets.

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    now = time.time()
    window_start = now - window_seconds

    # Use a pipeline for atomic operations
    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, window_start)
    pipe.zcard(key)
    pipe.zadd(key, {str(now): now})
    pipe.expire(key, window_seconds)

    results = await pipe.execute()
    current_count = results[1]

    return current_count < limit


def _sweep_memory_store(now: float) -> None:
    """Drop keys whose newest hit has left its window."""
    expired = [
        key
        for key, hits in _memory_store.items()
        if not hits or hits[-1] <= now - _memory_windows.get(key, 0)
    ]
    for key in expired:
        del _memory_store[key]
        _memory_windows.pop(key, None)


def _check_rate_limit_memory(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check rate limit using in-memory storage.

    Fallback when Redis is unavailable. Note: This doesn't work
    across multiple server instances.
    """
    now = time.time()
    window_start = now - window_seconds
    _sweep_memory_store(now)

    hits = [ts for ts in _memory_store.get(key, []) if ts > window_start]
    if len(hits) >= limit:
        if hits:
            _memory_store[key] = hits
        return False

    hits.append(now)
    _memory_store[key] = hits
    _memory_windows[key] = window_seconds
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check if a request is within rate limits.

    Tries Redis first, falls back to in-memory storage.

    Args:
        key: Unique key for this rate limit (e.g., "users:create:<account id>")
        limit: Maximum requests allowed in the window
        window_seconds: Time window in seconds

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    redis_client = await get_redis()

    if redis_client is not None:
        try:
            return await _check_rate_limit_redis(redis_client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_rate_limit_memory(key, limit, window_seconds)


async def enforce_rate_limit(
    caller_id: str,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Enforce a per-caller rate limit for an action.

    Args:
        caller_id: Authenticated account id
        action: Action name (e.g., "create_user", "notify_class")
        limit: Maximum requests allowed
        window_seconds: Time window in seconds

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    key = f"rate_limit:{action}:{caller_id}"
    allowed = await check_rate_limit(key, limit, window_seconds)

    if not allowed:
        logger.warning(
            f"Rate limit exceeded for {caller_id} on action '{action}': {limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


__all__ = [
    "RateLimitExceeded",
    "check_rate_limit",
    "enforce_rate_limit",
]
