"""
Rate Limiting Module

Sliding-window rate limiting backed by the shared Redis client, with an
in-memory fallback when Redis is unavailable.

Used for:
- Public status lookups and admit card requests (credential-guessing surface)
- Staff approve/reject actions
- Staff sign-in attempts
"""

import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any

from fastapi import HTTPException, Request, status

from admissions.core import redis as redis_module

logger = logging.getLogger(__name__)

# In-memory rate limit storage (fallback when Redis unavailable)
# Format: {key: [timestamp, ...]}
_memory_store: dict[str, list[float]] = {}
# Format: {key: time the newest hit leaves the window}
_memory_expiry: dict[str, float] = {}

MEMORY_SWEEP_INTERVAL_SECONDS = 60.0
_next_sweep = 0.0


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


async def _check_rate_limit_redis(client, key: str, limit: int, window_seconds: int) -> bool:
    """
    Check rate limit using a Redis sorted set as the sliding window.

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    now = time.time()
    window_start = now - window_seconds

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, window_start)
    pipe.zcard(key)
    pipe.zadd(key, {f"{now}": now})
    pipe.expire(key, window_seconds)
    results = await pipe.execute()

    return results[1] < limit


def _sweep_memory_store(now: float) -> None:
    """Drop keys whose window has fully elapsed."""
    stale = [key for key, expires_at in _memory_expiry.items() if expires_at <= now]
    for key in stale:
        _memory_store.pop(key, None)
        _memory_expiry.pop(key, None)


def _check_rate_limit_memory(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check rate limit using process memory.

    Only protects a single server instance. Idle keys are swept
    periodically, like the EXPIRE set on the Redis window.
    """
    global _next_sweep

    now = time.time()
    window_start = now - window_seconds

    if now >= _next_sweep:
        _sweep_memory_store(now)
        _next_sweep = now + MEMORY_SWEEP_INTERVAL_SECONDS

    hits = [ts for ts in _memory_store.get(key, []) if ts > window_start]
    if len(hits) >= limit:
        if hits:
            _memory_store[key] = hits
            _memory_expiry[key] = hits[-1] + window_seconds
        else:
            _memory_store.pop(key, None)
            _memory_expiry.pop(key, None)
        return False

    hits.append(now)
    _memory_store[key] = hits
    _memory_expiry[key] = now + window_seconds
    return True


def reset_memory_store() -> None:
    """Clear the in-memory fallback store."""
    global _next_sweep

    _memory_store.clear()
    _memory_expiry.clear()
    _next_sweep = 0.0


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check if a request is within rate limits.

    Tries Redis first, falls back to in-memory storage.

    Args:
        key: Unique key for this rate limit (e.g., "lookup:203.0.113.7")
        limit: Maximum requests allowed in the window
        window_seconds: Time window in seconds

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    client = redis_module.redis_client

    if client is not None:
        try:
            return await _check_rate_limit_redis(client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_rate_limit_memory(key, limit, window_seconds)


def get_client_ip(request: Request) -> str:
    """
    Identify the calling client by its socket address.

    Forwarded headers are client-controlled and are not read here. Behind a
    reverse proxy, run uvicorn with ``--proxy-headers`` and
    ``--forwarded-allow-ips`` so ``request.client`` already holds the real
    address.
    """
    return request.client.host if request.client else "unknown"


def rate_limit(
    limit: int | Callable[[], int] = 10,
    window_seconds: int | Callable[[], int] = 60,
    key_func: Callable[[Request], str] | None = None,
):
    """
    Rate limiting decorator for FastAPI endpoints.

    Usage:
        @router.post("/lookup")
        @rate_limit(limit=10, window_seconds=60)
        async def lookup(request: Request, ...):
            ...

    ``limit`` and ``window_seconds`` may be callables so the values can come
    from settings at request time.

    Raises:
        RateLimitExceeded: When rate limit is exceeded (HTTP 429)
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request: Request | None = kwargs.get("request")
            if request is None:
                request = next((arg for arg in args if isinstance(arg, Request)), None)

            if request is None:
                logger.warning(
                    f"Rate limit decorator on {func.__name__} couldn't find Request object"
                )
                return await func(*args, **kwargs)

            if key_func:
                key = key_func(request)
            else:
                key = f"rate_limit:{get_client_ip(request)}:{request.url.path}"

            max_requests = limit() if callable(limit) else limit
            window = window_seconds() if callable(window_seconds) else window_seconds

            if not await check_rate_limit(key, max_requests, window):
                logger.warning(f"Rate limit exceeded for {key}: {max_requests}/{window}s")
                raise RateLimitExceeded(max_requests, window)

            return await func(*args, **kwargs)

        return wrapper

    return decorator


__all__ = [
    "rate_limit",
    "check_rate_limit",
    "get_client_ip",
    "reset_memory_store",
    "RateLimitExceeded",
]
