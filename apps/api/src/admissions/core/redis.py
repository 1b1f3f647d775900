"""
Redis Configuration

Async Redis client shared by the rate limiter and the staff token denylist.
"""

import logging

from redis.asyncio import Redis, from_url

from admissions.core.config import settings

logger = logging.getLogger(__name__)

# Redis client instance
redis_client: Redis | None = None

REVOKED_TOKEN_PREFIX = "revoked_token:"


async def init_redis() -> Redis:
    """
    Initialize Redis connection.

    Call this on application startup.
    """
    global redis_client
    redis_client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await redis_client.ping()
    return redis_client


async def get_redis() -> Redis | None:
    """
    Get Redis client instance.

    Returns None if Redis is not available (optional dependency).
    """
    return redis_client


def is_redis_available() -> bool:
    """Check if Redis client is initialized and available."""
    return redis_client is not None


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.close()
        redis_client = None


async def revoke_token(client: Redis | None, jti: str, ttl_seconds: int) -> bool:
    """
    Add a token id to the denylist until the token would have expired anyway.

    Returns:
        False when Redis is unavailable and the revocation could not be stored.
    """
    if client is None:
        logger.warning("Redis unavailable - token revocation not persisted")
        return False
    await client.set(f"{REVOKED_TOKEN_PREFIX}{jti}", "1", ex=max(1, ttl_seconds))
    return True


async def is_token_revoked(client: Redis | None, jti: str) -> bool:
    """Check whether a token id is on the denylist."""
    if client is None:
        return False
    try:
        return bool(await client.exists(f"{REVOKED_TOKEN_PREFIX}{jti}"))
    except Exception as e:
        logger.warning(f"Token denylist check failed: {e}")
        return False
