"""Redis client for API idempotency keys.

Payment submissions may carry an Idempotency-Key header. The first request
claims the key with SET NX and stores the resulting payment id once it is
known; a replay with the same key is answered with that payment instead of
charging the payer twice.

Usage:
    from realty_escrow.infrastructure.redis_client import get_redis, close_redis

    redis = get_redis()
    await redis.set("key", "value", ex=3600)
"""

from __future__ import annotations

import redis.asyncio as aioredis

from realty_escrow.config import get_settings
from realty_escrow.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None

_PENDING = "__pending__"


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    _redis_client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    # Verify connectivity
    await _redis_client.ping()
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def redis_available() -> bool:
    return _redis_client is not None


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---


def _key(scope: str, key: str) -> str:
    return f"idempotency:{scope}:{key}"


async def claim_idempotency(redis: aioredis.Redis, scope: str, key: str) -> str | None:
    """Try to claim a key.

    Returns None if this caller now owns the key, otherwise the stored value
    (a result id, or the pending marker while the owner is still working).
    """
    settings = get_settings()
    claimed = await redis.set(
        _key(scope, key),
        _PENDING,
        ex=settings.redis_idempotency_ttl_seconds,
        nx=True,
    )
    if claimed:
        return None
    return await redis.get(_key(scope, key))


async def complete_idempotency(redis: aioredis.Redis, scope: str, key: str, result_id: str) -> None:
    """Store the result id under a claimed key."""
    settings = get_settings()
    await redis.set(_key(scope, key), result_id, ex=settings.redis_idempotency_ttl_seconds)


async def release_idempotency(redis: aioredis.Redis, scope: str, key: str) -> None:
    """Drop a claim whose operation failed so the client may retry."""
    await redis.delete(_key(scope, key))


def is_pending(value: str | None) -> bool:
    return value == _PENDING
