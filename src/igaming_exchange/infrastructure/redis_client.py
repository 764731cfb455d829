"""Redis client for idempotency keys and the identity cache.

Redis is optional: when REDIS_URL is unreachable at startup the app runs
without it, idempotency falls back to the database-level guards (the
escrow compare-and-set, unique constraints) and identities are resolved
from the users table on every request.

Usage:
    from igaming_exchange.infrastructure.redis_client import get_redis_or_none

    redis = get_redis_or_none()
    if redis is not None:
        await redis.set("key", "value", ex=3600)
"""

from __future__ import annotations

import json
import uuid

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from igaming_exchange.config import get_settings
from igaming_exchange.domain.enums import UserRole
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None


async def init_redis() -> aioredis.Redis | None:
    """Connect to Redis. Called during app startup; returns None if unreachable."""
    global _redis_client
    settings = get_settings()
    client = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("redis.unavailable", url=settings.redis_url, error=str(exc))
        await client.aclose()
        return None
    _redis_client = client
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def get_redis_or_none() -> aioredis.Redis | None:
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---


async def claim_idempotency_key(
    redis: aioredis.Redis,
    key: str,
    value: str = "1",
) -> bool:
    """Atomically claim an idempotency key.

    Returns True if this caller claimed it, False if it was already used.
    """
    settings = get_settings()
    claimed = await redis.set(
        f"idempotency:{key}",
        value,
        ex=settings.redis_idempotency_ttl_seconds,
        nx=True,
    )
    return bool(claimed)


async def get_idempotent_result(redis: aioredis.Redis, key: str) -> str | None:
    return await redis.get(f"idempotency:{key}")


async def store_idempotent_result(redis: aioredis.Redis, key: str, value: str) -> None:
    settings = get_settings()
    await redis.set(f"idempotency:{key}", value, ex=settings.redis_idempotency_ttl_seconds)


async def release_idempotency_key(redis: aioredis.Redis, key: str) -> None:
    """Give a key back after the guarded operation failed, so the client may retry."""
    await redis.delete(f"idempotency:{key}")


# --- Identity Cache ---


def _identity_key(user_id: uuid.UUID) -> str:
    return f"identity:{user_id}"


async def cache_identity(redis: aioredis.Redis, identity: Identity) -> None:
    settings = get_settings()
    payload = json.dumps(
        {"user_id": str(identity.user_id), "roles": sorted(r.value for r in identity.roles)}
    )
    await redis.set(
        _identity_key(identity.user_id),
        payload,
        ex=settings.redis_identity_ttl_seconds,
    )


async def get_cached_identity(redis: aioredis.Redis, user_id: uuid.UUID) -> Identity | None:
    raw = await redis.get(_identity_key(user_id))
    if raw is None:
        return None
    data = json.loads(raw)
    return Identity(
        user_id=uuid.UUID(data["user_id"]),
        roles=frozenset(UserRole(r) for r in data["roles"]),
    )


async def invalidate_identity(redis: aioredis.Redis, user_id: uuid.UUID) -> None:
    """Drop the cached identity (sign-out, role change)."""
    await redis.delete(_identity_key(user_id))
    logger.info("identity.cache_invalidated", user_id=str(user_id))
