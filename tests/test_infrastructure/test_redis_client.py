"""Tests for the Redis idempotency and identity-cache helpers.

Runs against the in-memory FakeRedis from conftest; only the key layout and
the claim/replay semantics are under test here.
"""

from __future__ import annotations

import uuid

import pytest

from igaming_exchange.domain.enums import UserRole
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.infrastructure.redis_client import (
    cache_identity,
    claim_idempotency_key,
    get_cached_identity,
    get_idempotent_result,
    invalidate_identity,
    release_idempotency_key,
    store_idempotent_result,
)


class TestIdempotencyKeys:
    @pytest.mark.asyncio
    async def test_first_claim_wins(self, fake_redis) -> None:
        assert await claim_idempotency_key(fake_redis, "pay-1")
        assert not await claim_idempotency_key(fake_redis, "pay-1")
        assert "idempotency:pay-1" in fake_redis.store

    @pytest.mark.asyncio
    async def test_released_key_can_be_claimed_again(self, fake_redis) -> None:
        await claim_idempotency_key(fake_redis, "pay-2")
        await release_idempotency_key(fake_redis, "pay-2")
        assert await claim_idempotency_key(fake_redis, "pay-2")

    @pytest.mark.asyncio
    async def test_stored_result_is_replayed(self, fake_redis) -> None:
        await claim_idempotency_key(fake_redis, "pay-3", "in-flight")
        await store_idempotent_result(fake_redis, "pay-3", '{"url": "u"}')
        assert await get_idempotent_result(fake_redis, "pay-3") == '{"url": "u"}'


class TestIdentityCache:
    @pytest.mark.asyncio
    async def test_round_trip_and_invalidate(self, fake_redis) -> None:
        identity = Identity(
            user_id=uuid.uuid4(),
            roles=frozenset({UserRole.BUYER, UserRole.SELLER}),
        )
        await cache_identity(fake_redis, identity)

        cached = await get_cached_identity(fake_redis, identity.user_id)
        assert cached == identity

        await invalidate_identity(fake_redis, identity.user_id)
        assert await get_cached_identity(fake_redis, identity.user_id) is None
