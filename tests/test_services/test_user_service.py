"""Tests for identity resolution and onboarding role selection."""

from __future__ import annotations

import uuid

import pytest

from igaming_exchange.domain.enums import UserRole
from igaming_exchange.domain.exceptions import InvalidOperationError, PermissionDeniedError
from igaming_exchange.services.user_service import UserService


class TestResolveIdentity:
    @pytest.mark.asyncio
    async def test_resolves_and_caches(self, session, buyer, fake_redis) -> None:
        identity = await UserService(session, fake_redis).resolve_identity(buyer.id)

        assert identity.user_id == buyer.id
        assert identity.roles == frozenset({UserRole.BUYER})
        assert any(str(buyer.id) in key for key in fake_redis.store)

    @pytest.mark.asyncio
    async def test_unknown_user_is_denied(self, session, fake_redis) -> None:
        with pytest.raises(PermissionDeniedError):
            await UserService(session, fake_redis).resolve_identity(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_works_without_redis(self, session, seller) -> None:
        identity = await UserService(session).resolve_identity(seller.id)
        assert UserRole.SELLER in identity.roles


class TestSetRoles:
    @pytest.mark.asyncio
    async def test_buyer_becomes_both(
        self, session, buyer, buyer_identity, fake_redis
    ) -> None:
        service = UserService(session, fake_redis)
        await service.resolve_identity(buyer.id)

        user = await service.set_roles(buyer_identity, [UserRole.SELLER, UserRole.BUYER])

        assert user.roles == ["buyer", "seller"]
        assert fake_redis.store == {}
        refreshed = await service.resolve_identity(buyer.id)
        assert refreshed.roles == frozenset({UserRole.BUYER, UserRole.SELLER})

    @pytest.mark.asyncio
    async def test_admin_is_never_self_assigned(self, session, buyer_identity) -> None:
        with pytest.raises(PermissionDeniedError):
            await UserService(session).set_roles(buyer_identity, [UserRole.ADMIN])

    @pytest.mark.asyncio
    async def test_existing_admin_grant_is_kept(self, session, admin_identity) -> None:
        user = await UserService(session).set_roles(admin_identity, [UserRole.BUYER])
        assert user.roles == ["admin", "buyer"]

    @pytest.mark.asyncio
    async def test_at_least_one_role(self, session, buyer_identity) -> None:
        with pytest.raises(InvalidOperationError):
            await UserService(session).set_roles(buyer_identity, [])
