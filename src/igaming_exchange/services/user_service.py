"""Profiles, onboarding role selection and identity resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING

from igaming_exchange.domain.enums import UserRole
from igaming_exchange.domain.exceptions import (
    InvalidOperationError,
    PermissionDeniedError,
    UserNotFoundError,
)
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.infrastructure.database.repositories import UserRepository
from igaming_exchange.infrastructure.redis_client import (
    cache_identity,
    get_cached_identity,
    invalidate_identity,
)
from igaming_exchange.logging_config import get_logger

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    import redis.asyncio as aioredis
    from sqlalchemy.ext.asyncio import AsyncSession

    from igaming_exchange.infrastructure.database.orm_models import User

logger = get_logger(__name__)

SELF_ASSIGNABLE_ROLES = frozenset({UserRole.BUYER, UserRole.SELLER})


def identity_from_user(user: User) -> Identity:
    return Identity(user_id=user.id, roles=frozenset(UserRole(r) for r in user.roles or ()))


class UserService:
    def __init__(self, session: AsyncSession, redis: aioredis.Redis | None = None) -> None:
        self._repo = UserRepository(session)
        self._redis = redis

    async def resolve_identity(self, user_id: uuid.UUID) -> Identity:
        """Identity for an authenticated user id, served from cache when possible."""
        if self._redis is not None:
            cached = await get_cached_identity(self._redis, user_id)
            if cached is not None:
                return cached

        user = await self._repo.get_by_id(user_id)
        if user is None:
            raise PermissionDeniedError("Unknown user")
        identity = identity_from_user(user)
        if self._redis is not None:
            await cache_identity(self._redis, identity)
        return identity

    async def get_profile(self, identity: Identity) -> User:
        user = await self._repo.get_by_id(identity.user_id)
        if user is None:
            raise UserNotFoundError(str(identity.user_id))
        return user

    async def set_roles(self, identity: Identity, roles: Iterable[UserRole]) -> User:
        """Onboarding: pick buyer and/or seller. Admin is never self-assigned."""
        requested = frozenset(UserRole(r) for r in roles)
        if not requested:
            raise InvalidOperationError("Select at least one role")
        if not requested <= SELF_ASSIGNABLE_ROLES:
            raise PermissionDeniedError("Only buyer and seller roles can be self-assigned")

        user = await self.get_profile(identity)
        # Keep an existing admin grant; it is managed outside onboarding.
        kept = {UserRole.ADMIN} if UserRole.ADMIN.value in (user.roles or []) else set()
        user = await self._repo.set_roles(user, sorted(r.value for r in requested | kept))
        await self.sign_out(identity)
        logger.info("user.roles_updated", user_id=str(user.id), roles=user.roles)
        return user

    async def sign_out(self, identity: Identity) -> None:
        """Forget the cached identity so the next request re-reads the profile."""
        if self._redis is not None:
            await invalidate_identity(self._redis, identity.user_id)
