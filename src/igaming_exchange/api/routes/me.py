"""Profile routes for the signed-in user.

Routes:
    GET    /api/v1/me            — My profile
    PUT    /api/v1/me/roles      — Choose buyer and/or seller (onboarding)
    POST   /api/v1/me/sign-out   — Drop the cached identity
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from igaming_exchange.api.deps import get_current_identity, get_db_session, get_redis_client
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.schemas.marketplace import ProfileResponse, RoleSelection
from igaming_exchange.services.user_service import UserService

router = APIRouter(prefix="/api/v1/me", tags=["Profile"])


@router.get("", response_model=ProfileResponse)
async def get_profile(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ProfileResponse:
    user = await UserService(session).get_profile(identity)
    return ProfileResponse.model_validate(user)


@router.put("/roles", response_model=ProfileResponse)
async def set_roles(
    body: RoleSelection,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> ProfileResponse:
    user = await UserService(session, redis).set_roles(identity, body.roles)
    return ProfileResponse.model_validate(user)


@router.post("/sign-out", status_code=204)
async def sign_out(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> Response:
    await UserService(session, redis).sign_out(identity)
    return Response(status_code=204)
