"""Access request REST API routes.

Routes:
    POST   /api/v1/access-requests                — Request access (buyer)
    GET    /api/v1/access-requests/sent           — Requests I made
    GET    /api/v1/access-requests/received       — Requests on my listings
    POST   /api/v1/access-requests/{id}/approve   — Approve (listing seller)
    POST   /api/v1/access-requests/{id}/reject    — Reject (listing seller)
    POST   /api/v1/access-requests/{id}/sign-nda  — Sign the NDA (buyer)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from igaming_exchange.api.deps import get_current_identity, get_db_session
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.schemas.marketplace import AccessRequestCreate, AccessRequestResponse
from igaming_exchange.services.access_service import AccessService

router = APIRouter(prefix="/api/v1/access-requests", tags=["Access Requests"])


@router.post("", response_model=AccessRequestResponse, status_code=201)
async def request_access(
    body: AccessRequestCreate,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> AccessRequestResponse:
    request = await AccessService(session).request_access(identity, body.listing_id, body.message)
    return AccessRequestResponse.model_validate(request)


@router.get("/sent", response_model=list[AccessRequestResponse])
async def list_sent(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> list[AccessRequestResponse]:
    requests = await AccessService(session).list_for_buyer(identity)
    return [AccessRequestResponse.model_validate(r) for r in requests]


@router.get("/received", response_model=list[AccessRequestResponse])
async def list_received(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> list[AccessRequestResponse]:
    requests = await AccessService(session).list_for_seller(identity)
    return [AccessRequestResponse.model_validate(r) for r in requests]


@router.post("/{request_id}/approve", response_model=AccessRequestResponse)
async def approve_request(
    request_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> AccessRequestResponse:
    request = await AccessService(session).approve(identity, request_id)
    return AccessRequestResponse.model_validate(request)


@router.post("/{request_id}/reject", response_model=AccessRequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> AccessRequestResponse:
    request = await AccessService(session).reject(identity, request_id)
    return AccessRequestResponse.model_validate(request)


@router.post("/{request_id}/sign-nda", response_model=AccessRequestResponse)
async def sign_nda(
    request_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> AccessRequestResponse:
    request = await AccessService(session).sign_nda(identity, request_id)
    return AccessRequestResponse.model_validate(request)
