"""Direct message REST API routes.

Routes:
    POST   /api/v1/messages                         — Send a message
    GET    /api/v1/messages/conversations           — Inbox grouped by partner
    GET    /api/v1/messages/conversations/{user}    — Thread, oldest first
    POST   /api/v1/messages/conversations/{user}/read — Mark a thread read
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from igaming_exchange.api.deps import get_current_identity, get_db_session
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.schemas.marketplace import (
    ConversationResponse,
    MarkAllReadResponse,
    MessageCreate,
    MessageResponse,
)
from igaming_exchange.services.messaging_service import MessagingService

router = APIRouter(prefix="/api/v1/messages", tags=["Messages"])


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    body: MessageCreate,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    message = await MessagingService(session).send(
        identity, body.receiver_id, body.content, listing_id=body.listing_id
    )
    return MessageResponse.model_validate(message)


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> list[ConversationResponse]:
    summaries = await MessagingService(session).conversations(identity)
    return [ConversationResponse.model_validate(s) for s in summaries]


@router.get("/conversations/{partner_id}", response_model=list[MessageResponse])
async def get_thread(
    partner_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> list[MessageResponse]:
    messages = await MessagingService(session).thread(identity, partner_id)
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/conversations/{partner_id}/read", response_model=MarkAllReadResponse)
async def mark_thread_read(
    partner_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> MarkAllReadResponse:
    count = await MessagingService(session).mark_conversation_read(identity, partner_id)
    return MarkAllReadResponse(updated=count)
