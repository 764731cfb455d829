"""Notification REST API routes.

``GET /api/v1/notifications?since=<timestamp>`` is the polling channel
clients use to observe escrow and agreement transitions.

Routes:
    GET    /api/v1/notifications                — My notifications, newest first
    POST   /api/v1/notifications/read-all       — Mark all read
    POST   /api/v1/notifications/{id}/read      — Mark one read
    DELETE /api/v1/notifications/{id}           — Delete one
"""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from igaming_exchange.api.deps import get_current_identity, get_db_session
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.schemas.marketplace import MarkAllReadResponse, NotificationResponse
from igaming_exchange.services.notification_service import NotificationService

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    since: datetime | None = None,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> list[NotificationResponse]:
    notifications = await NotificationService(session).list_for_user(
        identity, unread_only=unread_only, since=since
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> MarkAllReadResponse:
    count = await NotificationService(session).mark_all_read(identity)
    return MarkAllReadResponse(updated=count)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    notification = await NotificationService(session).mark_read(identity, notification_id)
    return NotificationResponse.model_validate(notification)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    await NotificationService(session).delete(identity, notification_id)
    return Response(status_code=204)
