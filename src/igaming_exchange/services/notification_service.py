"""Notification Sink — per-user mailbox of marketplace events.

Every other service emits through ``NotificationService.emit`` inside the
same session as the state change it reports. Nothing here catches: if a
notification cannot be written, the caller's unit of work fails and the
state change rolls back with it.

Clients observe transitions by polling ``list_for_user(since=...)``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from igaming_exchange.domain.exceptions import (
    NotificationNotFoundError,
    PermissionDeniedError,
)
from igaming_exchange.infrastructure.database.repositories import NotificationRepository
from igaming_exchange.logging_config import get_logger

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from igaming_exchange.domain.enums import NotificationType
    from igaming_exchange.domain.permissions import Identity
    from igaming_exchange.infrastructure.database.orm_models import Notification

logger = get_logger(__name__)


class NotificationService:
    def __init__(self, session: AsyncSession) -> None:
        self._repo = NotificationRepository(session)

    async def emit(
        self,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        content: str,
        related_id: uuid.UUID | None = None,
    ) -> Notification:
        notification = await self._repo.record(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            content=content,
            related_id=related_id,
        )
        logger.info(
            "notification.emitted",
            user_id=str(user_id),
            type=notification_type.value,
            related_id=str(related_id) if related_id else None,
        )
        return notification

    async def list_for_user(
        self,
        identity: Identity,
        unread_only: bool = False,
        since: datetime | None = None,
    ) -> list[Notification]:
        """The caller's own notifications, newest first."""
        return await self._repo.list_for_user(
            identity.user_id, unread_only=unread_only, since=since
        )

    async def mark_read(self, identity: Identity, notification_id: uuid.UUID) -> Notification:
        notification = await self._get_owned(identity, notification_id)
        return await self._repo.mark_read(notification)

    async def mark_all_read(self, identity: Identity) -> int:
        count = await self._repo.mark_all_read(identity.user_id)
        logger.info("notification.all_read", user_id=str(identity.user_id), count=count)
        return count

    async def delete(self, identity: Identity, notification_id: uuid.UUID) -> None:
        notification = await self._get_owned(identity, notification_id)
        await self._repo.delete(notification)

    async def _get_owned(self, identity: Identity, notification_id: uuid.UUID) -> Notification:
        notification = await self._repo.get_by_id(notification_id)
        if notification is None:
            raise NotificationNotFoundError(str(notification_id))
        if notification.user_id != identity.user_id:
            raise PermissionDeniedError("You can only manage your own notifications")
        return notification
