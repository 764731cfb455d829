"""Direct messages between marketplace users."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from igaming_exchange.domain.enums import NotificationType
from igaming_exchange.domain.exceptions import InvalidOperationError, UserNotFoundError
from igaming_exchange.domain.permissions import Capability, require_capability
from igaming_exchange.infrastructure.database.orm_models import Message
from igaming_exchange.infrastructure.database.repositories import (
    MessageRepository,
    UserRepository,
)
from igaming_exchange.logging_config import get_logger
from igaming_exchange.services.notification_service import NotificationService

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from igaming_exchange.domain.permissions import Identity

logger = get_logger(__name__)

_PREVIEW_CHARS = 80


@dataclass
class ConversationSummary:
    """One row of the inbox: a partner, the latest message time and unread count."""

    partner_id: uuid.UUID
    partner_name: str
    last_message_at: datetime
    last_message: str
    unread_count: int = 0


class MessagingService:
    def __init__(self, session: AsyncSession) -> None:
        self._message_repo = MessageRepository(session)
        self._user_repo = UserRepository(session)
        self._notifications = NotificationService(session)

    async def send(
        self,
        identity: Identity,
        receiver_id: uuid.UUID,
        content: str,
        listing_id: uuid.UUID | None = None,
    ) -> Message:
        require_capability(identity, Capability.SEND_MESSAGE)
        if receiver_id == identity.user_id:
            raise InvalidOperationError("You cannot message yourself")
        content = content.strip()
        if not content:
            raise InvalidOperationError("Message content is required")
        if await self._user_repo.get_by_id(receiver_id) is None:
            raise UserNotFoundError(str(receiver_id))

        message = await self._message_repo.create(
            Message(
                sender_id=identity.user_id,
                receiver_id=receiver_id,
                listing_id=listing_id,
                content=content,
            )
        )
        preview = content if len(content) <= _PREVIEW_CHARS else f"{content[:_PREVIEW_CHARS]}..."
        await self._notifications.emit(
            user_id=receiver_id,
            notification_type=NotificationType.NEW_MESSAGE,
            title="New Message",
            content=preview,
            related_id=message.id,
        )
        logger.info("message.sent", message_id=str(message.id), receiver_id=str(receiver_id))
        return message

    async def conversations(self, identity: Identity) -> list[ConversationSummary]:
        """Inbox grouped by partner, most recently active first."""
        messages = await self._message_repo.list_involving(identity.user_id)

        summaries: dict[uuid.UUID, ConversationSummary] = {}
        for msg in messages:  # newest first, so the first hit per partner is the latest
            partner_id = msg.receiver_id if msg.sender_id == identity.user_id else msg.sender_id
            summary = summaries.get(partner_id)
            if summary is None:
                summary = ConversationSummary(
                    partner_id=partner_id,
                    partner_name="",
                    last_message_at=msg.created_at,
                    last_message=msg.content,
                )
                summaries[partner_id] = summary
            if not msg.is_read and msg.receiver_id == identity.user_id:
                summary.unread_count += 1

        partners = await self._user_repo.get_many(summaries)
        for partner_id, summary in summaries.items():
            user = partners.get(partner_id)
            if user is not None:
                name = " ".join(p for p in (user.first_name, user.last_name) if p)
                summary.partner_name = name or user.email
        return list(summaries.values())

    async def thread(self, identity: Identity, partner_id: uuid.UUID) -> list[Message]:
        """Messages with one partner, oldest first."""
        return await self._message_repo.thread(identity.user_id, partner_id)

    async def mark_conversation_read(self, identity: Identity, partner_id: uuid.UUID) -> int:
        return await self._message_repo.mark_thread_read(
            receiver_id=identity.user_id, sender_id=partner_id
        )
