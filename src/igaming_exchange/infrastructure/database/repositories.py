"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).

Status changes on listings, access requests, escrows, agreements and KYC
documents go through ``compare_and_set_status``: a single conditional UPDATE
that only matches when the row still holds the expected status. Two
concurrent callers can both read ``funded``; only one of them gets ``True``
back.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, or_, select, update

from igaming_exchange.domain.enums import (
    AccessRequestStatus,
    AgreementStatus,
    EscrowStatus,
    KycStatus,
    ListingStatus,
)
from igaming_exchange.infrastructure.database.orm_models import (
    AccessRequest,
    Agreement,
    Escrow,
    KycDocument,
    Listing,
    Message,
    Notification,
    PaymentCustomer,
    User,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from igaming_exchange.domain.enums import NotificationType

_OPEN_ESCROW_STATUSES = (EscrowStatus.INITIATED.value, EscrowStatus.FUNDED.value)


class UserRepository:
    """Data access for user profiles."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, user: User) -> User:
        self._session.add(user)
        await self._session.flush()
        return user

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        result = await self._session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, User]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        result = await self._session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    async def set_roles(self, user: User, roles: list[str]) -> User:
        user.roles = roles
        await self._session.flush()
        return user


class ListingRepository:
    """Data access for listings."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, listing: Listing) -> Listing:
        self._session.add(listing)
        await self._session.flush()
        return listing

    async def get_by_id(self, listing_id: uuid.UUID) -> Listing | None:
        result = await self._session.execute(select(Listing).where(Listing.id == listing_id))
        return result.scalar_one_or_none()

    async def browse(
        self,
        search: str | None = None,
        category: str | None = None,
        country: str | None = None,
    ) -> list[Listing]:
        """Public browse view: approved AND public, newest first."""
        stmt = select(Listing).where(
            Listing.status == ListingStatus.APPROVED.value,
            Listing.is_public.is_(True),
        )
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Listing.title).like(pattern),
                    func.lower(func.coalesce(Listing.description, "")).like(pattern),
                )
            )
        if category:
            stmt = stmt.where(Listing.category == category)
        if country:
            stmt = stmt.where(Listing.country == country)

        result = await self._session.execute(stmt.order_by(Listing.created_at.desc()))
        return list(result.scalars().all())

    async def list_by_seller(self, seller_id: uuid.UUID) -> list[Listing]:
        result = await self._session.execute(
            select(Listing)
            .where(Listing.seller_id == seller_id)
            .order_by(Listing.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_fields(self, listing: Listing, **fields: Any) -> Listing:
        for name, value in fields.items():
            setattr(listing, name, value)
        await self._session.flush()
        return listing

    async def compare_and_set_status(
        self,
        listing: Listing,
        expected: ListingStatus,
        new_status: ListingStatus,
    ) -> bool:
        """Call AFTER state machine validation. The listing is refreshed either way."""
        result = await self._session.execute(
            update(Listing)
            .where(Listing.id == listing.id, Listing.status == expected.value)
            .values(status=new_status.value, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        await self._session.refresh(listing)
        return result.rowcount == 1

    async def increment_views(self, listing: Listing) -> Listing:
        """Atomic ``views = views + 1``; concurrent readers never lose a view."""
        await self._session.execute(
            update(Listing)
            .where(Listing.id == listing.id)
            .values(views=Listing.views + 1)
            .execution_options(synchronize_session=False)
        )
        await self._session.refresh(listing, attribute_names=["views"])
        return listing


class AccessRequestRepository:
    """Data access for access requests."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, request: AccessRequest) -> AccessRequest:
        self._session.add(request)
        await self._session.flush()
        return request

    async def get_by_id(self, request_id: uuid.UUID) -> AccessRequest | None:
        result = await self._session.execute(
            select(AccessRequest).where(AccessRequest.id == request_id)
        )
        return result.scalar_one_or_none()

    async def get_for(self, listing_id: uuid.UUID, buyer_id: uuid.UUID) -> AccessRequest | None:
        result = await self._session.execute(
            select(AccessRequest).where(
                AccessRequest.listing_id == listing_id,
                AccessRequest.buyer_id == buyer_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_buyer(self, buyer_id: uuid.UUID) -> list[AccessRequest]:
        result = await self._session.execute(
            select(AccessRequest)
            .where(AccessRequest.buyer_id == buyer_id)
            .order_by(AccessRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_seller(self, seller_id: uuid.UUID) -> list[AccessRequest]:
        result = await self._session.execute(
            select(AccessRequest)
            .join(Listing, Listing.id == AccessRequest.listing_id)
            .where(Listing.seller_id == seller_id)
            .order_by(AccessRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def compare_and_set_status(
        self,
        request: AccessRequest,
        expected: AccessRequestStatus,
        new_status: AccessRequestStatus,
    ) -> bool:
        """Decide a request iff it still holds ``expected``. Refreshed either way."""
        result = await self._session.execute(
            update(AccessRequest)
            .where(AccessRequest.id == request.id, AccessRequest.status == expected.value)
            .values(status=new_status.value, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        await self._session.refresh(request)
        return result.rowcount == 1

    async def mark_nda_signed(self, request: AccessRequest) -> bool:
        """Set the NDA flag only on an approved, still unsigned request."""
        now = datetime.now(UTC)
        result = await self._session.execute(
            update(AccessRequest)
            .where(
                AccessRequest.id == request.id,
                AccessRequest.status == AccessRequestStatus.APPROVED.value,
                AccessRequest.nda_signed.is_(False),
            )
            .values(nda_signed=True, nda_signed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self._session.refresh(request)
        return result.rowcount == 1


class EscrowRepository:
    """Data access for escrows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, escrow: Escrow) -> Escrow:
        self._session.add(escrow)
        await self._session.flush()
        return escrow

    async def get_by_id(self, escrow_id: uuid.UUID) -> Escrow | None:
        result = await self._session.execute(select(Escrow).where(Escrow.id == escrow_id))
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: uuid.UUID) -> list[Escrow]:
        """Escrows where the user is either buyer or seller, newest first."""
        result = await self._session.execute(
            select(Escrow)
            .where(or_(Escrow.buyer_id == user_id, Escrow.seller_id == user_id))
            .order_by(Escrow.created_at.desc())
        )
        return list(result.scalars().all())

    async def latest_open_for(
        self,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
    ) -> Escrow | None:
        result = await self._session.execute(
            select(Escrow)
            .where(
                Escrow.listing_id == listing_id,
                Escrow.buyer_id == buyer_id,
                Escrow.status.in_(_OPEN_ESCROW_STATUSES),
            )
            .order_by(Escrow.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def update_fields(self, escrow: Escrow, **fields: Any) -> Escrow:
        for name, value in fields.items():
            setattr(escrow, name, value)
        await self._session.flush()
        return escrow

    async def compare_and_set_status(
        self,
        escrow: Escrow,
        expected: EscrowStatus,
        new_status: EscrowStatus,
        **fields: Any,
    ) -> bool:
        """Move ``escrow`` from ``expected`` to ``new_status`` iff it is still ``expected``.

        Returns False (and changes nothing) when another writer got there first.
        On success the in-memory object is refreshed from the row.
        """
        result = await self._session.execute(
            update(Escrow)
            .where(Escrow.id == escrow.id, Escrow.status == expected.value)
            .values(status=new_status.value, updated_at=datetime.now(UTC), **fields)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self._session.refresh(escrow)
        return True


class AgreementRepository:
    """Data access for e-signature envelopes."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, agreement: Agreement) -> Agreement:
        self._session.add(agreement)
        await self._session.flush()
        return agreement

    async def get_by_id(self, agreement_id: uuid.UUID) -> Agreement | None:
        result = await self._session.execute(
            select(Agreement).where(Agreement.id == agreement_id)
        )
        return result.scalar_one_or_none()

    async def get_by_envelope_id(self, envelope_id: str) -> Agreement | None:
        result = await self._session.execute(
            select(Agreement).where(Agreement.envelope_id == envelope_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: uuid.UUID) -> list[Agreement]:
        result = await self._session.execute(
            select(Agreement)
            .where(or_(Agreement.buyer_id == user_id, Agreement.seller_id == user_id))
            .order_by(Agreement.created_at.desc())
        )
        return list(result.scalars().all())

    async def compare_and_set_status(
        self,
        agreement: Agreement,
        expected: AgreementStatus,
        new_status: AgreementStatus,
        **fields: Any,
    ) -> bool:
        result = await self._session.execute(
            update(Agreement)
            .where(Agreement.id == agreement.id, Agreement.status == expected.value)
            .values(status=new_status.value, updated_at=datetime.now(UTC), **fields)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self._session.refresh(agreement)
        return True


class NotificationRepository:
    """Data access for the append-only notification mailbox."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        content: str,
        related_id: uuid.UUID | None = None,
    ) -> Notification:
        """Append a notification. This and ``mark_read`` are the only writes."""
        notification = Notification(
            user_id=user_id,
            type=notification_type.value,
            title=title,
            content=content,
            related_id=related_id,
        )
        self._session.add(notification)
        await self._session.flush()
        return notification

    async def get_by_id(self, notification_id: uuid.UUID) -> Notification | None:
        result = await self._session.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        since: datetime | None = None,
    ) -> list[Notification]:
        """Fetch a user's notifications, newest first."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        if since is not None:
            stmt = stmt.where(Notification.created_at > since)
        result = await self._session.execute(
            stmt.order_by(Notification.created_at.desc(), Notification.id)
        )
        return list(result.scalars().all())

    async def list_related(self, related_id: uuid.UUID) -> list[Notification]:
        result = await self._session.execute(
            select(Notification)
            .where(Notification.related_id == related_id)
            .order_by(Notification.created_at.asc())
        )
        return list(result.scalars().all())

    async def mark_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        await self._session.flush()
        return notification

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self._session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete(self, notification: Notification) -> None:
        await self._session.execute(
            delete(Notification).where(Notification.id == notification.id)
        )
        await self._session.flush()


class KycDocumentRepository:
    """Data access for KYC document records (the bytes live in the blob store)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, document: KycDocument) -> KycDocument:
        self._session.add(document)
        await self._session.flush()
        return document

    async def get_by_id(self, document_id: uuid.UUID) -> KycDocument | None:
        result = await self._session.execute(
            select(KycDocument).where(KycDocument.id == document_id)
        )
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: uuid.UUID) -> list[KycDocument]:
        result = await self._session.execute(
            select(KycDocument)
            .where(KycDocument.user_id == user_id)
            .order_by(KycDocument.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_status(self, status: str) -> list[KycDocument]:
        result = await self._session.execute(
            select(KycDocument)
            .where(KycDocument.status == status)
            .order_by(KycDocument.created_at.asc())
        )
        return list(result.scalars().all())

    async def record_review(
        self,
        document: KycDocument,
        new_status: KycStatus,
        **fields: Any,
    ) -> bool:
        """Settle a ``pending`` document. False when another review landed first."""
        result = await self._session.execute(
            update(KycDocument)
            .where(
                KycDocument.id == document.id,
                KycDocument.status == KycStatus.PENDING.value,
            )
            .values(status=new_status.value, updated_at=datetime.now(UTC), **fields)
            .execution_options(synchronize_session=False)
        )
        await self._session.refresh(document)
        return result.rowcount == 1


class MessageRepository:
    """Data access for direct messages."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, message: Message) -> Message:
        self._session.add(message)
        await self._session.flush()
        return message

    async def list_involving(self, user_id: uuid.UUID) -> list[Message]:
        """Every message the user sent or received, newest first."""
        result = await self._session.execute(
            select(Message)
            .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at.desc())
        )
        return list(result.scalars().all())

    async def thread(self, user_id: uuid.UUID, other_id: uuid.UUID) -> list[Message]:
        """Messages between two users, oldest first."""
        result = await self._session.execute(
            select(Message)
            .where(
                or_(
                    (Message.sender_id == user_id) & (Message.receiver_id == other_id),
                    (Message.sender_id == other_id) & (Message.receiver_id == user_id),
                )
            )
            .order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())

    async def mark_thread_read(self, receiver_id: uuid.UUID, sender_id: uuid.UUID) -> int:
        result = await self._session.execute(
            update(Message)
            .where(
                Message.sender_id == sender_id,
                Message.receiver_id == receiver_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class PaymentCustomerRepository:
    """Data access for payment-provider customer references."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_user(self, user_id: uuid.UUID) -> PaymentCustomer | None:
        result = await self._session.execute(
            select(PaymentCustomer).where(PaymentCustomer.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create(self, user_id: uuid.UUID, provider_customer_ref: str) -> PaymentCustomer:
        customer = PaymentCustomer(user_id=user_id, provider_customer_ref=provider_customer_ref)
        self._session.add(customer)
        await self._session.flush()
        return customer
