"""Listing Registry — sellable assets and their publication lifecycle.

Sellers create listings as drafts and edit them only while they are drafts.
An admin approves or rejects what sellers submit; only approved AND public
listings show up in ``browse``. Gated (non-public) listings are readable by
their owner, admins and buyers whose access request was approved.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from igaming_exchange.domain.enums import (
    AccessRequestStatus,
    ListingStatus,
    NotificationType,
)
from igaming_exchange.domain.exceptions import (
    InvalidOperationError,
    InvalidStateTransitionError,
    ListingNotFoundError,
    PermissionDeniedError,
)
from igaming_exchange.domain.permissions import Capability, require_capability
from igaming_exchange.domain.state_machine import ListingStateMachine, apply_event
from igaming_exchange.infrastructure.database.orm_models import Listing
from igaming_exchange.infrastructure.database.repositories import (
    AccessRequestRepository,
    ListingRepository,
)
from igaming_exchange.logging_config import get_logger
from igaming_exchange.services.notification_service import NotificationService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from igaming_exchange.domain.permissions import Identity

logger = get_logger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "price",
        "revenue_monthly",
        "revenue_annual",
        "category",
        "country",
        "license_type",
        "is_public",
    }
)

_PUBLISHED = frozenset(
    {ListingStatus.APPROVED.value, ListingStatus.LIVE.value, ListingStatus.SOLD.value}
)


class ListingService:
    def __init__(self, session: AsyncSession) -> None:
        self._listing_repo = ListingRepository(session)
        self._access_repo = AccessRequestRepository(session)
        self._notifications = NotificationService(session)

    # ------------------------------------------------------------------
    # Seller operations
    # ------------------------------------------------------------------

    async def create_listing(self, identity: Identity, **fields: Any) -> Listing:
        """Create a listing owned by the caller. New listings are always drafts."""
        require_capability(identity, Capability.MANAGE_LISTING)
        self._reject_unknown_fields(fields)

        listing = Listing(seller_id=identity.user_id, status=ListingStatus.DRAFT.value, **fields)
        listing = await self._listing_repo.create(listing)
        logger.info("listing.created", listing_id=str(listing.id), seller_id=str(identity.user_id))
        return listing

    async def update_listing(
        self,
        identity: Identity,
        listing_id: uuid.UUID,
        **fields: Any,
    ) -> Listing:
        listing = await self._get_owned(identity, listing_id)
        if listing.status != ListingStatus.DRAFT.value:
            raise InvalidOperationError("Only draft listings can be edited")
        self._reject_unknown_fields(fields)
        return await self._listing_repo.update_fields(listing, **fields)

    async def submit_for_review(self, identity: Identity, listing_id: uuid.UUID) -> Listing:
        listing = await self._get_owned(identity, listing_id)
        return await self._transition(listing, "submit_for_review", ListingStatus.PENDING)

    async def publish(self, identity: Identity, listing_id: uuid.UUID) -> Listing:
        """Take an approved listing live."""
        listing = await self._get_owned(identity, listing_id)
        return await self._transition(listing, "publish", ListingStatus.LIVE)

    async def mark_sold(self, identity: Identity, listing_id: uuid.UUID) -> Listing:
        listing = await self._get_owned(identity, listing_id)
        return await self._transition(listing, "mark_sold", ListingStatus.SOLD)

    async def list_for_seller(self, identity: Identity) -> list[Listing]:
        return await self._listing_repo.list_by_seller(identity.user_id)

    # ------------------------------------------------------------------
    # Admin review
    # ------------------------------------------------------------------

    async def approve_listing(self, identity: Identity, listing_id: uuid.UUID) -> Listing:
        require_capability(identity, Capability.REVIEW_LISTING)
        listing = await self._get_or_raise(listing_id)
        listing = await self._transition(listing, "approve_listing", ListingStatus.APPROVED)
        await self._notifications.emit(
            user_id=listing.seller_id,
            notification_type=NotificationType.LISTING_APPROVED,
            title="Listing Approved",
            content=f'Your listing "{listing.title}" has been approved.',
            related_id=listing.id,
        )
        return listing

    async def reject_listing(
        self,
        identity: Identity,
        listing_id: uuid.UUID,
        reason: str | None = None,
    ) -> Listing:
        """Send a pending listing back to draft so the seller can revise it."""
        require_capability(identity, Capability.REVIEW_LISTING)
        listing = await self._get_or_raise(listing_id)
        listing = await self._transition(listing, "reject_listing", ListingStatus.DRAFT)
        content = f'Your listing "{listing.title}" was not approved.'
        if reason:
            content = f"{content} Reason: {reason}"
        await self._notifications.emit(
            user_id=listing.seller_id,
            notification_type=NotificationType.LISTING_REJECTED,
            title="Listing Rejected",
            content=content,
            related_id=listing.id,
        )
        return listing

    # ------------------------------------------------------------------
    # Buyer-facing reads
    # ------------------------------------------------------------------

    async def browse(
        self,
        search: str | None = None,
        category: str | None = None,
        country: str | None = None,
    ) -> list[Listing]:
        """Approved, public listings only, newest first."""
        return await self._listing_repo.browse(search=search, category=category, country=country)

    async def get_listing(self, identity: Identity, listing_id: uuid.UUID) -> Listing:
        """Read one listing, counting the view unless the owner is looking."""
        listing = await self._get_or_raise(listing_id)
        is_owner = listing.seller_id == identity.user_id

        if not (is_owner or identity.is_admin):
            # Unpublished listings are invisible to everyone but owner and admins.
            if listing.status not in _PUBLISHED:
                raise ListingNotFoundError(str(listing_id))
            if not listing.is_public and not await self._has_approved_access(identity, listing):
                raise PermissionDeniedError("This listing requires an approved access request")

        if not is_owner:
            await self._listing_repo.increment_views(listing)
        return listing

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _has_approved_access(self, identity: Identity, listing: Listing) -> bool:
        request = await self._access_repo.get_for(listing.id, identity.user_id)
        return request is not None and request.status == AccessRequestStatus.APPROVED.value

    async def _get_or_raise(self, listing_id: uuid.UUID) -> Listing:
        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(str(listing_id))
        return listing

    async def _get_owned(self, identity: Identity, listing_id: uuid.UUID) -> Listing:
        require_capability(identity, Capability.MANAGE_LISTING)
        listing = await self._get_or_raise(listing_id)
        if listing.seller_id != identity.user_id and not identity.is_admin:
            raise PermissionDeniedError("Only the listing's seller can do this")
        return listing

    async def _transition(self, listing: Listing, event: str, target: ListingStatus) -> Listing:
        old_status = listing.status
        apply_event(ListingStateMachine, listing.status, event)
        if not await self._listing_repo.compare_and_set_status(
            listing, ListingStatus(old_status), target
        ):
            raise InvalidStateTransitionError(ListingStateMachine.entity, listing.status, event)
        logger.info(
            "listing.status_changed",
            listing_id=str(listing.id),
            old_status=old_status,
            new_status=target.value,
        )
        return listing

    @staticmethod
    def _reject_unknown_fields(fields: dict[str, Any]) -> None:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise InvalidOperationError(f"Unknown listing fields: {', '.join(sorted(unknown))}")
