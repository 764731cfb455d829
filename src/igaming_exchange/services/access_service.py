"""Access Control Ledger — buyer requests for gated listing data, plus NDA.

One request per (buyer, listing). The listing's seller decides it exactly
once; the buyer may then sign the NDA, which is only possible on an
approved request and is a no-op if already signed. Requests are never
deleted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from igaming_exchange.domain.enums import AccessRequestStatus, NotificationType
from igaming_exchange.domain.exceptions import (
    AccessRequestNotFoundError,
    DuplicateAccessRequestError,
    InvalidOperationError,
    InvalidStateTransitionError,
    ListingNotFoundError,
    NdaRequiresApprovalError,
    PermissionDeniedError,
)
from igaming_exchange.domain.permissions import Capability, require_capability
from igaming_exchange.domain.state_machine import AccessRequestStateMachine, apply_event
from igaming_exchange.infrastructure.database.orm_models import AccessRequest
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
    from igaming_exchange.infrastructure.database.orm_models import Listing

logger = get_logger(__name__)


class AccessService:
    """Manages access requests and NDA acknowledgement."""

    def __init__(self, session: AsyncSession) -> None:
        self._request_repo = AccessRequestRepository(session)
        self._listing_repo = ListingRepository(session)
        self._notifications = NotificationService(session)

    async def request_access(
        self,
        identity: Identity,
        listing_id: uuid.UUID,
        message: str | None = None,
    ) -> AccessRequest:
        """Buyer asks the listing's seller for access. Status starts ``pending``."""
        require_capability(identity, Capability.REQUEST_ACCESS)
        listing = await self._get_listing_or_raise(listing_id)
        if listing.seller_id == identity.user_id:
            raise InvalidOperationError("You cannot request access to your own listing")
        if await self._request_repo.get_for(listing_id, identity.user_id) is not None:
            raise DuplicateAccessRequestError(str(listing_id))

        request = await self._request_repo.create(
            AccessRequest(
                listing_id=listing_id,
                buyer_id=identity.user_id,
                message=message,
                status=AccessRequestStatus.PENDING.value,
            )
        )
        await self._notifications.emit(
            user_id=listing.seller_id,
            notification_type=NotificationType.ACCESS_REQUEST,
            title="New Access Request",
            content=f'A buyer has requested access to "{listing.title}".',
            related_id=request.id,
        )
        logger.info(
            "access.requested",
            request_id=str(request.id),
            listing_id=str(listing_id),
            buyer_id=str(identity.user_id),
        )
        return request

    async def approve(self, identity: Identity, request_id: uuid.UUID) -> AccessRequest:
        return await self._decide(identity, request_id, approve=True)

    async def reject(self, identity: Identity, request_id: uuid.UUID) -> AccessRequest:
        return await self._decide(identity, request_id, approve=False)

    async def sign_nda(self, identity: Identity, request_id: uuid.UUID) -> AccessRequest:
        """Record the buyer's NDA signature. Idempotent once signed."""
        require_capability(identity, Capability.SIGN_NDA)
        request = await self._get_or_raise(request_id)
        if request.buyer_id != identity.user_id:
            raise PermissionDeniedError("Only the requesting buyer can sign this NDA")
        if request.status != AccessRequestStatus.APPROVED.value:
            raise NdaRequiresApprovalError(str(request_id), request.status)
        if request.nda_signed:
            return request

        if not await self._request_repo.mark_nda_signed(request):
            if request.nda_signed:
                return request
            raise NdaRequiresApprovalError(str(request_id), request.status)

        listing = await self._get_listing_or_raise(request.listing_id)
        await self._notifications.emit(
            user_id=listing.seller_id,
            notification_type=NotificationType.NDA_SIGNED,
            title="NDA Signed",
            content=f'The buyer has signed the NDA for "{listing.title}".',
            related_id=request.id,
        )
        logger.info("access.nda_signed", request_id=str(request_id))
        return request

    async def list_for_buyer(self, identity: Identity) -> list[AccessRequest]:
        return await self._request_repo.list_by_buyer(identity.user_id)

    async def list_for_seller(self, identity: Identity) -> list[AccessRequest]:
        """Requests against any listing the caller sells."""
        return await self._request_repo.list_by_seller(identity.user_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _decide(
        self,
        identity: Identity,
        request_id: uuid.UUID,
        approve: bool,
    ) -> AccessRequest:
        require_capability(identity, Capability.REVIEW_ACCESS)
        request = await self._get_or_raise(request_id)
        listing = await self._get_listing_or_raise(request.listing_id)
        if listing.seller_id != identity.user_id and not identity.is_admin:
            raise PermissionDeniedError("Only the listing's seller can decide this request")

        event = "approve_request" if approve else "reject_request"
        target = apply_event(AccessRequestStateMachine, request.status, event)
        decided = await self._request_repo.compare_and_set_status(
            request, AccessRequestStatus(request.status), AccessRequestStatus(target)
        )
        if not decided:
            logger.warning(
                "access.decision_lost_race", request_id=str(request_id), status=request.status
            )
            raise InvalidStateTransitionError(
                AccessRequestStateMachine.entity, request.status, event
            )

        verdict = "approved" if approve else "rejected"
        await self._notifications.emit(
            user_id=request.buyer_id,
            notification_type=NotificationType.ACCESS_REQUEST,
            title=f"Access Request {verdict.capitalize()}",
            content=f'Your access request for "{listing.title}" was {verdict}.',
            related_id=request.id,
        )
        logger.info("access.decided", request_id=str(request_id), status=request.status)
        return request

    async def _get_or_raise(self, request_id: uuid.UUID) -> AccessRequest:
        request = await self._request_repo.get_by_id(request_id)
        if request is None:
            raise AccessRequestNotFoundError(str(request_id))
        return request

    async def _get_listing_or_raise(self, listing_id: uuid.UUID) -> Listing:
        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(str(listing_id))
        return listing
