"""Tests for access requests and NDA acknowledgement."""

from __future__ import annotations

import pytest

from igaming_exchange.domain.enums import AccessRequestStatus, NotificationType, UserRole
from igaming_exchange.domain.exceptions import (
    DuplicateAccessRequestError,
    InvalidOperationError,
    InvalidStateTransitionError,
    NdaRequiresApprovalError,
    PermissionDeniedError,
)
from igaming_exchange.infrastructure.database.orm_models import AccessRequest
from igaming_exchange.infrastructure.database.repositories import NotificationRepository
from igaming_exchange.services.access_service import AccessService


class TestRequestAccess:
    @pytest.mark.asyncio
    async def test_request_notifies_seller(
        self, session, buyer_identity, seller_identity, listing
    ) -> None:
        request = await AccessService(session).request_access(
            buyer_identity, listing.id, "Interested, please share the P&L"
        )

        assert request.status == AccessRequestStatus.PENDING.value
        assert request.nda_signed is False
        mail = await NotificationRepository(session).list_for_user(seller_identity.user_id)
        assert len(mail) == 1
        assert mail[0].type == NotificationType.ACCESS_REQUEST.value
        assert mail[0].related_id == request.id

    @pytest.mark.asyncio
    async def test_one_request_per_buyer_and_listing(
        self, session, buyer_identity, listing
    ) -> None:
        service = AccessService(session)
        await service.request_access(buyer_identity, listing.id)
        with pytest.raises(DuplicateAccessRequestError):
            await service.request_access(buyer_identity, listing.id)

    @pytest.mark.asyncio
    async def test_seller_cannot_request_own_listing(
        self, session, seller_identity, listing
    ) -> None:
        # Sellers lack the capability outright.
        with pytest.raises(PermissionDeniedError):
            await AccessService(session).request_access(seller_identity, listing.id)

    @pytest.mark.asyncio
    async def test_admin_cannot_request_own_listing(
        self, session, admin_identity, make_listing
    ) -> None:
        own = await make_listing(seller_id=admin_identity.user_id)
        with pytest.raises(InvalidOperationError, match="own listing"):
            await AccessService(session).request_access(admin_identity, own.id)


class TestDecision:
    @pytest.mark.asyncio
    async def test_approve_notifies_buyer(
        self, session, buyer_identity, seller_identity, listing
    ) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)

        approved = await service.approve(seller_identity, request.id)

        assert approved.status == AccessRequestStatus.APPROVED.value
        mail = await NotificationRepository(session).list_for_user(buyer_identity.user_id)
        assert [n.title for n in mail] == ["Access Request Approved"]

    @pytest.mark.asyncio
    async def test_decided_exactly_once(
        self, session, buyer_identity, seller_identity, listing
    ) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)
        await service.reject(seller_identity, request.id)
        with pytest.raises(InvalidStateTransitionError):
            await service.approve(seller_identity, request.id)

    @pytest.mark.asyncio
    async def test_other_sellers_cannot_decide(
        self, session, buyer_identity, listing, make_identity
    ) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)
        stranger = await make_identity(UserRole.SELLER)
        with pytest.raises(PermissionDeniedError):
            await service.approve(stranger, request.id)


class TestNda:
    @pytest.mark.asyncio
    async def test_nda_requires_approval(self, session, buyer_identity, listing) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)
        with pytest.raises(NdaRequiresApprovalError):
            await service.sign_nda(buyer_identity, request.id)

    @pytest.mark.asyncio
    async def test_sign_is_idempotent(
        self, session, buyer_identity, seller_identity, listing
    ) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)
        await service.approve(seller_identity, request.id)

        first = await service.sign_nda(buyer_identity, request.id)
        signed_at = first.nda_signed_at
        second = await service.sign_nda(buyer_identity, request.id)

        assert second.nda_signed is True
        assert second.nda_signed_at == signed_at
        mail = await NotificationRepository(session).list_for_user(seller_identity.user_id)
        nda_mail = [n for n in mail if n.type == NotificationType.NDA_SIGNED.value]
        assert len(nda_mail) == 1

    @pytest.mark.asyncio
    async def test_only_requesting_buyer_signs(
        self, session, buyer_identity, other_buyer_identity, seller_identity, listing
    ) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)
        await service.approve(seller_identity, request.id)
        with pytest.raises(PermissionDeniedError):
            await service.sign_nda(other_buyer_identity, request.id)

    @pytest.mark.asyncio
    async def test_listings_by_side(
        self, session, buyer_identity, seller_identity, listing
    ) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)
        assert [r.id for r in await service.list_for_buyer(buyer_identity)] == [request.id]
        assert [r.id for r in await service.list_for_seller(seller_identity)] == [request.id]
        assert await service.list_for_buyer(seller_identity) == []

    @pytest.mark.asyncio
    async def test_nda_refused_after_rejection(
        self, session, buyer_identity, seller_identity, listing
    ) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)
        await service.reject(seller_identity, request.id)

        with pytest.raises(NdaRequiresApprovalError):
            await service.sign_nda(buyer_identity, request.id)

        assert request.nda_signed is False
        assert request.nda_signed_at is None


class TestConcurrentWrites:
    @pytest.mark.asyncio
    async def test_concurrent_decisions_have_one_winner(
        self, session, session_factory, buyer_identity, seller_identity, listing
    ) -> None:
        request = await AccessService(session).request_access(buyer_identity, listing.id)
        await session.commit()

        async with session_factory() as loser:
            # The loser read the request while it was still pending.
            stale = await loser.get(AccessRequest, request.id)
            assert stale.status == AccessRequestStatus.PENDING.value

            async with session_factory() as winner:
                await AccessService(winner).approve(seller_identity, request.id)
                await winner.commit()

            with pytest.raises(InvalidStateTransitionError):
                await AccessService(loser).reject(seller_identity, request.id)
            await loser.rollback()

        async with session_factory() as check:
            final = await check.get(AccessRequest, request.id)
            mail = await NotificationRepository(check).list_for_user(buyer_identity.user_id)
        assert final.status == AccessRequestStatus.APPROVED.value
        assert [n.title for n in mail] == ["Access Request Approved"]

    @pytest.mark.asyncio
    async def test_concurrent_nda_signatures_notify_once(
        self, session, session_factory, buyer_identity, seller_identity, listing
    ) -> None:
        service = AccessService(session)
        request = await service.request_access(buyer_identity, listing.id)
        await service.approve(seller_identity, request.id)
        await session.commit()

        async with session_factory() as late:
            stale = await late.get(AccessRequest, request.id)
            assert stale.nda_signed is False

            async with session_factory() as first:
                await AccessService(first).sign_nda(buyer_identity, request.id)
                await first.commit()

            again = await AccessService(late).sign_nda(buyer_identity, request.id)
            assert again.nda_signed is True
            await late.commit()

        async with session_factory() as check:
            mail = await NotificationRepository(check).list_for_user(seller_identity.user_id)
        assert [n.type for n in mail].count(NotificationType.NDA_SIGNED.value) == 1
