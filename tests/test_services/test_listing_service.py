"""Tests for the listing registry: review workflow, browse and gated reads."""

from __future__ import annotations

from decimal import Decimal

import pytest

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
from igaming_exchange.infrastructure.database.orm_models import AccessRequest, Listing
from igaming_exchange.infrastructure.database.repositories import NotificationRepository
from igaming_exchange.services.listing_service import ListingService


class TestReviewWorkflow:
    @pytest.mark.asyncio
    async def test_create_submit_approve(
        self, session, seller_identity, admin_identity
    ) -> None:
        service = ListingService(session)
        listing = await service.create_listing(
            seller_identity, title="Malta casino", price=Decimal("250000")
        )
        assert listing.status == ListingStatus.DRAFT.value
        assert listing.seller_id == seller_identity.user_id

        await service.submit_for_review(seller_identity, listing.id)
        approved = await service.approve_listing(admin_identity, listing.id)
        assert approved.status == ListingStatus.APPROVED.value

        mail = await NotificationRepository(session).list_for_user(seller_identity.user_id)
        assert [n.type for n in mail] == [NotificationType.LISTING_APPROVED.value]

    @pytest.mark.asyncio
    async def test_status_is_not_a_listing_field(self, session, seller_identity) -> None:
        with pytest.raises(InvalidOperationError, match="status"):
            await ListingService(session).create_listing(
                seller_identity, title="Sneaky", status="approved"
            )

    @pytest.mark.asyncio
    async def test_rejection_returns_to_draft_with_reason(
        self, session, seller_identity, admin_identity
    ) -> None:
        service = ListingService(session)
        listing = await service.create_listing(seller_identity, title="Bingo site")
        await service.submit_for_review(seller_identity, listing.id)

        rejected = await service.reject_listing(admin_identity, listing.id, "Missing licence")

        assert rejected.status == ListingStatus.DRAFT.value
        mail = await NotificationRepository(session).list_for_user(seller_identity.user_id)
        assert mail[0].type == NotificationType.LISTING_REJECTED.value
        assert "Missing licence" in mail[0].content

    @pytest.mark.asyncio
    async def test_only_admins_review(self, session, seller_identity) -> None:
        service = ListingService(session)
        listing = await service.create_listing(seller_identity, title="Poker room")
        await service.submit_for_review(seller_identity, listing.id)
        with pytest.raises(PermissionDeniedError):
            await service.approve_listing(seller_identity, listing.id)

    @pytest.mark.asyncio
    async def test_only_drafts_are_editable(self, session, seller_identity) -> None:
        service = ListingService(session)
        listing = await service.create_listing(seller_identity, title="Poker room")
        await service.update_listing(seller_identity, listing.id, country="Malta")
        assert listing.country == "Malta"

        await service.submit_for_review(seller_identity, listing.id)
        with pytest.raises(InvalidOperationError, match="draft"):
            await service.update_listing(seller_identity, listing.id, country="Isle of Man")

    @pytest.mark.asyncio
    async def test_buyers_cannot_create_listings(self, session, buyer_identity) -> None:
        with pytest.raises(PermissionDeniedError):
            await ListingService(session).create_listing(buyer_identity, title="Nope")

    @pytest.mark.asyncio
    async def test_publish_then_sold(self, session, seller_identity, listing) -> None:
        service = ListingService(session)
        await service.publish(seller_identity, listing.id)
        sold = await service.mark_sold(seller_identity, listing.id)
        assert sold.status == ListingStatus.SOLD.value

        with pytest.raises(InvalidStateTransitionError):
            await service.publish(seller_identity, listing.id)


class TestBrowse:
    @pytest.mark.asyncio
    async def test_only_approved_public_listings(self, session, make_listing) -> None:
        visible = await make_listing(title="Visible casino")
        await make_listing(title="Draft casino", status=ListingStatus.DRAFT.value)
        await make_listing(title="Private casino", is_public=False)
        await make_listing(title="Live casino", status=ListingStatus.LIVE.value)

        results = await ListingService(session).browse()
        assert [r.id for r in results] == [visible.id]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, session, make_listing) -> None:
        match = await make_listing(title="Nordic SLOTS affiliate")
        in_description = await make_listing(title="Affiliate", description="Slots reviews")
        await make_listing(title="Sportsbook", description="Football odds")

        results = await ListingService(session).browse(search="slots")
        assert {r.id for r in results} == {match.id, in_description.id}

    @pytest.mark.asyncio
    async def test_category_and_country_filters(self, session, make_listing) -> None:
        target = await make_listing(category="casino", country="Malta")
        await make_listing(category="casino", country="Curacao")
        await make_listing(category="sportsbook", country="Malta")

        results = await ListingService(session).browse(category="casino", country="Malta")
        assert [r.id for r in results] == [target.id]


class TestGetListing:
    @pytest.mark.asyncio
    async def test_views_count_for_visitors_only(
        self, session, buyer_identity, seller_identity, listing
    ) -> None:
        service = ListingService(session)
        await service.get_listing(buyer_identity, listing.id)
        await service.get_listing(buyer_identity, listing.id)
        seen = await service.get_listing(seller_identity, listing.id)
        assert seen.views == 2

    @pytest.mark.asyncio
    async def test_unpublished_is_not_found_for_buyers(
        self, session, buyer_identity, seller_identity, make_listing
    ) -> None:
        draft = await make_listing(status=ListingStatus.DRAFT.value)
        service = ListingService(session)
        with pytest.raises(ListingNotFoundError):
            await service.get_listing(buyer_identity, draft.id)
        assert (await service.get_listing(seller_identity, draft.id)).id == draft.id

    @pytest.mark.asyncio
    async def test_private_listing_needs_approved_access(
        self, session, buyer_identity, make_listing
    ) -> None:
        private = await make_listing(is_public=False)
        service = ListingService(session)
        with pytest.raises(PermissionDeniedError):
            await service.get_listing(buyer_identity, private.id)

        session.add(
            AccessRequest(
                listing_id=private.id,
                buyer_id=buyer_identity.user_id,
                status=AccessRequestStatus.APPROVED.value,
            )
        )
        await session.commit()
        assert (await service.get_listing(buyer_identity, private.id)).id == private.id


class TestConcurrentReview:
    @pytest.mark.asyncio
    async def test_approve_and_reject_race(
        self, session, session_factory, seller_identity, admin_identity
    ) -> None:
        service = ListingService(session)
        listing = await service.create_listing(seller_identity, title="Lottery affiliate")
        await service.submit_for_review(seller_identity, listing.id)
        await session.commit()

        async with session_factory() as loser:
            stale = await loser.get(Listing, listing.id)
            assert stale.status == ListingStatus.PENDING.value

            async with session_factory() as winner:
                await ListingService(winner).approve_listing(admin_identity, listing.id)
                await winner.commit()

            with pytest.raises(InvalidStateTransitionError):
                await ListingService(loser).reject_listing(admin_identity, listing.id)
            await loser.rollback()

        async with session_factory() as check:
            final = await check.get(Listing, listing.id)
            mail = await NotificationRepository(check).list_for_user(seller_identity.user_id)
        assert final.status == ListingStatus.APPROVED.value
        assert [n.type for n in mail] == [NotificationType.LISTING_APPROVED.value]
