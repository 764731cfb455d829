"""Listing REST API routes.

Routes:
    GET    /api/v1/listings                 — Browse approved, public listings
    POST   /api/v1/listings                 — Create a draft listing (seller)
    GET    /api/v1/listings/mine            — The caller's own listings
    GET    /api/v1/listings/{id}            — Read one listing (counts a view)
    PATCH  /api/v1/listings/{id}            — Edit a draft (owner)
    POST   /api/v1/listings/{id}/submit     — Submit for review (owner)
    POST   /api/v1/listings/{id}/approve    — Approve (admin)
    POST   /api/v1/listings/{id}/reject     — Send back to draft (admin)
    POST   /api/v1/listings/{id}/publish    — Take live (owner)
    POST   /api/v1/listings/{id}/sold       — Mark sold (owner)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from igaming_exchange.api.deps import get_current_identity, get_db_session
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.schemas.marketplace import (
    ListingFields,
    ListingRejection,
    ListingResponse,
    ListingUpdate,
)
from igaming_exchange.services.listing_service import ListingService

router = APIRouter(prefix="/api/v1/listings", tags=["Listings"])


@router.get("", response_model=list[ListingResponse], summary="Browse listings")
async def browse_listings(
    search: str | None = Query(default=None, max_length=200),
    category: str | None = None,
    country: str | None = None,
    session: AsyncSession = Depends(get_db_session),
) -> list[ListingResponse]:
    """Approved AND public listings, newest first."""
    listings = await ListingService(session).browse(
        search=search, category=category, country=country
    )
    return [ListingResponse.model_validate(x) for x in listings]


@router.post("", response_model=ListingResponse, status_code=201, summary="Create a listing")
async def create_listing(
    body: ListingFields,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingService(session).create_listing(identity, **body.model_dump())
    return ListingResponse.model_validate(listing)


@router.get("/mine", response_model=list[ListingResponse], summary="List my listings")
async def my_listings(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> list[ListingResponse]:
    listings = await ListingService(session).list_for_seller(identity)
    return [ListingResponse.model_validate(x) for x in listings]


@router.get("/{listing_id}", response_model=ListingResponse, summary="Get a listing")
async def get_listing(
    listing_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingService(session).get_listing(identity, listing_id)
    return ListingResponse.model_validate(listing)


@router.patch("/{listing_id}", response_model=ListingResponse, summary="Edit a draft listing")
async def update_listing(
    listing_id: uuid.UUID,
    body: ListingUpdate,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingService(session).update_listing(
        identity, listing_id, **body.model_dump(exclude_unset=True)
    )
    return ListingResponse.model_validate(listing)


@router.post("/{listing_id}/submit", response_model=ListingResponse, summary="Submit for review")
async def submit_listing(
    listing_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingService(session).submit_for_review(identity, listing_id)
    return ListingResponse.model_validate(listing)


@router.post("/{listing_id}/approve", response_model=ListingResponse, summary="Approve a listing")
async def approve_listing(
    listing_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingService(session).approve_listing(identity, listing_id)
    return ListingResponse.model_validate(listing)


@router.post("/{listing_id}/reject", response_model=ListingResponse, summary="Reject a listing")
async def reject_listing(
    listing_id: uuid.UUID,
    body: ListingRejection,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingService(session).reject_listing(identity, listing_id, body.reason)
    return ListingResponse.model_validate(listing)


@router.post("/{listing_id}/publish", response_model=ListingResponse, summary="Take a listing live")
async def publish_listing(
    listing_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingService(session).publish(identity, listing_id)
    return ListingResponse.model_validate(listing)


@router.post("/{listing_id}/sold", response_model=ListingResponse, summary="Mark a listing sold")
async def mark_listing_sold(
    listing_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingService(session).mark_sold(identity, listing_id)
    return ListingResponse.model_validate(listing)
