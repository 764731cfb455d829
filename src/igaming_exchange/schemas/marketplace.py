"""Pydantic schemas for the marketplace REST API.

These define the request/response shapes of the ``/api/v1`` routers. They
are separate from the ORM models to keep the API and database layers apart;
responses are built from ORM rows with ``from_attributes``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from igaming_exchange.domain.enums import AgreementStatus, UserRole

# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class ListingFields(BaseModel):
    """Seller-editable listing attributes."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10_000)
    price: Decimal | None = Field(default=None, ge=0)
    revenue_monthly: Decimal | None = Field(default=None, ge=0)
    revenue_annual: Decimal | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=80)
    country: str | None = Field(default=None, max_length=80)
    license_type: str | None = Field(default=None, max_length=80)
    is_public: bool = Field(
        default=True,
        description="Public listings are browsable; gated ones need an approved access request",
    )


class ListingUpdate(BaseModel):
    """Partial update; only fields that are sent are changed."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10_000)
    price: Decimal | None = Field(default=None, ge=0)
    revenue_monthly: Decimal | None = Field(default=None, ge=0)
    revenue_annual: Decimal | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=80)
    country: str | None = Field(default=None, max_length=80)
    license_type: str | None = Field(default=None, max_length=80)
    is_public: bool | None = None


class ListingRejection(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ListingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    seller_id: uuid.UUID
    title: str
    description: str | None
    price: Decimal | None
    revenue_monthly: Decimal | None
    revenue_annual: Decimal | None
    category: str | None
    country: str | None
    license_type: str | None
    is_public: bool
    status: str
    views: int
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Access requests
# ---------------------------------------------------------------------------


class AccessRequestCreate(BaseModel):
    listing_id: uuid.UUID
    message: str | None = Field(default=None, max_length=2000)


class AccessRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    listing_id: uuid.UUID
    buyer_id: uuid.UUID
    message: str | None
    status: str
    nda_signed: bool
    nda_signed_at: datetime | None
    created_at: datetime


# ---------------------------------------------------------------------------
# Escrows and agreements
# ---------------------------------------------------------------------------


class EscrowResponse(BaseModel):
    """An escrow as seen by one of its parties."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    listing_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    amount: Decimal
    status: str
    payment_reference: str | None
    agreement_id: uuid.UUID | None
    dispute_reason: str | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class EscrowStatusResponse(BaseModel):
    """Lightweight status check response."""

    escrow_id: uuid.UUID
    status: str
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )


class RaiseDisputeRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=2000)


class AgreementResponse(BaseModel):
    """An agreement with the caller's own signing link only."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    envelope_id: str
    listing_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    document_type: str
    status: str
    signing_url: str | None = Field(
        default=None,
        description="Signing link for the caller; never the counterparty's",
    )
    created_at: datetime
    completed_at: datetime | None


# ---------------------------------------------------------------------------
# Provider callbacks
# ---------------------------------------------------------------------------


class PaymentWebhook(BaseModel):
    """Checkout-completed callback from the payment provider."""

    escrow_id: uuid.UUID
    payment_reference: str | None = None


class SignatureWebhook(BaseModel):
    """Envelope status report from the e-signature provider."""

    envelope_id: str
    status: AgreementStatus


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    type: str
    title: str
    content: str
    related_id: uuid.UUID | None
    is_read: bool
    created_at: datetime


class MarkAllReadResponse(BaseModel):
    updated: int


# ---------------------------------------------------------------------------
# KYC
# ---------------------------------------------------------------------------


class KycDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    document_type: str
    file_path: str
    file_name: str
    mime_type: str
    file_size: int
    status: str
    rejection_reason: str | None
    reviewed_at: datetime | None
    created_at: datetime


class KycReviewRequest(BaseModel):
    approve: bool
    rejection_reason: str | None = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class MessageCreate(BaseModel):
    receiver_id: uuid.UUID
    content: str = Field(..., min_length=1, max_length=10_000)
    listing_id: uuid.UUID | None = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sender_id: uuid.UUID
    receiver_id: uuid.UUID
    listing_id: uuid.UUID | None
    content: str
    is_read: bool
    created_at: datetime


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    partner_id: uuid.UUID
    partner_name: str
    last_message_at: datetime
    last_message: str
    unread_count: int


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    roles: list[str]
    kyc_level: str
    is_verified: bool


class RoleSelection(BaseModel):
    roles: list[UserRole] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    redis: str = "unknown"
