"""SQLAlchemy 2.0 ORM models for the iGaming Exchange.

Ledgers:
    1. users / organizations   — identities and their role sets.
    2. listings                — sellable assets and their publication state.
    3. access_requests         — buyer requests to see gated listing data + NDA.
    4. escrows                 — fund custody per listing/buyer/seller.
    5. agreements              — e-signature envelopes per transaction.
    6. notifications           — append-only per-user mailbox.
    7. kyc_documents           — identity documents pointing at blob storage.
    8. messages                — direct messages between users.
    9. payment_customers       — payment-provider customer per user.

Design decisions:
    - UUIDs as primary keys (no sequential leakage of marketplace volume).
    - Decimal for money (no floating point rounding errors).
    - CHECK constraints on every status column, mirroring the domain enums.
    - escrows.agreement_id is the only link between escrow and envelope; an
      agreement never points back, so the schema has no FK cycle.
    - notifications are append-only: the application only flips is_read or
      deletes on the recipient's behalf.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from igaming_exchange.domain.enums import (
    AccessRequestStatus,
    AgreementStatus,
    EscrowStatus,
    KycDocumentType,
    KycLevel,
    KycStatus,
    ListingStatus,
    NotificationType,
)

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _in_check(column: str, values: type) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


# ---------------------------------------------------------------------------
# 1. organizations / users
# ---------------------------------------------------------------------------
class Organization(TimestampMixin, Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"


class User(TimestampMixin, Base):
    """A marketplace participant. ``id`` is issued by the identity provider."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)

    roles: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Subset of buyer/seller/admin; empty until onboarding",
    )
    kyc_level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=KycLevel.NONE.value,
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
    )
    payout_account_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Payment-provider account escrowed funds are released to",
    )

    __table_args__ = (
        CheckConstraint(_in_check("kyc_level", KycLevel), name="ck_user_kyc_level"),
    )

    @property
    def display_name(self) -> str:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or self.email

    def __repr__(self) -> str:
        return f"<User id={self.id} roles={self.roles}>"


# ---------------------------------------------------------------------------
# 2. listings
# ---------------------------------------------------------------------------
class Listing(TimestampMixin, Base):
    """A sellable iGaming asset owned by exactly one seller."""

    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    revenue_monthly: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    revenue_annual: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    category: Mapped[str | None] = mapped_column(String(80), nullable=True)
    country: Mapped[str | None] = mapped_column(String(80), nullable=True)
    license_type: Mapped[str | None] = mapped_column(String(80), nullable=True)

    is_public: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Public listings are browsable once approved; others are access-gated",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ListingStatus.DRAFT.value,
        comment="Lifecycle state (guarded by ListingStateMachine)",
    )
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(_in_check("status", ListingStatus), name="ck_listing_status"),
        CheckConstraint("views >= 0", name="ck_listing_views"),
        Index("idx_listing_seller", "seller_id"),
        Index("idx_listing_browse", "status", "is_public"),
        Index("idx_listing_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Listing id={self.id} status={self.status} public={self.is_public}>"


# ---------------------------------------------------------------------------
# 3. access_requests
# ---------------------------------------------------------------------------
class AccessRequest(TimestampMixin, Base):
    """A buyer's request to see a listing's private data, gated by an NDA."""

    __tablename__ = "access_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AccessRequestStatus.PENDING.value,
    )
    nda_signed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    nda_signed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(_in_check("status", AccessRequestStatus), name="ck_access_status"),
        CheckConstraint(
            "nda_signed = false OR status = 'approved'",
            name="ck_access_nda_requires_approval",
        ),
        UniqueConstraint("listing_id", "buyer_id", name="uq_access_listing_buyer"),
        Index("idx_access_buyer", "buyer_id"),
    )

    def __repr__(self) -> str:
        return f"<AccessRequest id={self.id} status={self.status} nda={self.nda_signed}>"


# ---------------------------------------------------------------------------
# 4. agreements
# ---------------------------------------------------------------------------
class Agreement(TimestampMixin, Base):
    """An e-signature envelope for one listing between one buyer and its seller."""

    __tablename__ = "agreements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    envelope_id: Mapped[str] = mapped_column(
        String(80),
        nullable=False,
        unique=True,
        comment="Provider-side envelope identifier",
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    seller_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    document_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default="purchase_agreement",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AgreementStatus.SENT.value,
        comment="Envelope state (guarded by AgreementStateMachine)",
    )
    signing_url_buyer: Mapped[str] = mapped_column(String(500), nullable=False)
    signing_url_seller: Mapped[str] = mapped_column(String(500), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(_in_check("status", AgreementStatus), name="ck_agreement_status"),
        CheckConstraint(
            "signing_url_buyer <> signing_url_seller",
            name="ck_agreement_distinct_urls",
        ),
        Index("idx_agreement_listing_buyer", "listing_id", "buyer_id"),
        Index("idx_agreement_seller", "seller_id"),
    )

    def __repr__(self) -> str:
        return f"<Agreement id={self.id} envelope={self.envelope_id} status={self.status}>"


# ---------------------------------------------------------------------------
# 5. escrows
# ---------------------------------------------------------------------------
class Escrow(TimestampMixin, Base):
    """Custody of buyer funds for one listing/buyer/seller triple."""

    __tablename__ = "escrows"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    seller_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    # --- Financials ---
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EscrowStatus.INITIATED.value,
        comment="Custody state (guarded by EscrowStateMachine)",
    )
    payment_customer_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)
    checkout_session_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        comment="Provider payment id, set once checkout is created/confirmed",
    )
    release_reference: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        comment="Provider transfer id, set only when release transfers are enabled",
    )

    # --- Agreement link ---
    agreement_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("agreements.id", ondelete="SET NULL"),
        nullable=True,
    )

    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(_in_check("status", EscrowStatus), name="ck_escrow_status"),
        CheckConstraint("amount > 0", name="ck_escrow_positive_amount"),
        Index("idx_escrow_buyer", "buyer_id"),
        Index("idx_escrow_seller", "seller_id"),
        Index("idx_escrow_listing_buyer", "listing_id", "buyer_id"),
        Index("idx_escrow_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Escrow id={self.id} status={self.status} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 6. notifications (Append-Only Mailbox)
# ---------------------------------------------------------------------------
class Notification(Base):
    """A user-facing event. Only ``is_read`` is ever updated."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        comment="Escrow, agreement, listing or request this notification is about",
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        CheckConstraint(_in_check("type", NotificationType), name="ck_notification_type"),
        Index("idx_notification_user_created", "user_id", "created_at"),
        Index("idx_notification_related", "related_id"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.type}>"


# ---------------------------------------------------------------------------
# 7. kyc_documents
# ---------------------------------------------------------------------------
class KycDocument(TimestampMixin, Base):
    __tablename__ = "kyc_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    document_type: Mapped[str] = mapped_column(String(40), nullable=False)
    file_path: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        unique=True,
        comment="Blob-store key, <user_id>/<type>_<millis>.<ext>",
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=KycStatus.PENDING.value,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(_in_check("document_type", KycDocumentType), name="ck_kyc_type"),
        CheckConstraint(_in_check("status", KycStatus), name="ck_kyc_status"),
        Index("idx_kyc_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<KycDocument id={self.id} type={self.document_type} status={self.status}>"


# ---------------------------------------------------------------------------
# 8. messages
# ---------------------------------------------------------------------------
class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    listing_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="SET NULL"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index("idx_message_sender", "sender_id", "created_at"),
        Index("idx_message_receiver", "receiver_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# 9. payment_customers
# ---------------------------------------------------------------------------
class PaymentCustomer(Base):
    """Payment-provider customer created on a user's first checkout and reused after."""

    __tablename__ = "payment_customers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    provider_customer_ref: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )


# ---------------------------------------------------------------------------
# Keep updated_at honest for in-place status flips
# ---------------------------------------------------------------------------
def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    target.updated_at = _utcnow()


for _model in (User, Listing, AccessRequest, Agreement, Escrow, KycDocument):
    event.listen(_model, "before_update", _set_updated_at)
