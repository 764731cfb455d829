"""Domain enumerations for the iGaming Exchange.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports). Values are
the lowercase strings stored in the database and exchanged over the API.
"""

import enum


class UserRole(enum.StrEnum):
    """Closed set of roles a user may hold. Capabilities are derived from these."""

    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class KycLevel(enum.StrEnum):
    NONE = "none"
    BASIC = "basic"
    ADVANCED = "advanced"


class ListingStatus(enum.StrEnum):
    """Lifecycle of a listing. Only APPROVED + public listings are browsable."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    LIVE = "live"
    SOLD = "sold"


class AccessRequestStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EscrowStatus(enum.StrEnum):
    """Custody state of buyer funds for one listing/buyer/seller triple.

    Transitions are enforced by EscrowStateMachine (domain/state_machine.py).
    DISPUTED and CANCELLED are terminal escape states.
    """

    INITIATED = "initiated"
    FUNDED = "funded"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class AgreementStatus(enum.StrEnum):
    """Lifecycle of an e-signature envelope."""

    SENT = "sent"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    DECLINED = "declined"
    VOIDED = "voided"


class NotificationType(enum.StrEnum):
    """Type tags for the append-only notification mailbox."""

    # Access / listing lifecycle
    ACCESS_REQUEST = "access_request"
    NDA_SIGNED = "nda_signed"
    NEW_MESSAGE = "new_message"
    LISTING_APPROVED = "listing_approved"
    LISTING_REJECTED = "listing_rejected"

    # Agreement lifecycle
    DOCUMENT_READY = "document_ready"
    AGREEMENT_UPDATED = "agreement_updated"

    # Escrow lifecycle
    PAYMENT_INITIATED = "payment_initiated"
    ESCROW_FUNDED = "escrow_funded"
    PAYMENT_RECEIVED = "payment_received"
    TRANSACTION_COMPLETED = "transaction_completed"
    ESCROW_DISPUTED = "escrow_disputed"
    ESCROW_CANCELLED = "escrow_cancelled"


class KycDocumentType(enum.StrEnum):
    PASSPORT = "passport"
    DRIVERS_LICENSE = "drivers_license"
    NATIONAL_ID = "national_id"
    UTILITY_BILL = "utility_bill"
    BANK_STATEMENT = "bank_statement"


class KycStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
