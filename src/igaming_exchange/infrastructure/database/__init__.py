"""Database infrastructure — engine, ORM models, and repositories."""

from igaming_exchange.infrastructure.database.engine import (
    build_session_factory,
    close_db,
    get_async_session,
    get_session_factory,
    init_db,
)
from igaming_exchange.infrastructure.database.orm_models import (
    AccessRequest,
    Agreement,
    Base,
    Escrow,
    KycDocument,
    Listing,
    Message,
    Notification,
    Organization,
    PaymentCustomer,
    User,
)
from igaming_exchange.infrastructure.database.repositories import (
    AccessRequestRepository,
    AgreementRepository,
    EscrowRepository,
    KycDocumentRepository,
    ListingRepository,
    MessageRepository,
    NotificationRepository,
    PaymentCustomerRepository,
    UserRepository,
)

__all__ = [
    "AccessRequest",
    "AccessRequestRepository",
    "Agreement",
    "AgreementRepository",
    "Base",
    "Escrow",
    "EscrowRepository",
    "KycDocument",
    "KycDocumentRepository",
    "Listing",
    "ListingRepository",
    "Message",
    "MessageRepository",
    "Notification",
    "NotificationRepository",
    "Organization",
    "PaymentCustomer",
    "PaymentCustomerRepository",
    "User",
    "UserRepository",
    "build_session_factory",
    "close_db",
    "get_async_session",
    "get_session_factory",
    "init_db",
]
