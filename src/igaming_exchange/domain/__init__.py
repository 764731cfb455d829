"""Domain layer — pure business logic with zero framework dependencies."""

from igaming_exchange.domain.enums import (
    AccessRequestStatus,
    AgreementStatus,
    EscrowStatus,
    ListingStatus,
    NotificationType,
    UserRole,
)
from igaming_exchange.domain.exceptions import (
    MarketplaceError,
    NotFoundError,
    PermissionDeniedError,
)
from igaming_exchange.domain.permissions import (
    Capability,
    Identity,
    require_capability,
    require_party,
)
from igaming_exchange.domain.provider_protocol import (
    PaymentProvider,
    SignatureProvider,
)
from igaming_exchange.domain.state_machine import (
    AccessRequestStateMachine,
    AgreementStateMachine,
    EscrowStateMachine,
    ListingStateMachine,
    apply_event,
    validate_transition,
)

__all__ = [
    "AccessRequestStatus",
    "AgreementStatus",
    "EscrowStatus",
    "ListingStatus",
    "NotificationType",
    "UserRole",
    "MarketplaceError",
    "NotFoundError",
    "PermissionDeniedError",
    "Capability",
    "Identity",
    "require_capability",
    "require_party",
    "PaymentProvider",
    "SignatureProvider",
    "AccessRequestStateMachine",
    "AgreementStateMachine",
    "EscrowStateMachine",
    "ListingStateMachine",
    "apply_event",
    "validate_transition",
]
