"""Identity and capability checks.

Every service operation receives the caller's ``Identity`` explicitly; there
is no ambient "current user". Authorization is decided here, in one place,
before a service reads or mutates anything:

    require_capability(identity, Capability.RELEASE_FUNDS)
    require_party(identity, escrow.buyer_id, escrow.seller_id)

Roles form a closed set (UserRole); what each role may do is the
ROLE_CAPABILITIES table below.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field

from igaming_exchange.domain.enums import UserRole
from igaming_exchange.domain.exceptions import PermissionDeniedError

SYSTEM_USER_ID = uuid.UUID(int=0)


class Capability(enum.StrEnum):
    BROWSE_LISTINGS = "browse_listings"
    MANAGE_LISTING = "manage_listing"
    REVIEW_LISTING = "review_listing"
    REQUEST_ACCESS = "request_access"
    REVIEW_ACCESS = "review_access"
    SIGN_NDA = "sign_nda"
    INITIATE_PAYMENT = "initiate_payment"
    CREATE_AGREEMENT = "create_agreement"
    RELEASE_FUNDS = "release_funds"
    RAISE_DISPUTE = "raise_dispute"
    CANCEL_ESCROW = "cancel_escrow"
    UPLOAD_KYC = "upload_kyc"
    REVIEW_KYC = "review_kyc"
    SEND_MESSAGE = "send_message"
    RECORD_PROVIDER_EVENT = "record_provider_event"


_EVERYONE = frozenset(
    {
        Capability.BROWSE_LISTINGS,
        Capability.UPLOAD_KYC,
        Capability.SEND_MESSAGE,
        Capability.RAISE_DISPUTE,
    }
)

ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.BUYER: _EVERYONE
    | {
        Capability.REQUEST_ACCESS,
        Capability.SIGN_NDA,
        Capability.INITIATE_PAYMENT,
        Capability.CREATE_AGREEMENT,
        Capability.RELEASE_FUNDS,
        Capability.CANCEL_ESCROW,
    },
    UserRole.SELLER: _EVERYONE
    | {
        Capability.MANAGE_LISTING,
        Capability.REVIEW_ACCESS,
        Capability.CREATE_AGREEMENT,
        Capability.CANCEL_ESCROW,
    },
    UserRole.ADMIN: frozenset(Capability),
}


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, threaded into every service call.

    Built per request from the identity provider's user id and the stored
    profile; discarded at the end of the request.
    """

    user_id: uuid.UUID
    roles: frozenset[UserRole] = field(default_factory=frozenset)
    is_system: bool = False

    @classmethod
    def system(cls) -> Identity:
        """Identity used for payment/e-signature provider callbacks."""
        return cls(user_id=SYSTEM_USER_ID, roles=frozenset({UserRole.ADMIN}), is_system=True)

    @property
    def is_admin(self) -> bool:
        return UserRole.ADMIN in self.roles

    @property
    def capabilities(self) -> frozenset[Capability]:
        granted: frozenset[Capability] = frozenset()
        for role in self.roles:
            granted |= ROLE_CAPABILITIES[role]
        return granted


def has_capability(identity: Identity, capability: Capability) -> bool:
    return capability in identity.capabilities


def require_capability(identity: Identity, capability: Capability) -> None:
    """Raise PermissionDeniedError unless one of the caller's roles grants ``capability``."""
    if not has_capability(identity, capability):
        raise PermissionDeniedError(f"Your roles do not allow: {capability.value}")


def is_party(identity: Identity, *user_ids: uuid.UUID | None) -> bool:
    return identity.user_id in {uid for uid in user_ids if uid is not None}


def require_party(identity: Identity, *user_ids: uuid.UUID | None) -> None:
    """Raise unless the caller is one of ``user_ids``. Admins and the system pass."""
    if identity.is_system or identity.is_admin:
        return
    if not is_party(identity, *user_ids):
        raise PermissionDeniedError("You are not a party to this record")
