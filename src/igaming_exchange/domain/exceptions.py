"""Domain exceptions for the iGaming Exchange.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
Every one of them carries a human-readable message; none is ever swallowed.
"""


class MarketplaceError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "MARKETPLACE_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Not Found ---


class NotFoundError(MarketplaceError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity: str, entity_id: str, message: str | None = None) -> None:
        super().__init__(
            message=message or f"{entity} not found: {entity_id}",
            code=f"{entity.upper().replace(' ', '_')}_NOT_FOUND",
        )
        self.entity_id = entity_id


class EscrowNotFoundError(NotFoundError):
    def __init__(self, escrow_id: str) -> None:
        super().__init__("Escrow", escrow_id, message="Escrow transaction not found")


class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str) -> None:
        super().__init__("Listing", listing_id)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__("User", user_id)


class AgreementNotFoundError(NotFoundError):
    def __init__(self, agreement_id: str) -> None:
        super().__init__("Agreement", agreement_id)


class AccessRequestNotFoundError(NotFoundError):
    def __init__(self, request_id: str) -> None:
        super().__init__("Access request", request_id)


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id: str) -> None:
        super().__init__("Notification", notification_id)


class KycDocumentNotFoundError(NotFoundError):
    def __init__(self, document_id: str) -> None:
        super().__init__("KYC document", document_id)


# --- Preconditions / State Machine ---


class InvalidStateTransitionError(MarketplaceError):
    """Raised when an attempted state transition is not allowed.

    Example: initiated -> completed (must go through funded).
    """

    def __init__(self, entity: str, current_state: str, event: str) -> None:
        super().__init__(
            message=f"Invalid {entity} transition: cannot {event} from {current_state}",
            code="INVALID_STATE_TRANSITION",
        )
        self.entity = entity
        self.current_state = current_state
        self.event = event


class AgreementNotCompletedError(MarketplaceError):
    """Raised when funds are released before the purchase agreement is signed."""

    def __init__(self, escrow_id: str) -> None:
        super().__init__(
            message="Purchase agreement must be signed before releasing funds",
            code="AGREEMENT_NOT_COMPLETED",
        )
        self.escrow_id = escrow_id


class EscrowAlreadyCompletedError(MarketplaceError):
    """Raised when a completion loses the race or is re-invoked after success."""

    def __init__(self, escrow_id: str) -> None:
        super().__init__(
            message=f"Escrow already completed: {escrow_id}",
            code="ESCROW_ALREADY_COMPLETED",
        )
        self.escrow_id = escrow_id


class NdaRequiresApprovalError(MarketplaceError):
    """Raised when a buyer signs an NDA on a request the seller has not approved."""

    def __init__(self, request_id: str, status: str) -> None:
        super().__init__(
            message=f"NDA can only be signed on an approved access request (status: {status})",
            code="NDA_REQUIRES_APPROVAL",
        )
        self.request_id = request_id


class DuplicateAccessRequestError(MarketplaceError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(
            message=f"Access already requested for listing: {listing_id}",
            code="DUPLICATE_ACCESS_REQUEST",
        )


class InvalidAmountError(MarketplaceError):
    def __init__(self, amount: str) -> None:
        super().__init__(
            message=f"Amount must be greater than zero (got {amount})",
            code="INVALID_AMOUNT",
        )


class InvalidOperationError(MarketplaceError):
    """Raised for requests that are well-formed but not meaningful (e.g. messaging yourself)."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="INVALID_OPERATION")


# --- Authorization ---


class PermissionDeniedError(MarketplaceError):
    """Raised when the caller's roles or ownership do not permit an action."""

    def __init__(self, message: str = "Not permitted") -> None:
        super().__init__(message=message, code="PERMISSION_DENIED")


# --- External Providers ---


class PaymentProviderError(MarketplaceError):
    """Raised when the payment provider rejects or fails a request."""

    def __init__(self, message: str, provider_code: str | None = None) -> None:
        super().__init__(message=message, code="PAYMENT_PROVIDER_ERROR")
        self.provider_code = provider_code


class SignatureProviderError(MarketplaceError):
    """Raised when the e-signature provider rejects or fails a request."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="SIGNATURE_PROVIDER_ERROR")


class ProviderMisconfiguredError(MarketplaceError):
    """Raised before any write when provider credentials are missing."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            message=f"{provider} credentials not configured",
            code="PROVIDER_MISCONFIGURED",
        )
        self.provider = provider


# --- Documents ---


class DocumentRejectedError(MarketplaceError):
    """Raised when an uploaded KYC file fails size or type checks."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="DOCUMENT_REJECTED")


# --- Idempotency ---


class DuplicateOperationError(MarketplaceError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )
