"""Pydantic API schemas."""

from igaming_exchange.schemas.functions import (
    CompleteEscrowRequest,
    CompleteEscrowResponse,
    CreateAgreementRequest,
    CreateAgreementResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
)
from igaming_exchange.schemas.marketplace import (
    AccessRequestCreate,
    AccessRequestResponse,
    AgreementResponse,
    ConversationResponse,
    EscrowResponse,
    EscrowStatusResponse,
    HealthResponse,
    KycDocumentResponse,
    KycReviewRequest,
    ListingFields,
    ListingRejection,
    ListingResponse,
    ListingUpdate,
    MarkAllReadResponse,
    MessageCreate,
    MessageResponse,
    NotificationResponse,
    PaymentWebhook,
    ProfileResponse,
    RaiseDisputeRequest,
    RoleSelection,
    SignatureWebhook,
)

__all__ = [
    "AccessRequestCreate",
    "AccessRequestResponse",
    "AgreementResponse",
    "CompleteEscrowRequest",
    "CompleteEscrowResponse",
    "ConversationResponse",
    "CreateAgreementRequest",
    "CreateAgreementResponse",
    "EscrowResponse",
    "EscrowStatusResponse",
    "HealthResponse",
    "InitiatePaymentRequest",
    "InitiatePaymentResponse",
    "KycDocumentResponse",
    "KycReviewRequest",
    "ListingFields",
    "ListingRejection",
    "ListingResponse",
    "ListingUpdate",
    "MarkAllReadResponse",
    "MessageCreate",
    "MessageResponse",
    "NotificationResponse",
    "PaymentWebhook",
    "ProfileResponse",
    "RaiseDisputeRequest",
    "RoleSelection",
    "SignatureWebhook",
]
