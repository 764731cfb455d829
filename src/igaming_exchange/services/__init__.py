"""Application services — use case orchestration."""

from igaming_exchange.services.access_service import AccessService
from igaming_exchange.services.kyc_service import KycService
from igaming_exchange.services.listing_service import ListingService
from igaming_exchange.services.messaging_service import MessagingService
from igaming_exchange.services.notification_service import NotificationService
from igaming_exchange.services.transaction_service import (
    AgreementView,
    TransactionOrchestrator,
)
from igaming_exchange.services.user_service import UserService

__all__ = [
    "AccessService",
    "AgreementView",
    "KycService",
    "ListingService",
    "MessagingService",
    "NotificationService",
    "TransactionOrchestrator",
    "UserService",
]
