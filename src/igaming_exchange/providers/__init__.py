"""External provider adapters and the factories that pick one from config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from igaming_exchange.config import Settings, get_settings
from igaming_exchange.providers.esignature import DocuSignDemoProvider
from igaming_exchange.providers.payments import (
    SimulatedPaymentProvider,
    StripeCheckoutProvider,
)

if TYPE_CHECKING:
    from igaming_exchange.domain.provider_protocol import (
        PaymentProvider,
        SignatureProvider,
    )


def build_payment_provider(settings: Settings | None = None) -> PaymentProvider:
    """Return the simulated provider or the Stripe adapter per ``payment_simulate``."""
    settings = settings or get_settings()
    if settings.payment_simulate:
        return SimulatedPaymentProvider()
    return StripeCheckoutProvider(
        secret_key=settings.stripe_secret_key,
        api_base=settings.stripe_api_base,
        timeout=settings.http_timeout_seconds,
    )


def build_signature_provider(settings: Settings | None = None) -> SignatureProvider:
    settings = settings or get_settings()
    return DocuSignDemoProvider(require_credentials=not settings.esign_simulate)


__all__ = [
    "DocuSignDemoProvider",
    "SimulatedPaymentProvider",
    "StripeCheckoutProvider",
    "build_payment_provider",
    "build_signature_provider",
]
