"""Payment and e-signature provider protocols.

Defines the interfaces the Transaction Orchestrator talks to. These are
Protocols (structural subtyping), so adapters don't inherit from a base
class — they just need to match the shape.

The domain layer has ZERO imports from httpx, Stripe or DocuSign.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from decimal import Decimal


@dataclass(frozen=True)
class CheckoutRequest:
    """Input to a checkout session.

    Attributes:
        customer_ref: Provider customer the session is billed to.
        amount: Escrow amount in major currency units.
        currency: ISO currency code, lowercase.
        escrow_id: Local escrow id, also used as the idempotency key.
        listing_id: Local listing id, carried as provider metadata.
        success_url: Where the provider redirects after payment.
        cancel_url: Where the provider redirects when the buyer backs out.
    """

    customer_ref: str
    amount: Decimal
    currency: str
    escrow_id: str
    listing_id: str
    success_url: str
    cancel_url: str
    product_name: str = "iGaming Asset Purchase"


@dataclass(frozen=True)
class CheckoutSession:
    """Hosted checkout created by the payment provider."""

    session_id: str
    url: str
    payment_reference: str | None = None


@dataclass(frozen=True)
class FundsTransfer:
    """Result of releasing escrowed funds to the seller."""

    transfer_reference: str
    amount: Decimal


@dataclass(frozen=True)
class EnvelopeDraft:
    """An envelope synthesized by the e-signature provider.

    The two URLs are always distinct; each is shown only to its own party.
    """

    envelope_id: str
    signing_url_buyer: str
    signing_url_seller: str


@runtime_checkable
class PaymentProvider(Protocol):
    """Protocol every payment adapter must satisfy.

    Concrete implementations (providers/payments.py):
        - SimulatedPaymentProvider (fabricated sessions, no network)
        - StripeCheckoutProvider   (Stripe REST API over httpx)
    """

    def ensure_configured(self) -> None:
        """Raise ProviderMisconfiguredError if credentials are missing."""
        ...

    async def create_customer(self, email: str, name: str) -> str:
        """Create a provider customer and return its reference."""
        ...

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        """Create a hosted checkout session for an initiated escrow."""
        ...

    async def release_funds(
        self,
        escrow_id: str,
        amount: Decimal,
        currency: str,
        destination: str | None,
    ) -> FundsTransfer:
        """Transfer escrowed funds to the seller's payout account."""
        ...


@runtime_checkable
class SignatureProvider(Protocol):
    """Protocol every e-signature adapter must satisfy."""

    def ensure_configured(self) -> None:
        ...

    async def create_envelope(
        self,
        listing_title: str,
        buyer_email: str,
        seller_email: str,
    ) -> EnvelopeDraft:
        """Create a purchase-agreement envelope addressed to both parties."""
        ...
