"""Payment providers — hosted checkout and fund release.

Two adapters satisfy the PaymentProvider protocol:

    SimulatedPaymentProvider  Fabricates customers, sessions and transfers.
                              Used in development, the simulation script
                              and tests.
    StripeCheckoutProvider    Talks to the Stripe REST API with httpx.

Every mutating Stripe call carries an Idempotency-Key derived from the local
escrow id, so the transport-level retries below can never double-charge or
double-pay.
"""

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from igaming_exchange.config import get_settings
from igaming_exchange.domain.exceptions import (
    PaymentProviderError,
    ProviderMisconfiguredError,
)
from igaming_exchange.domain.provider_protocol import (
    CheckoutRequest,
    CheckoutSession,
    FundsTransfer,
)
from igaming_exchange.logging_config import get_logger

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (e.g. dollars) to integer cents."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class SimulatedPaymentProvider:
    """Payment provider that never leaves the process."""

    def __init__(self, checkout_base_url: str = "https://checkout.stripe.test/pay") -> None:
        self._checkout_base_url = checkout_base_url.rstrip("/")

    def ensure_configured(self) -> None:
        return None

    async def create_customer(self, email: str, name: str) -> str:
        customer_ref = f"cus_sim_{uuid.uuid4().hex[:14]}"
        logger.info("payment.customer_created", customer_ref=customer_ref, simulated=True)
        return customer_ref

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        session_id = f"cs_sim_{uuid.uuid4().hex}"
        session = CheckoutSession(
            session_id=session_id,
            url=f"{self._checkout_base_url}/{session_id}",
            payment_reference=f"pi_sim_{uuid.uuid4().hex[:24]}",
        )
        logger.info(
            "payment.checkout_created",
            escrow_id=request.escrow_id,
            amount=str(request.amount),
            session_id=session_id,
            simulated=True,
        )
        return session

    async def release_funds(
        self,
        escrow_id: str,
        amount: Decimal,
        currency: str,
        destination: str | None,
    ) -> FundsTransfer:
        transfer = FundsTransfer(
            transfer_reference=f"tr_sim_{uuid.uuid4().hex[:24]}",
            amount=amount,
        )
        logger.info(
            "payment.funds_released",
            escrow_id=escrow_id,
            amount=str(amount),
            transfer=transfer.transfer_reference,
            simulated=True,
        )
        return transfer


class StripeCheckoutProvider:
    """Stripe Checkout over the form-encoded REST API."""

    def __init__(
        self,
        secret_key: str | None = None,
        api_base: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize with optional overrides (defaults come from config)."""
        settings = get_settings()
        self._secret_key = secret_key if secret_key is not None else settings.stripe_secret_key
        self._api_base = (api_base or settings.stripe_api_base).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._client = client

    def ensure_configured(self) -> None:
        if not self._secret_key:
            raise ProviderMisconfiguredError("Stripe")

    async def create_customer(self, email: str, name: str) -> str:
        self.ensure_configured()
        body = await self._post("/customers", {"email": email, "name": name})
        return str(body["id"])

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        self.ensure_configured()
        form = {
            "customer": request.customer_ref,
            "payment_method_types[]": "card",
            "line_items[0][price_data][currency]": request.currency,
            "line_items[0][price_data][unit_amount]": str(to_minor_units(request.amount)),
            "line_items[0][price_data][product_data][name]": request.product_name,
            "line_items[0][quantity]": "1",
            "mode": "payment",
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata[escrow_id]": request.escrow_id,
            "metadata[listing_id]": request.listing_id,
        }
        body = await self._post(
            "/checkout/sessions",
            form,
            idempotency_key=f"checkout-{request.escrow_id}",
        )
        if not body.get("url"):
            raise PaymentProviderError("Failed to create checkout session")

        logger.info(
            "payment.checkout_created",
            escrow_id=request.escrow_id,
            session_id=body.get("id"),
            simulated=False,
        )
        return CheckoutSession(
            session_id=str(body["id"]),
            url=str(body["url"]),
            payment_reference=body.get("payment_intent"),
        )

    async def release_funds(
        self,
        escrow_id: str,
        amount: Decimal,
        currency: str,
        destination: str | None,
    ) -> FundsTransfer:
        self.ensure_configured()
        if not destination:
            raise PaymentProviderError("Seller has no payout account configured")

        body = await self._post(
            "/transfers",
            {
                "amount": str(to_minor_units(amount)),
                "currency": currency,
                "destination": destination,
                "transfer_group": escrow_id,
                "metadata[escrow_id]": escrow_id,
            },
            idempotency_key=f"release-{escrow_id}",
        )
        logger.info("payment.funds_released", escrow_id=escrow_id, transfer=body.get("id"))
        return FundsTransfer(transfer_reference=str(body["id"]), amount=amount)

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    async def _post(
        self,
        path: str,
        form: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._secret_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            response = await self._send(path, form, headers)
        except httpx.TransportError as exc:
            logger.error("payment.transport_failed", path=path, error=str(exc))
            raise PaymentProviderError(f"Payment provider unreachable: {exc}") from exc

        body: dict[str, Any] = response.json()
        if response.is_error:
            error = body.get("error") or {}
            message = error.get("message") or f"Payment provider returned {response.status_code}"
            logger.warning(
                "payment.request_rejected",
                path=path,
                status=response.status_code,
                provider_code=error.get("code"),
            )
            raise PaymentProviderError(message, provider_code=error.get("code"))
        return body

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(get_settings().http_max_attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _send(
        self,
        path: str,
        form: dict[str, str],
        headers: dict[str, str],
    ) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(f"{self._api_base}{path}", data=form, headers=headers)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(f"{self._api_base}{path}", data=form, headers=headers)
