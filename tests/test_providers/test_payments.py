"""Unit tests for the payment providers.

The Stripe adapter is exercised against httpx.MockTransport, so requests are
inspected without any network traffic.
"""

from __future__ import annotations

from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest

from igaming_exchange.domain.exceptions import (
    PaymentProviderError,
    ProviderMisconfiguredError,
)
from igaming_exchange.domain.provider_protocol import CheckoutRequest, PaymentProvider
from igaming_exchange.providers.payments import (
    SimulatedPaymentProvider,
    StripeCheckoutProvider,
    to_minor_units,
)


def _checkout_request(amount: str = "1500.00") -> CheckoutRequest:
    return CheckoutRequest(
        customer_ref="cus_123",
        amount=Decimal(amount),
        currency="usd",
        escrow_id="esc-1",
        listing_id="lst-1",
        success_url="http://localhost:5173/transactions?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="http://localhost:5173/browse",
    )


def _stripe(handler) -> StripeCheckoutProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StripeCheckoutProvider(
        secret_key="sk_test_123",
        api_base="https://stripe.test/v1",
        client=client,
    )


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class TestMinorUnits:
    def test_whole_and_fractional(self) -> None:
        assert to_minor_units(Decimal("19.99")) == 1999
        assert to_minor_units(Decimal("150000")) == 15_000_000

    def test_half_cent_rounds_up(self) -> None:
        assert to_minor_units(Decimal("0.005")) == 1


class TestSimulatedProvider:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(SimulatedPaymentProvider(), PaymentProvider)

    @pytest.mark.asyncio
    async def test_checkout_url_embeds_session(self) -> None:
        provider = SimulatedPaymentProvider(checkout_base_url="https://pay.test/")
        session = await provider.create_checkout_session(_checkout_request())
        assert session.session_id.startswith("cs_sim_")
        assert session.url == f"https://pay.test/{session.session_id}"
        assert session.payment_reference is not None

    @pytest.mark.asyncio
    async def test_release_returns_transfer(self) -> None:
        transfer = await SimulatedPaymentProvider().release_funds(
            "esc-1", Decimal("10.00"), "usd", None
        )
        assert transfer.transfer_reference.startswith("tr_sim_")
        assert transfer.amount == Decimal("10.00")


class TestStripeCheckout:
    def test_missing_key_is_misconfigured(self) -> None:
        provider = StripeCheckoutProvider(secret_key="", api_base="https://stripe.test/v1")
        with pytest.raises(ProviderMisconfiguredError):
            provider.ensure_configured()

    @pytest.mark.asyncio
    async def test_checkout_request_shape(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "id": "cs_live_1",
                    "url": "https://checkout.stripe.com/c/cs_live_1",
                    "payment_intent": "pi_1",
                },
            )

        session = await _stripe(handler).create_checkout_session(_checkout_request())

        assert session.session_id == "cs_live_1"
        assert session.url == "https://checkout.stripe.com/c/cs_live_1"
        assert session.payment_reference == "pi_1"

        request = seen[0]
        assert request.url.path == "/v1/checkout/sessions"
        assert request.headers["Authorization"] == "Bearer sk_test_123"
        assert request.headers["Idempotency-Key"] == "checkout-esc-1"
        form = _form(request)
        assert form["line_items[0][price_data][unit_amount]"] == "150000"
        assert form["line_items[0][price_data][product_data][name]"] == "iGaming Asset Purchase"
        assert form["mode"] == "payment"
        assert form["metadata[escrow_id]"] == "esc-1"

    @pytest.mark.asyncio
    async def test_provider_error_carries_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                402,
                json={"error": {"message": "Your card was declined.", "code": "card_declined"}},
            )

        with pytest.raises(PaymentProviderError) as exc_info:
            await _stripe(handler).create_checkout_session(_checkout_request())
        assert exc_info.value.message == "Your card was declined."
        assert exc_info.value.provider_code == "card_declined"

    @pytest.mark.asyncio
    async def test_session_without_url_is_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "cs_1", "url": None})

        with pytest.raises(PaymentProviderError, match="checkout session"):
            await _stripe(handler).create_checkout_session(_checkout_request())

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json={"id": "cus_42"})

        customer = await _stripe(handler).create_customer("bob@example.com", "Bob Buyer")

        assert customer == "cus_42"
        assert calls["n"] == 2

    @pytest.mark.asyncio
    async def test_release_requires_destination(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(PaymentProviderError, match="payout account"):
            await _stripe(handler).release_funds("esc-1", Decimal("10"), "usd", None)

    @pytest.mark.asyncio
    async def test_release_posts_transfer(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "tr_1"})

        transfer = await _stripe(handler).release_funds(
            "esc-1", Decimal("250.50"), "usd", "acct_seller"
        )

        assert transfer.transfer_reference == "tr_1"
        assert seen[0].url.path == "/v1/transfers"
        assert seen[0].headers["Idempotency-Key"] == "release-esc-1"
        form = _form(seen[0])
        assert form["amount"] == "25050"
        assert form["destination"] == "acct_seller"
