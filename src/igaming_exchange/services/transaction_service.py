"""Transaction Orchestrator — the cross-ledger escrow and agreement workflow.

This is the application layer that coordinates between:
    - Identity / capability checks (who may do what)
    - Domain state machines (transition guards)
    - Repositories (escrow, agreement, listing, user, payment-customer ledgers)
    - Payment and e-signature providers (external calls)
    - The notification sink (one notification per affected party)

The three server-callable functions and the REST routers both call into this
service, so every rule lives here exactly once.

Ordering rules:
    - Authorization and preconditions are checked before anything is written.
    - An escrow row is committed BEFORE the payment provider is called, so a
      crash mid-checkout leaves a recoverable ``initiated`` record.
    - A state change is written before its notifications; a failed
      notification fails the whole unit of work.
    - Escrow completion is a compare-and-set on ``funded``: of two concurrent
      completions exactly one wins, the other gets EscrowAlreadyCompletedError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from igaming_exchange.config import Settings, get_settings
from igaming_exchange.domain.enums import (
    AgreementStatus,
    EscrowStatus,
    NotificationType,
)
from igaming_exchange.domain.exceptions import (
    AgreementNotCompletedError,
    AgreementNotFoundError,
    EscrowAlreadyCompletedError,
    EscrowNotFoundError,
    InvalidAmountError,
    InvalidOperationError,
    InvalidStateTransitionError,
    ListingNotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
)
from igaming_exchange.domain.permissions import (
    Capability,
    require_capability,
    require_party,
)
from igaming_exchange.domain.provider_protocol import CheckoutRequest
from igaming_exchange.domain.state_machine import (
    AgreementStateMachine,
    EscrowStateMachine,
    apply_event,
)
from igaming_exchange.infrastructure.database.orm_models import Agreement, Escrow
from igaming_exchange.infrastructure.database.repositories import (
    AgreementRepository,
    EscrowRepository,
    ListingRepository,
    PaymentCustomerRepository,
    UserRepository,
)
from igaming_exchange.logging_config import get_logger
from igaming_exchange.providers import build_payment_provider, build_signature_provider
from igaming_exchange.services.notification_service import NotificationService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from igaming_exchange.domain.permissions import Identity
    from igaming_exchange.domain.provider_protocol import (
        PaymentProvider,
        SignatureProvider,
    )
    from igaming_exchange.infrastructure.database.orm_models import Listing, User

logger = get_logger(__name__)

# Provider-reported agreement status -> machine event that reaches it.
_AGREEMENT_EVENTS = {
    AgreementStatus.DELIVERED: "mark_delivered",
    AgreementStatus.COMPLETED: "mark_completed",
    AgreementStatus.DECLINED: "mark_declined",
    AgreementStatus.VOIDED: "mark_voided",
}

# An escrow may only be re-pointed away from an envelope that is dead.
_REPLACEABLE_AGREEMENTS = frozenset(
    {AgreementStatus.DECLINED.value, AgreementStatus.VOIDED.value}
)


@dataclass(frozen=True)
class AgreementView:
    """An agreement as one particular caller may see it.

    ``signing_url`` is the caller's own link, never the counterparty's.
    Admins see the record without any signing link.
    """

    id: uuid.UUID
    envelope_id: str
    listing_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    document_type: str
    status: str
    signing_url: str | None
    created_at: datetime
    completed_at: datetime | None

    @classmethod
    def for_caller(cls, agreement: Agreement, identity: Identity) -> AgreementView:
        if identity.user_id == agreement.buyer_id:
            signing_url: str | None = agreement.signing_url_buyer
        elif identity.user_id == agreement.seller_id:
            signing_url = agreement.signing_url_seller
        else:
            signing_url = None
        return cls(
            id=agreement.id,
            envelope_id=agreement.envelope_id,
            listing_id=agreement.listing_id,
            buyer_id=agreement.buyer_id,
            seller_id=agreement.seller_id,
            document_type=agreement.document_type,
            status=agreement.status,
            signing_url=signing_url,
            created_at=agreement.created_at,
            completed_at=agreement.completed_at,
        )


class TransactionOrchestrator:
    """Drives escrows and purchase agreements across ledgers and providers."""

    def __init__(
        self,
        session: AsyncSession,
        payment_provider: PaymentProvider | None = None,
        signature_provider: SignatureProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._payments = payment_provider or build_payment_provider(self._settings)
        self._signatures = signature_provider or build_signature_provider(self._settings)
        self._escrow_repo = EscrowRepository(session)
        self._agreement_repo = AgreementRepository(session)
        self._listing_repo = ListingRepository(session)
        self._user_repo = UserRepository(session)
        self._customer_repo = PaymentCustomerRepository(session)
        self._notifications = NotificationService(session)

    # ------------------------------------------------------------------
    # Payment initiation
    # ------------------------------------------------------------------

    async def initiate_payment(
        self,
        identity: Identity,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
        seller_id: uuid.UUID,
        amount: Decimal,
        origin: str | None = None,
    ) -> tuple[str, Escrow]:
        """Open an escrow and a hosted checkout for it.

        Returns:
            (checkout_url, escrow). The escrow stays ``initiated`` until the
            provider confirms payment through ``confirm_payment``.
        """
        require_capability(identity, Capability.INITIATE_PAYMENT)
        if identity.user_id != buyer_id and not identity.is_admin:
            raise PermissionDeniedError("Only the buyer can initiate a payment")
        amount = Decimal(str(amount))
        if amount <= 0:
            raise InvalidAmountError(str(amount))
        self._payments.ensure_configured()

        listing = await self._get_listing_or_raise(listing_id)
        if listing.seller_id != seller_id:
            raise InvalidOperationError("Seller does not own this listing")
        if buyer_id == seller_id:
            raise InvalidOperationError("You cannot buy your own listing")
        buyer = await self._get_user_or_raise(buyer_id)

        escrow = await self._escrow_repo.create(
            Escrow(
                listing_id=listing_id,
                buyer_id=buyer_id,
                seller_id=seller_id,
                amount=amount,
                status=EscrowStatus.INITIATED.value,
            )
        )
        # Durable before any provider call; a failed checkout leaves it inspectable.
        await self._session.commit()
        logger.info(
            "escrow.initiated",
            escrow_id=str(escrow.id),
            listing_id=str(listing_id),
            amount=str(amount),
        )

        customer_ref = await self._resolve_customer(buyer)
        await self._escrow_repo.update_fields(escrow, payment_customer_ref=customer_ref)
        await self._session.commit()

        base_url = (origin or self._settings.app_public_url).rstrip("/")
        checkout = await self._payments.create_checkout_session(
            CheckoutRequest(
                customer_ref=customer_ref,
                amount=amount,
                currency=self._settings.payment_currency,
                escrow_id=str(escrow.id),
                listing_id=str(listing_id),
                success_url=f"{base_url}/transactions?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base_url}/browse",
                product_name=self._settings.payment_product_name,
            )
        )

        await self._escrow_repo.update_fields(
            escrow,
            checkout_session_id=checkout.session_id,
            payment_reference=checkout.payment_reference,
        )
        await self._notifications.emit(
            user_id=seller_id,
            notification_type=NotificationType.PAYMENT_INITIATED,
            title="Payment Initiated",
            content=f'A buyer has started checkout for "{listing.title}".',
            related_id=escrow.id,
        )
        logger.info(
            "escrow.checkout_created",
            escrow_id=str(escrow.id),
            session_id=checkout.session_id,
        )
        return checkout.url, escrow

    async def confirm_payment(
        self,
        identity: Identity,
        escrow_id: uuid.UUID,
        payment_reference: str | None = None,
    ) -> Escrow:
        """Provider callback: the buyer's payment cleared, funds are held."""
        require_capability(identity, Capability.RECORD_PROVIDER_EVENT)
        escrow = await self._get_escrow_or_raise(escrow_id)
        apply_event(EscrowStateMachine, escrow.status, "confirm_payment")

        fields = {"payment_reference": payment_reference} if payment_reference else {}
        if not await self._escrow_repo.compare_and_set_status(
            escrow, EscrowStatus.INITIATED, EscrowStatus.FUNDED, **fields
        ):
            await self._session.refresh(escrow)
            raise InvalidStateTransitionError("escrow", escrow.status, "confirm_payment")

        await self._notify_parties(
            escrow,
            NotificationType.ESCROW_FUNDED,
            buyer=("Payment Confirmed", "Your payment is confirmed and held in escrow."),
            seller=("Escrow Funded", "The buyer's funds are now held in escrow."),
        )
        logger.info("escrow.funded", escrow_id=str(escrow_id))
        return escrow

    # ------------------------------------------------------------------
    # Agreements
    # ------------------------------------------------------------------

    async def create_agreement(
        self,
        identity: Identity,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
        escrow_id: uuid.UUID | None = None,
    ) -> Agreement:
        """Create a purchase-agreement envelope and notify both parties."""
        require_capability(identity, Capability.CREATE_AGREEMENT)
        listing = await self._get_listing_or_raise(listing_id)
        buyer = await self._get_user_or_raise(buyer_id)
        require_party(identity, buyer_id, listing.seller_id)
        seller = await self._get_user_or_raise(listing.seller_id)

        escrow = await self._escrow_for_agreement(listing_id, buyer_id, escrow_id)
        if escrow is not None and escrow.agreement_id is not None:
            linked = await self._agreement_repo.get_by_id(escrow.agreement_id)
            if linked is not None and linked.status not in _REPLACEABLE_AGREEMENTS:
                raise InvalidOperationError(f"Escrow already has a {linked.status} agreement")
        self._signatures.ensure_configured()

        draft = await self._signatures.create_envelope(
            listing_title=listing.title,
            buyer_email=buyer.email,
            seller_email=seller.email,
        )
        agreement = await self._agreement_repo.create(
            Agreement(
                envelope_id=draft.envelope_id,
                listing_id=listing_id,
                buyer_id=buyer_id,
                seller_id=seller.id,
                status=AgreementStatus.SENT.value,
                signing_url_buyer=draft.signing_url_buyer,
                signing_url_seller=draft.signing_url_seller,
            )
        )
        if escrow is not None:
            await self._escrow_repo.update_fields(escrow, agreement_id=agreement.id)

        content = f'Purchase agreement for "{listing.title}" is ready for your signature.'
        for party_id in (buyer_id, seller.id):
            await self._notifications.emit(
                user_id=party_id,
                notification_type=NotificationType.DOCUMENT_READY,
                title="Document Ready for Signing",
                content=content,
                related_id=agreement.id,
            )

        logger.info(
            "agreement.created",
            agreement_id=str(agreement.id),
            envelope_id=agreement.envelope_id,
            escrow_id=str(escrow.id) if escrow else None,
        )
        return agreement

    async def record_agreement_status(
        self,
        identity: Identity,
        agreement_id: uuid.UUID,
        status: AgreementStatus,
    ) -> Agreement:
        """Provider callback: the envelope moved to ``status``.

        A ``completed`` report on a ``sent`` envelope passes through
        ``delivered``. Re-reporting the current status changes nothing.
        """
        require_capability(identity, Capability.RECORD_PROVIDER_EVENT)
        agreement = await self._get_agreement_or_raise(agreement_id)
        if agreement.status == status.value:
            return agreement
        if status not in _AGREEMENT_EVENTS:
            raise InvalidStateTransitionError("agreement", agreement.status, f"report {status}")

        old_status = agreement.status
        if status == AgreementStatus.COMPLETED and agreement.status == AgreementStatus.SENT.value:
            await self._advance_agreement(agreement, AgreementStatus.DELIVERED)
        await self._advance_agreement(agreement, status)

        for party_id in (agreement.buyer_id, agreement.seller_id):
            await self._notifications.emit(
                user_id=party_id,
                notification_type=NotificationType.AGREEMENT_UPDATED,
                title="Agreement Updated",
                content=f"The purchase agreement is now {agreement.status}.",
                related_id=agreement.id,
            )
        logger.info(
            "agreement.status_changed",
            agreement_id=str(agreement_id),
            old_status=old_status,
            new_status=agreement.status,
        )
        return agreement

    async def record_envelope_status(
        self,
        identity: Identity,
        envelope_id: str,
        status: AgreementStatus,
    ) -> Agreement:
        """Same as ``record_agreement_status``, addressed by provider envelope id."""
        agreement = await self._agreement_repo.get_by_envelope_id(envelope_id)
        if agreement is None:
            raise AgreementNotFoundError(envelope_id)
        return await self.record_agreement_status(identity, agreement.id, status)

    async def get_agreement_view(
        self,
        identity: Identity,
        agreement_id: uuid.UUID,
    ) -> AgreementView:
        agreement = await self._get_agreement_or_raise(agreement_id)
        require_party(identity, agreement.buyer_id, agreement.seller_id)
        return AgreementView.for_caller(agreement, identity)

    async def list_agreements(self, identity: Identity) -> list[AgreementView]:
        agreements = await self._agreement_repo.list_for_user(identity.user_id)
        return [AgreementView.for_caller(a, identity) for a in agreements]

    # ------------------------------------------------------------------
    # Completion (fund release)
    # ------------------------------------------------------------------

    async def complete_escrow(self, identity: Identity, escrow_id: uuid.UUID) -> Escrow:
        """Release escrowed funds once the purchase agreement is signed.

        Preconditions, in order: the escrow exists; its agreement exists and
        is ``completed``; the escrow is not already completed; the escrow
        machine allows ``release_funds`` (i.e. it is ``funded``). Any failure
        leaves the escrow untouched and emits nothing.
        """
        require_capability(identity, Capability.RELEASE_FUNDS)
        escrow = await self._get_escrow_or_raise(escrow_id)
        require_party(identity, escrow.buyer_id)

        agreement = None
        if escrow.agreement_id is not None:
            agreement = await self._agreement_repo.get_by_id(escrow.agreement_id)
        if agreement is None or agreement.status != AgreementStatus.COMPLETED.value:
            raise AgreementNotCompletedError(str(escrow_id))
        if escrow.status == EscrowStatus.COMPLETED.value:
            raise EscrowAlreadyCompletedError(str(escrow_id))
        apply_event(EscrowStateMachine, escrow.status, "release_funds")

        completed = await self._escrow_repo.compare_and_set_status(
            escrow,
            EscrowStatus.FUNDED,
            EscrowStatus.COMPLETED,
            completed_at=datetime.now(UTC),
        )
        if not completed:
            await self._session.refresh(escrow)
            logger.warning(
                "escrow.completion_lost_race",
                escrow_id=str(escrow_id),
                status=escrow.status,
            )
            if escrow.status == EscrowStatus.COMPLETED.value:
                raise EscrowAlreadyCompletedError(str(escrow_id))
            raise InvalidStateTransitionError("escrow", escrow.status, "release_funds")

        if self._settings.escrow_release_transfers:
            await self._transfer_to_seller(escrow)

        await self._notifications.emit(
            user_id=escrow.buyer_id,
            notification_type=NotificationType.TRANSACTION_COMPLETED,
            title="Transaction Completed",
            content="Your purchase has been completed and funds have been released.",
            related_id=escrow.id,
        )
        await self._notifications.emit(
            user_id=escrow.seller_id,
            notification_type=NotificationType.PAYMENT_RECEIVED,
            title="Payment Received",
            content="Funds have been released from escrow to your account.",
            related_id=escrow.id,
        )
        logger.info(
            "escrow.completed",
            escrow_id=str(escrow_id),
            transferred=escrow.release_reference is not None,
        )
        return escrow

    # ------------------------------------------------------------------
    # Terminal escapes
    # ------------------------------------------------------------------

    async def raise_dispute(self, identity: Identity, escrow_id: uuid.UUID, reason: str) -> Escrow:
        require_capability(identity, Capability.RAISE_DISPUTE)
        escrow = await self._get_escrow_or_raise(escrow_id)
        require_party(identity, escrow.buyer_id, escrow.seller_id)
        old_status = EscrowStatus(escrow.status)
        apply_event(EscrowStateMachine, escrow.status, "open_dispute")

        if not await self._escrow_repo.compare_and_set_status(
            escrow, old_status, EscrowStatus.DISPUTED, dispute_reason=reason
        ):
            await self._session.refresh(escrow)
            raise InvalidStateTransitionError("escrow", escrow.status, "open_dispute")

        content = f"A dispute was raised on this transaction: {reason}"
        await self._notify_parties(
            escrow,
            NotificationType.ESCROW_DISPUTED,
            buyer=("Transaction Disputed", content),
            seller=("Transaction Disputed", content),
        )
        logger.info("escrow.dispute_raised", escrow_id=str(escrow_id), by=str(identity.user_id))
        return escrow

    async def cancel_escrow(self, identity: Identity, escrow_id: uuid.UUID) -> Escrow:
        require_capability(identity, Capability.CANCEL_ESCROW)
        escrow = await self._get_escrow_or_raise(escrow_id)
        require_party(identity, escrow.buyer_id, escrow.seller_id)
        apply_event(EscrowStateMachine, escrow.status, "cancel_escrow")

        if not await self._escrow_repo.compare_and_set_status(
            escrow, EscrowStatus.INITIATED, EscrowStatus.CANCELLED
        ):
            await self._session.refresh(escrow)
            raise InvalidStateTransitionError("escrow", escrow.status, "cancel_escrow")

        content = "This transaction was cancelled before payment."
        await self._notify_parties(
            escrow,
            NotificationType.ESCROW_CANCELLED,
            buyer=("Transaction Cancelled", content),
            seller=("Transaction Cancelled", content),
        )
        logger.info("escrow.cancelled", escrow_id=str(escrow_id), by=str(identity.user_id))
        return escrow

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_escrow(self, identity: Identity, escrow_id: uuid.UUID) -> Escrow:
        escrow = await self._get_escrow_or_raise(escrow_id)
        require_party(identity, escrow.buyer_id, escrow.seller_id)
        return escrow

    async def list_escrows(self, identity: Identity) -> list[Escrow]:
        """Escrows where the caller is buyer or seller."""
        return await self._escrow_repo.list_for_user(identity.user_id)

    def allowed_events(self, escrow: Escrow) -> list[str]:
        return EscrowStateMachine(escrow.status).get_allowed_events()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _resolve_customer(self, buyer: User) -> str:
        """Reuse the buyer's provider customer, creating it on first checkout."""
        existing = await self._customer_repo.get_by_user(buyer.id)
        if existing is not None:
            return existing.provider_customer_ref

        name = " ".join(p for p in (buyer.first_name, buyer.last_name) if p)
        customer_ref = await self._payments.create_customer(email=buyer.email, name=name)
        await self._customer_repo.create(buyer.id, customer_ref)
        return customer_ref

    async def _transfer_to_seller(self, escrow: Escrow) -> None:
        seller = await self._get_user_or_raise(escrow.seller_id)
        transfer = await self._payments.release_funds(
            escrow_id=str(escrow.id),
            amount=escrow.amount,
            currency=self._settings.payment_currency,
            destination=seller.payout_account_id,
        )
        await self._escrow_repo.update_fields(escrow, release_reference=transfer.transfer_reference)

    async def _escrow_for_agreement(
        self,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
        escrow_id: uuid.UUID | None,
    ) -> Escrow | None:
        if escrow_id is None:
            return await self._escrow_repo.latest_open_for(listing_id, buyer_id)
        escrow = await self._get_escrow_or_raise(escrow_id)
        if escrow.listing_id != listing_id or escrow.buyer_id != buyer_id:
            raise InvalidOperationError("Escrow does not belong to this listing and buyer")
        return escrow

    async def _advance_agreement(self, agreement: Agreement, target: AgreementStatus) -> None:
        current = AgreementStatus(agreement.status)
        event = _AGREEMENT_EVENTS[target]
        apply_event(AgreementStateMachine, current.value, event)

        fields = {}
        if target == AgreementStatus.COMPLETED:
            fields["completed_at"] = datetime.now(UTC)
        if not await self._agreement_repo.compare_and_set_status(
            agreement, current, target, **fields
        ):
            await self._session.refresh(agreement)
            raise InvalidStateTransitionError("agreement", agreement.status, event)

    async def _notify_parties(
        self,
        escrow: Escrow,
        notification_type: NotificationType,
        buyer: tuple[str, str],
        seller: tuple[str, str],
    ) -> None:
        for user_id, (title, content) in ((escrow.buyer_id, buyer), (escrow.seller_id, seller)):
            await self._notifications.emit(
                user_id=user_id,
                notification_type=notification_type,
                title=title,
                content=content,
                related_id=escrow.id,
            )

    async def _get_escrow_or_raise(self, escrow_id: uuid.UUID) -> Escrow:
        escrow = await self._escrow_repo.get_by_id(escrow_id)
        if escrow is None:
            raise EscrowNotFoundError(str(escrow_id))
        return escrow

    async def _get_agreement_or_raise(self, agreement_id: uuid.UUID) -> Agreement:
        agreement = await self._agreement_repo.get_by_id(agreement_id)
        if agreement is None:
            raise AgreementNotFoundError(str(agreement_id))
        return agreement

    async def _get_listing_or_raise(self, listing_id: uuid.UUID) -> Listing:
        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(str(listing_id))
        return listing

    async def _get_user_or_raise(self, user_id: uuid.UUID) -> User:
        user = await self._user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

