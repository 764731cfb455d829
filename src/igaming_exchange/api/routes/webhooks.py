"""Provider callbacks.

The payment and e-signature providers report asynchronously. A callback is
admitted only with the shared ``X-Webhook-Secret`` and then runs under the
system identity; anything else is refused before the orchestrator is called.

Routes:
    POST   /api/v1/webhooks/payment    — Checkout paid: escrow initiated -> funded
    POST   /api/v1/webhooks/signature  — Envelope status changed
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from igaming_exchange.api.deps import get_orchestrator, get_webhook_identity
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.logging_config import get_logger
from igaming_exchange.schemas.marketplace import (
    EscrowResponse,
    PaymentWebhook,
    SignatureWebhook,
)
from igaming_exchange.services.transaction_service import TransactionOrchestrator

router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])
logger = get_logger(__name__)


@router.post("/payment", response_model=EscrowResponse)
async def payment_confirmed(
    body: PaymentWebhook,
    system: Identity = Depends(get_webhook_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> EscrowResponse:
    logger.info("webhook.payment_received", escrow_id=str(body.escrow_id))
    escrow = await orchestrator.confirm_payment(system, body.escrow_id, body.payment_reference)
    return EscrowResponse.model_validate(escrow)


@router.post("/signature")
async def envelope_status_changed(
    body: SignatureWebhook,
    system: Identity = Depends(get_webhook_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> dict[str, str]:
    logger.info("webhook.signature_received", envelope_id=body.envelope_id, status=body.status)
    agreement = await orchestrator.record_envelope_status(
        system, body.envelope_id, body.status
    )
    return {"envelope_id": agreement.envelope_id, "status": agreement.status}
