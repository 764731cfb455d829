"""Server-callable functions: initiate-payment, create-agreement, complete-escrow.

These are the three entry points the front end invokes directly. Bodies are
camelCase JSON; any failure comes back as HTTP 400 ``{"error": message}``
(see ErrorHandlerMiddleware). Browser pre-flights are answered by the CORS
middleware; a bare OPTIONS without pre-flight headers gets a plain 200.

Routes:
    POST /functions/v1/initiate-payment  -> {url, escrowId}
    POST /functions/v1/create-agreement  -> {envelope}
    POST /functions/v1/complete-escrow   -> {success: true}
    OPTIONS /functions/v1/{name}          -> "ok"
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from igaming_exchange.api.deps import (
    get_current_identity,
    get_orchestrator,
    get_redis_client,
)
from igaming_exchange.domain.exceptions import DuplicateOperationError
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.infrastructure.redis_client import (
    claim_idempotency_key,
    get_idempotent_result,
    release_idempotency_key,
    store_idempotent_result,
)
from igaming_exchange.logging_config import get_logger
from igaming_exchange.schemas.functions import (
    CompleteEscrowRequest,
    CompleteEscrowResponse,
    CreateAgreementRequest,
    CreateAgreementResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
)
from igaming_exchange.schemas.marketplace import AgreementResponse
from igaming_exchange.services.transaction_service import (
    AgreementView,
    TransactionOrchestrator,
)

router = APIRouter(prefix="/functions/v1", tags=["Functions"])
logger = get_logger(__name__)

_IN_FLIGHT = "in-flight"


@router.post(
    "/initiate-payment",
    response_model=InitiatePaymentResponse,
    summary="Open an escrow and a hosted checkout session",
)
async def initiate_payment(
    body: InitiatePaymentRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> InitiatePaymentResponse:
    """Create an ``initiated`` escrow and return the provider's checkout URL.

    With an ``idempotencyKey`` (and Redis available) a repeated call returns
    the first call's result instead of opening a second escrow.
    """
    key = None
    if body.idempotency_key and redis is not None:
        key = f"initiate-payment:{identity.user_id}:{body.idempotency_key}"
        previous = await get_idempotent_result(redis, key)
        if previous is not None and previous != _IN_FLIGHT:
            logger.info("idempotency.replayed", key=key)
            return InitiatePaymentResponse.model_validate_json(previous)
        if not await claim_idempotency_key(redis, key, _IN_FLIGHT):
            raise DuplicateOperationError(body.idempotency_key)

    try:
        url, escrow = await orchestrator.initiate_payment(
            identity,
            listing_id=body.listing_id,
            buyer_id=body.buyer_id,
            seller_id=body.seller_id,
            amount=body.amount,
            origin=request.headers.get("origin"),
        )
    except Exception:
        if key is not None:
            await release_idempotency_key(redis, key)
        raise

    response = InitiatePaymentResponse(url=url, escrow_id=escrow.id)
    if key is not None:
        await store_idempotent_result(redis, key, response.model_dump_json(by_alias=True))
    return response


@router.post(
    "/create-agreement",
    response_model=CreateAgreementResponse,
    summary="Create a purchase-agreement envelope for a listing and buyer",
)
async def create_agreement(
    body: CreateAgreementRequest,
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> CreateAgreementResponse:
    agreement = await orchestrator.create_agreement(
        identity,
        listing_id=body.listing_id,
        buyer_id=body.buyer_id,
        escrow_id=body.escrow_id,
    )
    view = AgreementView.for_caller(agreement, identity)
    return CreateAgreementResponse(envelope=AgreementResponse.model_validate(view))


@router.post(
    "/complete-escrow",
    response_model=CompleteEscrowResponse,
    summary="Release escrowed funds once the agreement is signed",
)
async def complete_escrow(
    body: CompleteEscrowRequest,
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> CompleteEscrowResponse:
    await orchestrator.complete_escrow(identity, body.escrow_id)
    return CompleteEscrowResponse(success=True)


@router.options("/{function_name}", include_in_schema=False)
async def function_options(function_name: str) -> PlainTextResponse:
    return PlainTextResponse("ok")
