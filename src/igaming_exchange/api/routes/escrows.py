"""Escrow and agreement REST API routes.

The state-changing steps that have cross-ledger preconditions live in the
server functions (see functions.py); these routes cover reads and the
party-initiated terminal escapes.

Routes:
    GET    /api/v1/escrows                 — Escrows I'm a party to
    GET    /api/v1/escrows/{id}            — Escrow details
    GET    /api/v1/escrows/{id}/status     — Status + allowed events
    POST   /api/v1/escrows/{id}/dispute    — Raise a dispute
    POST   /api/v1/escrows/{id}/cancel     — Cancel before payment
    GET    /api/v1/agreements              — Agreements I'm a party to
    GET    /api/v1/agreements/{id}         — Agreement with my signing link
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from igaming_exchange.api.deps import get_current_identity, get_orchestrator
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.schemas.marketplace import (
    AgreementResponse,
    EscrowResponse,
    EscrowStatusResponse,
    RaiseDisputeRequest,
)
from igaming_exchange.services.transaction_service import TransactionOrchestrator

router = APIRouter(prefix="/api/v1/escrows", tags=["Escrows"])
agreements_router = APIRouter(prefix="/api/v1/agreements", tags=["Agreements"])


@router.get("", response_model=list[EscrowResponse])
async def list_escrows(
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> list[EscrowResponse]:
    escrows = await orchestrator.list_escrows(identity)
    return [EscrowResponse.model_validate(e) for e in escrows]


@router.get("/{escrow_id}", response_model=EscrowResponse)
async def get_escrow(
    escrow_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> EscrowResponse:
    escrow = await orchestrator.get_escrow(identity, escrow_id)
    return EscrowResponse.model_validate(escrow)


@router.get("/{escrow_id}/status", response_model=EscrowStatusResponse)
async def get_escrow_status(
    escrow_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> EscrowStatusResponse:
    escrow = await orchestrator.get_escrow(identity, escrow_id)
    return EscrowStatusResponse(
        escrow_id=escrow.id,
        status=escrow.status,
        allowed_events=orchestrator.allowed_events(escrow),
    )


@router.post("/{escrow_id}/dispute", response_model=EscrowResponse)
async def raise_dispute(
    escrow_id: uuid.UUID,
    body: RaiseDisputeRequest,
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> EscrowResponse:
    escrow = await orchestrator.raise_dispute(identity, escrow_id, body.reason)
    return EscrowResponse.model_validate(escrow)


@router.post("/{escrow_id}/cancel", response_model=EscrowResponse)
async def cancel_escrow(
    escrow_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> EscrowResponse:
    escrow = await orchestrator.cancel_escrow(identity, escrow_id)
    return EscrowResponse.model_validate(escrow)


@agreements_router.get("", response_model=list[AgreementResponse])
async def list_agreements(
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> list[AgreementResponse]:
    views = await orchestrator.list_agreements(identity)
    return [AgreementResponse.model_validate(v) for v in views]


@agreements_router.get("/{agreement_id}", response_model=AgreementResponse)
async def get_agreement(
    agreement_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
) -> AgreementResponse:
    view = await orchestrator.get_agreement_view(identity, agreement_id)
    return AgreementResponse.model_validate(view)
