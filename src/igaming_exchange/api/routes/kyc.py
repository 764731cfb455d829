"""KYC document REST API routes.

Routes:
    POST   /api/v1/kyc/documents               — Upload (multipart: document_type, file)
    GET    /api/v1/kyc/documents               — My documents, newest first
    GET    /api/v1/kyc/documents/pending       — Review queue (admin)
    POST   /api/v1/kyc/documents/{id}/review   — Approve or reject (admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from igaming_exchange.api.deps import get_blob_store, get_current_identity, get_db_session
from igaming_exchange.config import get_settings
from igaming_exchange.domain.enums import KycDocumentType
from igaming_exchange.domain.exceptions import DocumentRejectedError
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.infrastructure.storage import LocalBlobStore
from igaming_exchange.schemas.marketplace import KycDocumentResponse, KycReviewRequest
from igaming_exchange.services.kyc_service import KycService

router = APIRouter(prefix="/api/v1/kyc", tags=["KYC"])


@router.post("/documents", response_model=KycDocumentResponse, status_code=201)
async def upload_document(
    document_type: KycDocumentType = Form(...),
    file: UploadFile = File(...),
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    blob_store: LocalBlobStore = Depends(get_blob_store),
) -> KycDocumentResponse:
    # Read one byte past the limit so oversize files are rejected without buffering them whole.
    limit = get_settings().kyc_max_file_bytes
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise DocumentRejectedError(f"File too large: maximum size is {limit // (1024 * 1024)}MB")

    document = await KycService(session, blob_store).upload(
        identity,
        document_type=document_type,
        file_name=file.filename or "document",
        mime_type=file.content_type or "application/octet-stream",
        data=data,
    )
    return KycDocumentResponse.model_validate(document)


@router.get("/documents", response_model=list[KycDocumentResponse])
async def list_documents(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    blob_store: LocalBlobStore = Depends(get_blob_store),
) -> list[KycDocumentResponse]:
    documents = await KycService(session, blob_store).list_own(identity)
    return [KycDocumentResponse.model_validate(d) for d in documents]


@router.get("/documents/pending", response_model=list[KycDocumentResponse])
async def list_pending_documents(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    blob_store: LocalBlobStore = Depends(get_blob_store),
) -> list[KycDocumentResponse]:
    documents = await KycService(session, blob_store).list_pending(identity)
    return [KycDocumentResponse.model_validate(d) for d in documents]


@router.post("/documents/{document_id}/review", response_model=KycDocumentResponse)
async def review_document(
    document_id: uuid.UUID,
    body: KycReviewRequest,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    blob_store: LocalBlobStore = Depends(get_blob_store),
) -> KycDocumentResponse:
    document = await KycService(session, blob_store).review(
        identity, document_id, approve=body.approve, rejection_reason=body.rejection_reason
    )
    return KycDocumentResponse.model_validate(document)
