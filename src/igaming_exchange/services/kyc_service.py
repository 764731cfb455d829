"""KYC documents — upload to the blob store, then admin review.

Files are checked (size, MIME type) before anything is stored. The blob is
written first and the record second; both happen inside the caller's unit of
work, and the blob path embeds a millisecond timestamp so retries never
collide with the write-once store.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from igaming_exchange.config import Settings, get_settings
from igaming_exchange.domain.enums import KycDocumentType, KycStatus
from igaming_exchange.domain.exceptions import (
    DocumentRejectedError,
    InvalidOperationError,
    KycDocumentNotFoundError,
)
from igaming_exchange.domain.permissions import Capability, require_capability
from igaming_exchange.infrastructure.database.orm_models import KycDocument
from igaming_exchange.infrastructure.database.repositories import KycDocumentRepository
from igaming_exchange.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from igaming_exchange.domain.permissions import Identity
    from igaming_exchange.infrastructure.storage import LocalBlobStore

logger = get_logger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "application/pdf": "pdf",
}


def blob_path_for(
    user_id: uuid.UUID,
    document_type: KycDocumentType,
    file_name: str,
    mime_type: str,
) -> str:
    """``<user_id>/<document_type>_<millis>.<ext>``; ext from the file name if it has one."""
    suffix = PurePosixPath(file_name).suffix.lstrip(".").lower()
    ext = suffix or _EXTENSIONS.get(mime_type, "bin")
    return f"{user_id}/{document_type.value}_{int(time.time() * 1000)}.{ext}"


class KycService:
    def __init__(
        self,
        session: AsyncSession,
        blob_store: LocalBlobStore,
        settings: Settings | None = None,
    ) -> None:
        self._repo = KycDocumentRepository(session)
        self._blobs = blob_store
        self._settings = settings or get_settings()

    async def upload(
        self,
        identity: Identity,
        document_type: KycDocumentType,
        file_name: str,
        mime_type: str,
        data: bytes,
    ) -> KycDocument:
        """Store an identity document for the caller; it starts ``pending``."""
        require_capability(identity, Capability.UPLOAD_KYC)
        if len(data) > self._settings.kyc_max_file_bytes:
            limit_mb = self._settings.kyc_max_file_bytes // (1024 * 1024)
            raise DocumentRejectedError(f"File too large: maximum size is {limit_mb}MB")
        if mime_type not in self._settings.kyc_allowed_mime_type_set:
            raise DocumentRejectedError("Invalid file type: please upload a JPEG, PNG, or PDF file")
        if not data:
            raise DocumentRejectedError("File is empty")

        path = blob_path_for(identity.user_id, document_type, file_name, mime_type)
        await self._blobs.put(path, data)

        document = await self._repo.create(
            KycDocument(
                user_id=identity.user_id,
                document_type=document_type.value,
                file_path=path,
                file_name=file_name,
                mime_type=mime_type,
                file_size=len(data),
                status=KycStatus.PENDING.value,
            )
        )
        logger.info(
            "kyc.uploaded",
            document_id=str(document.id),
            user_id=str(identity.user_id),
            document_type=document_type.value,
            size=len(data),
        )
        return document

    async def list_own(self, identity: Identity) -> list[KycDocument]:
        """The caller's documents, newest first."""
        return await self._repo.list_by_user(identity.user_id)

    async def list_pending(self, identity: Identity) -> list[KycDocument]:
        require_capability(identity, Capability.REVIEW_KYC)
        return await self._repo.list_by_status(KycStatus.PENDING.value)

    async def review(
        self,
        identity: Identity,
        document_id: uuid.UUID,
        approve: bool,
        rejection_reason: str | None = None,
    ) -> KycDocument:
        """Admin decision on a pending document. Rejections need a reason."""
        require_capability(identity, Capability.REVIEW_KYC)
        document = await self._repo.get_by_id(document_id)
        if document is None:
            raise KycDocumentNotFoundError(str(document_id))
        if document.status != KycStatus.PENDING.value:
            raise InvalidOperationError(f"Document already reviewed ({document.status})")
        if not approve and not rejection_reason:
            raise InvalidOperationError("A rejection reason is required")

        reviewed = await self._repo.record_review(
            document,
            KycStatus.APPROVED if approve else KycStatus.REJECTED,
            rejection_reason=None if approve else rejection_reason,
            reviewed_by=identity.user_id,
            reviewed_at=datetime.now(UTC),
        )
        if not reviewed:
            raise InvalidOperationError(f"Document already reviewed ({document.status})")

        logger.info("kyc.reviewed", document_id=str(document_id), status=document.status)
        return document
