"""Tests for KYC uploads and admin review."""

from __future__ import annotations

import re
import uuid

import pytest

from igaming_exchange.config import Settings
from igaming_exchange.domain.enums import KycDocumentType, KycStatus
from igaming_exchange.domain.exceptions import (
    DocumentRejectedError,
    InvalidOperationError,
    PermissionDeniedError,
)
from igaming_exchange.infrastructure.database.orm_models import KycDocument
from igaming_exchange.services.kyc_service import KycService, blob_path_for

PDF_BYTES = b"%PDF-1.4 passport scan"


class TestBlobPath:
    def test_layout(self) -> None:
        user_id = uuid.uuid4()
        path = blob_path_for(user_id, KycDocumentType.PASSPORT, "scan.PDF", "application/pdf")
        assert re.fullmatch(rf"{user_id}/passport_\d{{13}}\.pdf", path)

    def test_extension_falls_back_to_mime(self) -> None:
        path = blob_path_for(uuid.uuid4(), KycDocumentType.PASSPORT, "scan", "image/png")
        assert path.endswith(".png")


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_stores_blob_and_record(
        self, session, buyer_identity, blob_store, settings
    ) -> None:
        service = KycService(session, blob_store, settings)

        document = await service.upload(
            buyer_identity, KycDocumentType.PASSPORT, "passport.pdf", "application/pdf", PDF_BYTES
        )

        assert document.status == KycStatus.PENDING.value
        assert document.file_size == len(PDF_BYTES)
        assert document.file_path.startswith(f"{buyer_identity.user_id}/passport_")
        assert await blob_store.get(document.file_path) == PDF_BYTES
        assert [d.id for d in await service.list_own(buyer_identity)] == [document.id]

    @pytest.mark.asyncio
    async def test_too_large(self, session, buyer_identity, blob_store) -> None:
        service = KycService(session, blob_store, Settings(kyc_max_file_bytes=8))
        with pytest.raises(DocumentRejectedError, match="too large"):
            await service.upload(
                buyer_identity, KycDocumentType.NATIONAL_ID, "id.pdf", "application/pdf", PDF_BYTES
            )
        assert not blob_store.root.exists() or not any(blob_store.root.rglob("*.pdf"))

    @pytest.mark.asyncio
    async def test_wrong_mime_type(self, session, buyer_identity, blob_store, settings) -> None:
        service = KycService(session, blob_store, settings)
        with pytest.raises(DocumentRejectedError, match="Invalid file type"):
            await service.upload(
                buyer_identity, KycDocumentType.NATIONAL_ID, "id.gif", "image/gif", b"GIF89a"
            )

    @pytest.mark.asyncio
    async def test_empty_file(self, session, buyer_identity, blob_store, settings) -> None:
        service = KycService(session, blob_store, settings)
        with pytest.raises(DocumentRejectedError, match="empty"):
            await service.upload(
                buyer_identity, KycDocumentType.NATIONAL_ID, "id.pdf", "application/pdf", b""
            )


class TestReview:
    @pytest.mark.asyncio
    async def test_reject_needs_reason(
        self, session, buyer_identity, admin_identity, blob_store, settings
    ) -> None:
        service = KycService(session, blob_store, settings)
        document = await service.upload(
            buyer_identity, KycDocumentType.PASSPORT, "p.pdf", "application/pdf", PDF_BYTES
        )

        with pytest.raises(InvalidOperationError, match="reason"):
            await service.review(admin_identity, document.id, approve=False)

        rejected = await service.review(
            admin_identity, document.id, approve=False, rejection_reason="Blurry scan"
        )
        assert rejected.status == KycStatus.REJECTED.value
        assert rejected.rejection_reason == "Blurry scan"
        assert rejected.reviewed_by == admin_identity.user_id

    @pytest.mark.asyncio
    async def test_review_once(
        self, session, buyer_identity, admin_identity, blob_store, settings
    ) -> None:
        service = KycService(session, blob_store, settings)
        document = await service.upload(
            buyer_identity, KycDocumentType.PASSPORT, "p.pdf", "application/pdf", PDF_BYTES
        )
        assert [d.id for d in await service.list_pending(admin_identity)] == [document.id]

        await service.review(admin_identity, document.id, approve=True)

        assert await service.list_pending(admin_identity) == []
        with pytest.raises(InvalidOperationError, match="already reviewed"):
            await service.review(admin_identity, document.id, approve=True)

    @pytest.mark.asyncio
    async def test_only_admins_review(
        self, session, buyer_identity, blob_store, settings
    ) -> None:
        with pytest.raises(PermissionDeniedError):
            await KycService(session, blob_store, settings).list_pending(buyer_identity)

    @pytest.mark.asyncio
    async def test_concurrent_reviews_have_one_winner(
        self, session, session_factory, buyer_identity, admin_identity, blob_store, settings
    ) -> None:
        document = await KycService(session, blob_store, settings).upload(
            buyer_identity, KycDocumentType.PASSPORT, "p.pdf", "application/pdf", PDF_BYTES
        )
        await session.commit()

        async with session_factory() as loser:
            stale = await loser.get(KycDocument, document.id)
            assert stale.status == KycStatus.PENDING.value

            async with session_factory() as winner:
                await KycService(winner, blob_store, settings).review(
                    admin_identity, document.id, approve=True
                )
                await winner.commit()

            with pytest.raises(InvalidOperationError, match="already reviewed"):
                await KycService(loser, blob_store, settings).review(
                    admin_identity, document.id, approve=False, rejection_reason="Expired"
                )
            await loser.rollback()

        async with session_factory() as check:
            final = await check.get(KycDocument, document.id)
        assert final.status == KycStatus.APPROVED.value
        assert final.rejection_reason is None
