"""Tests for the write-once KYC blob store."""

from __future__ import annotations

import pytest

from igaming_exchange.domain.exceptions import DocumentRejectedError
from igaming_exchange.infrastructure.storage import LocalBlobStore


class TestLocalBlobStore:
    @pytest.mark.asyncio
    async def test_put_then_get(self, tmp_path) -> None:
        store = LocalBlobStore(tmp_path)
        key = await store.put("user-1/passport_1.pdf", b"%PDF-1.7")

        assert key == "user-1/passport_1.pdf"
        assert await store.exists(key)
        assert await store.get(key) == b"%PDF-1.7"
        assert (tmp_path / "user-1" / "passport_1.pdf").is_file()

    @pytest.mark.asyncio
    async def test_objects_are_write_once(self, tmp_path) -> None:
        store = LocalBlobStore(tmp_path)
        await store.put("u/doc.png", b"first")

        with pytest.raises(DocumentRejectedError, match="already stored"):
            await store.put("u/doc.png", b"second")
        assert await store.get("u/doc.png") == b"first"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["../escape.pdf", "/etc/passwd", "u/../../x"])
    async def test_paths_stay_under_root(self, tmp_path, key: str) -> None:
        with pytest.raises(DocumentRejectedError, match="Invalid storage path"):
            await LocalBlobStore(tmp_path).put(key, b"x")

    @pytest.mark.asyncio
    async def test_missing_object(self, tmp_path) -> None:
        assert not await LocalBlobStore(tmp_path).exists("nobody/none.pdf")
