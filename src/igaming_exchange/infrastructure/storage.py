"""Blob storage for KYC documents.

Objects are addressed by a relative path (``<user_id>/<type>_<millis>.<ext>``)
and are write-once: storing to a path that already exists is refused rather
than silently replacing someone's identity document. Disk I/O runs in a
worker thread so uploads never block the event loop.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath

from igaming_exchange.config import get_settings
from igaming_exchange.domain.exceptions import DocumentRejectedError
from igaming_exchange.logging_config import get_logger

logger = get_logger(__name__)


class LocalBlobStore:
    """Filesystem-backed, write-once object store rooted at ``kyc_storage_root``."""

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root or get_settings().kyc_storage_root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, key: str) -> Path:
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise DocumentRejectedError(f"Invalid storage path: {key}")
        return self._root.joinpath(*relative.parts)

    async def put(self, key: str, data: bytes) -> str:
        """Store ``data`` under ``key``. Raises if the key is already taken."""
        target = self._resolve(key)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "xb" fails with FileExistsError instead of overwriting.
            with target.open("xb") as fh:
                fh.write(data)

        try:
            await asyncio.to_thread(_write)
        except FileExistsError as exc:
            raise DocumentRejectedError(f"A document is already stored at {key}") from exc

        logger.info("storage.object_written", key=key, size=len(data))
        return key

    async def get(self, key: str) -> bytes:
        return await asyncio.to_thread(self._resolve(key).read_bytes)

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._resolve(key).exists)
