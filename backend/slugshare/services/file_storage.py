"""Object store abstraction. Blobs are addressed by derived keys.

Only the local filesystem backend is implemented; a key such as
``files/<id>-report.pdf`` maps to ``<FILE_STORAGE_PATH>/files/<id>-report.pdf``.
"""
import logging
import os
from pathlib import Path

import aiofiles
import aiofiles.os

from slugshare.config import settings

logger = logging.getLogger(__name__)


class FileStorageService:
    """Handles blob put/get/delete on local disk."""

    def __init__(self, base_path: str | Path | None = None, storage_type: str | None = None):
        self.storage_type = storage_type or settings.FILE_STORAGE_TYPE
        if self.storage_type != "local":
            raise ValueError(f"Unknown storage type: {self.storage_type}")
        self.base_path = Path(base_path or settings.FILE_STORAGE_PATH).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if not path.is_relative_to(self.base_path) or path == self.base_path:
            raise ValueError(f"Object key escapes storage root: {key!r}")
        return path

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        """Write ``data`` under ``key``, replacing any existing blob.

        The local backend has nowhere to keep ``content_type``; the metadata
        row carries it instead.
        """
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        logger.debug(f"Stored {len(data)} bytes at {key}")

    async def get(self, key: str) -> bytes | None:
        """Read blob bytes, or None if nothing is stored under ``key``."""
        path = self._path_for(key)
        if not path.is_file():
            return None
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def size(self, key: str) -> int | None:
        """Stored byte count, or None if nothing is stored under ``key``."""
        path = self._path_for(key)
        if not await aiofiles.os.path.isfile(path):
            return None
        return await aiofiles.os.path.getsize(path)

    async def delete(self, key: str) -> None:
        """Delete the blob. Deleting a missing key is a no-op."""
        path = self._path_for(key)
        if path.exists():
            os.remove(path)


file_storage = FileStorageService()
