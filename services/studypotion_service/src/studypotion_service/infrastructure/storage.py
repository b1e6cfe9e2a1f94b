from __future__ import annotations

import asyncio
from pathlib import Path

import aiofiles
import structlog

from studypotion_service.domain.exceptions import StorageError
from studypotion_service.domain.interfaces import BlobStoragePort

logger = structlog.get_logger(__name__)


class LocalFileStorage(BlobStoragePort):
    """Filesystem-backed blob storage keyed by ``{user}/{project}/{name}`` paths.

    In production: replace with the hosted bucket adapter implementing the same interface.
    """

    def __init__(self, base_path: str) -> None:
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        target = (self._base_path / path).resolve()
        if not target.is_relative_to(self._base_path):
            raise StorageError(f"path '{path}' escapes the storage root")
        return target

    async def save(self, path: str, content: bytes) -> str:
        file_path = self._resolve(path)

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(content)
        except OSError as exc:
            logger.error("storage.write.failed", path=path, error=str(exc))
            raise StorageError(str(exc)) from exc

        logger.debug("storage.write.success", path=path, size_bytes=len(content))
        return path

    async def read(self, path: str) -> bytes:
        file_path = self._resolve(path)

        try:
            async with aiofiles.open(file_path, "rb") as f:
                return await f.read()
        except OSError as exc:
            logger.error("storage.read.failed", path=path, error=str(exc))
            raise StorageError(str(exc)) from exc

    async def delete(self, paths: list[str]) -> None:
        for path in paths:
            file_path = self._resolve(path)
            try:
                await asyncio.to_thread(file_path.unlink, missing_ok=True)
            except OSError as exc:
                logger.error("storage.delete.failed", path=path, error=str(exc))
                raise StorageError(str(exc)) from exc
            logger.debug("storage.delete.success", path=path)

    async def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
