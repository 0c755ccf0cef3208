"""File storage service for uploaded content.

Uploads are written below ``Settings.UPLOAD_DIR`` as
``uploads/<entity>/<uuid><ext>``; the relative path is what gets stored in
the database. Removal is best-effort: a missing file counts as removed and any
other failure is logged and reported as ``False`` so it never aborts the
database change that triggered it. Only paths inside the storage's own
``uploads/`` tree are ever removed.
"""

import os
import uuid
from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath
from typing import AsyncGenerator, List, NamedTuple, Optional

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from campus_cms.core.config import get_settings
from campus_cms.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

UPLOAD_PREFIX = "uploads"


class StoredFile(NamedTuple):
    path: str
    size: int


class FileStorage:
    """Local filesystem storage for uploaded files."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.UPLOAD_DIR)

    async def store(self, upload: UploadFile, entity: str) -> StoredFile:
        """Persist an upload; the returned path is relative to the storage root."""
        extension = os.path.splitext(upload.filename or "")[1].lower()
        relative = Path(UPLOAD_PREFIX) / entity / f"{uuid.uuid4().hex}{extension}"
        target = self.root / relative

        contents = await upload.read()
        await run_in_threadpool(self._write, target, contents)

        logger.info(
            "Stored upload",
            entity=entity,
            path=relative.as_posix(),
            size=len(contents)
        )
        return StoredFile(relative.as_posix(), len(contents))

    @staticmethod
    def _write(target: Path, contents: bytes):
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(contents)

    @staticmethod
    def url_for(path: Optional[str], base_url: str) -> Optional[str]:
        """Absolute URL for a stored path; ``None`` passes through."""
        if not path:
            return None
        normalized = path.replace("\\", "/").lstrip("/")
        return f"{base_url.rstrip('/')}/{normalized}"

    @asynccontextmanager
    async def batch(self) -> AsyncGenerator["UploadBatch", None]:
        """Store uploads for a database write; undo them if the write fails."""
        batch = UploadBatch(self)
        try:
            yield batch
        except Exception:
            for path in batch.paths:
                await self.remove(path)
            raise

    @staticmethod
    def is_stored_path(path: Optional[str]) -> bool:
        """True for a relative ``uploads/...`` path with no parent references."""
        if not path or "\\" in path or "\x00" in path:
            return False
        parts = PurePosixPath(path).parts
        return (
            len(parts) > 1
            and parts[0] == UPLOAD_PREFIX
            and not any(part in ("..", ".") for part in parts)
        )

    def _resolve(self, path: str) -> Optional[Path]:
        if not self.is_stored_path(path):
            return None
        uploads = (self.root / UPLOAD_PREFIX).resolve()
        target = (self.root / path).resolve()
        # Symlinks may still point outside the upload tree
        return target if target.is_relative_to(uploads) else None

    async def remove(self, path: Optional[str]) -> bool:
        if not path:
            return True
        target = self._resolve(path)
        if target is None:
            logger.warning("Refusing to remove path outside upload storage", path=path)
            return False
        try:
            await run_in_threadpool(target.unlink)
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error("Failed to remove stored file", error=e, path=path)
            return False
        logger.info("Removed stored file", path=path)
        return True


class UploadBatch:
    """Files stored during one request, removed again if the request fails."""

    def __init__(self, storage: FileStorage):
        self.storage = storage
        self.paths: List[str] = []

    async def store(self, upload: UploadFile, entity: str) -> StoredFile:
        saved = await self.storage.store(upload, entity)
        self.paths.append(saved.path)
        return saved


_storage: Optional[FileStorage] = None


def get_storage() -> FileStorage:
    """Dependency returning the shared storage service."""
    global _storage
    if _storage is None:
        _storage = FileStorage()
    return _storage
