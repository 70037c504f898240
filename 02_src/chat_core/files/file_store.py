"""Local file store for chat attachments."""

import asyncio
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..config import resolve_uploads_dir
from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from .validation import MAX_ATTACHMENTS, validate_upload

logger = get_logger(__name__)

FILES_URL_PREFIX = "/api/storage/files/"

_FILE_ID_RE = re.compile(r"^[0-9a-f]{32}\.[a-z0-9]+$")


@dataclass
class UploadedFile:
    """A file received from a client, not yet stored."""

    filename: str
    content: bytes
    content_type: str | None = None


class IFileStore(Protocol):
    """Stores uploaded files and returns stable URLs."""

    async def store(self, files: list[UploadedFile], owner_id: str) -> list[str]:
        """Store files, returning one URL per file in input order."""
        ...

    def resolve(self, file_id: str) -> Path:
        """Map a stored file id back to its path."""
        ...

    async def discard(self, urls: list[str]) -> None:
        """Remove files previously returned by store()."""
        ...


class LocalFileStore:
    """Writes uploads under a directory on local disk."""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root) if root is not None else resolve_uploads_dir()

    @property
    def root(self) -> Path:
        return self._root

    async def store(self, files: list[UploadedFile], owner_id: str) -> list[str]:
        """Store files, returning one URL per file in input order."""
        if len(files) > MAX_ATTACHMENTS:
            raise ValidationError(
                f"Too many attachments. Maximum allowed: {MAX_ATTACHMENTS}"
            )

        # Validate everything before writing anything
        extensions = [validate_upload(f.filename, len(f.content)) for f in files]

        self._root.mkdir(parents=True, exist_ok=True)

        urls = []
        for upload, extension in zip(files, extensions):
            file_id = f"{uuid.uuid4().hex}{extension}"
            await asyncio.to_thread((self._root / file_id).write_bytes, upload.content)
            logger.info(
                "Stored attachment",
                extra={
                    "context": {
                        "file_id": file_id,
                        "owner_id": owner_id,
                        "size": len(upload.content),
                    }
                },
            )
            urls.append(f"{FILES_URL_PREFIX}{file_id}")

        return urls

    def resolve(self, file_id: str) -> Path:
        """Map a stored file id back to its path."""
        if not _FILE_ID_RE.match(file_id):
            raise NotFoundError("File not found")

        path = self._root / file_id
        if not path.is_file():
            raise NotFoundError("File not found")
        return path

    async def discard(self, urls: list[str]) -> None:
        """Remove files previously returned by store(); unknown URLs are skipped."""
        for url in urls:
            if not url.startswith(FILES_URL_PREFIX):
                continue
            file_id = url[len(FILES_URL_PREFIX):]
            if not _FILE_ID_RE.match(file_id):
                continue
            await asyncio.to_thread((self._root / file_id).unlink, missing_ok=True)
            logger.info("Discarded attachment", extra={"context": {"file_id": file_id}})
