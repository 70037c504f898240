"""Attachment storage and validation."""

from .file_store import FILES_URL_PREFIX, IFileStore, LocalFileStore, UploadedFile
from .validation import (
    ALLOWED_EXTENSIONS,
    MAX_ATTACHMENTS,
    MAX_FILE_SIZE,
    sanitize_attachments,
    validate_attachments,
    validate_upload,
)

__all__ = [
    "ALLOWED_EXTENSIONS",
    "FILES_URL_PREFIX",
    "IFileStore",
    "LocalFileStore",
    "MAX_ATTACHMENTS",
    "MAX_FILE_SIZE",
    "UploadedFile",
    "sanitize_attachments",
    "validate_attachments",
    "validate_upload",
]
