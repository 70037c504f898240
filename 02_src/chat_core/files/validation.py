"""Attachment URL and upload validation."""

import re

from ..errors import ValidationError

ALLOWED_EXTENSIONS = frozenset(
    {
        # Documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".csv",
        # Images
        ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp",
        # Archives
        ".zip", ".rar", ".7z", ".tar", ".gz",
        # Code
        ".js", ".ts", ".jsx", ".tsx", ".json", ".xml", ".html", ".css",
    }
)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
MAX_ATTACHMENTS = 5

MALICIOUS_PATTERNS = (
    "../",
    "..\\",
    "%2e%2e%2f",
    "%2e%2e%5c",
    "<script",
    "javascript:",
    "data:",
    "file://",
)

_EXTENSION_RE = re.compile(r"\.([a-zA-Z0-9]+)$")


def get_file_extension(url: str) -> str | None:
    """Extract the extension from a URL or path, ignoring query and fragment."""
    clean = url.split("?")[0].split("#")[0]
    match = _EXTENSION_RE.search(clean)
    return f".{match.group(1)}" if match else None


def contains_malicious_pattern(url: str) -> bool:
    lowered = url.lower()
    return any(pattern in lowered for pattern in MALICIOUS_PATTERNS)


def sanitize_attachments(attachments: list | None) -> list[str]:
    """Drop empty and non-string entries and strip whitespace."""
    if not attachments:
        return []
    return [a.strip() for a in attachments if isinstance(a, str) and a.strip()]


def validate_attachments(attachments: list[str]) -> None:
    """
    Validate attachment URLs produced by the file store.

    Raises:
        ValidationError: on too many attachments, bad URL format,
            disallowed extension or a suspicious pattern.
    """
    if not attachments:
        return

    if len(attachments) > MAX_ATTACHMENTS:
        raise ValidationError(
            f"Too many attachments. Maximum allowed: {MAX_ATTACHMENTS}"
        )

    for index, attachment in enumerate(attachments):
        if not attachment or not isinstance(attachment, str):
            raise ValidationError(
                f"Attachment at index {index} is invalid (empty or not a string)"
            )

        if not attachment.startswith(("/", "http://", "https://")):
            raise ValidationError(
                f"Attachment at index {index} has invalid URL format: {attachment}"
            )

        extension = get_file_extension(attachment)
        if not extension:
            raise ValidationError(
                f"Attachment at index {index} has no file extension: {attachment}"
            )

        if extension.lower() not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                f"Attachment at index {index} has disallowed file type: {extension}"
            )

        if contains_malicious_pattern(attachment):
            raise ValidationError(
                f"Attachment at index {index} contains malicious pattern"
            )


def validate_upload(filename: str, size: int) -> str:
    """Validate an uploaded file, returning its lowercased extension."""
    if size > MAX_FILE_SIZE:
        raise ValidationError(
            f'File "{filename}" exceeds maximum size of {MAX_FILE_SIZE // (1024 * 1024)}MB'
        )

    extension = get_file_extension(filename or "")
    if not extension or extension.lower() not in ALLOWED_EXTENSIONS:
        raise ValidationError(f'File "{filename}" has a disallowed file type')

    return extension.lower()
