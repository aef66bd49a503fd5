"""Metadata checks applied to every upload before any bytes are persisted.

The validator never reads file content: it judges the declared name, size and
MIME type only. Byte-level checks belong to the content scanner.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass

from formbuilder.core.config import settings


# Extensions that are always blocked, whatever MIME type is claimed
BLOCKED_EXTENSIONS = frozenset(
    {
        "exe",
        "dll",
        "com",
        "bat",
        "cmd",
        "msi",
        "sh",
        "php",
        "phtml",
        "js",
        "html",
        "htm",
        "asp",
        "aspx",
        "jsp",
        "cgi",
        "pl",
        "py",
        "vbs",
        "ps1",
        "jar",
    }
)

# Extensions registered for each MIME type we know how to accept
MIME_TYPE_EXTENSIONS: dict[str, frozenset[str]] = {
    "image/jpeg": frozenset({"jpg", "jpeg"}),
    "image/png": frozenset({"png"}),
    "image/gif": frozenset({"gif"}),
    "image/webp": frozenset({"webp"}),
    "application/pdf": frozenset({"pdf"}),
    "text/plain": frozenset({"txt"}),
    "text/csv": frozenset({"csv"}),
    "application/zip": frozenset({"zip"}),
    "application/msword": frozenset({"doc"}),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": frozenset(
        {"docx"}
    ),
    "application/vnd.ms-excel": frozenset({"xls"}),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": frozenset({"xlsx"}),
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": frozenset(
        {"pptx"}
    ),
}

_MIME_TYPE_ALIASES: dict[str, str] = {
    # Non-standard but commonly seen in the wild.
    "image/jpg": "image/jpeg",
}


@dataclass(frozen=True)
class FileValidationResult:
    valid: bool
    reason: str | None = None


def get_extension(filename: str) -> str:
    """Lowercased substring after the last dot, or "" when there is none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def normalize_mime_type(content_type: str | None) -> str:
    """Strip parameters (charset, boundary) and apply common aliases."""
    cleaned = (content_type or "").split(";", 1)[0].strip().lower()
    return _MIME_TYPE_ALIASES.get(cleaned, cleaned)


def extensions_for_mime_type(mime_type: str) -> frozenset[str]:
    registered = MIME_TYPE_EXTENSIONS.get(mime_type)
    if registered is not None:
        return registered
    # Fall back to the platform registry for types an operator allowed explicitly.
    return frozenset(ext.lstrip(".").lower() for ext in mimetypes.guess_all_extensions(mime_type))


def validate_file(
    filename: str,
    size: int,
    declared_mime_type: str | None,
    *,
    max_size: int | None = None,
    allowed_mime_types: list[str] | None = None,
) -> FileValidationResult:
    """
    Validate upload metadata. Checks run in order and stop at the first failure:

    1. size within the configured maximum
    2. extension not on the executable/script deny-list, whatever the declared type
    3. declared MIME type on the allow-list
    4. extension registered for the declared MIME type
    """
    limit = settings.MAX_FILE_SIZE if max_size is None else max_size
    allowed = (
        settings.allowed_file_types_list if allowed_mime_types is None else allowed_mime_types
    )

    if size > limit:
        max_mb = limit / (1024 * 1024)
        return FileValidationResult(
            valid=False,
            reason=f"File size exceeds the maximum allowed size of {max_mb:g}MB",
        )

    ext = get_extension(filename)
    if ext in BLOCKED_EXTENSIONS:
        return FileValidationResult(
            valid=False,
            reason=f"File extension .{ext} is not allowed for security reasons",
        )

    mime_type = normalize_mime_type(declared_mime_type)
    if mime_type not in allowed:
        return FileValidationResult(
            valid=False,
            reason=(
                f"File type {mime_type or 'unknown'} is not allowed. "
                f"Allowed types: {', '.join(allowed)}"
            ),
        )

    if ext not in extensions_for_mime_type(mime_type):
        return FileValidationResult(
            valid=False,
            reason=f"File extension .{ext or 'none'} doesn't match claimed type {mime_type}",
        )

    return FileValidationResult(valid=True)
