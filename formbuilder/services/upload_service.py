"""Upload pipeline: validate metadata, stage, scan, then promote into storage."""

from __future__ import annotations

import logging
from functools import lru_cache

from formbuilder.services import file_store
from formbuilder.services.errors import FileScanRejectedError, FileValidationError
from formbuilder.services.file_scanner import FileScanner, build_file_scanner
from formbuilder.services.file_validation import normalize_mime_type, validate_file
from formbuilder.services.response_payload import FileValue

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_file_scanner() -> FileScanner:
    """Process-wide scanner built once from settings."""
    return build_file_scanner()


def process_upload(
    upload: FileValue,
    *,
    prefix: str = "",
    scanner: FileScanner | None = None,
) -> file_store.StoredFile:
    """
    Run one upload through Validator -> Scanner -> Store.

    Raises FileValidationError, FileScanRejectedError or StorageError. Nothing
    is left in storage when any step fails.
    """
    validation = validate_file(upload.filename, upload.size, upload.content_type)
    if not validation.valid:
        logger.warning("Upload rejected by validator: %s", validation.reason)
        raise FileValidationError(validation.reason or "File validation failed")

    active_scanner = scanner or get_file_scanner()
    with file_store.staged_upload(upload.stream, upload.filename) as staged_path:
        verdict = active_scanner.scan_file(staged_path)
        if not verdict.safe:
            logger.warning(
                "Upload rejected by scanner: %s (%s)", verdict.threat_type, verdict.message
            )
            raise FileScanRejectedError(
                verdict.message or "File failed security scan",
                threat_type=verdict.threat_type,
            )
        return file_store.promote(
            staged_path,
            upload.filename,
            mime_type=normalize_mime_type(upload.content_type),
            prefix=prefix,
        )
