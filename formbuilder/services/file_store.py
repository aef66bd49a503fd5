"""
Durable storage for validated uploads.

Files are staged in TEMP_DIR, scanned, then promoted into STORAGE_DIR (or the
configured S3 bucket) under a random name that keeps only the original
extension. STORAGE_DIR is never served directly; reads go through the
authenticated /files endpoint.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterator

from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import event
from sqlalchemy.orm import Session

from formbuilder.core.config import settings
from formbuilder.services import object_storage
from formbuilder.services.errors import StorageError
from formbuilder.services.file_validation import get_extension

logger = logging.getLogger(__name__)


# Fixed table used when serving files back; unknown extensions fall back to octet-stream
CONTENT_TYPES_BY_EXTENSION: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "csv": "text/csv",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "zip": "application/zip",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Key prefix for files uploaded through /upload rather than with a response
STANDALONE_UPLOAD_PREFIX = "uploads"

_ROLLBACK_KEYS = "formbuilder.storage.rollback_keys"
_COMMIT_KEYS = "formbuilder.storage.commit_keys"
_LISTENERS = "formbuilder.storage.listeners"


@dataclass(frozen=True)
class StoredFile:
    file_name: str
    file_path: str
    file_size: int
    mime_type: str


# =============================================================================
# Naming and paths
# =============================================================================

def generate_unique_filename(original_name: str) -> str:
    """Random token name that keeps the original extension (if any)."""
    ext = get_extension(original_name)
    token = uuid.uuid4().hex
    return f"{token}.{ext}" if ext else token


def content_type_for(file_path: str) -> str:
    return CONTENT_TYPES_BY_EXTENSION.get(get_extension(file_path), DEFAULT_CONTENT_TYPE)


def _storage_backend() -> str:
    return (settings.STORAGE_BACKEND or "local").strip().lower()


def uses_object_storage() -> bool:
    return _storage_backend() == "s3"


def _storage_root() -> Path:
    root = Path(settings.STORAGE_DIR)
    root.mkdir(parents=True, exist_ok=True)
    return root.resolve()


def _temp_root() -> Path:
    root = Path(settings.TEMP_DIR)
    root.mkdir(parents=True, exist_ok=True)
    return root


def normalize_storage_key(file_path: str) -> str | None:
    """Canonical storage key (forward slashes, no empty segments), or None for traversal."""
    parts = [p for p in PurePosixPath(file_path.replace("\\", "/")).parts if p not in ("", "/")]
    if not parts or any(p in (".", "..") for p in parts):
        return None
    return "/".join(parts)


def resolve_local_path(file_path: str) -> Path | None:
    """Map a storage-relative path to a real path under STORAGE_DIR, or None if it escapes."""
    key = normalize_storage_key(file_path)
    if key is None:
        return None
    root = _storage_root()
    candidate = (root / key).resolve()
    if not candidate.is_relative_to(root):
        return None
    return candidate


# =============================================================================
# Staging and promotion
# =============================================================================

@contextmanager
def staged_upload(stream: BinaryIO, original_name: str) -> Iterator[str]:
    """
    Copy an upload stream into a temp file and yield its path.

    The staged file carries the original extension so the scanner can check it.
    It is removed on every exit path unless it was promoted.
    """
    ext = get_extension(original_name)
    suffix = f".{ext}" if ext else ""
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=_temp_root(),
            prefix="staged-",
            suffix=suffix,
            delete=False,
        ) as tmp:
            stream.seek(0)
            shutil.copyfileobj(stream, tmp)
            staged_path = tmp.name
    except OSError as exc:
        logger.error("Failed to stage upload", exc_info=True)
        raise StorageError("Failed to store file") from exc

    try:
        yield staged_path
    finally:
        try:
            os.unlink(staged_path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove staged file %s", staged_path, exc_info=True)


def promote(
    staged_path: str,
    original_name: str,
    *,
    mime_type: str,
    prefix: str = "",
) -> StoredFile:
    """Move a staged (already scanned) file into durable storage."""
    unique_name = generate_unique_filename(original_name)
    key = normalize_storage_key(f"{prefix}/{unique_name}" if prefix else unique_name)
    if key is None:
        raise StorageError("Invalid storage path")

    try:
        file_size = os.path.getsize(staged_path)
        if uses_object_storage():
            object_storage.put_file(staged_path, key, content_type=mime_type)
        else:
            destination = _storage_root() / key
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(staged_path, destination)
    except (OSError, Boto3Error, BotoCoreError, ClientError) as exc:
        logger.error("Failed to store file under %s", key, exc_info=True)
        raise StorageError("Failed to store file") from exc

    return StoredFile(
        file_name=original_name,
        file_path=key,
        file_size=file_size,
        mime_type=mime_type,
    )


# =============================================================================
# Retrieval and deletion
# =============================================================================

def open_stored_object(file_path: str):
    """Return the S3 object body stream for a stored key (S3 backend only)."""
    key = normalize_storage_key(file_path)
    if key is None:
        return None
    return object_storage.open_object(key)


def delete_stored_file(file_path: str) -> None:
    """Delete stored bytes; missing files are ignored."""
    key = normalize_storage_key(file_path)
    if key is None:
        return
    if uses_object_storage():
        object_storage.delete_object(key)
        return
    path = resolve_local_path(key)
    if path is not None:
        path.unlink(missing_ok=True)


# =============================================================================
# Keeping storage consistent with the session transaction
# =============================================================================

def _delete_quietly(keys: list[str]) -> None:
    for key in keys:
        try:
            delete_stored_file(key)
        except Exception:
            logger.warning("Failed to delete stored file %s", key, exc_info=True)


def _after_commit(session: Session) -> None:
    session.info.pop(_ROLLBACK_KEYS, None)
    _delete_quietly(session.info.pop(_COMMIT_KEYS, []))


def _after_soft_rollback(session: Session, previous_transaction) -> None:
    if previous_transaction.nested:
        return
    session.info.pop(_COMMIT_KEYS, None)
    _delete_quietly(session.info.pop(_ROLLBACK_KEYS, []))


def _ensure_listeners(db: Session) -> None:
    if db.info.get(_LISTENERS):
        return
    event.listen(db, "after_commit", _after_commit)
    event.listen(db, "after_soft_rollback", _after_soft_rollback)
    db.info[_LISTENERS] = True


def register_storage_cleanup_on_rollback(db: Session, file_path: str) -> None:
    """Delete a freshly stored file if the surrounding transaction rolls back."""
    _ensure_listeners(db)
    db.info.setdefault(_ROLLBACK_KEYS, []).append(file_path)


def register_storage_cleanup_on_commit(db: Session, file_path: str) -> None:
    """Delete a superseded file once the transaction that dropped it commits."""
    _ensure_listeners(db)
    db.info.setdefault(_COMMIT_KEYS, []).append(file_path)
