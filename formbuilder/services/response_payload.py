"""
Incoming response payloads, classified once at the request boundary.

Every entry becomes exactly one of ScalarValue, FileValue or DeleteMarker, so
the reconciler never has to re-inspect raw values.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterable, Union

from starlette.datastructures import UploadFile

from formbuilder.utils.file_upload import stream_size


DELETE_SUFFIX = "_delete"
# Client-side echo of stored metadata; the server owns these values.
FILE_METADATA_SUFFIXES = ("_fileName", "_filePath", "_fileSize", "_mimeType")
MULTI_VALUE_SEPARATOR = ","
_TRUTHY = {"true", "1", "yes", "on"}


@dataclass(frozen=True)
class ScalarValue:
    value: str


@dataclass(frozen=True)
class FileValue:
    filename: str
    content_type: str
    stream: BinaryIO
    size: int


@dataclass(frozen=True)
class DeleteMarker:
    pass


FieldUpdate = Union[ScalarValue, FileValue, DeleteMarker]


def coerce_scalar(value: Any) -> str:
    """Serialize a scalar or composite answer for the single text column."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return MULTI_VALUE_SEPARATOR.join(coerce_scalar(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return False


def parse_multipart_items(items: Iterable[tuple[str, Any]]) -> dict[str, FieldUpdate]:
    """
    Classify multipart form items.

    File parts become FileValue, ``<fieldId>_delete=true`` becomes DeleteMarker,
    repeated text keys are joined. A real value for a field always supersedes a
    delete marker for the same field in the same payload.
    """
    updates: dict[str, FieldUpdate] = {}
    texts: dict[str, list[str]] = {}
    deletions: list[str] = []

    for key, value in items:
        if key.endswith(DELETE_SUFFIX):
            if _is_truthy(value):
                deletions.append(key[: -len(DELETE_SUFFIX)])
            continue
        if key.endswith(FILE_METADATA_SUFFIXES):
            continue
        if isinstance(value, UploadFile):
            # Browsers send an empty part for file inputs left untouched.
            if not value.filename:
                continue
            updates[key] = FileValue(
                filename=value.filename,
                content_type=value.content_type or "application/octet-stream",
                stream=value.file,
                size=stream_size(value.file),
            )
            continue
        texts.setdefault(key, []).append(str(value))

    for key, values in texts.items():
        if key not in updates:
            updates[key] = ScalarValue(MULTI_VALUE_SEPARATOR.join(values))

    for key in deletions:
        updates.setdefault(key, DeleteMarker())

    return updates


def parse_json_values(values: dict[str, Any]) -> dict[str, FieldUpdate]:
    """Classify a JSON key/value payload; ``null`` means delete."""
    updates: dict[str, FieldUpdate] = {}
    deletions: list[str] = []

    for key, value in values.items():
        if key.endswith(DELETE_SUFFIX):
            if _is_truthy(value):
                deletions.append(key[: -len(DELETE_SUFFIX)])
            continue
        if key.endswith(FILE_METADATA_SUFFIXES):
            continue
        if value is None:
            deletions.append(key)
            continue
        updates[key] = ScalarValue(coerce_scalar(value))

    for key in deletions:
        updates.setdefault(key, DeleteMarker())

    return updates


def normalize_field_key(raw: str) -> str:
    """Canonical string form of a field id key (UUIDs compare case-insensitively)."""
    try:
        return str(uuid.UUID(raw))
    except (TypeError, ValueError):
        return raw
