"""
Merge a partial update into a response's stored answers.

Reconcile is a merge, not a replace: fields absent from the incoming payload
are left exactly as they were. Per field, in this order:

1. DeleteMarker  -> existing row is cleared to "answered empty" (row kept)
2. FileValue     -> Validator -> Scanner -> Store, then upsert file metadata
3. ScalarValue   -> upsert the text value

The caller owns the transaction. A failure anywhere raises and the caller
rolls back, which also removes any file stored during this call.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from formbuilder.core.structured_logging import build_log_context
from formbuilder.db.enums import FieldType
from formbuilder.db.models import Field, Response, ResponseField
from formbuilder.services import file_store, upload_service
from formbuilder.services.errors import ValidationFailedError
from formbuilder.services.file_scanner import FileScanner
from formbuilder.services.response_payload import (
    DeleteMarker,
    FieldUpdate,
    FileValue,
    ScalarValue,
    normalize_field_key,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    updated_fields: list[ResponseField]
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    cleared: list[str] = field(default_factory=list)


@dataclass
class _Plan:
    deletions: list[str] = field(default_factory=list)
    files: list[tuple[str, FileValue]] = field(default_factory=list)
    scalars: list[tuple[str, str]] = field(default_factory=list)


def file_storage_prefix(form_id: uuid.UUID, response_id: uuid.UUID) -> str:
    return f"{form_id}/{response_id}"


def _partition(
    incoming: dict[str, FieldUpdate],
    fields_by_id: dict[str, Field],
) -> _Plan:
    plan = _Plan()
    # Spellings of the same field id collapse to one entry; the last one wins
    canonical = {normalize_field_key(key): update for key, update in incoming.items()}
    for field_id, update in canonical.items():
        definition = fields_by_id.get(field_id)
        if definition is None:
            logger.debug("Ignoring update for unknown field %s", field_id)
            continue

        if isinstance(update, DeleteMarker):
            plan.deletions.append(field_id)
        elif isinstance(update, FileValue):
            if definition.type != FieldType.FILE.value:
                raise ValidationFailedError(f"Field '{definition.label}' does not accept files")
            plan.files.append((field_id, update))
        elif isinstance(update, ScalarValue):
            # File fields change only through an upload or an explicit delete.
            if definition.type == FieldType.FILE.value:
                logger.debug("Ignoring scalar value for file field %s", field_id)
                continue
            plan.scalars.append((field_id, update.value))
    return plan


def reconcile(
    db: Session,
    response: Response,
    existing_fields: list[ResponseField],
    incoming: dict[str, FieldUpdate],
    form_fields: list[Field],
    *,
    scanner: FileScanner | None = None,
) -> ReconcileResult:
    """Apply an incoming partial update to a response's ResponseFields."""
    fields_by_id = {str(f.id): f for f in form_fields}
    rows_by_field = {str(rf.field_id): rf for rf in existing_fields}
    plan = _partition(incoming, fields_by_id)
    result = ReconcileResult(updated_fields=[])
    log_context = build_log_context(form_id=response.form_id, response_id=response.id)

    for field_id in plan.deletions:
        row = rows_by_field.get(field_id)
        if row is None:
            continue
        if row.file_path:
            file_store.register_storage_cleanup_on_commit(db, row.file_path)
        row.clear()
        result.cleared.append(field_id)

    prefix = file_storage_prefix(response.form_id, response.id)
    for field_id, upload in plan.files:
        stored = upload_service.process_upload(upload, prefix=prefix, scanner=scanner)
        file_store.register_storage_cleanup_on_rollback(db, stored.file_path)

        row = rows_by_field.get(field_id)
        if row is None:
            row = ResponseField(response_id=response.id, field_id=uuid.UUID(field_id))
            db.add(row)
            rows_by_field[field_id] = row
            result.created.append(field_id)
        else:
            if row.file_path and row.file_path != stored.file_path:
                file_store.register_storage_cleanup_on_commit(db, row.file_path)
            result.updated.append(field_id)

        row.value = stored.file_path
        row.file_name = stored.file_name
        row.file_path = stored.file_path
        row.file_size = stored.file_size
        row.mime_type = stored.mime_type

    for field_id, value in plan.scalars:
        row = rows_by_field.get(field_id)
        if row is None:
            row = ResponseField(response_id=response.id, field_id=uuid.UUID(field_id), value=value)
            db.add(row)
            rows_by_field[field_id] = row
            result.created.append(field_id)
        else:
            row.value = value
            result.updated.append(field_id)

    db.flush()

    result.updated_fields = (
        db.query(ResponseField).filter(ResponseField.response_id == response.id).all()
    )
    logger.info(
        "Reconciled response: %d created, %d updated, %d cleared",
        len(result.created),
        len(result.updated),
        len(result.cleared),
        extra=log_context,
    )
    return result
