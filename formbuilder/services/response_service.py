"""Response lifecycle: submit, update, query and delete form responses."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from formbuilder.core.structured_logging import build_log_context
from formbuilder.db.enums import FieldType
from formbuilder.db.models import Field, Form, Response, ResponseField
from formbuilder.services import file_store, response_reconciler, upload_service
from formbuilder.services.errors import (
    NotFoundError,
    NotPublishedError,
    UnauthenticatedError,
    UnauthorizedError,
    ValidationFailedError,
)
from formbuilder.services.file_scanner import FileScanner
from formbuilder.services.response_payload import (
    FieldUpdate,
    FileValue,
    ScalarValue,
    normalize_field_key,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def _require_caller(caller_id: str | None) -> str:
    if not caller_id:
        raise UnauthenticatedError("Authentication required")
    return caller_id


def _get_form_or_raise(db: Session, form_id: uuid.UUID) -> Form:
    form = db.query(Form).filter(Form.id == form_id).first()
    if not form:
        raise NotFoundError("Form not found")
    return form


def _get_response_for_form(
    db: Session,
    form_id: uuid.UUID,
    response_id: uuid.UUID,
    *,
    lock: bool = False,
) -> Response:
    query = db.query(Response).filter(Response.id == response_id)
    if lock:
        query = query.with_for_update()
    response = query.first()
    if not response or response.form_id != form_id:
        raise NotFoundError("Response not found")
    return response


def can_access_response(response: Response, form: Form, caller_id: str) -> bool:
    """Submitter and form owner may both read and edit a response."""
    return caller_id in (response.submitted_by, form.created_by)


def _require_owner(form: Form, caller_id: str) -> None:
    if form.created_by != caller_id:
        raise UnauthorizedError("Only the form owner can perform this action")


def _form_fields(db: Session, form_id: uuid.UUID) -> list[Field]:
    return db.query(Field).filter(Field.form_id == form_id).order_by(Field.order).all()


# =============================================================================
# Submit / update
# =============================================================================

def submit_response(
    db: Session,
    form_id: uuid.UUID,
    caller_id: str | None,
    values: dict[str, FieldUpdate],
    *,
    scanner: FileScanner | None = None,
) -> Response:
    """
    Create a response with exactly one ResponseField per defined field.

    Fields missing from ``values`` are stored as empty strings. Any file that
    fails validation, scanning or storage rejects the whole submission.
    """
    caller_id = _require_caller(caller_id)
    form = _get_form_or_raise(db, form_id)
    if not form.published and form.created_by != caller_id:
        raise NotPublishedError("This form is not accepting submissions")

    incoming = {normalize_field_key(key): value for key, value in values.items()}
    log_context = build_log_context(caller_id=caller_id, form_id=form.id)

    try:
        response = Response(form_id=form.id, submitted_by=caller_id)
        db.add(response)
        db.flush()

        prefix = response_reconciler.file_storage_prefix(form.id, response.id)
        stored_files = 0
        for definition in _form_fields(db, form.id):
            update = incoming.get(str(definition.id))
            row = ResponseField(response_id=response.id, field_id=definition.id, value="")

            if isinstance(update, FileValue):
                if definition.type != FieldType.FILE.value:
                    raise ValidationFailedError(
                        f"Field '{definition.label}' does not accept files"
                    )
                stored = upload_service.process_upload(update, prefix=prefix, scanner=scanner)
                file_store.register_storage_cleanup_on_rollback(db, stored.file_path)
                row.value = stored.file_path
                row.file_name = stored.file_name
                row.file_path = stored.file_path
                row.file_size = stored.file_size
                row.mime_type = stored.mime_type
                stored_files += 1
            elif isinstance(update, ScalarValue) and definition.type != FieldType.FILE.value:
                row.value = update.value

            db.add(row)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(response)
    logger.info(
        "Response submitted with %d stored file(s)",
        stored_files,
        extra={**log_context, "response_id": str(response.id)},
    )
    return response


def update_response(
    db: Session,
    form_id: uuid.UUID,
    response_id: uuid.UUID,
    caller_id: str | None,
    updates: dict[str, FieldUpdate],
    *,
    scanner: FileScanner | None = None,
) -> list[ResponseField]:
    """
    Merge a partial update into an existing response.

    The response row is locked for the duration of the reconcile and the
    whole update commits or rolls back as one unit.
    """
    caller_id = _require_caller(caller_id)
    try:
        response = _get_response_for_form(db, form_id, response_id, lock=True)
        form = _get_form_or_raise(db, form_id)
        if not can_access_response(response, form, caller_id):
            raise UnauthorizedError("You are not allowed to edit this response")

        existing = (
            db.query(ResponseField).filter(ResponseField.response_id == response.id).all()
        )
        result = response_reconciler.reconcile(
            db,
            response,
            existing,
            updates,
            _form_fields(db, form.id),
            scanner=scanner,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Response updated",
        extra=build_log_context(caller_id=caller_id, form_id=form_id, response_id=response_id),
    )
    return result.updated_fields


# =============================================================================
# Queries
# =============================================================================

def get_response(
    db: Session,
    form_id: uuid.UUID,
    response_id: uuid.UUID,
    caller_id: str | None,
) -> Response:
    caller_id = _require_caller(caller_id)
    response = _get_response_for_form(db, form_id, response_id)
    form = _get_form_or_raise(db, form_id)
    if not can_access_response(response, form, caller_id):
        raise UnauthorizedError("You are not allowed to view this response")
    return response


def list_responses(db: Session, form_id: uuid.UUID, caller_id: str | None) -> list[Response]:
    """Owner sees every response; anyone else sees only their own."""
    caller_id = _require_caller(caller_id)
    form = _get_form_or_raise(db, form_id)
    query = db.query(Response).filter(Response.form_id == form.id)
    if form.created_by != caller_id:
        query = query.filter(Response.submitted_by == caller_id)
    return query.order_by(Response.created_at.desc()).all()


def list_caller_responses(db: Session, caller_id: str | None) -> list[Response]:
    caller_id = _require_caller(caller_id)
    return (
        db.query(Response)
        .filter(Response.submitted_by == caller_id)
        .order_by(Response.created_at.desc())
        .all()
    )


def search_responses(
    db: Session,
    form_id: uuid.UUID,
    query: str,
    caller_id: str | None,
    *,
    limit: int = 50,
) -> list[Response]:
    """Owner-only substring search over stored answer values."""
    caller_id = _require_caller(caller_id)
    form = _get_form_or_raise(db, form_id)
    _require_owner(form, caller_id)

    term = (query or "").strip()
    responses = db.query(Response).filter(Response.form_id == form.id)
    if term:
        matching = select(ResponseField.response_id).where(
            ResponseField.value.ilike(f"%{term}%")
        )
        responses = responses.filter(Response.id.in_(matching))
    return responses.order_by(Response.created_at.desc()).limit(limit).all()


# =============================================================================
# Delete
# =============================================================================

def delete_responses(
    db: Session,
    form_id: uuid.UUID,
    response_ids: list[uuid.UUID],
    caller_id: str | None,
) -> int:
    """Delete responses of a form (owner only); stored files go after commit."""
    caller_id = _require_caller(caller_id)
    if not response_ids:
        raise ValidationFailedError("No response IDs provided")

    form = _get_form_or_raise(db, form_id)
    _require_owner(form, caller_id)

    try:
        responses = (
            db.query(Response)
            .filter(Response.form_id == form.id, Response.id.in_(response_ids))
            .all()
        )
        for response in responses:
            for row in response.fields:
                if row.file_path:
                    file_store.register_storage_cleanup_on_commit(db, row.file_path)
            db.delete(response)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Deleted %d response(s)",
        len(responses),
        extra=build_log_context(caller_id=caller_id, form_id=form.id),
    )
    return len(responses)


# =============================================================================
# Stored files
# =============================================================================

def authorize_file_access(db: Session, file_path: str, caller_id: str | None) -> str:
    """
    Allow reading a stored file and return its canonical storage key.

    Files attached to a response are readable by its submitter and the form
    owner; standalone uploads by any authenticated caller. Any other key is
    reported as missing.
    """
    caller_id = _require_caller(caller_id)
    key = file_store.normalize_storage_key(file_path)
    if key is None:
        raise NotFoundError("File not found")

    row = db.query(ResponseField).filter(ResponseField.file_path == key).first()
    if not row:
        if not key.startswith(f"{file_store.STANDALONE_UPLOAD_PREFIX}/"):
            raise NotFoundError("File not found")
        return key
    response = db.query(Response).filter(Response.id == row.response_id).first()
    form = _get_form_or_raise(db, response.form_id) if response else None
    if not response or not can_access_response(response, form, caller_id):
        raise NotFoundError("File not found")
    return key
