"""Form definitions: create, edit, publish and delete forms and their fields."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from formbuilder.core.structured_logging import build_log_context
from formbuilder.db.enums import OPTION_FIELD_TYPES, FieldType
from formbuilder.db.models import Field, Form, Response, ResponseField
from formbuilder.schemas.forms import FieldInput
from formbuilder.services import file_store
from formbuilder.services.errors import (
    NotFoundError,
    UnauthenticatedError,
    UnauthorizedError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)


def _require_caller(caller_id: str | None) -> str:
    if not caller_id:
        raise UnauthenticatedError("Authentication required")
    return caller_id


def _require_owner(form: Form, caller_id: str | None) -> None:
    caller_id = _require_caller(caller_id)
    if form.created_by != caller_id:
        raise UnauthorizedError("Only the form owner can modify this form")


def _apply_field_input(db: Session, field: Field, data: FieldInput, order: int) -> None:
    field.label = data.label
    field.type = data.type.value
    field.required = data.required
    field.options = list(data.options) if data.type.value in OPTION_FIELD_TYPES else []
    field.order = order

    if data.type == FieldType.LINKED_SUBMISSION:
        if not db.query(Form.id).filter(Form.id == data.linked_form_id).first():
            raise ValidationFailedError("Linked form not found")
        field.linked_form_id = data.linked_form_id
    else:
        field.linked_form_id = None


# =============================================================================
# Queries
# =============================================================================

def get_form(db: Session, form_id: uuid.UUID) -> Form | None:
    return db.query(Form).filter(Form.id == form_id).first()


def get_form_for_caller(db: Session, form_id: uuid.UUID, caller_id: str | None) -> Form:
    """Published forms are visible to anyone; drafts only to their owner."""
    form = get_form(db, form_id)
    if not form or (not form.published and form.created_by != caller_id):
        raise NotFoundError("Form not found")
    return form


def list_forms(db: Session, owner_id: str | None) -> list[Form]:
    owner_id = _require_caller(owner_id)
    return (
        db.query(Form)
        .filter(Form.created_by == owner_id)
        .order_by(Form.updated_at.desc())
        .all()
    )


def list_published_forms(db: Session) -> list[Form]:
    return (
        db.query(Form)
        .filter(Form.published.is_(True))
        .order_by(Form.updated_at.desc())
        .all()
    )


# =============================================================================
# Mutations
# =============================================================================

def create_form(
    db: Session,
    owner_id: str | None,
    title: str,
    description: str | None,
    fields: list[FieldInput],
) -> Form:
    owner_id = _require_caller(owner_id)
    form = Form(title=title, description=description, published=False, created_by=owner_id)
    try:
        db.add(form)
        db.flush()
        for position, data in enumerate(fields):
            field = Field(form_id=form.id)
            _apply_field_input(db, field, data, position)
            db.add(field)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(form)
    logger.info(
        "Form created with %d field(s)",
        len(fields),
        extra=build_log_context(caller_id=owner_id, form_id=form.id),
    )
    return form


def update_form(
    db: Session,
    form: Form,
    caller_id: str | None,
    *,
    title: str | None = None,
    description: str | None = None,
    published: bool | None = None,
    fields: list[FieldInput] | None = None,
) -> Form:
    """
    Update form metadata and, when given, its field list.

    Fields are matched to existing ones by position so existing answers keep
    pointing at the same field ids. Surplus fields that already have answers
    are kept; unreferenced ones are deleted.
    """
    _require_owner(form, caller_id)

    if title is not None:
        form.title = title
    if description is not None:
        form.description = description
    if published is not None:
        form.published = published

    if fields is not None:
        existing = (
            db.query(Field).filter(Field.form_id == form.id).order_by(Field.order).all()
        )
        surplus = existing[len(fields):]
        for field in surplus:
            referenced = (
                db.query(ResponseField.id).filter(ResponseField.field_id == field.id).first()
            )
            if referenced:
                logger.info(
                    "Keeping answered field %s removed from form", field.id,
                    extra=build_log_context(form_id=form.id),
                )
                continue
            db.delete(field)
        # Free up order slots before reassigning them
        db.flush()

        for position, data in enumerate(fields):
            if position < len(existing):
                field = existing[position]
            else:
                field = Field(form_id=form.id)
                db.add(field)
            _apply_field_input(db, field, data, position)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(form)
    return form


def toggle_publish(db: Session, form: Form, caller_id: str | None) -> Form:
    _require_owner(form, caller_id)
    form.published = not form.published
    db.commit()
    db.refresh(form)
    logger.info(
        "Form %s", "published" if form.published else "unpublished",
        extra=build_log_context(caller_id=caller_id, form_id=form.id),
    )
    return form


def delete_form(db: Session, form: Form, caller_id: str | None) -> None:
    """Delete a form with all of its responses; stored files go after commit."""
    _require_owner(form, caller_id)
    form_id = form.id

    try:
        responses = db.query(Response).filter(Response.form_id == form_id).all()
        for response in responses:
            for row in response.fields:
                if row.file_path:
                    file_store.register_storage_cleanup_on_commit(db, row.file_path)
            db.delete(response)
        db.flush()
        db.delete(form)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Form deleted with %d response(s)",
        len(responses),
        extra=build_log_context(caller_id=caller_id, form_id=form_id),
    )
