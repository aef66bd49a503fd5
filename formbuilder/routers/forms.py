"""Form definition endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from formbuilder.core.deps import get_caller_identity, get_db
from formbuilder.schemas.forms import FormCreate, FormRead, FormSummary, FormUpdate
from formbuilder.services import form_service
from formbuilder.services.errors import NotFoundError

router = APIRouter(prefix="/forms", tags=["forms"])


def _get_form_or_404(db: Session, form_id: UUID):
    form = form_service.get_form(db, form_id)
    if not form:
        raise NotFoundError("Form not found")
    return form


@router.post("", response_model=FormRead, status_code=201)
def create_form(
    body: FormCreate,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    return form_service.create_form(
        db,
        caller_id,
        title=body.title,
        description=body.description,
        fields=body.fields,
    )


@router.get("", response_model=list[FormSummary])
def list_forms(
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    """Forms owned by the caller."""
    return form_service.list_forms(db, caller_id)


@router.get("/available", response_model=list[FormSummary])
def list_available_forms(db: Session = Depends(get_db)):
    """Published forms open for submissions."""
    return form_service.list_published_forms(db)


@router.get("/{form_id}", response_model=FormRead)
def get_form(
    form_id: UUID,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    return form_service.get_form_for_caller(db, form_id, caller_id)


@router.put("/{form_id}", response_model=FormRead)
def update_form(
    form_id: UUID,
    body: FormUpdate,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    form = _get_form_or_404(db, form_id)
    return form_service.update_form(
        db,
        form,
        caller_id,
        title=body.title,
        description=body.description,
        published=body.published,
        fields=body.fields,
    )


@router.post("/{form_id}/publish", response_model=FormRead)
def toggle_publish(
    form_id: UUID,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    form = _get_form_or_404(db, form_id)
    return form_service.toggle_publish(db, form, caller_id)


@router.delete("/{form_id}")
def delete_form(
    form_id: UUID,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    form = _get_form_or_404(db, form_id)
    form_service.delete_form(db, form, caller_id)
    return {"success": True}
