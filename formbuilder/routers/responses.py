"""Form response endpoints: submit, update, read, search and delete."""

import json
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from formbuilder.core.config import settings
from formbuilder.core.deps import get_caller_identity, get_db, get_scanner
from formbuilder.core.rate_limit import limiter
from formbuilder.schemas.forms import (
    LinkedSubmissionRead,
    ResponseDeleteRequest,
    ResponseDeleteResult,
    ResponseFieldRead,
    ResponseRead,
    ResponseSubmitResult,
    ResponseUpdateResult,
)
from formbuilder.services import linked_submission_service, response_service
from formbuilder.services.errors import ValidationFailedError
from formbuilder.services.file_scanner import FileScanner
from formbuilder.services.response_payload import (
    FieldUpdate,
    parse_json_values,
    parse_multipart_items,
)

router = APIRouter(tags=["responses"])

FORM_ENCODED_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_field_updates(request: Request) -> dict[str, FieldUpdate]:
    """Classify a JSON map or multipart payload into per-field updates."""
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_ENCODED_TYPES):
        form = await request.form()
        return parse_multipart_items(form.multi_items())

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationFailedError("Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise ValidationFailedError("Expected an object of field values")
    return parse_json_values(body)


# =============================================================================
# Submit / update
# =============================================================================

@router.post("/forms/{form_id}/responses", response_model=ResponseSubmitResult, status_code=201)
@limiter.limit(f"{settings.RATE_LIMIT_SUBMIT}/minute")
async def submit_response(
    form_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
    scanner: FileScanner = Depends(get_scanner),
):
    values = await _read_field_updates(request)
    response = await run_in_threadpool(
        response_service.submit_response,
        db,
        form_id,
        caller_id,
        values,
        scanner=scanner,
    )
    return ResponseSubmitResult(response=ResponseRead.model_validate(response))


@router.put("/forms/{form_id}/responses/{response_id}", response_model=ResponseUpdateResult)
@limiter.limit(f"{settings.RATE_LIMIT_SUBMIT}/minute")
async def update_response(
    form_id: UUID,
    response_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
    scanner: FileScanner = Depends(get_scanner),
):
    updates = await _read_field_updates(request)
    updated_fields = await run_in_threadpool(
        response_service.update_response,
        db,
        form_id,
        response_id,
        caller_id,
        updates,
        scanner=scanner,
    )
    return ResponseUpdateResult(
        updated_fields=[ResponseFieldRead.model_validate(row) for row in updated_fields]
    )


# =============================================================================
# Queries
# =============================================================================

@router.get("/forms/{form_id}/responses", response_model=list[ResponseRead])
def list_responses(
    form_id: UUID,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    return response_service.list_responses(db, form_id, caller_id)


@router.get("/forms/{form_id}/responses/search", response_model=list[LinkedSubmissionRead])
def search_responses(
    form_id: UUID,
    q: str = Query("", max_length=200),
    display_fields: str = Query("", description="Comma-separated field ids"),
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    """Candidate submissions for a linkedSubmission picker."""
    display_field_ids = [f.strip() for f in display_fields.split(",") if f.strip()]
    responses = response_service.search_responses(db, form_id, q, caller_id)
    return [
        linked_submission_service.transform_linked_submission_value(
            str(response.id), response, display_field_ids
        )
        for response in responses
    ]


@router.get("/forms/{form_id}/responses/{response_id}", response_model=ResponseRead)
def get_response(
    form_id: UUID,
    response_id: UUID,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    return response_service.get_response(db, form_id, response_id, caller_id)


@router.post("/forms/{form_id}/responses/delete", response_model=ResponseDeleteResult)
def delete_responses(
    form_id: UUID,
    body: ResponseDeleteRequest,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    deleted = response_service.delete_responses(db, form_id, body.response_ids, caller_id)
    return ResponseDeleteResult(deleted=deleted)


@router.get("/responses/mine", response_model=list[ResponseRead])
def list_my_responses(
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    return response_service.list_caller_responses(db, caller_id)
