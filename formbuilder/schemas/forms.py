"""Schemas for forms, fields, responses and uploads."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from formbuilder.db.enums import OPTION_FIELD_TYPES, ErrorKind, FieldType


# =============================================================================
# Forms
# =============================================================================

class FieldInput(BaseModel):
    label: str = Field(..., min_length=1, max_length=200)
    type: FieldType
    required: bool = False
    options: list[str] = Field(default_factory=list)
    linked_form_id: UUID | None = None

    @model_validator(mode="after")
    def check_type_specific_attributes(self) -> "FieldInput":
        if self.type == FieldType.LINKED_SUBMISSION and not self.linked_form_id:
            raise ValueError("linked_form_id is required for linkedSubmission fields")
        if self.type != FieldType.LINKED_SUBMISSION and self.linked_form_id:
            raise ValueError("linked_form_id is only allowed for linkedSubmission fields")
        if self.type.value in OPTION_FIELD_TYPES and not self.options:
            raise ValueError(f"{self.type.value} fields need at least one option")
        return self


class FormCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    fields: list[FieldInput] = Field(default_factory=list)


class FormUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    published: bool | None = None
    fields: list[FieldInput] | None = None


class FieldRead(BaseModel):
    id: UUID
    label: str
    type: str
    required: bool
    options: list[str]
    order: int
    linked_form_id: UUID | None

    model_config = {"from_attributes": True}


class FormSummary(BaseModel):
    id: UUID
    title: str
    published: bool
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FormRead(FormSummary):
    description: str | None
    fields: list[FieldRead]


# =============================================================================
# Responses
# =============================================================================

class ResponseFieldRead(BaseModel):
    id: UUID
    field_id: UUID
    value: str
    file_name: str | None = None
    file_path: str | None = None
    file_size: int | None = None
    mime_type: str | None = None

    model_config = {"from_attributes": True}


class ResponseRead(BaseModel):
    id: UUID
    form_id: UUID
    submitted_by: str
    created_at: datetime
    fields: list[ResponseFieldRead]

    model_config = {"from_attributes": True}


class ResponseSubmitResult(BaseModel):
    success: bool = True
    response: ResponseRead


class ResponseUpdateResult(BaseModel):
    success: bool = True
    updated_fields: list[ResponseFieldRead]


class ResponseDeleteRequest(BaseModel):
    response_ids: list[UUID] = Field(default_factory=list)


class ResponseDeleteResult(BaseModel):
    success: bool = True
    deleted: int


class LinkedSubmissionRead(BaseModel):
    submission_id: str
    form_id: str
    display_value: str
    display_fields: list[str]
    submission_data: dict[str, str]


# =============================================================================
# Uploads and errors
# =============================================================================

class UploadResult(BaseModel):
    file_name: str
    file_path: str
    file_size: int
    mime_type: str


class ErrorBody(BaseModel):
    success: bool = False
    error: str
    kind: ErrorKind
