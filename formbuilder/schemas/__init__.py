"""Pydantic schemas for API request/response models."""

from formbuilder.schemas.auth import TokenPayload
from formbuilder.schemas.forms import (
    ErrorBody,
    FieldInput,
    FieldRead,
    FormCreate,
    FormRead,
    FormSummary,
    FormUpdate,
    LinkedSubmissionRead,
    ResponseDeleteRequest,
    ResponseDeleteResult,
    ResponseFieldRead,
    ResponseRead,
    ResponseSubmitResult,
    ResponseUpdateResult,
    UploadResult,
)

__all__ = [
    "TokenPayload",
    "ErrorBody",
    "FieldInput",
    "FieldRead",
    "FormCreate",
    "FormRead",
    "FormSummary",
    "FormUpdate",
    "LinkedSubmissionRead",
    "ResponseDeleteRequest",
    "ResponseDeleteResult",
    "ResponseFieldRead",
    "ResponseRead",
    "ResponseSubmitResult",
    "ResponseUpdateResult",
    "UploadResult",
]
