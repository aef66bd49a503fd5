"""Structured error responses for service failures."""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from formbuilder.db.enums import ErrorKind
from formbuilder.services.errors import ResponseServiceError

logger = logging.getLogger(__name__)


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_PUBLISHED: 409,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.SCAN_REJECTED: 422,
    ErrorKind.STORAGE_FAILURE: 507,
    ErrorKind.UNKNOWN: 500,
}


def error_response(message: str, kind: ErrorKind, status_code: int | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or STATUS_BY_KIND[kind],
        content={"success": False, "error": message, "kind": kind.value},
    )


async def service_error_handler(request: Request, exc: ResponseServiceError) -> JSONResponse:
    return error_response(exc.message, exc.kind)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return error_response(message, ErrorKind.VALIDATION_FAILED, status_code=422)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response("An unexpected error occurred", ErrorKind.UNKNOWN)
