"""FastAPI dependencies for caller identity, scanning and database access."""

import logging
from typing import Generator

import jwt
from fastapi import Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from formbuilder.core.config import settings
from formbuilder.core.security import decode_session_token
from formbuilder.db.session import SessionLocal
from formbuilder.schemas.auth import TokenPayload
from formbuilder.services import upload_service
from formbuilder.services.file_scanner import FileScanner

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_caller_identity(request: Request) -> str | None:
    """
    Caller identity from a Bearer header or the session cookie.

    Returns None when no valid token is present; services decide whether an
    anonymous caller is acceptable.
    """
    token = _extract_token(request)
    if not token:
        return None

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except (jwt.InvalidTokenError, ValidationError):
        logger.info("Ignoring invalid session token")
        return None
    return payload.sub


def get_scanner() -> FileScanner:
    """Content scanner used for uploads (overridable in tests)."""
    return upload_service.get_file_scanner()
