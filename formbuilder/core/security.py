"""Session token helpers (HS256 JWT with secret rotation)."""

from datetime import datetime, timedelta, timezone

import jwt

from formbuilder.core.config import settings


def create_session_token(caller_id: str) -> str:
    """
    Create a signed session JWT for a caller identity.

    Always signs with the current secret (JWT_SECRET). Tokens are normally
    minted by the identity provider; this is used by tooling and tests.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": caller_id,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify a session JWT.

    Tries the current secret first, then the previous one, so secrets can be
    rotated without logging everyone out.

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore
