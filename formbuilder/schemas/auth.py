"""Authentication-related Pydantic schemas."""

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Decoded session JWT issued by the identity provider."""
    sub: str  # caller identity
