"""Rate limiting configuration for the form builder API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from formbuilder.core.config import settings

DEFAULT_LIMITS = [] if settings.RATE_LIMIT_API <= 0 else [f"{settings.RATE_LIMIT_API}/minute"]

# Use a shared storage URI (e.g. redis://) when running several workers
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    default_limits=DEFAULT_LIMITS,
    enabled=settings.RATE_LIMIT_ENABLED,
)
