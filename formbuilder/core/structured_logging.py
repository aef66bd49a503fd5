"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    caller_id: str | None = None,
    form_id: str | None = None,
    response_id: str | None = None,
    field_id: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict that never carries field values or file bytes."""
    context: dict[str, Any] = {}
    if caller_id:
        context["caller_id"] = caller_id
    if form_id:
        context["form_id"] = str(form_id)
    if response_id:
        context["response_id"] = str(response_id)
    if field_id:
        context["field_id"] = str(field_id)
    if request_id:
        context["request_id"] = request_id
    return context
