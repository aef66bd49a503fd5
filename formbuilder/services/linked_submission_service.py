"""Display helpers for linkedSubmission fields."""

from __future__ import annotations

from typing import Any

from formbuilder.db.models import Response
from formbuilder.services.response_payload import normalize_field_key


def submission_data(response: Response) -> dict[str, str]:
    """Answers of a response keyed by field id."""
    return {str(row.field_id): row.value for row in response.fields}


def transform_linked_submission_value(
    value: str | None,
    response: Response | None = None,
    display_field_ids: list[str] | None = None,
) -> dict[str, Any] | None:
    """
    Expand a stored linked-submission id into a displayable object.

    The display value joins the non-empty answers of ``display_field_ids``
    (in the order given) and falls back to the raw id.
    """
    if not value:
        return None

    if response is None:
        return {
            "submission_id": value,
            "form_id": "",
            "display_value": value,
            "display_fields": [],
            "submission_data": {},
        }

    display_fields = [normalize_field_key(f) for f in (display_field_ids or [])]
    data = submission_data(response)
    display_value = value
    if display_fields:
        picked = [data[f] for f in display_fields if data.get(f)]
        if picked:
            display_value = ", ".join(picked)

    return {
        "submission_id": str(response.id),
        "form_id": str(response.form_id),
        "display_value": display_value,
        "display_fields": display_fields,
        "submission_data": data,
    }
