"""Tests for form definition management."""

import io
import uuid

import pytest

from formbuilder.db.enums import FieldType
from formbuilder.db.models import Field, Form, Response
from formbuilder.schemas.forms import FieldInput
from formbuilder.services import form_service, response_service
from formbuilder.services.errors import (
    NotFoundError,
    UnauthenticatedError,
    UnauthorizedError,
    ValidationFailedError,
)
from formbuilder.services.response_payload import FileValue, ScalarValue


OWNER = "owner-1"
OTHER = "stranger-1"
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 256


def _inputs(*specs) -> list[FieldInput]:
    inputs = []
    for label, field_type, *rest in specs:
        inputs.append(FieldInput(label=label, type=field_type, options=rest[0] if rest else []))
    return inputs


def test_create_form_orders_fields_and_starts_unpublished(db):
    form = form_service.create_form(
        db,
        OWNER,
        "Survey",
        "Quarterly",
        _inputs(("Name", "text"), ("Color", "select", ["Red", "Blue"]), ("CV", "file")),
    )

    assert form.published is False
    assert form.created_by == OWNER
    assert [(f.label, f.type, f.order) for f in form.fields] == [
        ("Name", "text", 0),
        ("Color", "select", 1),
        ("CV", "file", 2),
    ]
    assert form.fields[1].options == ["Red", "Blue"]


def test_create_form_requires_caller(db):
    with pytest.raises(UnauthenticatedError):
        form_service.create_form(db, None, "Survey", None, [])


def test_options_are_dropped_for_non_option_types(db):
    form = form_service.create_form(
        db, OWNER, "Survey", None, [FieldInput(label="Name", type="text", options=["x"])]
    )

    assert form.fields[0].options == []


def test_field_input_validates_type_specific_attributes():
    with pytest.raises(ValueError):
        FieldInput(label="Pick", type="picklist")
    with pytest.raises(ValueError):
        FieldInput(label="Link", type="linkedSubmission")
    with pytest.raises(ValueError):
        FieldInput(label="Name", type="text", linked_form_id=uuid.uuid4())


def test_linked_submission_field_needs_existing_form(db, make_form):
    target = make_form(title="People")

    form = form_service.create_form(
        db,
        OWNER,
        "Visits",
        None,
        [FieldInput(label="Person", type=FieldType.LINKED_SUBMISSION, linked_form_id=target.id)],
    )
    assert form.fields[0].linked_form_id == target.id

    with pytest.raises(ValidationFailedError):
        form_service.create_form(
            db,
            OWNER,
            "Broken",
            None,
            [FieldInput(label="Person", type="linkedSubmission", linked_form_id=uuid.uuid4())],
        )


def test_update_form_keeps_field_ids_by_position(db, make_form):
    form = make_form((("A", "text"), ("B", "text")))
    original_ids = [f.id for f in form.fields]

    updated = form_service.update_form(
        db,
        form,
        OWNER,
        title="Renamed",
        fields=_inputs(("A2", "textarea"), ("B2", "text"), ("C", "number")),
    )

    assert updated.title == "Renamed"
    assert [f.label for f in updated.fields] == ["A2", "B2", "C"]
    assert [f.id for f in updated.fields][:2] == original_ids


def test_update_form_drops_only_unanswered_surplus_fields(db, make_form, scanner):
    form = make_form((("A", "text"), ("B", "text"), ("C", "text")))
    answered = form.fields[1].id
    response_service.submit_response(
        db, form.id, "someone", {str(answered): ScalarValue("kept")}, scanner=scanner
    )
    # A response holds a row for every field, so nothing may be dropped here
    form_service.update_form(db, form, OWNER, fields=_inputs(("A", "text")))
    assert db.query(Field).filter(Field.form_id == form.id).count() == 3

    fresh = make_form((("A", "text"), ("B", "text")))
    form_service.update_form(db, fresh, OWNER, fields=_inputs(("A", "text")))
    assert db.query(Field).filter(Field.form_id == fresh.id).count() == 1


def test_update_form_requires_owner(db, make_form):
    form = make_form()

    with pytest.raises(UnauthorizedError):
        form_service.update_form(db, form, OTHER, title="Hijacked")


def test_toggle_publish(db, make_form):
    form = make_form(published=False)

    assert form_service.toggle_publish(db, form, OWNER).published is True
    assert form_service.toggle_publish(db, form, OWNER).published is False
    with pytest.raises(UnauthorizedError):
        form_service.toggle_publish(db, form, OTHER)


def test_draft_forms_are_hidden_from_others(db, make_form):
    draft = make_form(published=False)
    live = make_form(title="Live")

    assert form_service.get_form_for_caller(db, draft.id, OWNER).id == draft.id
    with pytest.raises(NotFoundError):
        form_service.get_form_for_caller(db, draft.id, OTHER)
    assert form_service.get_form_for_caller(db, live.id, None).id == live.id
    assert [f.id for f in form_service.list_published_forms(db)] == [live.id]
    assert {f.id for f in form_service.list_forms(db, OWNER)} == {draft.id, live.id}
    assert form_service.list_forms(db, OTHER) == []


def test_delete_form_removes_responses_and_files(db, make_form, scanner, storage_dir):
    form = make_form((("CV", "file"),))
    response_service.submit_response(
        db,
        form.id,
        "someone",
        {
            str(form.fields[0].id): FileValue(
                filename="cv.jpg",
                content_type="image/jpeg",
                stream=io.BytesIO(JPEG_BYTES),
                size=len(JPEG_BYTES),
            )
        },
        scanner=scanner,
    )

    with pytest.raises(UnauthorizedError):
        form_service.delete_form(db, form, OTHER)
    form_service.delete_form(db, form, OWNER)

    assert db.query(Form).count() == 0
    assert db.query(Response).count() == 0
    assert db.query(Field).count() == 0
    assert [p for p in storage_dir.rglob("*") if p.is_file()] == []
