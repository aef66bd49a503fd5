"""Tests for merging partial updates into stored answers."""

import io

import pytest

from formbuilder.db.models import Response, ResponseField
from formbuilder.services import response_reconciler
from formbuilder.services.errors import (
    FileScanRejectedError,
    FileValidationError,
    ValidationFailedError,
)
from formbuilder.services.response_payload import DeleteMarker, FileValue, ScalarValue


JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 256

FIELDS = (
    ("Name", "text"),
    ("Color", "picklist", ["Option 1", "Option 2", "Option 3"]),
    ("Photo", "file"),
)


def _field_id(form, label: str) -> str:
    return next(str(f.id) for f in form.fields if f.label == label)


def _file(data: bytes = JPEG_BYTES, name: str = "photo.jpg", content_type: str = "image/jpeg") -> FileValue:
    return FileValue(filename=name, content_type=content_type, stream=io.BytesIO(data), size=len(data))


def _stored_files(storage_dir) -> list:
    if not storage_dir.exists():
        return []
    return [p for p in storage_dir.rglob("*") if p.is_file()]


@pytest.fixture
def form(make_form):
    return make_form(FIELDS)


@pytest.fixture
def response(db, form):
    response = Response(form_id=form.id, submitted_by="submitter-1")
    db.add(response)
    db.flush()
    db.add_all(
        [
            ResponseField(response_id=response.id, field_id=form.fields[0].id, value="x"),
            ResponseField(response_id=response.id, field_id=form.fields[1].id, value="Option 1"),
        ]
    )
    db.commit()
    return response


def _reconcile(db, response, form, incoming, scanner):
    existing = db.query(ResponseField).filter(ResponseField.response_id == response.id).all()
    return response_reconciler.reconcile(db, response, existing, incoming, form.fields, scanner=scanner)


def _values(db, response) -> dict[str, ResponseField]:
    rows = db.query(ResponseField).filter(ResponseField.response_id == response.id).all()
    return {str(row.field_id): row for row in rows}


def test_picklist_update_replaces_value_in_place(db, form, response, scanner):
    color = _field_id(form, "Color")

    result = _reconcile(db, response, form, {color: ScalarValue("Option 3")}, scanner)
    db.commit()

    rows = _values(db, response)
    assert rows[color].value == "Option 3"
    assert rows[_field_id(form, "Name")].value == "x"
    assert len(result.updated_fields) == 2
    assert result.updated == [color]


def test_merge_leaves_absent_fields_untouched(db, form, response, scanner):
    name = _field_id(form, "Name")

    _reconcile(db, response, form, {name: ScalarValue("z")}, scanner)
    db.commit()

    rows = _values(db, response)
    assert rows[name].value == "z"
    assert rows[_field_id(form, "Color")].value == "Option 1"


def test_clear_is_idempotent_and_keeps_the_row(db, form, response, scanner):
    name = _field_id(form, "Name")

    for _ in range(2):
        result = _reconcile(db, response, form, {name: DeleteMarker()}, scanner)
        db.commit()
        row = _values(db, response)[name]
        assert row.value == ""
        assert row.file_path is None
        assert row.file_name is None
        assert row.file_size is None
        assert row.mime_type is None
        assert result.cleared == [name]


def test_delete_marker_for_unanswered_field_creates_nothing(db, form, response, scanner):
    photo = _field_id(form, "Photo")

    _reconcile(db, response, form, {photo: DeleteMarker()}, scanner)
    db.commit()

    assert photo not in _values(db, response)


def test_new_scalar_creates_exactly_one_row(db, form, scanner):
    response = Response(form_id=form.id, submitted_by="submitter-1")
    db.add(response)
    db.commit()
    name = _field_id(form, "Name")

    _reconcile(db, response, form, {name: ScalarValue("first")}, scanner)
    db.commit()
    _reconcile(db, response, form, {name: ScalarValue("second")}, scanner)
    db.commit()

    rows = db.query(ResponseField).filter(ResponseField.response_id == response.id).all()
    assert [(str(r.field_id), r.value) for r in rows] == [(name, "second")]


def test_file_upload_creates_row_with_metadata(db, form, response, scanner, storage_dir):
    photo = _field_id(form, "Photo")

    result = _reconcile(db, response, form, {photo: _file()}, scanner)
    db.commit()

    row = _values(db, response)[photo]
    assert row.file_name == "photo.jpg"
    assert row.mime_type == "image/jpeg"
    assert row.file_size == len(JPEG_BYTES)
    assert row.value == row.file_path
    assert row.file_path.startswith(f"{form.id}/{response.id}/")
    assert (storage_dir / row.file_path).read_bytes() == JPEG_BYTES
    assert result.created == [photo]


def test_replacing_a_file_removes_the_old_one_after_commit(db, form, response, scanner, storage_dir):
    photo = _field_id(form, "Photo")
    _reconcile(db, response, form, {photo: _file()}, scanner)
    db.commit()
    old_path = _values(db, response)[photo].file_path

    _reconcile(db, response, form, {photo: _file(name="second.jpg")}, scanner)
    db.commit()

    row = _values(db, response)[photo]
    assert row.file_name == "second.jpg"
    assert row.file_path != old_path
    assert not (storage_dir / old_path).exists()
    assert _stored_files(storage_dir) == [storage_dir / row.file_path]


def test_duplicate_spellings_of_a_field_store_one_file(db, form, response, scanner, storage_dir):
    photo = _field_id(form, "Photo")

    _reconcile(
        db,
        response,
        form,
        {photo.upper(): _file(name="first.jpg"), photo: _file(name="second.jpg")},
        scanner,
    )
    db.commit()

    row = _values(db, response)[photo]
    assert row.file_name == "second.jpg"
    assert _stored_files(storage_dir) == [storage_dir / row.file_path]

def test_clearing_a_file_field_deletes_bytes_after_commit(db, form, response, scanner, storage_dir):
    photo = _field_id(form, "Photo")
    _reconcile(db, response, form, {photo: _file()}, scanner)
    db.commit()

    _reconcile(db, response, form, {photo: DeleteMarker()}, scanner)
    db.commit()

    assert _values(db, response)[photo].file_path is None
    assert _stored_files(storage_dir) == []


def test_scan_rejection_aborts_without_stored_file(db, form, response, scanner, storage_dir):
    name = _field_id(form, "Name")
    photo = _field_id(form, "Photo")
    disguised = _file(b"<?php system($_GET['c']); ?> padding")

    with pytest.raises(FileScanRejectedError) as exc:
        _reconcile(db, response, form, {name: ScalarValue("changed"), photo: disguised}, scanner)
    db.rollback()

    assert exc.value.threat_type == "File signature mismatch"
    rows = _values(db, response)
    assert rows[name].value == "x"
    assert photo not in rows
    assert _stored_files(storage_dir) == []


def test_rollback_after_store_removes_new_file(db, form, response, scanner, storage_dir):
    photo = _field_id(form, "Photo")

    _reconcile(db, response, form, {photo: _file()}, scanner)
    assert len(_stored_files(storage_dir)) == 1
    db.rollback()

    assert _stored_files(storage_dir) == []


def test_invalid_file_metadata_is_rejected(db, form, response, scanner):
    photo = _field_id(form, "Photo")

    with pytest.raises(FileValidationError):
        _reconcile(db, response, form, {photo: _file(name="shell.sh", content_type="image/jpeg")}, scanner)


def test_file_for_non_file_field_is_rejected(db, form, response, scanner):
    with pytest.raises(ValidationFailedError):
        _reconcile(db, response, form, {_field_id(form, "Name"): _file()}, scanner)


def test_scalar_for_file_field_and_unknown_ids_are_ignored(db, form, response, scanner):
    photo = _field_id(form, "Photo")

    result = _reconcile(
        db,
        response,
        form,
        {photo: ScalarValue("../../etc/passwd"), "not-a-field": ScalarValue("x")},
        scanner,
    )

    assert result.created == [] and result.updated == []
    assert photo not in _values(db, response)


def test_storage_prefix():
    assert response_reconciler.file_storage_prefix("f", "r") == "f/r"
