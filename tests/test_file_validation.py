"""Tests for upload metadata validation."""

import pytest

from formbuilder.core.config import settings
from formbuilder.services.file_validation import (
    extensions_for_mime_type,
    get_extension,
    normalize_mime_type,
    validate_file,
)


def test_accepts_jpeg_within_limit():
    result = validate_file("test-file.jpg", 1_000_000, "image/jpeg")

    assert result.valid is True
    assert result.reason is None


def test_rejects_oversized_file():
    result = validate_file("test-file.jpg", 20_000_000, "image/jpeg")

    assert result.valid is False
    assert "exceeds the maximum allowed size" in result.reason


def test_rejects_blocked_extension_even_with_image_type():
    result = validate_file("malicious.php", 1000, "image/jpeg")

    assert result.valid is False
    assert "extension .php is not allowed for security reasons" in result.reason


def test_blocked_extension_wins_over_disallowed_type():
    result = validate_file("malicious.php", 1000, "application/x-php")

    assert result.valid is False
    assert "extension .php is not allowed for security reasons" in result.reason


def test_rejects_type_outside_allow_list():
    result = validate_file("notes.txt", 100, "text/plain")

    assert result.valid is False
    assert "File type text/plain is not allowed" in result.reason


def test_rejects_extension_that_does_not_match_claimed_type():
    result = validate_file("report.png", 100, "application/pdf")

    assert result.valid is False
    assert "doesn't match claimed type application/pdf" in result.reason


def test_rejects_missing_extension():
    result = validate_file("README", 100, "application/pdf")

    assert result.valid is False
    assert ".none" in result.reason


def test_size_check_runs_before_type_check():
    result = validate_file("run.exe", 20_000_000, "application/x-msdownload")

    assert "exceeds the maximum allowed size" in result.reason


def test_honors_configured_limits(monkeypatch):
    monkeypatch.setattr(settings, "MAX_FILE_SIZE", 1024)
    monkeypatch.setattr(settings, "ALLOWED_FILE_TYPES", "text/plain")

    assert validate_file("a.txt", 1024, "text/plain").valid is True
    assert validate_file("a.txt", 1025, "text/plain").valid is False
    assert validate_file("a.jpg", 10, "image/jpeg").valid is False


def test_explicit_limits_override_settings():
    result = validate_file(
        "scan.pdf",
        600,
        "application/pdf",
        max_size=500,
        allowed_mime_types=["application/pdf"],
    )

    assert result.valid is False
    assert "0.000476837MB" in result.reason


@pytest.mark.parametrize(
    "declared,expected",
    [
        ("image/JPEG", "image/jpeg"),
        ("image/jpg", "image/jpeg"),
        ("application/pdf; charset=binary", "application/pdf"),
        (None, ""),
    ],
)
def test_normalize_mime_type(declared, expected):
    assert normalize_mime_type(declared) == expected


def test_get_extension_uses_last_dot_and_lowercases():
    assert get_extension("archive.tar.GZ") == "gz"
    assert get_extension("photo.JPG") == "jpg"
    assert get_extension("noext") == ""


def test_extensions_for_registered_type():
    assert extensions_for_mime_type("image/jpeg") == frozenset({"jpg", "jpeg"})
