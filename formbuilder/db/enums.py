"""Enum definitions for application constants."""

from enum import Enum


class FieldType(str, Enum):
    """Input types a form field can declare."""
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    EMAIL = "email"
    TEL = "tel"
    URL = "url"
    DATE = "date"
    TIME = "time"
    SELECT = "select"
    PICKLIST = "picklist"
    MULTISELECT = "multiselect"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    FILE = "file"
    LINKED_SUBMISSION = "linkedSubmission"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid field type."""
        return value in cls._value2member_map_


# Field types whose definition carries an ordered options list
OPTION_FIELD_TYPES = frozenset(
    {
        FieldType.SELECT.value,
        FieldType.PICKLIST.value,
        FieldType.MULTISELECT.value,
        FieldType.RADIO.value,
    }
)


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers in structured error bodies."""
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    NOT_PUBLISHED = "not_published"
    VALIDATION_FAILED = "validation_failed"
    SCAN_REJECTED = "scan_rejected"
    STORAGE_FAILURE = "storage_failure"
    UNKNOWN = "unknown"


class ScanType(str, Enum):
    """Content scanner sub-checks, cheapest first."""
    EXTENSION_VALIDATION = "extension-validation"
    MAGIC_BYTES = "magic-bytes"
    CONTENT_ANALYSIS = "content-analysis"
    HASH_VERIFICATION = "hash-verification"
