"""Exceptions raised by form, upload and response services."""

from formbuilder.db.enums import ErrorKind


class ResponseServiceError(Exception):
    """Base exception carrying an ErrorKind and a user-facing message."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthenticatedError(ResponseServiceError):
    """No caller identity was supplied."""

    kind = ErrorKind.UNAUTHENTICATED


class UnauthorizedError(ResponseServiceError):
    """Caller is neither the submitter nor the form owner."""

    kind = ErrorKind.UNAUTHORIZED


class NotFoundError(ResponseServiceError):
    """Form or response missing (or not related to each other)."""

    kind = ErrorKind.NOT_FOUND


class NotPublishedError(ResponseServiceError):
    """Form is a draft and does not accept submissions."""

    kind = ErrorKind.NOT_PUBLISHED


class ValidationFailedError(ResponseServiceError):
    """Request payload is malformed or incomplete."""

    kind = ErrorKind.VALIDATION_FAILED


class FileValidationError(ValidationFailedError):
    """Upload metadata failed size/type/extension checks."""

    pass


class FileScanRejectedError(ResponseServiceError):
    """Content scanner judged the upload unsafe."""

    kind = ErrorKind.SCAN_REJECTED

    def __init__(self, message: str, threat_type: str | None = None):
        super().__init__(message)
        self.threat_type = threat_type


class StorageError(ResponseServiceError):
    """Disk or object-store I/O failed while persisting an upload."""

    kind = ErrorKind.STORAGE_FAILURE
