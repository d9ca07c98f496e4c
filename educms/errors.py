"""Error taxonomy shared by the backend clients, storage and uploads.

Every failure surfaced by this package is an ``EduCMSError`` carrying one
``ErrorKind``. Backend clients and the storage adapter classify; the
normalization layer passes the kind through unchanged.
"""

from enum import Enum
from typing import Any

GENERIC_TRANSPORT_MESSAGE = (
    "The service is temporarily unavailable. Please try again in a moment."
)


class ErrorKind(str, Enum):
    """Classified failure kinds."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    CONFIGURATION = "configuration"
    CONFLICT = "conflict"
    TRANSPORT = "transport"


class EduCMSError(Exception):
    """Base class for classified errors."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def user_message(self) -> str:
        """Message safe to show to an end user."""
        return self.message


class NotFoundError(EduCMSError):
    kind = ErrorKind.NOT_FOUND


class ValidationError(EduCMSError):
    kind = ErrorKind.VALIDATION


class AuthorizationError(EduCMSError):
    kind = ErrorKind.AUTHORIZATION


class ConfigurationError(EduCMSError):
    kind = ErrorKind.CONFIGURATION


class MappingError(ConfigurationError):
    """A field mapping or code table is not total or not injective."""


class ConflictError(EduCMSError):
    kind = ErrorKind.CONFLICT


class TransportError(EduCMSError):
    """Network or server failure, potentially transient."""

    kind = ErrorKind.TRANSPORT

    @property
    def user_message(self) -> str:
        return GENERIC_TRANSPORT_MESSAGE


class UploadCancelledError(TransportError):
    """An in-flight upload was aborted by its cancellation signal."""

    @property
    def user_message(self) -> str:
        return "Upload cancelled"


class OrphanedUploadsError(EduCMSError):
    """Entity write failed after files were already uploaded.

    Keeps the kind of the underlying error; ``orphaned`` lists the storage
    paths that were uploaded but never attached to an entity.
    """

    def __init__(self, cause: EduCMSError, orphaned: list[str]):
        super().__init__(
            f"{cause.message} ({len(orphaned)} uploaded file(s) need manual cleanup)",
            details={"orphaned": orphaned, **cause.details},
        )
        self.kind = cause.kind
        self.cause = cause
        self.orphaned = orphaned

    @property
    def user_message(self) -> str:
        return (
            f"{self.cause.user_message} "
            f"{len(self.orphaned)} uploaded file(s) were not attached and need manual cleanup."
        )


_STATUS_KINDS: dict[int, type[EduCMSError]] = {
    400: ValidationError,
    401: AuthorizationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def error_for_status(status_code: int) -> type[EduCMSError]:
    """Map an HTTP status code to an error class."""
    return _STATUS_KINDS.get(status_code, TransportError)


def user_message(error: BaseException) -> str:
    """Render any exception as an end-user message."""
    if isinstance(error, EduCMSError):
        return error.user_message
    return GENERIC_TRANSPORT_MESSAGE
