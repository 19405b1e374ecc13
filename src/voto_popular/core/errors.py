"""Domain error taxonomy.

Services raise ``PlatformError`` subclasses; the application's exception
handlers turn them into ``ErrorResponse`` bodies with the matching HTTP
status. Messages for authorization failures stay generic so they never
reveal whether a resource exists in another municipality.
"""

import enum
from typing import Any


class ErrorCode(enum.StrEnum):
    """Machine-readable error codes returned in ``ErrorResponse.code``."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"
    NOT_OPEN_FOR_VOTING = "NOT_OPEN_FOR_VOTING"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL = "INTERNAL"


_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.VALIDATION: 422,
    ErrorCode.NOT_OPEN_FOR_VOTING: 409,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.INTERNAL: 500,
}

_DEFAULT_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UNAUTHENTICATED: "Authentication required",
    ErrorCode.FORBIDDEN: "You do not have permission to perform this action",
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.CONFLICT: "Resource conflict",
    ErrorCode.VALIDATION: "Invalid input",
    ErrorCode.NOT_OPEN_FOR_VOTING: "Proposal is not open for voting",
    ErrorCode.RATE_LIMITED: "Too many failed attempts, try again later",
    ErrorCode.INTERNAL: "Internal error",
}


def status_for(code: ErrorCode) -> int:
    """Return the HTTP status code for an error code."""
    return _STATUS_BY_CODE[code]


class PlatformError(Exception):
    """Base class for failures surfaced to API callers."""

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(self, message: str | None = None, *, errors: list[dict[str, Any]] | None = None) -> None:
        self.message = message or _DEFAULT_MESSAGES[self.code]
        self.errors = errors
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return status_for(self.code)


class UnauthenticatedError(PlatformError):
    code = ErrorCode.UNAUTHENTICATED


class ForbiddenError(PlatformError):
    code = ErrorCode.FORBIDDEN


class NotFoundError(PlatformError):
    code = ErrorCode.NOT_FOUND


class ConflictError(PlatformError):
    code = ErrorCode.CONFLICT


class ValidationFailedError(PlatformError):
    """Service-level input rejection, reported with field-level detail."""

    code = ErrorCode.VALIDATION

    def __init__(self, message: str | None = None, *, field: str | None = None) -> None:
        errors = [{"loc": [field], "msg": message or _DEFAULT_MESSAGES[self.code]}] if field else None
        super().__init__(message, errors=errors)
        self.field = field


class NotOpenForVotingError(PlatformError):
    code = ErrorCode.NOT_OPEN_FOR_VOTING


class RateLimitedError(PlatformError):
    code = ErrorCode.RATE_LIMITED


class StoreUnavailableError(PlatformError):
    """The relational store could not be reached. Safe to retry."""

    code = ErrorCode.INTERNAL

    @property
    def status_code(self) -> int:
        return 503


_ERROR_BY_CODE: dict[ErrorCode, type[PlatformError]] = {
    ErrorCode.UNAUTHENTICATED: UnauthenticatedError,
    ErrorCode.FORBIDDEN: ForbiddenError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.CONFLICT: ConflictError,
    ErrorCode.VALIDATION: ValidationFailedError,
    ErrorCode.NOT_OPEN_FOR_VOTING: NotOpenForVotingError,
    ErrorCode.RATE_LIMITED: RateLimitedError,
    ErrorCode.INTERNAL: PlatformError,
}


def error_for(code: ErrorCode, message: str | None = None) -> PlatformError:
    """Build the exception instance matching an error code."""
    return _ERROR_BY_CODE[code](message)
