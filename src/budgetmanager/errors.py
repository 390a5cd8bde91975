"""Domain errors raised by services and rendered by api.errors.

Each class carries the HTTP status and a default stable error code;
callers pass a more specific ErrorCode where the client needs to tell
cases apart (e.g. TOKEN_REVOKED vs INVALID_TOKEN).
"""

import enum
from typing import Optional


class ErrorCode(str, enum.Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PASSWORDS_MISMATCH = "PASSWORDS_MISMATCH"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_NOT_ACTIVATED = "ACCOUNT_NOT_ACTIVATED"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"
    USER_ALREADY_ACTIVE = "USER_ALREADY_ACTIVE"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class BudgetError(Exception):
    """Base class for errors that map to a client-visible response."""

    status_code: int = 400
    error_code: ErrorCode = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[ErrorCode] = None,
        errors: Optional[dict[str, list[str]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.errors = errors or {}


class ValidationError(BudgetError):
    status_code = 422
    error_code = ErrorCode.VALIDATION_ERROR


class Unauthorized(BudgetError):
    status_code = 401
    error_code = ErrorCode.UNAUTHORIZED


class Forbidden(BudgetError):
    status_code = 403
    error_code = ErrorCode.FORBIDDEN


class NotFound(BudgetError):
    status_code = 404
    error_code = ErrorCode.NOT_FOUND


class Conflict(BudgetError):
    status_code = 409
    error_code = ErrorCode.CONFLICT


class InternalError(BudgetError):
    """Expected-but-failed server work (e.g. email transport).

    The message is always the generic one; details go to the log.
    """

    status_code = 500
    error_code = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self) -> None:
        super().__init__(
            "An error occurred while processing your request. Please try again later."
        )
