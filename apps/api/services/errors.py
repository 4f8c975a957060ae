"""Domain error taxonomy mapped onto HTTP responses."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException


GENERIC_ERROR_MESSAGE = "An error occurred. Please try again."

SAFE_ERROR_MESSAGES = {
    "auth/email-already-exists": "Email already exists",
    "auth/invalid-email": "Invalid email format",
    "auth/user-not-found": "User not found",
    "auth/invalid-credential": "Invalid credentials",
}


class AssignlyError(HTTPException):
    """Base for errors whose message is safe to return to the client."""

    status_code = 500
    default_detail = GENERIC_ERROR_MESSAGE

    def __init__(self, detail: Any = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class AuthenticationError(AssignlyError):
    status_code = 401
    default_detail = "Unauthorized"

    def __init__(self, detail: Any = None):
        super().__init__(detail)
        self.headers = {"WWW-Authenticate": "Bearer"}


class AuthorizationError(AssignlyError):
    status_code = 403
    default_detail = "Forbidden: Admin access required"


class ValidationError(AssignlyError):
    status_code = 400
    default_detail = "Invalid input parameters"


class NotFoundError(AssignlyError):
    status_code = 404
    default_detail = "Not found"


class ConflictError(AssignlyError):
    status_code = 409
    default_detail = "Resource already exists"


class OrderConflictError(ConflictError):
    default_detail = "An order with this id already exists. Please resubmit."


class RateLimitedError(AssignlyError):
    status_code = 429
    default_detail = "Too many requests. Try again later."


class InsufficientCreditsError(AssignlyError):
    status_code = 400

    def __init__(self, required: int, available: int):
        self.required = int(required)
        self.available = int(available)
        super().__init__(
            f"Insufficient credits. Required: {self.required}, available: {self.available}."
        )


class TransactionConflictError(AssignlyError):
    status_code = 500
    default_detail = "The request conflicted with another update. Please try again."


class DeletionFailedError(TransactionConflictError):
    default_detail = "Failed to delete order. Please try again."


def sanitize_error_message(error: BaseException) -> str:
    """Return a client-safe message for an unexpected exception."""
    if isinstance(error, AssignlyError):
        return str(error.detail)
    message = str(error or "")
    if message in SAFE_ERROR_MESSAGES:
        return SAFE_ERROR_MESSAGES[message]
    code = getattr(error, "code", None)
    if isinstance(code, str) and code in SAFE_ERROR_MESSAGES:
        return SAFE_ERROR_MESSAGES[code]
    return GENERIC_ERROR_MESSAGE
