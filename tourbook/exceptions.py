"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  The service layer raises domain-specific errors (like NotFoundError or
  ResetTokenInvalidError) without importing HTTP concepts. The handlers at
  the bottom of this module translate them into HTTP responses, so service
  code is testable without HTTP and every error response has the same shape.

Exception hierarchy:
    TourbookError (base, operational: message is safe to show)
    ├── ValidationError           — constraint violation / bad query       400
    ├── ResetTokenInvalidError    — reset token unknown, used or expired   400
    ├── AuthenticationError       — no, invalid or stale credential        401
    │   └── InvalidCredentialsError — wrong e-mail or password             401
    ├── ForbiddenError            — role not allowed                       403
    ├── NotFoundError             — missing resource id                    404
    │   └── PageNotFoundError     — page beyond the result count           404
    ├── ConflictError             — duplicate unique field                 409
    └── InternalError             — unexpected store / e-mail failure      500
        └── EmailDeliveryError

Anything else reaching the top is a programming error: it is logged with its
traceback and, in production, answered with a generic message.
"""

import enum
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from tourbook.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class TourbookError(Exception):
    """Base exception for all Tours API domain errors."""

    status_code = 500
    error_type = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class ValidationError(TourbookError):
    """
    Raised when a record or a query violates a constraint.

    Attributes:
        errors: One message per violated constraint, keyed by field.
    """

    status_code = 400
    error_type = "validation_error"

    def __init__(self, detail: str, errors: dict[str, str] | None = None):
        self.errors = errors or {}
        super().__init__(detail)


class ResetTokenInvalidError(TourbookError):
    """Raised when a password reset token is unknown, already used or expired."""

    status_code = 400
    error_type = "reset_token_invalid"

    def __init__(self):
        super().__init__("Password reset token is invalid or has expired")


class AuthFailure(str, enum.Enum):
    """Why a request could not be authenticated."""
    NO_CREDENTIAL = "no_credential"
    INVALID_TOKEN = "invalid_token"
    USER_GONE = "user_gone"
    PASSWORD_CHANGED = "password_changed"


_AUTH_FAILURE_MESSAGES = {
    AuthFailure.NO_CREDENTIAL: "You are not logged in! Please log in to get access.",
    AuthFailure.INVALID_TOKEN: "Invalid or expired token. Please log in again.",
    AuthFailure.USER_GONE: "The user belonging to this token no longer exists.",
    AuthFailure.PASSWORD_CHANGED: "User recently changed password! Please log in again.",
}


class AuthenticationError(TourbookError):
    """Raised when a request carries no usable credential."""

    status_code = 401
    error_type = "unauthorized"

    def __init__(self, reason: AuthFailure | None, detail: str | None = None):
        self.reason = reason
        super().__init__(detail or _AUTH_FAILURE_MESSAGES[reason])


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are incorrect."""

    error_type = "invalid_credentials"

    def __init__(self, detail: str = "Incorrect email or password"):
        super().__init__(None, detail)


class ForbiddenError(TourbookError):
    """Raised when an authenticated user's role is not allowed."""

    status_code = 403
    error_type = "forbidden"

    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(detail)


class NotFoundError(TourbookError):
    """Raised when a requested resource does not exist."""

    status_code = 404
    error_type = "not_found"


class PageNotFoundError(NotFoundError):
    """Raised when the requested page starts past the last matching record."""

    error_type = "page_not_found"

    def __init__(self, page: int):
        self.page = page
        super().__init__("This page does not exist")


class ConflictError(TourbookError):
    """Raised when a unique field value is already taken."""

    status_code = 409
    error_type = "conflict"

    def __init__(self, fields: tuple[str, ...]):
        self.fields = fields
        names = ", ".join(fields)
        super().__init__(f"Duplicate value for {names}. Please use another value!")


class InternalError(TourbookError):
    """Raised when a collaborator (store, e-mail) fails unexpectedly."""

    status_code = 500
    error_type = "internal_error"


class EmailDeliveryError(InternalError):
    """Raised when an outbound e-mail could not be delivered."""

    error_type = "email_delivery_failed"

    def __init__(self):
        super().__init__("There was an error sending the email. Try again later!")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_body(status_code: int, detail: str, error_type: str) -> dict:
    return {
        "status": "fail" if status_code < 500 else "error",
        "detail": detail,
        "error_type": error_type,
    }


async def tourbook_error_handler(request: Request, exc: TourbookError) -> JSONResponse:
    """Operational errors: the message is safe to send to the client."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    content = _error_body(exc.status_code, exc.detail, exc.error_type)
    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """A unique constraint fired despite the service-level pre-checks."""
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content=_error_body(409, "Duplicate or conflicting value", "conflict"),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Programming errors: log everything, leak nothing in production."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = "Something went very wrong!" if settings.is_production else repr(exc)
    return JSONResponse(
        status_code=500,
        content=_error_body(500, detail, "internal_error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the exception handlers with the FastAPI application.

    Every domain exception maps to its status code and the JSON shape
    {"status": ..., "detail": ..., "error_type": ...}.

    This is called once during app creation in main.py.
    """
    app.add_exception_handler(TourbookError, tourbook_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
