"""
API Error Taxonomy and Exception Handlers

Every error leaving the API is rendered as ``{"error": "<message>"}``.
Store-level integrity errors are classified by SQLSTATE (PostgreSQL) or by
message (SQLite) so handlers can turn them into semantic HTTP errors.

Author: Khalil Bannouri
Version: 3.0.0
"""

import enum
import logging
from typing import Any, Optional, Sequence

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


# =============================================================================
# ERROR TYPES
# =============================================================================

class APIError(HTTPException):
    """Base API error with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(APIError):
    def __init__(self, detail: str = "Validation failed"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class AuthenticationError(APIError):
    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(
            status.HTTP_401_UNAUTHORIZED,
            detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(APIError):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)


class NotFoundError(APIError):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class ConflictError(APIError):
    """Unique or dependent-record violation, or an illegal state change."""

    def __init__(self, detail: str = "Resource conflict"):
        super().__init__(status.HTTP_409_CONFLICT, detail)


class InternalError(APIError):
    """Catch-all. The message is generic; the cause is only logged."""

    def __init__(self, detail: str = "Internal Server Error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail)


# =============================================================================
# INTEGRITY ERROR CLASSIFICATION
# =============================================================================

class ConstraintViolation(str, enum.Enum):
    UNIQUE = "unique"
    FOREIGN_KEY = "foreign_key"


def classify_integrity_error(exc: IntegrityError) -> Optional[ConstraintViolation]:
    """
    Map a driver integrity error onto a known constraint violation.

    PostgreSQL drivers expose the SQLSTATE (``sqlstate`` for psycopg 3,
    ``pgcode`` for psycopg2); SQLite only reports it in the message.

    Returns:
        The violation kind, or None when it is not one we translate
    """
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)

    if code == UNIQUE_VIOLATION:
        return ConstraintViolation.UNIQUE
    if code == FOREIGN_KEY_VIOLATION:
        return ConstraintViolation.FOREIGN_KEY

    message = str(orig if orig is not None else exc).lower()
    if "unique constraint" in message:
        return ConstraintViolation.UNIQUE
    if "foreign key constraint" in message:
        return ConstraintViolation.FOREIGN_KEY
    return None


# =============================================================================
# REQUEST VALIDATION MESSAGES
# =============================================================================

_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def describe_validation_errors(errors: Sequence[dict[str, Any]]) -> str:
    """
    Turn pydantic/FastAPI validation errors into a single client message.

    Only the first error is reported: ``"<field> is required"`` for a missing
    field, ``"Invalid <field>"`` for anything else.
    """
    if not errors:
        return "Invalid request"

    error = errors[0]
    error_type = error.get("type", "")
    loc = [str(part) for part in error.get("loc", ()) if part not in _LOCATIONS]
    field = ".".join(loc)

    if error_type == "json_invalid":
        return "Invalid JSON body"
    if not field:
        return "Request body is required" if error_type == "missing" else "Invalid request body"
    if error_type == "missing":
        return f"{field} is required"
    return f"Invalid {field}"


# =============================================================================
# HANDLERS
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error renderers to the application."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        message = describe_validation_errors(exc.errors())
        logger.info(f"Rejected {request.method} {request.url.path}: {message}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal Server Error"},
        )
