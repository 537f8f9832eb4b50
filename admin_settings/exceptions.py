"""Custom exception classes and global exception handlers."""

import logging
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AdminSettingsException(Exception):
    """Base exception for all admin-settings errors."""

    def __init__(self, message: str, status_code: int = 400, code: str = "ERROR"):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)


class BadRequestException(AdminSettingsException):
    """Malformed or incomplete request that the client can fix."""

    def __init__(self, message: str, code: str = "INVALID_REQUEST"):
        super().__init__(message, 400, code)


class ForbiddenException(AdminSettingsException):
    """Access forbidden exception."""

    def __init__(self, message: str = "You don't have permission to perform this action"):
        super().__init__(message, 403, "FORBIDDEN")


class UnauthorizedException(AdminSettingsException):
    """Authentication required exception."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, 401, "UNAUTHORIZED")


class ServiceUnavailableException(AdminSettingsException):
    """A backing store could not be read or written."""

    def __init__(self, message: str = "Settings store unavailable"):
        super().__init__(message, 503, "SERVICE_UNAVAILABLE")


class EmailDeliveryException(AdminSettingsException):
    """SMTP connection, authentication or delivery failed."""

    def __init__(self, message: str):
        super().__init__(message, 502, "SMTP_ERROR")


class TurnstileException(AdminSettingsException):
    """Turnstile secret key rejected or the verification endpoint failed."""

    def __init__(self, message: str, status_code: int = 502, code: str = "TURNSTILE_ERROR"):
        super().__init__(message, status_code, code)


class UserContextError(AdminSettingsException):
    """User context not set error."""

    def __init__(self, message: str = "User context is required"):
        super().__init__(message, 401, "UNAUTHORIZED")


def _format_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic errors into a single readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "malformed body"


def create_exception_handlers():
    """Create the JSON exception handlers registered on the app."""

    async def admin_settings_exception_handler(request: Request, exc: AdminSettingsException):
        """Handle admin-settings custom exceptions."""
        logger.warning(
            f"{type(exc).__name__} on {request.method} {request.url.path}: "
            f"{exc.message} (status={exc.status_code})"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "error",
                "code": exc.code,
                "message": exc.message,
            },
        )

    async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report body parse and shape failures as a 400 invalid request."""
        message = f"Invalid request: {_format_validation_errors(exc)}"
        logger.warning(f"RequestValidationError on {request.method} {request.url.path}: {message}")
        return JSONResponse(
            status_code=400,
            content={
                "status": "error",
                "code": "INVALID_REQUEST",
                "message": message,
            },
        )

    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        # Log the full exception with traceback
        logger.error(f"Unhandled exception on {request.method} {request.url.path}")
        logger.error(f"Exception: {type(exc).__name__}: {exc}")
        tb_lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
        logger.error("".join(tb_lines))

        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )

    return {
        AdminSettingsException: admin_settings_exception_handler,
        RequestValidationError: request_validation_exception_handler,
        Exception: generic_exception_handler,
    }
