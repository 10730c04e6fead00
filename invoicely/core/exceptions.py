"""
Domain errors and their HTTP mapping.

SECURITY PRINCIPLE: Don't expose internal details to users.
Use generic error messages externally, detailed logging internally.

Services raise these; `register_exception_handlers` turns them into JSON
responses. Anything else becomes a generic 500.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class InvoicelyError(Exception):
    """Base class for errors that are safe to report to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(InvoicelyError):
    """
    400 for input validation / business rule violations.

    OK to include specific details here since user caused the issue.
    Examples: "Quantity must be positive", "Due date is required"
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class UnauthorizedError(InvoicelyError):
    """
    401 for all authentication failures.

    SECURITY: Same response for wrong password, non-existent user, etc.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class NotFoundError(InvoicelyError):
    """
    404 that doesn't confirm resource existence.

    SECURITY: Returned whether the record doesn't exist or belongs to
    another user. This prevents IDOR enumeration attacks.
    """

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")
        self.resource = resource


class ConflictError(InvoicelyError):
    """409 for duplicates. Example: "Email already registered"."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class UpstreamError(InvoicelyError):
    """502 when the document renderer or email provider fails."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service failed"


async def _invoicely_error_handler(request: Request, exc: InvoicelyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"Upstream failure on {request.method} {request.url.path}: {exc.message}")
    elif exc.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_404_NOT_FOUND):
        logger.warning(f"{exc.status_code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.status_code} on {request.method} {request.url.path}: {exc.message}")

    headers = None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic 500 - logs actual error internally, hides from user.

    SECURITY: Never expose stack traces, SQL errors, or internal paths to users.
    """
    logger.error(
        f"Internal server error: {type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal error occurred. Please try again later."},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvoicelyError, _invoicely_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
