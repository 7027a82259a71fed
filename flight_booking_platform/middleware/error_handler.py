"""
Error handling for the Flight Booking Platform.

Domain errors raised by routes are converted by the exception handlers
registered in ``register_exception_handlers``; anything that escapes them is
caught by ``ErrorHandlerMiddleware`` and reported as a generic failure.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import OperationalError, TimeoutError as SQLTimeoutError

from ..utils.exceptions import (
    FlightBookingError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
    PersistenceError,
)

logger = logging.getLogger(__name__)


STATUS_MAP = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.INSUFFICIENT_SEATS: status.HTTP_400_BAD_REQUEST,
    ErrorCode.FLIGHT_DEPARTED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_BOOKING_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.FLIGHT_HAS_BOOKINGS: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PERSISTENCE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_status_code_for_error(exc: FlightBookingError) -> int:
    """Map error codes to HTTP status codes."""
    return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _get_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_response(
    exc: FlightBookingError,
    error_id: str,
    status_code: Optional[int] = None,
    headers: Optional[Dict[str, str]] = None,
    debug: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build the JSON error body shared by handlers and middleware."""
    content: Dict[str, Any] = {
        "error": exc.to_dict(),
        "error_id": error_id,
        "timestamp": _get_timestamp()
    }
    if debug:
        content["debug"] = debug

    response_headers = dict(headers or {})
    if isinstance(exc, AuthenticationError):
        response_headers.setdefault("WWW-Authenticate", "Bearer")

    return JSONResponse(
        status_code=status_code or get_status_code_for_error(exc),
        content=content,
        headers=response_headers
    )


def _log_error(request: Request, exc: Exception, error_id: str) -> None:
    """Log an error with request context at a severity matching its category."""
    request_info = {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else None,
    }

    if isinstance(exc, (ValidationError, NotFoundError, AuthenticationError, AuthorizationError)):
        logger.warning(
            f"Client error [{error_id}]: {exc.message}",
            extra={"error_id": error_id, "error_code": exc.error_code.value, "request": request_info}
        )
    elif isinstance(exc, FlightBookingError):
        log = logger.error if isinstance(exc, (PersistenceError, ExternalServiceError)) else logger.info
        log(
            f"Business error [{error_id}]: {exc.message}",
            extra={
                "error_id": error_id,
                "error_code": exc.error_code.value,
                "request": request_info,
                "details": exc.details
            }
        )
    else:
        logger.error(
            f"Unexpected error [{error_id}]: {exc}",
            extra={
                "error_id": error_id,
                "error_type": type(exc).__name__,
                "request": request_info,
            },
            exc_info=exc
        )


async def flight_booking_error_handler(request: Request, exc: FlightBookingError) -> JSONResponse:
    """Convert domain errors into structured JSON responses."""
    error_id = str(uuid4())
    _log_error(request, exc, error_id)
    return error_response(exc, error_id)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and parameters as validation errors."""
    field_errors: Dict[str, list] = {}
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors.setdefault(field_path, []).append(error["msg"])

    validation_error = ValidationError("Request validation failed", field_errors=field_errors)
    error_id = str(uuid4())
    _log_error(request, validation_error, error_id)
    return error_response(validation_error, error_id)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain and request-validation handlers on the app."""
    app.add_exception_handler(FlightBookingError, flight_booking_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch errors no handler claimed and return a generic structured response."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any exceptions."""
        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc, str(uuid4()))

    def _handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        _log_error(request, exc, error_id)

        if isinstance(exc, FlightBookingError):
            return error_response(exc, error_id)

        if isinstance(exc, (OperationalError, SQLTimeoutError)):
            return error_response(
                ExternalServiceError(
                    "database",
                    "Database service temporarily unavailable",
                ),
                error_id,
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                headers={"Retry-After": "30"}
            )

        debug = None
        if self.debug:
            debug = {
                "exception": str(exc),
                "traceback": "".join(traceback.format_exception(exc)),
            }

        return error_response(
            FlightBookingError(
                "An unexpected error occurred",
                error_code=ErrorCode.INTERNAL_ERROR,
                details={"error_type": type(exc).__name__} if self.debug else None
            ),
            error_id,
            debug=debug
        )
