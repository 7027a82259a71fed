"""
Custom exceptions for the Flight Booking Platform.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the platform."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Business logic errors
    INSUFFICIENT_SEATS = "INSUFFICIENT_SEATS"
    FLIGHT_DEPARTED = "FLIGHT_DEPARTED"
    INVALID_BOOKING_STATE = "INVALID_BOOKING_STATE"
    FLIGHT_HAS_BOOKINGS = "FLIGHT_HAS_BOOKINGS"

    # Persistence and external service errors
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class FlightBookingError(Exception):
    """Base exception class for the platform."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        return result


class ValidationError(FlightBookingError):
    """Exception raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details={"field_errors": field_errors} if field_errors else kwargs.pop("details", None),
            **kwargs
        )
        self.field_errors = field_errors or {}


class NotFoundError(FlightBookingError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class FlightNotFoundError(NotFoundError):
    """Exception raised when a flight is not found."""

    def __init__(self, flight_id: str, **kwargs):
        super().__init__(
            "Flight not found",
            resource_type="flight",
            resource_id=str(flight_id),
            suggestions=["Check the flight ID", "Search available flights"],
            **kwargs
        )


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            "Booking not found",
            resource_type="booking",
            resource_id=str(booking_id),
            suggestions=["Check the booking ID", "View your bookings"],
            **kwargs
        )


class UserNotFoundError(NotFoundError):
    """Exception raised when a user is not found."""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(
            "User not found",
            resource_type="user",
            resource_id=str(user_id),
            **kwargs
        )


class AuthenticationError(FlightBookingError):
    """Exception raised for authentication failures."""

    def __init__(self, message: str = "Could not validate credentials", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAUTHORIZED,
            suggestions=["Login again"],
            **kwargs
        )


class AuthorizationError(FlightBookingError):
    """Exception raised for authorization failures."""

    def __init__(self, message: str = "Access denied", required_permission: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.FORBIDDEN,
            details={"required_permission": required_permission} if required_permission else None,
            **kwargs
        )


class BusinessLogicError(FlightBookingError):
    """Base exception for business rule violations."""
    pass


class InsufficientSeatsError(BusinessLogicError):
    """Exception raised when a flight does not have enough seats."""

    def __init__(self, requested: int, available: int, flight_id: Optional[str] = None, **kwargs):
        super().__init__(
            f"Only {available} seats available",
            error_code=ErrorCode.INSUFFICIENT_SEATS,
            details={"requested": requested, "available": available, "flight_id": flight_id},
            suggestions=["Book fewer passengers", "Search other flights"],
            **kwargs
        )
        self.requested = requested
        self.available = available


class FlightDepartedError(BusinessLogicError):
    """Exception raised when an operation requires a future departure."""

    def __init__(self, flight_id: str, action: str = "book", **kwargs):
        message = (
            "Cannot book past flights" if action == "book"
            else f"Cannot {action} booking for departed flight"
        )
        super().__init__(
            message,
            error_code=ErrorCode.FLIGHT_DEPARTED,
            details={"flight_id": str(flight_id)},
            **kwargs
        )


class InvalidBookingStateError(BusinessLogicError):
    """Exception raised when a booking is in the wrong state for an operation."""

    def __init__(self, booking_id: str, current_state: str, message: Optional[str] = None, **kwargs):
        super().__init__(
            message or f"Booking {booking_id} is {current_state}",
            error_code=ErrorCode.INVALID_BOOKING_STATE,
            details={"booking_id": str(booking_id), "current_state": current_state},
            **kwargs
        )


class FlightHasBookingsError(BusinessLogicError):
    """Exception raised when trying to delete a flight that is still booked."""

    def __init__(self, flight_id: str, booking_count: int, **kwargs):
        super().__init__(
            "Cannot delete flight with existing bookings",
            error_code=ErrorCode.FLIGHT_HAS_BOOKINGS,
            details={"flight_id": str(flight_id), "booking_count": booking_count},
            suggestions=["Cancel the bookings first", "Mark the flight as cancelled instead"],
            **kwargs
        )


class PersistenceError(FlightBookingError):
    """Exception raised when the row store rejects or fails a write."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.PERSISTENCE_ERROR,
            **kwargs
        )


class ExternalServiceError(FlightBookingError):
    """Exception raised for external service failures."""

    def __init__(self, service_name: str, message: str, status_code: Optional[int] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.EXTERNAL_SERVICE_ERROR)
        super().__init__(
            f"{service_name} service error: {message}",
            details={"service_name": service_name, "status_code": status_code},
            suggestions=["Try again later"],
            **kwargs
        )
