"""Business logic services for the Flight Booking Platform."""

from .seat_ledger import SeatLedger
from .booking_service import BookingService, BookingView
from .flight_broadcaster import FlightBroadcaster, Subscription, get_flight_broadcaster
from .flight_service import FlightService
from .notification_service import NotificationService
from .user_service import UserService

__all__ = [
    "SeatLedger",
    "BookingService",
    "BookingView",
    "FlightBroadcaster",
    "Subscription",
    "get_flight_broadcaster",
    "FlightService",
    "NotificationService",
    "UserService",
]
