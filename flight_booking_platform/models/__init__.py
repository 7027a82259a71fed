"""
Database models for the flight booking platform.
"""

from .base import Base
from .user import User, UserRole
from .flight import Flight, FlightStatus, CabinClass
from .booking import Booking, BookingStatus, SeatPreference
from .passenger import Passenger

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Flight",
    "FlightStatus",
    "CabinClass",
    "Booking",
    "BookingStatus",
    "SeatPreference",
    "Passenger",
]
