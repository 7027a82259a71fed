"""
Booking schemas for request/response validation.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.booking import BookingStatus, SeatPreference
from .common import PaginationInfo, RequestModel, UTCDateTime
from .flight import FlightResponse, FlightSummary
from .user import UserSummary


PHONE_PATTERN = r"^\+?[0-9][0-9 ()\-]{6,19}$"


class PassengerCreate(RequestModel):
    """A traveller listed on a new booking."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    passport_number: Optional[str] = Field(None, max_length=50)

    @field_validator("date_of_birth", "passport_number", mode="before")
    @classmethod
    def blank_as_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PassengerUpdate(PassengerCreate):
    """A passenger in a modification; rows with ``id`` are updated in place."""

    id: Optional[UUID] = Field(None, description="Existing passenger to update; omit to add a passenger")


class BookingCreate(RequestModel):
    """Schema for creating a booking."""

    flight_id: UUID = Field(..., description="Flight to book")
    passengers: List[PassengerCreate] = Field(..., min_length=1, max_length=10)
    contact_email: EmailStr
    contact_phone: str = Field(..., pattern=PHONE_PATTERN)
    seat_preference: Optional[SeatPreference] = None
    special_requests: Optional[str] = Field(None, max_length=1000)


class BookingUpdate(RequestModel):
    """Schema for modifying a booking's passengers."""

    passengers: Optional[List[PassengerUpdate]] = Field(None, min_length=1, max_length=10)
    passenger_count: Optional[int] = Field(None, ge=1, le=10)


class BookingStatusUpdate(RequestModel):
    """Schema for the administrative status overwrite."""

    status: BookingStatus


class PassengerResponse(BaseModel):
    """Schema for passenger response."""

    id: UUID
    first_name: str
    last_name: str
    date_of_birth: Optional[date] = None
    passport_number: Optional[str] = None
    seat_number: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BookingResponse(BaseModel):
    """Schema for booking response."""

    id: UUID
    user_id: UUID
    flight_id: UUID
    booking_reference: str
    passenger_count: int
    total_price: Decimal
    contact_email: str
    contact_phone: str
    seat_preference: Optional[SeatPreference] = None
    special_requests: Optional[str] = None
    status: BookingStatus
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)


class BookingDetailResponse(BookingResponse):
    """Booking with its flight and passengers; either part may be missing."""

    flight: Optional[FlightResponse] = None
    passengers: Optional[List[PassengerResponse]] = None


class BookingListItem(BookingResponse):
    """Booking row in a listing, with a flight summary."""

    flight: Optional[FlightSummary] = None


class AdminBookingListItem(BookingListItem):
    """Booking row in the administrative listing."""

    user: Optional[UserSummary] = None


class BookingEnvelope(BaseModel):
    message: Optional[str] = None
    booking: BookingDetailResponse


class StatusEnvelope(BaseModel):
    message: str
    booking: BookingResponse


class UserBookingsResponse(BaseModel):
    bookings: List[BookingListItem]


class BookingHistoryResponse(BaseModel):
    bookings: List[BookingListItem]
    pagination: PaginationInfo


class AdminBookingsResponse(BaseModel):
    bookings: List[AdminBookingListItem]
    pagination: PaginationInfo
