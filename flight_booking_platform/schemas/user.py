"""
User schemas for profile, statistics and role management.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import BookingStatus
from ..models.user import UserRole
from .common import PaginationInfo, RequestModel, UTCDateTime


class UserSummary(BaseModel):
    """Identity fields shown next to a booking."""

    id: UUID
    email: str
    first_name: str
    last_name: str

    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserSummary):
    """Schema for a user profile."""

    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    role: UserRole
    is_active: bool
    created_at: UTCDateTime


class UserProfileUpdate(RequestModel):
    """Schema for updating the caller's own profile."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9][0-9 ()\-]{6,19}$")
    date_of_birth: Optional[date] = None


class UserRoleUpdate(RequestModel):
    role: UserRole


class UserEnvelope(BaseModel):
    message: Optional[str] = None
    user: UserResponse


class UserListResponse(BaseModel):
    users: List[UserResponse]
    pagination: PaginationInfo


class RecentActivity(BaseModel):
    """One of the user's latest bookings."""

    booking_id: UUID
    booking_reference: str
    status: BookingStatus
    total_price: Decimal
    created_at: UTCDateTime
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    from_airport: Optional[str] = None
    to_airport: Optional[str] = None


class BookingStats(BaseModel):
    total_bookings: int
    total_spent: Decimal
    confirmed_bookings: int
    cancelled_bookings: int
    average_booking_value: Decimal


class UserStatsResponse(BaseModel):
    stats: BookingStats
    recent_activity: List[RecentActivity]
