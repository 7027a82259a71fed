"""
Booking model for flight reservations.
"""

import enum
import uuid
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .user import User
    from .flight import Flight
    from .passenger import Passenger


class BookingStatus(enum.Enum):
    """Enumeration for booking status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class SeatPreference(enum.Enum):
    """Enumeration for seat preference."""
    WINDOW = "window"
    AISLE = "aisle"
    MIDDLE = "middle"


class Booking(Base):
    """Booking model; owns its passengers."""

    __tablename__ = "bookings"

    # Foreign key relationships
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    flight_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("flights.id"),
        nullable=False,
        index=True
    )

    booking_reference: Mapped[str] = mapped_column(
        String(16),
        unique=True,
        nullable=False,
        index=True
    )

    # Booking details
    passenger_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00')
    )

    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    seat_preference: Mapped[Optional[SeatPreference]] = mapped_column(
        Enum(SeatPreference),
        nullable=True
    )
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus),
        default=BookingStatus.CONFIRMED,
        nullable=False,
        index=True
    )

    # Relationships
    user: Mapped["User"] = relationship("User")
    flight: Mapped["Flight"] = relationship("Flight")

    passengers: Mapped[List["Passenger"]] = relationship(
        "Passenger",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Passenger.created_at"
    )

    __table_args__ = (
        CheckConstraint("passenger_count > 0", name="ck_bookings_passenger_count_positive"),
        CheckConstraint("passenger_count <= 10", name="ck_bookings_passenger_count_max"),
        CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
    )

    @property
    def is_active(self) -> bool:
        """Check if the booking still holds seats (confirmed or pending)."""
        return self.status in [BookingStatus.CONFIRMED, BookingStatus.PENDING]

    def __repr__(self) -> str:
        """String representation of the booking."""
        return (
            f"<Booking(id={self.id}, ref={self.booking_reference}, "
            f"flight_id={self.flight_id}, passengers={self.passenger_count}, "
            f"status={self.status.value})>"
        )
