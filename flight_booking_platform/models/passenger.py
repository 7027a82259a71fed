"""
Passenger model; rows belong to exactly one booking.
"""

import uuid
from datetime import date
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .booking import Booking


class Passenger(Base):
    """A traveller listed on a booking."""

    __tablename__ = "passengers"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    passport_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Assigned at check-in, never at booking time
    seat_number: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="passengers")

    @property
    def full_name(self) -> str:
        """Get the passenger's full name."""
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Passenger(id={self.id}, booking_id={self.booking_id}, name='{self.full_name}')>"
