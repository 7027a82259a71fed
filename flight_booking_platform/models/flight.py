"""
Flight model holding schedule data and the per-flight seat counters.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, ensure_utc, utcnow


class CabinClass(enum.Enum):
    """Enumeration for cabin class."""
    ECONOMY = "economy"
    PREMIUM_ECONOMY = "premium_economy"
    BUSINESS = "business"
    FIRST = "first"


class FlightStatus(enum.Enum):
    """Enumeration for flight status."""
    SCHEDULED = "scheduled"
    DELAYED = "delayed"
    CANCELLED = "cancelled"
    DEPARTED = "departed"
    ARRIVED = "arrived"


class Flight(Base):
    """Flight model; ``available_seats`` is the seat ledger counter."""

    __tablename__ = "flights"

    flight_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    airline: Mapped[str] = mapped_column(String(100), nullable=False)

    # Route
    from_location: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    from_airport: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    to_location: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    to_airport: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    # Schedule
    departure_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True
    )
    arrival_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)

    cabin_class: Mapped[CabinClass] = mapped_column(
        Enum(CabinClass),
        default=CabinClass.ECONOMY,
        nullable=False,
        index=True
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00')
    )

    # Seat ledger
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[FlightStatus] = mapped_column(
        Enum(FlightStatus),
        default=FlightStatus.SCHEDULED,
        nullable=False,
        index=True
    )

    __table_args__ = (
        UniqueConstraint("flight_number", "departure_time", name="uq_flights_number_departure"),
        CheckConstraint("total_seats > 0", name="ck_flights_total_seats_positive"),
        CheckConstraint("available_seats >= 0", name="ck_flights_available_seats_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="ck_flights_seat_consistency"),
        CheckConstraint("price >= 0", name="ck_flights_price_non_negative"),
        CheckConstraint("duration > 0", name="ck_flights_duration_positive"),
    )

    @property
    def booked_seats(self) -> int:
        """Seats currently held by bookings according to the ledger."""
        return self.total_seats - self.available_seats

    @property
    def has_departed(self) -> bool:
        """Check if the departure time is not in the future."""
        return ensure_utc(self.departure_time) <= utcnow()

    def __repr__(self) -> str:
        """String representation of the flight."""
        return (
            f"<Flight(id={self.id}, number='{self.flight_number}', "
            f"{self.from_airport}->{self.to_airport}, "
            f"seats={self.available_seats}/{self.total_seats})>"
        )
