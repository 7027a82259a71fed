"""
Seat ledger: the per-flight ``available_seats`` counter.

All writes are single conditional UPDATE statements so concurrent bookings
never read-modify-write the counter. The caller owns the transaction; pair
every ledger write with the booking write it accounts for.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.util import identity_key

from ..models.flight import Flight
from ..utils.exceptions import (
    FlightNotFoundError,
    InsufficientSeatsError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class SeatLedger:
    """Atomic seat accounting against the flights table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def reserve(self, flight_id: UUID, seats: int) -> int:
        """
        Take ``seats`` seats from a flight.

        Args:
            flight_id: Flight to reserve on
            seats: Number of seats, at least 1

        Returns:
            The flight's remaining available seats

        Raises:
            InsufficientSeatsError: When fewer than ``seats`` seats remain
            FlightNotFoundError: When the flight no longer exists
        """
        if seats < 1:
            raise ValueError("seats must be positive")

        result = await self.session.execute(
            update(Flight)
            .where(
                and_(
                    Flight.id == flight_id,
                    Flight.available_seats >= seats
                )
            )
            .values(available_seats=Flight.available_seats - seats)
            .returning(Flight.available_seats)
            .execution_options(synchronize_session=False)
        )
        remaining = result.scalar_one_or_none()

        if remaining is None:
            available = await self._current_available(flight_id)
            if available is None:
                raise FlightNotFoundError(str(flight_id))
            logger.info(
                f"Seat reservation refused on flight {flight_id}: "
                f"requested {seats}, available {available}"
            )
            raise InsufficientSeatsError(seats, available, flight_id=str(flight_id))

        self._sync_identity(flight_id, available_seats=remaining)
        logger.debug(f"Reserved {seats} seats on flight {flight_id}, {remaining} left")
        return remaining

    async def release(self, flight_id: UUID, seats: int) -> Optional[int]:
        """
        Return ``seats`` seats to a flight, never exceeding its total.

        Returns:
            The flight's available seats after the release, or None when
            the flight no longer exists
        """
        if seats < 1:
            raise ValueError("seats must be positive")

        result = await self.session.execute(
            update(Flight)
            .where(
                and_(
                    Flight.id == flight_id,
                    Flight.available_seats + seats <= Flight.total_seats
                )
            )
            .values(available_seats=Flight.available_seats + seats)
            .returning(Flight.available_seats)
            .execution_options(synchronize_session=False)
        )
        available = result.scalar_one_or_none()

        if available is None:
            # Counter already holds more than total - seats; cap at total
            result = await self.session.execute(
                update(Flight)
                .where(Flight.id == flight_id)
                .values(available_seats=Flight.total_seats)
                .returning(Flight.available_seats)
                .execution_options(synchronize_session=False)
            )
            available = result.scalar_one_or_none()
            if available is None:
                logger.warning(f"Seat release skipped, flight {flight_id} not found")
                return None
            logger.warning(
                f"Seat ledger drift on flight {flight_id}: releasing {seats} seats "
                f"exceeded total, capped at {available}"
            )

        self._sync_identity(flight_id, available_seats=available)
        logger.debug(f"Released {seats} seats on flight {flight_id}, {available} available")
        return available

    async def resize(
        self,
        flight_id: UUID,
        total_seats: Optional[int] = None,
        available_seats: Optional[int] = None,
    ) -> None:
        """
        Apply an administrative capacity change to a flight.

        A new total keeps the seats held by bookings as the database sees
        them at write time and shifts the available count by the same delta.
        A direct ``available_seats`` write must stay within ``0..total_seats``.

        Raises:
            ValidationError: When the change would break seat accounting
            FlightNotFoundError: When the flight no longer exists
        """
        if total_seats is not None:
            result = await self.session.execute(
                update(Flight)
                .where(
                    and_(
                        Flight.id == flight_id,
                        Flight.total_seats - Flight.available_seats <= total_seats
                    )
                )
                .values(
                    total_seats=total_seats,
                    available_seats=Flight.available_seats + (total_seats - Flight.total_seats)
                )
                .returning(Flight.total_seats, Flight.available_seats)
                .execution_options(synchronize_session=False)
            )
            row = result.one_or_none()

            if row is None:
                held = await self._held_seats(flight_id)
                if held is None:
                    raise FlightNotFoundError(str(flight_id))
                raise ValidationError(
                    f"Cannot reduce capacity to {total_seats}: {held} seats are already booked",
                    field_errors={"total_seats": [f"must be at least {held}"]}
                )

            self._sync_identity(
                flight_id, total_seats=row.total_seats, available_seats=row.available_seats
            )
            logger.info(
                f"Flight {flight_id} capacity set to {row.total_seats}, "
                f"{row.total_seats - row.available_seats} seats held"
            )

        if available_seats is not None:
            total = None
            if available_seats >= 0:
                result = await self.session.execute(
                    update(Flight)
                    .where(
                        and_(
                            Flight.id == flight_id,
                            Flight.total_seats >= available_seats
                        )
                    )
                    .values(available_seats=available_seats)
                    .returning(Flight.total_seats)
                    .execution_options(synchronize_session=False)
                )
                total = result.scalar_one_or_none()

            if total is None:
                current_total = await self._current_total(flight_id)
                if current_total is None:
                    raise FlightNotFoundError(str(flight_id))
                raise ValidationError(
                    "Available seats must be between 0 and total seats",
                    field_errors={"available_seats": [f"must be between 0 and {current_total}"]}
                )

            self._sync_identity(flight_id, available_seats=available_seats)
            logger.info(f"Flight {flight_id} available seats set to {available_seats}")

    async def _current_available(self, flight_id: UUID) -> Optional[int]:
        result = await self.session.execute(
            select(Flight.available_seats).where(Flight.id == flight_id)
        )
        return result.scalar_one_or_none()

    async def _current_total(self, flight_id: UUID) -> Optional[int]:
        result = await self.session.execute(
            select(Flight.total_seats).where(Flight.id == flight_id)
        )
        return result.scalar_one_or_none()

    async def _held_seats(self, flight_id: UUID) -> Optional[int]:
        result = await self.session.execute(
            select(Flight.total_seats - Flight.available_seats).where(Flight.id == flight_id)
        )
        return result.scalar_one_or_none()

    def _sync_identity(self, flight_id: UUID, **values: int) -> None:
        """Mirror new column values onto a flight already loaded in this session."""
        flight = self.session.sync_session.identity_map.get(identity_key(Flight, flight_id))
        if flight is not None:
            for key, value in values.items():
                set_committed_value(flight, key, value)
