"""
Booking service: the booking lifecycle coupled to the seat ledger.

Every operation that changes the number of seats a booking holds writes the
booking rows and the ledger counter in one transaction, so a failure at any
step leaves neither behind.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..cache import CacheInvalidator
from ..config import get_settings
from ..models.base import utcnow
from ..models.booking import Booking, BookingStatus
from ..models.flight import Flight
from ..models.passenger import Passenger
from ..models.user import User
from ..schemas.booking import BookingCreate, BookingUpdate, PassengerCreate
from ..utils.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    FlightBookingError,
    FlightDepartedError,
    FlightNotFoundError,
    InsufficientSeatsError,
    InvalidBookingStateError,
    PersistenceError,
    ValidationError,
)
from ..utils.logging_config import log_business_event
from .notification_service import queue_booking_confirmation
from .seat_ledger import SeatLedger

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def generate_booking_reference(length: int = 8) -> str:
    """Random booking reference drawn from A-Z and 0-9."""
    return "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(length))


@dataclass
class BookingView:
    """A booking with whatever related data could be loaded."""

    booking: Booking
    flight: Optional[Flight] = None
    passengers: Optional[List[Passenger]] = None


class BookingService:
    """Service for creating, reading, modifying and cancelling bookings."""

    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[Callable[[UUID], None]] = None,
    ):
        self.session = session
        self.settings = get_settings()
        self.ledger = SeatLedger(session)
        self.notifier = notifier or queue_booking_confirmation

    async def create_booking(self, user_id: UUID, booking_data: BookingCreate) -> Booking:
        """
        Create a confirmed booking and take its seats from the flight.

        The booking row is written first, then its passengers, then the seat
        decrement; the transaction commits only when all three succeed.

        Args:
            user_id: ID of the user making the booking
            booking_data: Validated booking request

        Returns:
            The persisted booking with its flight and passengers loaded

        Raises:
            FlightNotFoundError: When the flight does not exist
            FlightDepartedError: When the flight has already departed
            InsufficientSeatsError: When the flight cannot seat every passenger
            PersistenceError: When the booking or passenger rows cannot be written
        """
        seats = len(booking_data.passengers)
        logger.info(f"Creating booking for user {user_id}, flight {booking_data.flight_id}, {seats} passengers")

        if seats > self.settings.max_passengers_per_booking:
            raise ValidationError(
                f"A booking can hold at most {self.settings.max_passengers_per_booking} passengers",
                field_errors={"passengers": ["too many passengers"]}
            )

        flight = await self._get_flight(booking_data.flight_id)
        flight_id = flight.id

        if flight.has_departed:
            raise FlightDepartedError(str(flight_id))

        if flight.available_seats < seats:
            raise InsufficientSeatsError(seats, flight.available_seats, flight_id=str(flight_id))

        booking_reference = await self._allocate_booking_reference()

        booking = Booking(
            user_id=user_id,
            flight_id=flight_id,
            booking_reference=booking_reference,
            passenger_count=seats,
            total_price=Decimal(flight.price) * seats,
            contact_email=str(booking_data.contact_email),
            contact_phone=booking_data.contact_phone,
            seat_preference=booking_data.seat_preference,
            special_requests=booking_data.special_requests,
            status=BookingStatus.CONFIRMED,
            passengers=[],
        )

        try:
            self.session.add(booking)
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to write booking for flight {flight_id}: {e}")
            raise PersistenceError("Failed to create booking")

        try:
            await self._persist_passengers(booking, booking_data.passengers)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Passenger records failed for booking {booking_reference}, "
                f"booking row removed: {e}"
            )
            raise PersistenceError("Failed to create passenger records")

        try:
            await self.ledger.reserve(flight_id, seats)
            await self.session.commit()
        except FlightBookingError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to commit booking {booking_reference}: {e}")
            raise PersistenceError("Failed to create booking")

        await CacheInvalidator.invalidate_flight_caches(str(flight_id))
        log_business_event(
            "booking_created",
            {
                "booking_id": str(booking.id),
                "booking_reference": booking_reference,
                "flight_id": str(flight_id),
                "passenger_count": seats,
            },
            user_id=str(user_id)
        )

        self._queue_confirmation(booking.id)

        return await self._get_booking_with_relations(booking.id)

    async def get_booking(self, booking_id: UUID, requester: User) -> BookingView:
        """
        Read a booking with its flight and passengers.

        The booking itself must load; the flight and the passenger list are
        loaded separately and come back as None when their lookup fails.

        Raises:
            BookingNotFoundError: When the booking does not exist
            AuthorizationError: When the requester neither owns it nor is an admin
        """
        result = await self.session.execute(
            select(Booking).where(Booking.id == booking_id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise BookingNotFoundError(str(booking_id))

        self._authorize(booking, requester)

        view = BookingView(booking=booking)

        try:
            flight_result = await self.session.execute(
                select(Flight).where(Flight.id == booking.flight_id)
            )
            view.flight = flight_result.scalar_one_or_none()
            if view.flight is None:
                logger.warning(f"Flight {booking.flight_id} missing for booking {booking_id}")
        except SQLAlchemyError as e:
            logger.warning(f"Could not load flight for booking {booking_id}: {e}")

        try:
            passenger_result = await self.session.execute(
                select(Passenger)
                .where(Passenger.booking_id == booking.id)
                .order_by(Passenger.created_at)
            )
            view.passengers = list(passenger_result.scalars().all())
        except SQLAlchemyError as e:
            logger.warning(f"Could not load passengers for booking {booking_id}: {e}")

        return view

    async def modify_booking(
        self,
        booking_id: UUID,
        update_data: BookingUpdate,
        requester: User
    ) -> Booking:
        """
        Reconcile a booking's passengers and apply the resulting seat change.

        Passengers carrying an ``id`` update that row, passengers without one
        are added, and current passengers missing from the list are removed.
        A changed head count reprices the booking from the flight's current
        price and moves the difference through the seat ledger.

        Raises:
            BookingNotFoundError: When the booking does not exist
            AuthorizationError: When the requester neither owns it nor is an admin
            ValidationError: When the request names foreign passengers or an inconsistent count
            InsufficientSeatsError: When the flight cannot seat the added passengers
        """
        booking = await self._get_booking_with_relations(booking_id)
        self._authorize(booking, requester)

        if not booking.is_active:
            raise InvalidBookingStateError(
                str(booking_id),
                booking.status.value,
                message=f"Cannot modify {booking.status.value} booking"
            )

        try:
            if update_data.passengers is None:
                if (
                    update_data.passenger_count is not None
                    and update_data.passenger_count != booking.passenger_count
                ):
                    raise ValidationError(
                        "passenger_count can only change together with the passenger list",
                        field_errors={"passenger_count": ["must match the number of passengers"]}
                    )
                booking.updated_at = utcnow()
            else:
                await self._apply_passenger_changes(booking, update_data)

            await self.session.commit()
        except FlightBookingError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to modify booking {booking_id}: {e}")
            raise PersistenceError("Failed to update booking")

        await CacheInvalidator.invalidate_flight_caches(str(booking.flight_id))
        log_business_event(
            "booking_modified",
            {"booking_id": str(booking_id), "passenger_count": booking.passenger_count},
            user_id=str(requester.id)
        )

        return await self._get_booking_with_relations(booking_id)

    async def cancel_booking(self, booking_id: UUID, requester: User) -> None:
        """
        Cancel a booking: return its seats to the flight and delete it.

        Raises:
            BookingNotFoundError: When the booking does not exist
            AuthorizationError: When the requester neither owns it nor is an admin
            InvalidBookingStateError: When the booking is cancelled or completed
            FlightDepartedError: When the flight has already departed
        """
        result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.passengers))
            .where(Booking.id == booking_id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise BookingNotFoundError(str(booking_id))

        self._authorize(booking, requester)

        if booking.status == BookingStatus.CANCELLED:
            raise InvalidBookingStateError(
                str(booking_id), booking.status.value, message="Booking is already cancelled"
            )
        if booking.status == BookingStatus.COMPLETED:
            raise InvalidBookingStateError(
                str(booking_id), booking.status.value, message="Cannot cancel completed booking"
            )

        flight: Optional[Flight] = None
        try:
            flight_result = await self.session.execute(
                select(Flight).where(Flight.id == booking.flight_id)
            )
            flight = flight_result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(f"Could not load flight for booking {booking_id}: {e}")

        if flight is None:
            logger.warning(
                f"Cancelling booking {booking_id} without seat release, "
                f"flight {booking.flight_id} unavailable"
            )
        elif flight.has_departed:
            raise FlightDepartedError(str(flight.id), action="cancel")

        seats = booking.passenger_count
        try:
            if flight is not None:
                await self.ledger.release(flight.id, seats)
            await self.session.delete(booking)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to cancel booking {booking_id}: {e}")
            raise PersistenceError("Failed to delete booking")

        await CacheInvalidator.invalidate_flight_caches(str(booking.flight_id))
        log_business_event(
            "booking_cancelled",
            {
                "booking_id": str(booking_id),
                "flight_id": str(booking.flight_id),
                "seats_released": seats if flight is not None else 0,
            },
            user_id=str(requester.id)
        )

    async def set_booking_status(self, booking_id: UUID, status: BookingStatus) -> Booking:
        """
        Overwrite a booking's status. Seats are not touched.

        Raises:
            BookingNotFoundError: When the booking does not exist
        """
        result = await self.session.execute(
            select(Booking).where(Booking.id == booking_id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise BookingNotFoundError(str(booking_id))

        previous = booking.status
        booking.status = status
        await self.session.commit()

        logger.info(f"Booking {booking_id} status changed from {previous.value} to {status.value}")
        return booking

    async def list_user_bookings(self, user_id: UUID) -> List[Booking]:
        """A user's bookings with their flights, newest first."""
        result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.flight))
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_booking_history(
        self,
        user_id: UUID,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Booking], int]:
        """
        Page through a user's bookings, newest first.

        Returns:
            Tuple of (bookings with flights loaded, total count for the user)
        """
        conditions = [Booking.user_id == user_id]
        if status:
            conditions.append(Booking.status == status)

        total = (await self.session.execute(
            select(func.count(Booking.id)).where(*conditions)
        )).scalar() or 0

        result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.flight))
            .where(*conditions)
            .order_by(Booking.created_at.desc(), Booking.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Booking], int]:
        """
        List all bookings for administrators.

        Returns:
            Tuple of (bookings with user and flight loaded, total count)
        """
        conditions = [Booking.status == status] if status else []

        total = (await self.session.execute(
            select(func.count(Booking.id)).where(*conditions)
        )).scalar() or 0

        result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.user), selectinload(Booking.flight))
            .where(*conditions)
            .order_by(Booking.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_user_booking_stats(self, user_id: UUID) -> Dict[str, Any]:
        """
        Get booking statistics for a user's dashboard.

        Args:
            user_id: ID of the user

        Returns:
            Dictionary with ``stats`` totals and the five most recent bookings
        """
        status_query = (
            select(
                Booking.status,
                func.count(Booking.id).label('booking_count'),
                func.sum(Booking.total_price).label('total_price')
            )
            .where(Booking.user_id == user_id)
            .group_by(Booking.status)
        )

        status_result = await self.session.execute(status_query)
        status_data = {
            row.status: {'count': row.booking_count, 'total': Decimal(row.total_price or 0)}
            for row in status_result
        }

        total_bookings = sum(data['count'] for data in status_data.values())
        total_spent = sum((data['total'] for data in status_data.values()), Decimal('0'))
        empty = {'count': 0}

        recent_result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.flight))
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
            .limit(5)
        )

        recent_activity = []
        for booking in recent_result.scalars().all():
            flight = booking.flight
            recent_activity.append({
                'booking_id': booking.id,
                'booking_reference': booking.booking_reference,
                'status': booking.status,
                'total_price': booking.total_price,
                'created_at': booking.created_at,
                'flight_number': flight.flight_number if flight else None,
                'airline': flight.airline if flight else None,
                'from_airport': flight.from_airport if flight else None,
                'to_airport': flight.to_airport if flight else None,
            })

        return {
            'stats': {
                'total_bookings': total_bookings,
                'total_spent': total_spent,
                'confirmed_bookings': status_data.get(BookingStatus.CONFIRMED, empty)['count'],
                'cancelled_bookings': status_data.get(BookingStatus.CANCELLED, empty)['count'],
                'average_booking_value': (
                    (total_spent / total_bookings).quantize(Decimal('0.01'))
                    if total_bookings else Decimal('0')
                ),
            },
            'recent_activity': recent_activity,
        }

    async def complete_finished_bookings(self) -> int:
        """
        Mark confirmed bookings on arrived flights as completed.

        Returns:
            Number of bookings completed
        """
        now = utcnow()
        arrived = select(Flight.id).where(Flight.arrival_time <= now)

        result = await self.session.execute(
            update(Booking)
            .where(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.flight_id.in_(arrived)
            )
            .values(status=BookingStatus.COMPLETED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        completed = result.rowcount or 0
        if completed:
            logger.info(f"Completed {completed} bookings on arrived flights")
        return completed

    async def _apply_passenger_changes(self, booking: Booking, update_data: BookingUpdate) -> None:
        """Reconcile passengers by identity and move the seat delta through the ledger."""
        incoming = update_data.passengers
        new_count = len(incoming)

        if update_data.passenger_count is not None and update_data.passenger_count != new_count:
            raise ValidationError(
                "passenger_count must equal the number of passengers",
                field_errors={"passenger_count": [f"expected {new_count}"]}
            )

        current = {passenger.id: passenger for passenger in booking.passengers}
        incoming_ids = [p.id for p in incoming if p.id is not None]

        foreign = [str(pid) for pid in incoming_ids if pid not in current]
        if foreign:
            raise ValidationError(
                "Passengers do not belong to this booking",
                field_errors={"passengers": [f"unknown passenger {pid}" for pid in foreign]}
            )
        if len(set(incoming_ids)) != len(incoming_ids):
            raise ValidationError(
                "Each passenger may appear only once",
                field_errors={"passengers": ["duplicate passenger id"]}
            )

        for passenger_data in incoming:
            fields = passenger_data.model_dump(exclude_unset=True, exclude={"id"})
            if passenger_data.id is not None:
                passenger = current[passenger_data.id]
                for field, value in fields.items():
                    setattr(passenger, field, value)
            else:
                booking.passengers.append(Passenger(**fields))

        keep = set(incoming_ids)
        for passenger_id, passenger in current.items():
            if passenger_id not in keep:
                booking.passengers.remove(passenger)

        delta = new_count - booking.passenger_count
        if delta == 0:
            booking.updated_at = utcnow()
            return

        price_result = await self.session.execute(
            select(Flight.price).where(Flight.id == booking.flight_id)
        )
        price = price_result.scalar_one_or_none()
        if price is None:
            raise FlightNotFoundError(str(booking.flight_id))

        if delta > 0:
            await self.ledger.reserve(booking.flight_id, delta)
        else:
            await self.ledger.release(booking.flight_id, -delta)

        booking.passenger_count = new_count
        booking.total_price = Decimal(price) * new_count
        logger.info(f"Booking {booking.id} now holds {new_count} seats ({delta:+d})")

    async def _persist_passengers(self, booking: Booking, passengers: List[PassengerCreate]) -> None:
        """Write the passenger rows for a freshly flushed booking."""
        for passenger_data in passengers:
            booking.passengers.append(Passenger(**passenger_data.model_dump()))
        await self.session.flush()

    async def _allocate_booking_reference(self) -> str:
        """Draw references until one is unused; the unique constraint backs this up."""
        for _ in range(self.settings.booking_reference_attempts):
            reference = generate_booking_reference(self.settings.booking_reference_length)
            result = await self.session.execute(
                select(Booking.id).where(Booking.booking_reference == reference)
            )
            if result.scalar_one_or_none() is None:
                return reference
            logger.warning(f"Booking reference collision on {reference}, retrying")

        raise PersistenceError("Could not allocate a unique booking reference")

    async def _get_flight(self, flight_id: UUID) -> Flight:
        result = await self.session.execute(
            select(Flight).where(Flight.id == flight_id)
        )
        flight = result.scalar_one_or_none()
        if not flight:
            raise FlightNotFoundError(str(flight_id))
        return flight

    async def _get_booking_with_relations(self, booking_id: UUID) -> Booking:
        """Get booking with its flight and passengers."""
        query = (
            select(Booking)
            .options(
                selectinload(Booking.flight),
                selectinload(Booking.passengers)
            )
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )

        result = await self.session.execute(query)
        booking = result.scalar_one_or_none()

        if not booking:
            raise BookingNotFoundError(str(booking_id))

        return booking

    def _authorize(self, booking: Booking, requester: User) -> None:
        if booking.user_id != requester.id and not requester.is_admin:
            raise AuthorizationError("Access denied")

    def _queue_confirmation(self, booking_id: UUID) -> None:
        """Queue the confirmation email; a failure here never affects the booking."""
        try:
            self.notifier(booking_id)
            logger.info(f"Booking confirmation queued for booking {booking_id}")
        except Exception as e:
            logger.warning(f"Failed to queue booking confirmation for {booking_id}: {e}")
