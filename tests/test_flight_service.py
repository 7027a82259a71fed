import json

import pytest
from sqlalchemy import select

from flight_booking_platform.models import Flight
from flight_booking_platform.schemas.booking import BookingCreate
from flight_booking_platform.schemas.flight import FlightUpdate
from flight_booking_platform.services.booking_service import BookingService
from flight_booking_platform.services.flight_broadcaster import FlightBroadcaster
from flight_booking_platform.services.flight_service import FlightService
from flight_booking_platform.utils.exceptions import ValidationError

from conftest import booking_payload


async def seat_counts(session_factory, flight_id):
    async with session_factory() as session:
        result = await session.execute(
            select(Flight.total_seats, Flight.available_seats).where(Flight.id == flight_id)
        )
        return tuple(result.one())


@pytest.fixture
def book_after_load(session_factory, user, monkeypatch):
    """Commit a booking from another session right after update_flight loads the flight."""

    def _install(count):
        load = FlightService.get_flight_by_id

        async def load_then_book(self, flight_id):
            loaded = await load(self, flight_id)
            await self.db.commit()
            async with session_factory() as other:
                service = BookingService(other, notifier=lambda booking_id: None)
                request = BookingCreate.model_validate(booking_payload(flight_id, count))
                await service.create_booking(user.id, request)
            return loaded

        monkeypatch.setattr(FlightService, "get_flight_by_id", load_then_book)

    return _install


async def test_update_flight_keeps_seats_booked_after_load(session_factory, flight, book_after_load):
    book_after_load(3)
    broadcaster = FlightBroadcaster(queue_size=5)
    subscription = broadcaster.subscribe()

    async with session_factory() as session:
        updated = await FlightService(session, broadcaster=broadcaster).update_flight(
            flight.id, FlightUpdate(total_seats=20)
        )

    assert (updated.total_seats, updated.available_seats) == (20, 17)
    assert await seat_counts(session_factory, flight.id) == (20, 17)

    message = json.loads(subscription.queue.get_nowait())
    assert message["available_seats"] == 17


async def test_update_flight_rejects_shrink_below_seats_booked_after_load(
    session_factory, flight, book_after_load
):
    book_after_load(8)
    broadcaster = FlightBroadcaster(queue_size=5)
    subscription = broadcaster.subscribe()

    async with session_factory() as session:
        with pytest.raises(ValidationError) as exc_info:
            await FlightService(session, broadcaster=broadcaster).update_flight(
                flight.id, FlightUpdate(total_seats=5)
            )

    assert exc_info.value.field_errors == {"total_seats": ["must be at least 8"]}
    assert await seat_counts(session_factory, flight.id) == (10, 2)
    assert subscription.queue.empty()
