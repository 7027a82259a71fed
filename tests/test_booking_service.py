import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from flight_booking_platform.models import Booking, BookingStatus, Flight, Passenger
from flight_booking_platform.models.base import utcnow
from flight_booking_platform.schemas.booking import BookingCreate, BookingUpdate
from flight_booking_platform.services.booking_service import (
    BookingService,
    generate_booking_reference,
)
from flight_booking_platform.utils.exceptions import (
    AuthorizationError,
    FlightDepartedError,
    FlightNotFoundError,
    InsufficientSeatsError,
    InvalidBookingStateError,
    PersistenceError,
    ValidationError,
)

from conftest import booking_payload


def create_request(flight_id, count=1) -> BookingCreate:
    return BookingCreate.model_validate(booking_payload(flight_id, count))


async def flight_seats(session_factory, flight_id) -> int:
    async with session_factory() as session:
        result = await session.execute(select(Flight.available_seats).where(Flight.id == flight_id))
        return result.scalar_one()


async def row_counts(session_factory):
    async with session_factory() as session:
        bookings = (await session.execute(select(func.count(Booking.id)))).scalar()
        passengers = (await session.execute(select(func.count(Passenger.id)))).scalar()
        return bookings, passengers


async def book(session_factory, user, flight_id, count=1, notifier=None):
    async with session_factory() as session:
        service = BookingService(session, notifier=notifier or (lambda booking_id: None))
        return await service.create_booking(user.id, create_request(flight_id, count))


def test_booking_reference_format():
    reference = generate_booking_reference()

    assert len(reference) == 8
    assert reference.isalnum()
    assert reference == reference.upper()


async def test_create_booking_takes_seats_and_prices(session_factory, user, flight):
    notified = []

    booking = await book(session_factory, user, flight.id, count=3, notifier=notified.append)

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.passenger_count == 3
    assert booking.total_price == Decimal("450.00")
    assert len(booking.passengers) == 3
    assert booking.flight.id == flight.id
    assert notified == [booking.id]
    assert await flight_seats(session_factory, flight.id) == 7


async def test_exact_capacity_then_one_more_fails(session_factory, user, make_flight):
    small = await make_flight(flight_number="FB500", total_seats=2, available_seats=2)

    await book(session_factory, user, small.id, count=2)

    with pytest.raises(InsufficientSeatsError) as exc_info:
        await book(session_factory, user, small.id, count=1)

    assert exc_info.value.message == "Only 0 seats available"
    assert await flight_seats(session_factory, small.id) == 0
    assert await row_counts(session_factory) == (1, 2)


async def test_stale_read_cannot_oversell(session_factory, user, make_flight):
    last_seat = await make_flight(flight_number="FB501", total_seats=1, available_seats=1)

    async with session_factory() as stale_session:
        # Load the flight while the seat is still free, then let the transaction end
        loaded = (await stale_session.execute(select(Flight).where(Flight.id == last_seat.id))).scalar_one()
        assert loaded.available_seats == 1
        await stale_session.commit()

        await book(session_factory, user, last_seat.id)

        service = BookingService(stale_session, notifier=lambda booking_id: None)
        with pytest.raises(InsufficientSeatsError):
            await service.create_booking(user.id, create_request(last_seat.id))

    assert await flight_seats(session_factory, last_seat.id) == 0
    assert await row_counts(session_factory) == (1, 1)


async def test_concurrent_bookings_never_oversell(session_factory, user, make_flight):
    contested = await make_flight(flight_number="FB502", total_seats=3, available_seats=3)

    results = await asyncio.gather(
        *(book(session_factory, user, contested.id) for _ in range(5)),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, Booking)]
    refused = [r for r in results if isinstance(r, InsufficientSeatsError)]
    assert len(succeeded) == 3
    assert len(refused) == 2
    assert await flight_seats(session_factory, contested.id) == 0
    assert await row_counts(session_factory) == (3, 3)


async def test_past_flight_rejected(session_factory, user, make_flight):
    departed = await make_flight(
        flight_number="FB503",
        departure_time=utcnow() - timedelta(hours=2),
        arrival_time=utcnow() + timedelta(hours=1),
    )

    with pytest.raises(FlightDepartedError) as exc_info:
        await book(session_factory, user, departed.id)

    assert exc_info.value.message == "Cannot book past flights"
    assert await flight_seats(session_factory, departed.id) == 10


async def test_unknown_flight_rejected(session_factory, user):
    from uuid import uuid4

    with pytest.raises(FlightNotFoundError):
        await book(session_factory, user, uuid4())


async def test_passenger_failure_leaves_no_booking(session_factory, user, flight, monkeypatch):
    async def failing_persist(self, booking, passengers):
        raise SQLAlchemyError("passenger insert failed")

    monkeypatch.setattr(BookingService, "_persist_passengers", failing_persist)

    with pytest.raises(PersistenceError) as exc_info:
        await book(session_factory, user, flight.id, count=2)

    assert exc_info.value.message == "Failed to create passenger records"
    assert await row_counts(session_factory) == (0, 0)
    assert await flight_seats(session_factory, flight.id) == 10


async def test_notifier_failure_does_not_fail_booking(session_factory, user, flight):
    def broken_notifier(booking_id):
        raise ConnectionError("broker unavailable")

    booking = await book(session_factory, user, flight.id, notifier=broken_notifier)

    assert booking.status == BookingStatus.CONFIRMED
    assert await flight_seats(session_factory, flight.id) == 9


async def test_cancel_restores_seats_and_deletes(session_factory, user, flight):
    booking = await book(session_factory, user, flight.id, count=2)
    assert await flight_seats(session_factory, flight.id) == 8

    async with session_factory() as session:
        await BookingService(session).cancel_booking(booking.id, user)

    assert await flight_seats(session_factory, flight.id) == 10
    assert await row_counts(session_factory) == (0, 0)


async def test_cancel_cancelled_booking_rejected(session_factory, user, flight):
    booking = await book(session_factory, user, flight.id)
    async with session_factory() as session:
        await BookingService(session).set_booking_status(booking.id, BookingStatus.CANCELLED)

    async with session_factory() as session:
        with pytest.raises(InvalidBookingStateError) as exc_info:
            await BookingService(session).cancel_booking(booking.id, user)

    assert exc_info.value.message == "Booking is already cancelled"
    assert await flight_seats(session_factory, flight.id) == 9


async def test_cancel_by_other_user_forbidden(session_factory, user, other_user, flight):
    booking = await book(session_factory, user, flight.id)

    async with session_factory() as session:
        with pytest.raises(AuthorizationError):
            await BookingService(session).cancel_booking(booking.id, other_user)


async def test_admin_status_change_keeps_seats(session_factory, user, flight):
    booking = await book(session_factory, user, flight.id, count=2)

    async with session_factory() as session:
        updated = await BookingService(session).set_booking_status(booking.id, BookingStatus.CANCELLED)

    assert updated.status == BookingStatus.CANCELLED
    assert await flight_seats(session_factory, flight.id) == 8


async def test_modify_adds_passengers_and_reprices(session_factory, user, flight):
    booking = await book(session_factory, user, flight.id, count=2)
    kept = booking.passengers[0]

    update = BookingUpdate.model_validate({
        "passengers": [
            {"id": str(kept.id), "firstName": "Renamed", "lastName": kept.last_name},
            {"firstName": "New", "lastName": "One"},
            {"firstName": "New", "lastName": "Two"},
            {"id": str(booking.passengers[1].id), "firstName": "Kept", "lastName": "Two"},
        ],
        "passengerCount": 4,
    })

    async with session_factory() as session:
        modified = await BookingService(session).modify_booking(booking.id, update, user)

    assert modified.passenger_count == 4
    assert modified.total_price == Decimal("600.00")
    assert len(modified.passengers) == 4
    assert kept.id in {p.id for p in modified.passengers}
    assert "Renamed" in {p.first_name for p in modified.passengers}
    assert await flight_seats(session_factory, flight.id) == 6


async def test_modify_removes_passengers_and_releases_seats(session_factory, user, flight):
    booking = await book(session_factory, user, flight.id, count=3)
    survivor = booking.passengers[1]

    update = BookingUpdate.model_validate({
        "passengers": [{"id": str(survivor.id), "firstName": "Solo", "lastName": "Traveller"}],
    })

    async with session_factory() as session:
        modified = await BookingService(session).modify_booking(booking.id, update, user)

    assert [p.id for p in modified.passengers] == [survivor.id]
    assert modified.total_price == Decimal("150.00")
    assert await flight_seats(session_factory, flight.id) == 9
    assert await row_counts(session_factory) == (1, 1)


async def test_modify_beyond_capacity_rolls_back(session_factory, user, make_flight):
    small = await make_flight(flight_number="FB504", total_seats=3, available_seats=3)
    booking = await book(session_factory, user, small.id, count=2)

    update = BookingUpdate.model_validate({
        "passengers": [{"firstName": f"P{i}", "lastName": "X"} for i in range(4)],
    })

    async with session_factory() as session:
        with pytest.raises(InsufficientSeatsError):
            await BookingService(session).modify_booking(booking.id, update, user)

    assert await flight_seats(session_factory, small.id) == 1
    assert await row_counts(session_factory) == (1, 2)


async def test_modify_with_foreign_passenger_rejected(session_factory, user, flight):
    first = await book(session_factory, user, flight.id)
    second = await book(session_factory, user, flight.id)

    update = BookingUpdate.model_validate({
        "passengers": [{"id": str(second.passengers[0].id), "firstName": "Stolen", "lastName": "Seat"}],
    })

    async with session_factory() as session:
        with pytest.raises(ValidationError):
            await BookingService(session).modify_booking(first.id, update, user)

    assert await flight_seats(session_factory, flight.id) == 8


async def test_modify_count_mismatch_rejected(session_factory, user, flight):
    booking = await book(session_factory, user, flight.id, count=2)

    async with session_factory() as session:
        with pytest.raises(ValidationError):
            await BookingService(session).modify_booking(
                booking.id, BookingUpdate(passenger_count=3), user
            )


async def test_get_booking_tolerates_missing_flight(session_factory, user, flight):
    booking = await book(session_factory, user, flight.id)

    async with session_factory() as session:
        # Orphan the booking; SQLite does not enforce the foreign key here
        await session.execute(Flight.__table__.delete().where(Flight.id == flight.id))
        await session.commit()

    async with session_factory() as session:
        view = await BookingService(session).get_booking(booking.id, user)

    assert view.booking.id == booking.id
    assert view.flight is None
    assert len(view.passengers) == 1


async def test_complete_finished_bookings(session_factory, user, make_flight, flight):
    booking = await book(session_factory, user, flight.id)
    landed = await make_flight(
        flight_number="FB505",
        departure_time=utcnow() - timedelta(hours=5),
        arrival_time=utcnow() - timedelta(hours=1),
    )
    async with session_factory() as session:
        session.add(Booking(
            user_id=user.id,
            flight_id=landed.id,
            booking_reference="LANDED01",
            passenger_count=1,
            total_price=Decimal("150.00"),
            contact_email="traveller@example.com",
            contact_phone="+1 555 010 2000",
            status=BookingStatus.CONFIRMED,
        ))
        await session.commit()

    async with session_factory() as session:
        completed = await BookingService(session).complete_finished_bookings()

    assert completed == 1
    async with session_factory() as session:
        statuses = dict((await session.execute(select(Booking.booking_reference, Booking.status))).all())
    assert statuses["LANDED01"] == BookingStatus.COMPLETED
    assert statuses[booking.booking_reference] == BookingStatus.CONFIRMED


async def test_user_booking_stats(session_factory, user, flight):
    await book(session_factory, user, flight.id, count=2)
    await book(session_factory, user, flight.id, count=1)

    async with session_factory() as session:
        stats = await BookingService(session).get_user_booking_stats(user.id)

    assert stats["stats"]["total_bookings"] == 2
    assert stats["stats"]["confirmed_bookings"] == 2
    assert stats["stats"]["total_spent"] == Decimal("450.00")
    assert stats["stats"]["average_booking_value"] == Decimal("225.00")
    assert len(stats["recent_activity"]) == 2
