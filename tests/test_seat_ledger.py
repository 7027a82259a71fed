from uuid import uuid4

import pytest
from sqlalchemy import select, update

from flight_booking_platform.models import Flight
from flight_booking_platform.services.seat_ledger import SeatLedger
from flight_booking_platform.utils.exceptions import (
    FlightNotFoundError,
    InsufficientSeatsError,
    ValidationError,
)


async def available_seats(session_factory, flight_id):
    async with session_factory() as session:
        result = await session.execute(select(Flight.available_seats).where(Flight.id == flight_id))
        return result.scalar_one()


async def test_reserve_decrements_and_returns_remaining(session, session_factory, flight):
    ledger = SeatLedger(session)

    remaining = await ledger.reserve(flight.id, 3)
    await session.commit()

    assert remaining == 7
    assert await available_seats(session_factory, flight.id) == 7


async def test_reserve_exact_capacity_then_refuses_one_more(session, make_flight):
    small = await make_flight(flight_number="FB202", total_seats=2, available_seats=2)
    ledger = SeatLedger(session)

    assert await ledger.reserve(small.id, 2) == 0

    with pytest.raises(InsufficientSeatsError) as exc_info:
        await ledger.reserve(small.id, 1)

    assert exc_info.value.message == "Only 0 seats available"
    assert exc_info.value.details["available"] == 0


async def test_reserve_unknown_flight(session):
    with pytest.raises(FlightNotFoundError):
        await SeatLedger(session).reserve(uuid4(), 1)


async def test_reserve_rejects_non_positive_count(session, flight):
    with pytest.raises(ValueError):
        await SeatLedger(session).reserve(flight.id, 0)


async def test_reserve_refreshes_loaded_flight(session, flight):
    loaded = (await session.execute(select(Flight).where(Flight.id == flight.id))).scalar_one()

    await SeatLedger(session).reserve(flight.id, 4)

    assert loaded.available_seats == 6


async def test_release_returns_seats(session, make_flight):
    half_full = await make_flight(flight_number="FB303", total_seats=10, available_seats=4)

    assert await SeatLedger(session).release(half_full.id, 3) == 7


async def test_release_caps_at_total(session, make_flight):
    almost_empty = await make_flight(flight_number="FB404", total_seats=10, available_seats=9)

    assert await SeatLedger(session).release(almost_empty.id, 5) == 10


async def test_release_missing_flight_is_noop(session):
    assert await SeatLedger(session).release(uuid4(), 2) is None


async def test_resize_keeps_held_seats(session, flight):
    await session.execute(
        update(Flight).where(Flight.id == flight.id).values(available_seats=6)
    )
    loaded = (await session.execute(select(Flight).where(Flight.id == flight.id))).scalar_one()

    await SeatLedger(session).resize(flight.id, total_seats=20)

    assert loaded.total_seats == 20
    assert loaded.available_seats == 16


async def test_resize_below_held_seats_rejected(session, flight):
    await session.execute(
        update(Flight).where(Flight.id == flight.id).values(available_seats=2)
    )
    loaded = (
        await session.execute(
            select(Flight).where(Flight.id == flight.id).execution_options(populate_existing=True)
        )
    ).scalar_one()

    with pytest.raises(ValidationError) as exc_info:
        await SeatLedger(session).resize(flight.id, total_seats=5)

    assert exc_info.value.field_errors == {"total_seats": ["must be at least 8"]}
    assert loaded.total_seats == 10


async def test_resize_counts_seats_booked_after_load(session, session_factory, flight):
    loaded = (await session.execute(select(Flight).where(Flight.id == flight.id))).scalar_one()
    await session.commit()
    assert loaded.available_seats == 10

    async with session_factory() as other:
        await SeatLedger(other).reserve(flight.id, 3)
        await other.commit()

    await SeatLedger(session).resize(flight.id, total_seats=20)
    await session.commit()

    assert loaded.total_seats == 20
    assert loaded.available_seats == 17
    assert await available_seats(session_factory, flight.id) == 17


async def test_resize_below_seats_booked_after_load_rejected(session, session_factory, flight):
    loaded = (await session.execute(select(Flight).where(Flight.id == flight.id))).scalar_one()
    await session.commit()

    async with session_factory() as other:
        await SeatLedger(other).reserve(flight.id, 8)
        await other.commit()

    with pytest.raises(ValidationError) as exc_info:
        await SeatLedger(session).resize(flight.id, total_seats=loaded.total_seats - 5)
    await session.rollback()

    assert "8 seats are already booked" in exc_info.value.message
    assert await available_seats(session_factory, flight.id) == 2


async def test_resize_unknown_flight(session):
    with pytest.raises(FlightNotFoundError):
        await SeatLedger(session).resize(uuid4(), total_seats=20)


async def test_resize_sets_available_within_total(session, session_factory, flight):
    loaded = (await session.execute(select(Flight).where(Flight.id == flight.id))).scalar_one()

    await SeatLedger(session).resize(flight.id, available_seats=4)
    await session.commit()

    assert loaded.available_seats == 4
    assert await available_seats(session_factory, flight.id) == 4


async def test_resize_available_out_of_range_rejected(session, flight):
    ledger = SeatLedger(session)

    with pytest.raises(ValidationError) as exc_info:
        await ledger.resize(flight.id, available_seats=11)
    assert exc_info.value.field_errors == {"available_seats": ["must be between 0 and 10"]}

    with pytest.raises(ValidationError):
        await ledger.resize(flight.id, available_seats=-1)
