"""
Shared fixtures: a file-backed SQLite database per test, seeded users and
flights, and an HTTP client bound to the application.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

from flight_booking_platform.api.bookings import get_booking_service
from flight_booking_platform.database import create_session_factory, create_tables, get_db
from flight_booking_platform.main import app
from flight_booking_platform.models import CabinClass, Flight, FlightStatus, User, UserRole
from flight_booking_platform.models.base import utcnow
from flight_booking_platform.services.booking_service import BookingService
from flight_booking_platform.services.flight_broadcaster import (
    FlightBroadcaster,
    get_flight_broadcaster,
)
from flight_booking_platform.utils.auth import create_access_token


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'flights.db'}",
        connect_args={"timeout": 30},
    )

    # Take the write lock when a transaction starts so concurrent writers queue
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def add(session_factory):
    """Persist objects in their own committed transaction and return them."""

    async def _add(*objects):
        async with session_factory() as session:
            session.add_all(objects)
            await session.commit()
        return objects[0] if len(objects) == 1 else objects

    return _add


def build_flight(**overrides) -> Flight:
    departure = utcnow() + timedelta(days=7)
    values = dict(
        flight_number="FB101",
        airline="Test Air",
        from_location="New York",
        from_airport="JFK",
        to_location="Los Angeles",
        to_airport="LAX",
        departure_time=departure,
        arrival_time=departure + timedelta(hours=6),
        duration=360,
        cabin_class=CabinClass.ECONOMY,
        price=Decimal("150.00"),
        total_seats=10,
        available_seats=10,
        status=FlightStatus.SCHEDULED,
    )
    values.update(overrides)
    return Flight(**values)


@pytest.fixture
def make_flight(add):
    async def _make_flight(**overrides) -> Flight:
        return await add(build_flight(**overrides))

    return _make_flight


@pytest.fixture
async def flight(make_flight):
    return await make_flight()


@pytest.fixture
async def user(add):
    return await add(User(email="traveller@example.com", first_name="Ada", last_name="Lovelace"))


@pytest.fixture
async def other_user(add):
    return await add(User(email="other@example.com", first_name="Alan", last_name="Turing"))


@pytest.fixture
async def admin(add):
    return await add(
        User(email="admin@example.com", first_name="Grace", last_name="Hopper", role=UserRole.ADMIN)
    )


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


def passenger(first_name="Ada", last_name="Lovelace", **extra) -> dict:
    return {"firstName": first_name, "lastName": last_name, **extra}


def booking_payload(flight_id, count=1, **extra) -> dict:
    payload = {
        "flightId": str(flight_id),
        "passengers": [passenger(first_name=f"Passenger{i}") for i in range(count)],
        "contactEmail": "traveller@example.com",
        "contactPhone": "+1 555 010 2000",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def notifications():
    """Booking ids handed to the confirmation hook."""
    return []


@pytest.fixture
def broadcaster():
    return FlightBroadcaster(queue_size=10)


@pytest.fixture
async def client(session_factory, notifications, broadcaster):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_get_booking_service(db=Depends(get_db)):
        return BookingService(db, notifier=notifications.append)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_booking_service] = override_get_booking_service
    app.dependency_overrides[get_flight_broadcaster] = lambda: broadcaster

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()
