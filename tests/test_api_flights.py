import json
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from flight_booking_platform.api.flights import stream_flight_updates
from flight_booking_platform.models import CabinClass
from flight_booking_platform.models.base import utcnow

from conftest import auth_headers, booking_payload


def new_flight_payload(**overrides):
    departure = utcnow() + timedelta(days=10)
    payload = {
        "flightNumber": "FB900",
        "airline": "Test Air",
        "fromLocation": "Boston",
        "fromAirport": "BOS",
        "toLocation": "Chicago",
        "toAirport": "ORD",
        "departureTime": departure.isoformat(),
        "arrivalTime": (departure + timedelta(hours=3)).isoformat(),
        "duration": 180,
        "price": "99.50",
        "seats": 50,
        "class": "economy",
    }
    payload.update(overrides)
    return payload


class FakeRequest:
    def __init__(self):
        self.disconnected = False

    async def is_disconnected(self):
        return self.disconnected


async def test_search_filters_and_paginates(client, make_flight):
    await make_flight(flight_number="FB001", price=Decimal("300.00"))
    await make_flight(flight_number="FB002", price=Decimal("100.00"))
    await make_flight(flight_number="FB003", from_airport="SFO", from_location="San Francisco")

    response = await client.get(
        "/api/flights",
        params={"from": "jf", "to": "LAX", "sort": "price", "order": "asc", "limit": 1},
    )

    assert response.status_code == 200
    body = response.json()
    assert [f["flight_number"] for f in body["flights"]] == ["FB002"]
    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
    assert body["returnFlights"] == []


async def test_search_excludes_departed_and_full_flights(client, make_flight):
    await make_flight(flight_number="FB010")
    await make_flight(flight_number="FB011", available_seats=1)
    await make_flight(
        flight_number="FB012",
        departure_time=utcnow() - timedelta(hours=1),
        arrival_time=utcnow() + timedelta(hours=4),
    )

    response = await client.get("/api/flights", params={"passengers": 2})

    assert [f["flight_number"] for f in response.json()["flights"]] == ["FB010"]


async def test_search_by_day_and_cabin_with_return(client, make_flight):
    outbound = utcnow().replace(hour=12, minute=0, second=0, microsecond=0) + timedelta(days=5)
    back = outbound + timedelta(days=3)
    await make_flight(
        flight_number="FB020",
        departure_time=outbound,
        arrival_time=outbound + timedelta(hours=6),
        cabin_class=CabinClass.BUSINESS,
    )
    await make_flight(
        flight_number="FB021",
        departure_time=outbound + timedelta(days=1),
        arrival_time=outbound + timedelta(days=1, hours=6),
        cabin_class=CabinClass.BUSINESS,
    )
    await make_flight(
        flight_number="FB022",
        from_airport="LAX",
        to_airport="JFK",
        departure_time=back,
        arrival_time=back + timedelta(hours=5),
        cabin_class=CabinClass.BUSINESS,
    )

    response = await client.get(
        "/api/flights",
        params={
            "from": "JFK",
            "to": "LAX",
            "date": outbound.date().isoformat(),
            "returnDate": back.date().isoformat(),
            "class": "business",
        },
    )

    body = response.json()
    assert [f["flight_number"] for f in body["flights"]] == ["FB020"]
    assert [f["flight_number"] for f in body["returnFlights"]] == ["FB022"]


async def test_search_rejects_unknown_sort_field(client):
    response = await client.get("/api/flights", params={"sort": "airline; drop table flights"})

    assert response.status_code == 400
    assert response.json()["error"]["error_code"] == "VALIDATION_ERROR"


async def test_get_flight(client, flight):
    response = await client.get(f"/api/flights/{flight.id}")

    assert response.status_code == 200
    body = response.json()["flight"]
    assert body["id"] == str(flight.id)
    assert body["available_seats"] == 10
    assert Decimal(body["price"]) == Decimal("150.00")


async def test_get_unknown_flight_returns_404(client):
    response = await client.get(f"/api/flights/{uuid4()}")

    assert response.status_code == 404
    body = response.json()
    assert body["error"]["message"] == "Flight not found"
    assert "error_id" in body


async def test_create_flight_requires_admin(client, user):
    anonymous = await client.post("/api/flights", json=new_flight_payload())
    assert anonymous.status_code == 401
    assert anonymous.headers["www-authenticate"] == "Bearer"

    forbidden = await client.post("/api/flights", json=new_flight_payload(), headers=auth_headers(user))
    assert forbidden.status_code == 403


async def test_admin_creates_flight(client, admin):
    response = await client.post("/api/flights", json=new_flight_payload(), headers=auth_headers(admin))

    assert response.status_code == 201
    flight = response.json()["flight"]
    assert flight["total_seats"] == 50
    assert flight["available_seats"] == 50
    assert flight["status"] == "scheduled"

    duplicate = await client.post("/api/flights", json=new_flight_payload(), headers=auth_headers(admin))
    assert duplicate.status_code == 400
    assert duplicate.json()["error"]["message"] == "Flight already exists"


async def test_create_flight_with_arrival_before_departure_rejected(client, admin):
    departure = utcnow() + timedelta(days=3)
    payload = new_flight_payload(
        departureTime=departure.isoformat(),
        arrivalTime=(departure - timedelta(hours=1)).isoformat(),
    )

    response = await client.post("/api/flights", json=payload, headers=auth_headers(admin))

    assert response.status_code == 400


async def test_update_flight_resizes_and_broadcasts(client, admin, user, flight, broadcaster):
    await client.post("/api/bookings", json=booking_payload(flight.id, 3), headers=auth_headers(user))
    subscription = broadcaster.subscribe()

    response = await client.put(
        f"/api/flights/{flight.id}",
        json={"totalSeats": 20, "price": "175.00"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    updated = response.json()["flight"]
    assert updated["total_seats"] == 20
    assert updated["available_seats"] == 17

    message = json.loads(subscription.queue.get_nowait())
    assert message["id"] == str(flight.id)
    assert message["available_seats"] == 17
    subscription.unsubscribe()


async def test_status_change_broadcasts_once(client, admin, flight, broadcaster):
    subscription = broadcaster.subscribe()

    response = await client.put(
        f"/api/flights/{flight.id}", json={"status": "delayed"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["flight"]["status"] == "delayed"

    message = json.loads(subscription.queue.get_nowait())
    assert message["id"] == str(flight.id)
    assert message["status"] == "delayed"
    assert message["available_seats"] == 10
    assert subscription.queue.empty()
    subscription.unsubscribe()


async def test_update_flight_below_booked_seats_rejected(client, admin, user, flight, broadcaster):
    await client.post("/api/bookings", json=booking_payload(flight.id, 4), headers=auth_headers(user))
    subscription = broadcaster.subscribe()

    response = await client.put(
        f"/api/flights/{flight.id}", json={"seats": 3}, headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert subscription.queue.empty()

    unchanged = (await client.get(f"/api/flights/{flight.id}")).json()["flight"]
    assert unchanged["total_seats"] == 10
    assert unchanged["available_seats"] == 6


async def test_delete_flight(client, admin, user, flight, make_flight):
    await client.post("/api/bookings", json=booking_payload(flight.id), headers=auth_headers(user))

    blocked = await client.delete(f"/api/flights/{flight.id}", headers=auth_headers(admin))
    assert blocked.status_code == 400
    assert blocked.json()["error"]["error_code"] == "FLIGHT_HAS_BOOKINGS"

    empty = await make_flight(flight_number="FB030")
    deleted = await client.delete(f"/api/flights/{empty.id}", headers=auth_headers(admin))
    assert deleted.status_code == 200
    assert (await client.get(f"/api/flights/{empty.id}")).status_code == 404


async def test_popular_routes(client, make_flight):
    await make_flight(flight_number="FB040")
    await make_flight(flight_number="FB041")
    await make_flight(flight_number="FB042", from_airport="SFO", to_airport="SEA")

    response = await client.get("/api/flights/popular/routes")

    assert response.status_code == 200
    assert response.json()["popularRoutes"][0] == {"route": "JFK - LAX", "count": 2}


async def test_stream_delivers_updates_while_connected(broadcaster):
    request = FakeRequest()
    response = await stream_flight_updates(request, broadcaster)
    frames = response.body_iterator

    assert await frames.__anext__() == ": connected\n\n"
    assert broadcaster.subscriber_count == 1

    broadcaster.publish({"id": "flight-1", "available_seats": 3})
    frame = await frames.__anext__()
    assert frame.startswith("data: ")
    assert json.loads(frame[len("data: "):])["available_seats"] == 3

    request.disconnected = True
    await frames.aclose()
    assert broadcaster.subscriber_count == 0
