"""
Flight service for search and administrative flight management.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import CacheInvalidator, CacheKeyBuilder, CacheTTL, get_cache
from ..models.base import ensure_utc, utcnow
from ..models.booking import Booking
from ..models.flight import Flight, FlightStatus
from ..schemas.flight import FlightCreate, FlightFilters, FlightResponse, FlightUpdate, SortOrder
from ..utils.exceptions import (
    FlightHasBookingsError,
    FlightNotFoundError,
    ValidationError,
)
from .flight_broadcaster import FlightBroadcaster, get_flight_broadcaster
from .seat_ledger import SeatLedger

logger = logging.getLogger(__name__)


def _day_bounds(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class FlightService:
    """Service class for flight search and management operations."""

    def __init__(self, db: AsyncSession, broadcaster: Optional[FlightBroadcaster] = None):
        """Initialize the flight service with database session."""
        self.db = db
        self.cache = get_cache()
        self.ledger = SeatLedger(db)
        self.broadcaster = broadcaster or get_flight_broadcaster()

    async def search_flights(
        self,
        filters: FlightFilters,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Flight], List[Flight], int]:
        """
        Search upcoming flights.

        Airports match case-insensitively on a substring. When a return date
        and both airports are given, return flights on that day with the
        airports swapped are found as well (unpaginated).

        Args:
            filters: Search parameters
            page: Page number (1-based)
            limit: Page size

        Returns:
            Tuple of (outbound page, return flights, outbound total)
        """
        conditions = self._search_conditions(
            filters.from_airport, filters.to_airport, filters.departure_date, filters
        )

        total = (await self.db.execute(
            select(func.count(Flight.id)).where(and_(*conditions))
        )).scalar() or 0

        result = await self.db.execute(
            select(Flight)
            .where(and_(*conditions))
            .order_by(self._order_by(filters), Flight.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        flights = list(result.scalars().all())

        return_flights: List[Flight] = []
        if filters.return_date and filters.from_airport and filters.to_airport:
            return_conditions = self._search_conditions(
                filters.to_airport, filters.from_airport, filters.return_date, filters
            )
            return_result = await self.db.execute(
                select(Flight)
                .where(and_(*return_conditions))
                .order_by(self._order_by(filters), Flight.id)
            )
            return_flights = list(return_result.scalars().all())

        logger.debug(
            f"Flight search returned {len(flights)}/{total} outbound and "
            f"{len(return_flights)} return flights"
        )
        return flights, return_flights, total

    async def get_flight(self, flight_id: UUID) -> Dict[str, Any]:
        """
        Get the serialized flight, served from cache when possible.

        Raises:
            FlightNotFoundError: If the flight is not found
        """
        cache_key = CacheKeyBuilder.flight_detail(str(flight_id))
        cached_flight = await self.cache.get(cache_key)
        if cached_flight:
            return cached_flight

        flight = await self.get_flight_by_id(flight_id)
        flight_dict = FlightResponse.model_validate(flight).model_dump(mode="json")
        await self.cache.set(cache_key, flight_dict, CacheTTL.FLIGHT_DETAIL)

        return flight_dict

    async def get_flight_by_id(self, flight_id: UUID) -> Flight:
        result = await self.db.execute(
            select(Flight).where(Flight.id == flight_id)
        )
        flight = result.scalar_one_or_none()
        if not flight:
            raise FlightNotFoundError(str(flight_id))
        return flight

    async def create_flight(self, flight_data: FlightCreate) -> Flight:
        """
        Create a scheduled flight with every seat available.

        Raises:
            ValidationError: If the flight number is already used at that departure time
        """
        duplicate = await self.db.execute(
            select(Flight.id).where(
                Flight.flight_number == flight_data.flight_number,
                Flight.departure_time == flight_data.departure_time
            )
        )
        if duplicate.scalar_one_or_none() is not None:
            raise ValidationError("Flight already exists")

        flight = Flight(
            **flight_data.model_dump(),
            available_seats=flight_data.total_seats,
            status=FlightStatus.SCHEDULED,
        )

        try:
            self.db.add(flight)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Flight insert rejected: {e}")
            raise ValidationError("Flight already exists")

        await CacheInvalidator.invalidate_flight_caches(str(flight.id))
        logger.info(f"Flight {flight.flight_number} created with {flight.total_seats} seats")
        return flight

    async def update_flight(self, flight_id: UUID, flight_data: FlightUpdate) -> Flight:
        """
        Apply a partial update and publish the result to stream subscribers.

        Capacity changes are single conditional writes through the seat
        ledger, so seats booked after the flight was loaded are preserved.

        Raises:
            FlightNotFoundError: If the flight is not found
            ValidationError: If the update breaks seat accounting or the schedule
        """
        flight = await self.get_flight_by_id(flight_id)

        update_data = flight_data.model_dump(exclude_unset=True)
        total_seats = update_data.pop("total_seats", None)
        available_seats = update_data.pop("available_seats", None)

        try:
            await self.ledger.resize(
                flight_id, total_seats=total_seats, available_seats=available_seats
            )

            for field, value in update_data.items():
                if value is not None:
                    setattr(flight, field, value)

            if ensure_utc(flight.arrival_time) <= ensure_utc(flight.departure_time):
                raise ValidationError(
                    "arrival_time must be after departure_time",
                    field_errors={"arrival_time": ["must be after departure_time"]}
                )

            flight.updated_at = utcnow()
            await self.db.commit()
        except (ValidationError, FlightNotFoundError):
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Flight {flight_id} update rejected: {e}")
            raise ValidationError("Flight update violates a constraint")

        await CacheInvalidator.invalidate_flight_caches(str(flight_id))

        payload = FlightResponse.model_validate(flight).model_dump(mode="json")
        self.broadcaster.publish(payload)
        logger.info(f"Flight {flight.flight_number} updated and broadcast")

        return flight

    async def delete_flight(self, flight_id: UUID) -> None:
        """
        Delete a flight that no booking references.

        Raises:
            FlightNotFoundError: If the flight is not found
            FlightHasBookingsError: If any booking references the flight
        """
        flight = await self.get_flight_by_id(flight_id)

        booking_count = (await self.db.execute(
            select(func.count(Booking.id)).where(Booking.flight_id == flight_id)
        )).scalar() or 0

        if booking_count > 0:
            raise FlightHasBookingsError(str(flight_id), booking_count)

        await self.db.delete(flight)
        await self.db.commit()

        await CacheInvalidator.invalidate_flight_caches(str(flight_id))
        logger.info(f"Flight {flight_id} deleted")

    async def popular_routes(self, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Most frequent upcoming routes.

        Returns:
            List of ``{"route": "FROM - TO", "count": n}``, busiest first
        """
        cache_key = CacheKeyBuilder.popular_routes(limit)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        route_count = func.count(Flight.id).label("route_count")
        result = await self.db.execute(
            select(Flight.from_airport, Flight.to_airport, route_count)
            .where(Flight.departure_time >= utcnow())
            .group_by(Flight.from_airport, Flight.to_airport)
            .order_by(route_count.desc(), Flight.from_airport, Flight.to_airport)
            .limit(limit)
        )

        routes = [
            {"route": f"{row.from_airport} - {row.to_airport}", "count": row.route_count}
            for row in result
        ]
        await self.cache.set(cache_key, routes, CacheTTL.POPULAR_ROUTES)
        return routes

    def _search_conditions(
        self,
        from_airport: Optional[str],
        to_airport: Optional[str],
        day: Optional[date],
        filters: FlightFilters,
    ) -> list:
        conditions = [
            Flight.departure_time >= utcnow(),
            Flight.available_seats >= filters.passengers,
        ]

        if from_airport:
            conditions.append(Flight.from_airport.ilike(f"%{from_airport}%"))
        if to_airport:
            conditions.append(Flight.to_airport.ilike(f"%{to_airport}%"))
        if day:
            start, end = _day_bounds(day)
            conditions.append(Flight.departure_time >= start)
            conditions.append(Flight.departure_time < end)
        if filters.cabin_class:
            conditions.append(Flight.cabin_class == filters.cabin_class)

        return conditions

    def _order_by(self, filters: FlightFilters):
        column = getattr(Flight, filters.sort.value)
        return column.desc() if filters.order == SortOrder.DESC else column.asc()
