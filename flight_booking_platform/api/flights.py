"""
Flight search, live status stream and administrative flight endpoints.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..database import get_db
from ..models import CabinClass, User
from ..schemas.common import MessageResponse, PaginationInfo
from ..schemas.flight import (
    FlightCreate,
    FlightEnvelope,
    FlightFilters,
    FlightSearchResponse,
    FlightUpdate,
    PopularRoutesResponse,
    SortField,
    SortOrder,
)
from ..services.flight_broadcaster import FlightBroadcaster, get_flight_broadcaster
from ..services.flight_service import FlightService
from ..utils.dependencies import get_current_admin_user

router = APIRouter(prefix="/flights", tags=["flights"])
settings = get_settings()


def get_flight_service(
    db: AsyncSession = Depends(get_db),
    broadcaster: FlightBroadcaster = Depends(get_flight_broadcaster),
) -> FlightService:
    """Dependency to get flight service instance."""
    return FlightService(db, broadcaster)


@router.get("", response_model=FlightSearchResponse)
async def search_flights(
    from_airport: Optional[str] = Query(None, alias="from", description="Departure airport"),
    to_airport: Optional[str] = Query(None, alias="to", description="Arrival airport"),
    departure_date: Optional[date] = Query(None, alias="date", description="Departure day"),
    return_date: Optional[date] = Query(None, alias="returnDate", description="Return day"),
    passengers: int = Query(1, ge=1, le=10, description="Seats required"),
    cabin_class: Optional[CabinClass] = Query(None, alias="class"),
    sort: SortField = Query(SortField.DEPARTURE_TIME),
    order: SortOrder = Query(SortOrder.ASC),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    flight_service: FlightService = Depends(get_flight_service),
):
    """
    Search upcoming flights.

    Supplying ``returnDate`` together with ``from`` and ``to`` also returns
    flights for the way back.
    """
    filters = FlightFilters(
        from_airport=from_airport,
        to_airport=to_airport,
        departure_date=departure_date,
        return_date=return_date,
        passengers=passengers,
        cabin_class=cabin_class,
        sort=sort,
        order=order,
    )
    flights, return_flights, total = await flight_service.search_flights(filters, page, limit)

    return {
        "flights": flights,
        "return_flights": return_flights,
        "pagination": PaginationInfo.build(page, limit, total),
    }


@router.get("/stream")
async def stream_flight_updates(
    request: Request,
    broadcaster: FlightBroadcaster = Depends(get_flight_broadcaster),
):
    """
    Server-sent events: one ``data:`` frame per administrative flight update.

    Only updates published while the client is connected are delivered.
    """
    keepalive = settings.stream_keepalive_seconds

    async def event_stream():
        subscription = broadcaster.subscribe()
        try:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                message = await subscription.get(timeout=keepalive)
                if message is None:
                    yield ": keep-alive\n\n"
                else:
                    yield f"data: {message}\n\n"
        finally:
            subscription.unsubscribe()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/popular/routes", response_model=PopularRoutesResponse)
async def popular_routes(
    limit: int = Query(10, ge=1, le=50),
    flight_service: FlightService = Depends(get_flight_service),
):
    """Most frequent upcoming routes."""
    routes = await flight_service.popular_routes(limit)
    return PopularRoutesResponse(popular_routes=routes)


@router.get("/{flight_id}", response_model=FlightEnvelope)
async def get_flight(
    flight_id: UUID,
    flight_service: FlightService = Depends(get_flight_service),
):
    return {"flight": await flight_service.get_flight(flight_id)}


@router.post("", response_model=FlightEnvelope, status_code=status.HTTP_201_CREATED)
async def create_flight(
    flight_data: FlightCreate,
    current_user: User = Depends(get_current_admin_user),
    flight_service: FlightService = Depends(get_flight_service),
):
    """Create a flight (admin only)."""
    flight = await flight_service.create_flight(flight_data)
    return {"message": "Flight created successfully", "flight": flight}


@router.put("/{flight_id}", response_model=FlightEnvelope)
async def update_flight(
    flight_id: UUID,
    flight_data: FlightUpdate,
    current_user: User = Depends(get_current_admin_user),
    flight_service: FlightService = Depends(get_flight_service),
):
    """
    Update a flight (admin only).

    The updated flight is pushed to every connected status stream.
    """
    flight = await flight_service.update_flight(flight_id, flight_data)
    return {"message": "Flight updated successfully", "flight": flight}


@router.delete("/{flight_id}", response_model=MessageResponse)
async def delete_flight(
    flight_id: UUID,
    current_user: User = Depends(get_current_admin_user),
    flight_service: FlightService = Depends(get_flight_service),
):
    """Delete a flight that has no bookings (admin only)."""
    await flight_service.delete_flight(flight_id)
    return MessageResponse(message="Flight deleted successfully")
