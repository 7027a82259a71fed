"""
FastAPI routes for the booking lifecycle.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..database import get_db
from ..models.booking import BookingStatus
from ..models.user import User
from ..schemas.booking import (
    AdminBookingsResponse,
    BookingCreate,
    BookingDetailResponse,
    BookingEnvelope,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
    PassengerResponse,
    StatusEnvelope,
    UserBookingsResponse,
)
from ..schemas.common import MessageResponse, PaginationInfo
from ..schemas.flight import FlightResponse
from ..services.booking_service import BookingService
from ..utils.dependencies import get_current_admin_user, get_current_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])
settings = get_settings()


def get_booking_service(db: AsyncSession = Depends(get_db)) -> BookingService:
    """Dependency to get booking service instance."""
    return BookingService(db)


def _booking_detail(booking, flight=None, passengers=None) -> BookingDetailResponse:
    """Create a BookingDetailResponse; a missing flight or passenger list stays null."""
    return BookingDetailResponse(
        **BookingResponse.model_validate(booking).model_dump(),
        flight=FlightResponse.model_validate(flight) if flight is not None else None,
        passengers=(
            [PassengerResponse.model_validate(p) for p in passengers]
            if passengers is not None else None
        ),
    )


@router.post("", response_model=BookingEnvelope, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    """
    Book seats on a flight for one or more passengers.

    The booking is confirmed immediately and the confirmation email is queued
    in the background.
    """
    booking = await booking_service.create_booking(current_user.id, booking_data)
    return BookingEnvelope(
        message="Booking created successfully",
        booking=_booking_detail(booking, booking.flight, booking.passengers),
    )


@router.get("/my-bookings", response_model=UserBookingsResponse)
async def get_my_bookings(
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    """The caller's bookings, newest first."""
    bookings = await booking_service.list_user_bookings(current_user.id)
    return {"bookings": bookings}


@router.get("", response_model=AdminBookingsResponse)
async def list_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_admin_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    """All bookings, optionally filtered by status (admin only)."""
    bookings, total = await booking_service.list_bookings(booking_status, page, limit)
    return {
        "bookings": bookings,
        "pagination": PaginationInfo.build(page, limit, total),
    }


@router.get("/{booking_id}", response_model=BookingEnvelope)
async def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    """
    Get a booking with its flight and passengers.

    When the flight or the passengers cannot be loaded the booking is still
    returned with that part set to null.
    """
    view = await booking_service.get_booking(booking_id, current_user)
    return BookingEnvelope(booking=_booking_detail(view.booking, view.flight, view.passengers))


@router.patch("/{booking_id}", response_model=BookingEnvelope)
async def modify_booking(
    booking_id: UUID,
    update_data: BookingUpdate,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    booking = await booking_service.modify_booking(booking_id, update_data, current_user)
    return BookingEnvelope(
        message="Booking updated successfully",
        booking=_booking_detail(booking, booking.flight, booking.passengers),
    )


@router.post("/{booking_id}/cancel", response_model=MessageResponse)
async def cancel_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking, return its seats to the flight and delete it."""
    await booking_service.cancel_booking(booking_id, current_user)
    return MessageResponse(message="Booking cancelled and deleted successfully")


@router.patch("/{booking_id}/status", response_model=StatusEnvelope)
async def update_booking_status(
    booking_id: UUID,
    status_data: BookingStatusUpdate,
    current_user: User = Depends(get_current_admin_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    """Overwrite a booking's status (admin only). Seat counts are left unchanged."""
    booking = await booking_service.set_booking_status(booking_id, status_data.status)
    logger.info(f"Admin {current_user.id} set booking {booking_id} to {status_data.status.value}")
    return StatusEnvelope(
        message="Booking status updated",
        booking=BookingResponse.model_validate(booking),
    )
