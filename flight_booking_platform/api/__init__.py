"""API endpoints for the Flight Booking Platform."""

from fastapi import APIRouter
from ..schemas.common import ErrorResponse
from .flights import router as flights_router
from .bookings import router as bookings_router
from .users import router as users_router

# Create main API router; every route may answer with the structured error body
api_router = APIRouter(
    prefix="/api",
    responses={
        400: {"model": ErrorResponse, "description": "Validation or business rule error"},
        401: {"model": ErrorResponse, "description": "Missing or invalid token"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
        404: {"model": ErrorResponse, "description": "Resource not found"},
    },
)

# Include all routers
api_router.include_router(flights_router)
api_router.include_router(bookings_router)
api_router.include_router(users_router)

__all__ = ["api_router"]
