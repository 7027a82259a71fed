"""
User profile, statistics and role management endpoints.
"""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..database import get_db
from ..models.booking import BookingStatus
from ..models.user import User, UserRole
from ..schemas.booking import BookingHistoryResponse
from ..schemas.common import PaginationInfo
from ..schemas.user import (
    UserEnvelope,
    UserListResponse,
    UserProfileUpdate,
    UserRoleUpdate,
    UserStatsResponse,
)
from ..services.booking_service import BookingService
from ..services.user_service import UserService
from ..utils.dependencies import get_current_admin_user, get_current_user


router = APIRouter(prefix="/users", tags=["users"])
settings = get_settings()


@router.get("/profile", response_model=UserEnvelope)
async def get_profile(current_user: User = Depends(get_current_user)) -> Any:
    """Get the caller's profile."""
    return {"user": current_user}


@router.put("/profile", response_model=UserEnvelope)
async def update_profile(
    update_data: UserProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    Update the caller's profile.

    Args:
        update_data: Fields to change; omitted fields keep their value
        db: Database session
        current_user: The authenticated user

    Returns:
        The updated profile
    """
    user = await UserService(db).update_profile(current_user.id, update_data)
    return {"message": "Profile updated successfully", "user": user}


@router.get("/stats", response_model=UserStatsResponse)
async def get_booking_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """Booking totals and recent activity for the caller."""
    return await BookingService(db).get_user_booking_stats(current_user.id)


@router.get("/bookings", response_model=BookingHistoryResponse)
async def get_booking_history(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """The caller's bookings with flight summaries, newest first."""
    bookings, total = await BookingService(db).get_booking_history(
        current_user.id, booking_status, page, limit
    )
    return {"bookings": bookings, "pagination": PaginationInfo.build(page, limit, total)}


@router.get("", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_admin_user)
) -> Any:
    """List users, optionally filtered by role (admin only)."""
    users, total = await UserService(db).list_users(role, page, limit)
    return {"users": users, "pagination": PaginationInfo.build(page, limit, total)}


@router.patch("/{user_id}/role", response_model=UserEnvelope)
async def update_user_role(
    user_id: UUID,
    role_data: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_admin_user)
) -> Any:
    """
    Change a user's role (admin only).

    Raises:
        UserNotFoundError: If the user does not exist
    """
    user = await UserService(db).update_role(user_id, role_data.role)
    return {"message": "User role updated", "user": user}
