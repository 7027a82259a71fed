"""
User service for profile and role operations.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User, UserRole
from ..schemas.user import UserProfileUpdate
from ..utils.exceptions import UserNotFoundError

logger = logging.getLogger(__name__)


class UserService:
    """Service class for user operations."""

    def __init__(self, db: AsyncSession):
        """
        Initialize the user service.

        Args:
            db: Database session
        """
        self.db = db

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        """
        Get a user by ID.

        Args:
            user_id: The user ID

        Returns:
            The user if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_profile(self, user_id: UUID) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    async def update_profile(self, user_id: UUID, update_data: UserProfileUpdate) -> User:
        """
        Update a user's own profile.

        Only fields present in the request are written.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await self.get_profile(user_id)

        for field, value in update_data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(user, field, value)

        await self.db.commit()
        logger.info(f"Profile updated for user {user_id}")
        return user

    async def list_users(
        self,
        role: Optional[UserRole] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[User], int]:
        """
        List users, newest first.

        Returns:
            Tuple of (users, total count)
        """
        conditions = [User.role == role] if role else []

        total = (await self.db.execute(
            select(func.count(User.id)).where(*conditions)
        )).scalar() or 0

        result = await self.db.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_role(self, user_id: UUID, role: UserRole) -> User:
        """
        Change a user's role.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await self.get_profile(user_id)
        previous = user.role
        user.role = role
        await self.db.commit()
        logger.info(f"User {user_id} role changed from {previous.value} to {role.value}")
        return user
