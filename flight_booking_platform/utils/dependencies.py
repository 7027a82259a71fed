"""
FastAPI dependencies for authentication and authorization.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..utils.auth import verify_token
from ..utils.exceptions import AuthenticationError, AuthorizationError
from ..utils.logging_config import log_security_event
from ..services.user_service import UserService


# Missing credentials are reported as 401 by get_current_user
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Resolve the bearer token to the requesting user.

    Args:
        credentials: HTTP Bearer credentials
        db: Database session

    Returns:
        The authenticated user

    Raises:
        AuthenticationError: If the token is missing, invalid or names no active user
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    token_data = verify_token(credentials.credentials)
    if token_data is None:
        log_security_event("invalid_token", {})
        raise AuthenticationError()

    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        raise AuthenticationError()

    user = await UserService(db).get_user_by_id(user_id)
    if user is None:
        raise AuthenticationError()

    if not user.is_active:
        raise AuthenticationError("Inactive user")

    return user


async def get_current_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get the current user, requiring the admin role.

    Raises:
        AuthorizationError: If the user is not an admin
    """
    if not current_user.is_admin:
        log_security_event("admin_required", {"user_id": str(current_user.id)})
        raise AuthorizationError("Admin access required", required_permission="admin")
    return current_user
