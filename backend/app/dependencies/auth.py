"""Authentication and shared-handle dependencies for FastAPI routes."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheClient
from app.exceptions import AuthenticationError, ForbiddenError
from app.models.base import get_db
from app.models.user import User
from app.services.auth_service import decode_access_token

bearer = HTTPBearer(auto_error=False)


def get_cache(request: Request) -> CacheClient:
    """Cache client built once in the application lifespan."""
    return request.app.state.cache


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Return the authenticated user or None."""
    if credentials is None:
        return None
    user_id = decode_access_token(credentials.credentials)
    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active == True)
    )
    return result.scalar_one_or_none()


async def require_user(user: User | None = Depends(get_current_user)) -> User:
    """Return the authenticated user or raise 401."""
    if not user:
        raise AuthenticationError("Login required")
    return user


async def require_admin(user: User = Depends(require_user)) -> User:
    if user.role != "admin":
        raise ForbiddenError("Admin role required")
    return user
