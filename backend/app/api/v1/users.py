"""User account API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheClient
from app.dependencies.auth import get_cache, require_user
from app.models.base import get_db
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.user import RecipientLookup, UserRead, UserUpdate
from app.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.patch("/me", response_model=UserRead)
async def update_me(
    payload: UserUpdate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Update profile fields. Any field outside the allowlist rejects the whole patch."""
    return await user_service.update_profile(db, cache, user, payload.model_dump(exclude_unset=True))


@router.post("/me/deactivate", response_model=UserRead)
async def deactivate_me(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    return await user_service.deactivate_user(db, cache, user)


@router.delete("/me", response_model=MessageResponse)
async def delete_me(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Permanently delete the account and everything that references it."""
    removed = await user_service.delete_user(db, cache, user.id)
    return MessageResponse(message="Account deleted", data={"removed": removed})


@router.get("/search", response_model=RecipientLookup)
async def search_recipient(
    email: str = Query(..., min_length=3, description="Exact email of the recipient"),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Check whether an email belongs to a user who can receive recommendations."""
    return await user_service.find_recipient(db, user, email)
