"""Authentication API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheClient
from app.dependencies.auth import get_cache, require_user
from app.models.base import get_db
from app.models.user import User
from app.schemas.user import TokenResponse, UserLogin, UserRead, UserRegister
from app.services import user_service
from app.services.auth_service import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id, user.role),
        user=UserRead.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    payload: UserRegister,
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Create an account and return a bearer token."""
    user = await user_service.register_user(db, cache, payload.model_dump())
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(payload: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await user_service.authenticate(db, payload.email, payload.password)
    return _token_response(user)


@router.get("/me", response_model=UserRead)
async def me(user: User = Depends(require_user)):
    return user
