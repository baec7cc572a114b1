"""API v1 router aggregation."""

from fastapi import APIRouter

from app.api.v1.auth import router as auth_router
from app.api.v1.users import router as users_router
from app.api.v1.properties import router as properties_router
from app.api.v1.favorites import router as favorites_router
from app.api.v1.recommendations import router as recommendations_router
from app.api.v1.admin import router as admin_router

router = APIRouter(prefix="/api/v1")

router.include_router(auth_router)
router.include_router(users_router)
router.include_router(properties_router)
router.include_router(favorites_router)
router.include_router(recommendations_router)
router.include_router(admin_router)
