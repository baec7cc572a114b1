"""Admin API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app import cache as cache_kinds
from app.cache import CacheClient
from app.dependencies.auth import get_cache, require_admin
from app.models.base import get_db
from app.models.user import User
from app.services.stats_service import recompute_user_stats

router = APIRouter(prefix="/admin", tags=["admin"])


class ReconcileRequest(BaseModel):
    user_ids: list[UUID] | None = None


class ReconcileResult(BaseModel):
    users_updated: int


@router.post("/reconcile-stats", response_model=ReconcileResult)
async def reconcile_stats(
    payload: ReconcileRequest | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Recount user counters from source rows and overwrite the stored values."""
    user_ids = payload.user_ids if payload else None
    updated = await db.run_sync(recompute_user_stats, user_ids)
    await db.commit()
    await cache.invalidate(cache_kinds.USERS)
    return ReconcileResult(users_updated=updated)
