"""Maintenance tasks — counter reconciliation and recommendation expiry."""

import logging

import redis

from app import cache as cache_kinds
from app.config import get_settings
from app.models.base import SyncSessionLocal
from app.services.recommendation_service import expire_recommendations as expire_due
from app.services.stats_service import recompute_user_stats
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)
settings = get_settings()


def clear_cache_kinds(*kinds: str) -> int:
    """Drop cached reads for the given kinds from a worker. Failures are logged and ignored."""
    if settings.cache_backend != "redis":
        return 0
    deleted = 0
    try:
        client = redis.from_url(settings.redis_url, socket_timeout=settings.cache_socket_timeout)
        try:
            for kind in cache_kinds.expand_kinds(kinds):
                keys = list(client.scan_iter(match=f"{settings.cache_namespace}:{kind}:*", count=500))
                if keys:
                    deleted += client.delete(*keys)
        finally:
            client.close()
    except Exception as e:
        logger.warning("Cache invalidation from worker failed for %s: %s", kinds, e)
    return deleted


@celery_app.task(name="app.tasks.maintenance_tasks.reconcile_user_stats")
def reconcile_user_stats():
    """Recount user counters from source rows, repairing any drift."""
    db = SyncSessionLocal()
    try:
        updated = recompute_user_stats(db)
        db.commit()
    finally:
        db.close()
    cleared = clear_cache_kinds(cache_kinds.USERS)
    logger.info("Reconciled stats for %d users, cleared %d cache keys", updated, cleared)
    return {"users_updated": updated, "cache_keys_cleared": cleared}


@celery_app.task(name="app.tasks.maintenance_tasks.expire_recommendations")
def expire_recommendations():
    """Deactivate recommendations past their expiry date."""
    db = SyncSessionLocal()
    try:
        expired = expire_due(db)
        db.commit()
    finally:
        db.close()
    cleared = clear_cache_kinds(cache_kinds.RECOMMENDATIONS) if expired else 0
    return {"expired": expired, "cache_keys_cleared": cleared}
