"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError

from app.cache import build_cache
from app.config import get_settings
from app.exceptions import ServiceError, StoreUnavailableError
from app.models.base import engine, AsyncSessionLocal, Base
from app.api.v1 import router as api_v1_router

logger = logging.getLogger(__name__)
settings = get_settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Starting %s...", settings.app_name)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified")
    if getattr(app.state, "cache", None) is None:
        app.state.cache = build_cache()
    yield
    logger.info("Shutting down...")
    await app.state.cache.close()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Property listings with favorites and peer recommendations",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def store_unavailable_handler(request: Request, exc: Exception):
    logger.error("Database unavailable on %s %s: %s", request.method, request.url.path, exc)
    error = StoreUnavailableError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include API routers
app.include_router(api_v1_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}


@app.get("/health/detailed")
async def detailed_health_check(request: Request):
    checks = {}

    # Database
    try:
        async with AsyncSessionLocal() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            checks["database"] = {"ok": True}
    except Exception as e:
        checks["database"] = {"ok": False, "message": str(e)}

    # Cache
    checks["cache"] = {"ok": await request.app.state.cache.ping()}

    # Celery workers
    try:
        from app.tasks.celery_app import celery_app
        inspect = celery_app.control.inspect(timeout=5)
        active_workers = inspect.active()
        checks["celery_workers"] = {
            "ok": bool(active_workers),
            "workers": list(active_workers.keys()) if active_workers else [],
        }
    except Exception as e:
        checks["celery_workers"] = {"ok": False, "message": str(e)}

    # Workers are optional; the API serves without them
    required = ("database", "cache")
    all_ok = all(checks[name].get("ok", False) for name in required)
    status = "healthy" if all_ok else "degraded"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
