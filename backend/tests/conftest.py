"""Pytest configuration for the listings backend.

Every test gets its own SQLite file under tmp_path and an in-process cache,
so no Postgres or Redis is needed. Settings are read once at import, so the
environment is pinned before anything from ``app`` is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["CACHE_NAMESPACE"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-secret"

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from app.cache import CacheClient, MemoryCacheBackend, tier_ttls  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.models.base import Base, get_db  # noqa: E402
from app.models.user import User, default_preferences  # noqa: E402
from app.services import property_service  # noqa: E402
from app.services.auth_service import create_access_token, hash_password  # noqa: E402
from app.services.stats_service import COUNTER_FIELDS  # noqa: E402

PASSWORD = "correct-horse-battery"


class FailingCacheBackend:
    """Backend whose every call fails, as if Redis were down."""

    async def get(self, key):
        raise ConnectionError("cache down")

    async def set(self, key, value, ttl):
        raise ConnectionError("cache down")

    async def delete(self, *keys):
        raise ConnectionError("cache down")

    async def delete_pattern(self, pattern):
        raise ConnectionError("cache down")

    async def ping(self):
        raise ConnectionError("cache down")

    async def close(self):
        raise ConnectionError("cache down")


# ---------------------------------------------------------------------------
# Store and cache
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "listings.db"


@pytest.fixture
async def engine(db_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def concurrent_writer(db, db_path):
    """Commit a row from a second connection just before ``db`` flushes its own insert.

    Any duplicate pre-check in the service has already passed by then, so
    only the store's unique constraint can turn the second insert away.
    """
    other = create_engine(f"sqlite:///{db_path}")

    def arm(model, **values):
        def insert_first(session, flush_context, instances):
            with other.begin() as conn:
                conn.execute(model.__table__.insert().values(**values))

        event.listen(db.sync_session, "before_flush", insert_first, once=True)

    yield arm
    other.dispose()


@pytest.fixture
def memory_backend():
    return MemoryCacheBackend()


@pytest.fixture
def cache(memory_backend):
    return CacheClient(memory_backend, "test", tier_ttls(get_settings()))


@pytest.fixture
def broken_cache():
    return CacheClient(FailingCacheBackend(), "test", tier_ttls(get_settings()))


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(session_factory, cache):
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.cache = cache
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def property_data(**overrides) -> dict:
    data = {
        "title": "Sunny two bedroom apartment",
        "description": "Close to the metro station",
        "property_type": "Apartment",
        "listing_type": "rent",
        "price": 25000.0,
        "state": "Karnataka",
        "city": "Bangalore",
        "area": "Indiranagar",
        "area_sqft": 1000.0,
        "bedrooms": 2,
        "bathrooms": 2,
        "amenities": ["gym", "parking"],
        "tags": ["pet-friendly"],
        "furnished": "Semi-Furnished",
        "available_from": date(2026, 1, 1),
        "listed_by": "Owner",
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_user(session_factory):
    counter = {"n": 0}

    async def _make_user(email: str | None = None, verified: bool = True, **overrides) -> User:
        counter["n"] += 1
        preferences = overrides.pop("preferences", None) or default_preferences()
        user = User(
            email=email or f"user{counter['n']}@example.com",
            hashed_password=hash_password(PASSWORD),
            first_name=overrides.pop("first_name", "Test"),
            last_name=overrides.pop("last_name", f"User{counter['n']}"),
            is_verified=verified,
            preferences=preferences,
            **overrides,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


@pytest.fixture
def user_stats(session_factory):
    """Read a user's counters through a fresh session."""

    async def _user_stats(user: User) -> dict:
        async with session_factory() as session:
            fresh = await session.get(User, user.id)
            return {field: getattr(fresh, field) for field in COUNTER_FIELDS}

    return _user_stats


@pytest.fixture
def make_property(session_factory, cache):
    async def _make_property(owner: User, **overrides):
        async with session_factory() as session:
            return await property_service.create_property(session, cache, owner, property_data(**overrides))

    return _make_property
