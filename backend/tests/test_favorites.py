"""Tests for favorites: uniqueness, counters, tags, price drift and cached lists."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.exceptions import ConflictError, InvalidInputError, NotFoundError
from app.models.base import utcnow
from app.models.favorite import Favorite
from app.services import favorite_service, property_service


# ── Add / remove ─────────────────────────────────────────────────────────

class TestAddRemove:
    async def test_add_snapshots_price_and_counts(self, db, cache, make_user, make_property, user_stats):
        owner = await make_user()
        fan = await make_user()
        prop = await make_property(owner, price=42000)

        favorite = await favorite_service.add_favorite(db, cache, fan, str(prop.id), {"tags": ["Shortlist", "shortlist"]})

        assert favorite.price_when_added == 42000
        assert favorite.tags == ["shortlist"]
        assert (await user_stats(fan))["favorite_count"] == 1

    async def test_add_by_code(self, db, cache, make_user, make_property):
        owner = await make_user()
        prop = await make_property(owner)
        favorite = await favorite_service.add_favorite(db, cache, owner, prop.property_code, {})
        assert favorite.property_id == prop.id

    async def test_duplicate_is_conflict(self, db, cache, make_user, make_property, user_stats):
        owner = await make_user()
        fan = await make_user()
        prop = await make_property(owner)
        await favorite_service.add_favorite(db, cache, fan, str(prop.id), {})

        with pytest.raises(ConflictError) as exc:
            await favorite_service.add_favorite(db, cache, fan, str(prop.id), {})

        assert exc.value.code == "ALREADY_FAVORITED"
        assert (await user_stats(fan))["favorite_count"] == 1

    async def test_concurrent_duplicate_is_conflict(
        self, db, cache, session_factory, concurrent_writer, make_user, make_property, user_stats
    ):
        owner = await make_user()
        fan = await make_user()
        prop = await make_property(owner)
        concurrent_writer(Favorite, user_id=fan.id, property_id=prop.id, price_when_added=prop.price)

        with pytest.raises(ConflictError) as exc:
            await favorite_service.add_favorite(db, cache, fan, str(prop.id), {})

        assert exc.value.code == "ALREADY_FAVORITED"
        assert (await user_stats(fan))["favorite_count"] == 0
        async with session_factory() as session:
            count = await session.execute(select(func.count(Favorite.id)).where(Favorite.user_id == fan.id))
            assert count.scalar() == 1

    async def test_counter_tracks_adds_minus_removes(self, db, cache, make_user, make_property, user_stats):
        owner = await make_user()
        fan = await make_user()
        props = [await make_property(owner) for _ in range(4)]
        for prop in props:
            await favorite_service.add_favorite(db, cache, fan, str(prop.id), {})
        for prop in props[:3]:
            await favorite_service.remove_favorite(db, cache, fan, str(prop.id))

        assert (await user_stats(fan))["favorite_count"] == 1

    async def test_remove_missing_is_not_found(self, db, cache, make_user, make_property, user_stats):
        owner = await make_user()
        prop = await make_property(owner)

        with pytest.raises(NotFoundError):
            await favorite_service.remove_favorite(db, cache, owner, str(prop.id))
        assert (await user_stats(owner))["favorite_count"] == 0

    async def test_inactive_property_cannot_be_favorited(self, db, cache, make_user, make_property):
        owner = await make_user()
        prop = await make_property(owner)
        await property_service.soft_delete_property(db, cache, owner, str(prop.id))

        with pytest.raises(NotFoundError):
            await favorite_service.add_favorite(db, cache, owner, str(prop.id), {})

    async def test_favorite_of_deactivated_property_can_still_be_removed(self, db, cache, make_user, make_property):
        owner = await make_user()
        fan = await make_user()
        prop = await make_property(owner)
        await favorite_service.add_favorite(db, cache, fan, str(prop.id), {})
        await property_service.soft_delete_property(db, cache, owner, str(prop.id))

        await favorite_service.remove_favorite(db, cache, fan, prop.property_code)
        status = await favorite_service.favorite_status(db, fan, str(prop.id))
        assert status == {"is_favorited": False}


# ── Updates and tags ─────────────────────────────────────────────────────

class TestUpdate:
    async def test_allowlisted_fields(self, db, cache, make_user, make_property):
        owner = await make_user()
        prop = await make_property(owner)
        favorite = await favorite_service.add_favorite(db, cache, owner, str(prop.id), {})

        updated = await favorite_service.update_favorite(
            db, cache, owner, str(favorite.id), {"priority": "high", "notes": "  call agent  "}
        )
        assert updated.priority == "high"
        assert updated.notes == "call agent"

    async def test_snapshot_is_not_patchable(self, db, cache, make_user, make_property):
        owner = await make_user()
        prop = await make_property(owner)
        favorite = await favorite_service.add_favorite(db, cache, owner, str(prop.id), {})

        with pytest.raises(InvalidInputError) as exc:
            await favorite_service.update_favorite(
                db, cache, owner, str(favorite.id), {"priority": "high", "price_when_added": 1}
            )
        assert exc.value.code == "INVALID_UPDATES"

    async def test_other_users_favorite_is_not_found(self, db, cache, make_user, make_property):
        owner = await make_user()
        stranger = await make_user()
        prop = await make_property(owner)
        favorite = await favorite_service.add_favorite(db, cache, owner, str(prop.id), {})

        with pytest.raises(NotFoundError):
            await favorite_service.update_favorite(db, cache, stranger, str(favorite.id), {"priority": "low"})

    async def test_tags(self, db, cache, make_user, make_property):
        owner = await make_user()
        prop = await make_property(owner)
        favorite = await favorite_service.add_favorite(db, cache, owner, str(prop.id), {})

        await favorite_service.add_tag(db, cache, owner, str(favorite.id), "Balcony")
        tagged = await favorite_service.add_tag(db, cache, owner, str(favorite.id), "balcony")
        assert tagged.tags == ["balcony"]

        untagged = await favorite_service.remove_tag(db, cache, owner, str(favorite.id), "BALCONY")
        assert untagged.tags == []

        with pytest.raises(NotFoundError):
            await favorite_service.remove_tag(db, cache, owner, str(favorite.id), "balcony")


# ── Reads ────────────────────────────────────────────────────────────────

class TestReads:
    async def test_detail_reports_price_drift(self, db, cache, make_user, make_property):
        owner = await make_user()
        prop = await make_property(owner, price=25000)
        favorite = await favorite_service.add_favorite(db, cache, owner, str(prop.id), {})
        await property_service.update_property(db, cache, owner, str(prop.id), {"price": 20000})

        detail = await favorite_service.get_favorite(db, owner, str(favorite.id))

        assert detail["current_price"] == 20000
        assert detail["price_change"] == -5000
        assert detail["price_change_percent"] == -20.0
        assert detail["view_count"] == 1

    async def test_list_reflects_new_favorite(self, db, cache, make_user, make_property):
        owner = await make_user()
        first = await make_property(owner)
        second = await make_property(owner)
        await favorite_service.add_favorite(db, cache, owner, str(first.id), {})

        before = await favorite_service.list_favorites(db, cache, owner, {})
        assert before["pagination"]["total_count"] == 1

        await favorite_service.add_favorite(db, cache, owner, str(second.id), {})

        after = await favorite_service.list_favorites(db, cache, owner, {})
        assert after["pagination"]["total_count"] == 2

    async def test_list_filters_by_tag(self, db, cache, make_user, make_property):
        owner = await make_user()
        first = await make_property(owner)
        second = await make_property(owner)
        await favorite_service.add_favorite(db, cache, owner, str(first.id), {"tags": ["visit"]})
        await favorite_service.add_favorite(db, cache, owner, str(second.id), {"tags": ["maybe"]})

        result = await favorite_service.list_favorites(db, cache, owner, {"tags": "visit"})
        assert [f["property_id"] for f in result["favorites"]] == [str(first.id)]

    async def test_list_hides_deactivated_property_payload(self, db, cache, make_user, make_property):
        owner = await make_user()
        fan = await make_user()
        prop = await make_property(owner)
        await favorite_service.add_favorite(db, cache, fan, str(prop.id), {})
        await property_service.soft_delete_property(db, cache, owner, str(prop.id))

        result = await favorite_service.list_favorites(db, cache, fan, {})
        assert result["favorites"][0]["property"] is None

    async def test_insights(self, db, cache, make_user, make_property):
        owner = await make_user()
        first = await make_property(owner)
        second = await make_property(owner)
        soon = utcnow() + timedelta(days=2)
        await favorite_service.add_favorite(
            db, cache, owner, str(first.id), {"tags": ["visit"], "priority": "high", "reminder_date": soon}
        )
        await favorite_service.add_favorite(db, cache, owner, str(second.id), {"tags": ["visit", "loan"]})

        insights = await favorite_service.favorite_insights(db, cache, owner)

        assert insights["total_favorites"] == 2
        assert insights["by_priority"] == {"high": 1, "medium": 1}
        assert insights["popular_tags"]["visit"] == 2
        assert [f["property_id"] for f in insights["upcoming_reminders"]] == [str(first.id)]
