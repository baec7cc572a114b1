"""Tests for accounts: registration, login, profile patches, recipient lookup and hard delete."""

import pytest
from sqlalchemy import func, select

from app.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from app.models.favorite import Favorite
from app.models.property import Property
from app.models.recommendation import Recommendation
from app.models.user import User, default_preferences
from app.services import favorite_service, property_service, recommendation_service, user_service
from conftest import PASSWORD


def registration(email="Asha@Example.com") -> dict:
    return {"email": email, "password": PASSWORD, "first_name": " Asha ", "last_name": "Rao"}


class TestRegistration:
    async def test_register_normalizes(self, db, cache):
        user = await user_service.register_user(db, cache, registration())

        assert user.email == "asha@example.com"
        assert user.first_name == "Asha"
        assert user.is_verified is False
        assert user.preferences["notifications"]["recommendations"] is True

    async def test_duplicate_email(self, db, cache):
        await user_service.register_user(db, cache, registration())
        with pytest.raises(ConflictError) as exc:
            await user_service.register_user(db, cache, registration("ASHA@example.com"))
        assert exc.value.code == "EMAIL_TAKEN"

    async def test_concurrent_registration_is_conflict(self, db, cache, session_factory, concurrent_writer):
        concurrent_writer(
            User, email="asha@example.com", hashed_password="x", first_name="Other", last_name="Writer"
        )

        with pytest.raises(ConflictError) as exc:
            await user_service.register_user(db, cache, registration())

        assert exc.value.code == "EMAIL_TAKEN"
        async with session_factory() as session:
            taken = (await session.execute(select(User).where(User.email == "asha@example.com"))).scalar_one()
            assert taken.first_name == "Other"

    async def test_login(self, db, cache):
        await user_service.register_user(db, cache, registration())
        user = await user_service.authenticate(db, "asha@example.com", PASSWORD)
        assert user.last_login_at is not None

    async def test_wrong_password(self, db, cache):
        await user_service.register_user(db, cache, registration())
        with pytest.raises(AuthenticationError):
            await user_service.authenticate(db, "asha@example.com", "not-the-password")

    async def test_deactivated_cannot_login(self, db, cache):
        user = await user_service.register_user(db, cache, registration())
        await user_service.deactivate_user(db, cache, user)
        with pytest.raises(AuthenticationError):
            await user_service.authenticate(db, "asha@example.com", PASSWORD)


class TestProfile:
    async def test_preferences_merge(self, db, cache):
        user = await user_service.register_user(db, cache, registration())

        updated = await user_service.update_profile(
            db, cache, user, {"phone": "9999999999", "preferences": {"privacy": {"show_profile": False}}}
        )

        assert updated.phone == "9999999999"
        assert updated.preferences["privacy"] == {"show_profile": False, "show_contact_info": False}
        assert updated.preferences["notifications"]["email"] is True

    async def test_privileged_fields_rejected(self, db, cache):
        user = await user_service.register_user(db, cache, registration())
        with pytest.raises(InvalidInputError) as exc:
            await user_service.update_profile(db, cache, user, {"first_name": "A", "role": "admin"})
        assert exc.value.code == "INVALID_UPDATES"
        assert user.first_name == "Asha"

    async def test_blank_name_rejected(self, db, cache):
        user = await user_service.register_user(db, cache, registration())
        with pytest.raises(InvalidInputError):
            await user_service.update_profile(db, cache, user, {"last_name": "  "})


class TestRecipientLookup:
    async def test_found(self, db, make_user):
        requester = await make_user()
        target = await make_user(avatar="https://img.example.com/a.png")

        info = await user_service.find_recipient(db, requester, target.email.upper())

        assert info["id"] == target.id
        assert info["avatar"] == "https://img.example.com/a.png"
        assert info["full_name"] == target.full_name

    async def test_private_profile_hides_avatar(self, db, make_user):
        preferences = default_preferences()
        preferences["privacy"]["show_profile"] = False
        requester = await make_user()
        target = await make_user(avatar="https://img.example.com/a.png", preferences=preferences)

        info = await user_service.find_recipient(db, requester, target.email)
        assert "avatar" not in info

    async def test_self(self, db, make_user):
        requester = await make_user()
        with pytest.raises(InvalidInputError) as exc:
            await user_service.find_recipient(db, requester, requester.email)
        assert exc.value.code == "SELF_RECOMMENDATION"

    async def test_unverified_hidden(self, db, make_user):
        requester = await make_user()
        target = await make_user(verified=False)
        with pytest.raises(NotFoundError):
            await user_service.find_recipient(db, requester, target.email)

    async def test_opted_out(self, db, make_user):
        preferences = default_preferences()
        preferences["notifications"]["recommendations"] = False
        requester = await make_user()
        target = await make_user(preferences=preferences)
        with pytest.raises(ForbiddenError):
            await user_service.find_recipient(db, requester, target.email)


class TestCachedViewsOfUsers:
    async def test_deactivated_owner_drops_off_cached_listing(self, db, cache, make_user, make_property):
        owner = await make_user()
        prop = await make_property(owner)
        before = await property_service.get_property(db, cache, str(prop.id))
        assert before["owner"]["email"] == owner.email

        await user_service.deactivate_user(db, cache, await user_service.get_user(db, owner.id))

        after = await property_service.get_property(db, cache, str(prop.id))
        assert after["owner"] is None

    async def test_renamed_sender_shows_in_cached_inbox(self, db, cache, make_user, make_property):
        owner = await make_user()
        sender = await make_user(first_name="Alice")
        recipient = await make_user()
        prop = await make_property(owner)
        await recommendation_service.send_recommendation(
            db, cache, sender, {"recipient_email": recipient.email, "property_id": str(prop.id)}
        )
        before = await recommendation_service.list_received(db, cache, recipient, {})
        assert before["recommendations"][0]["sender"]["first_name"] == "Alice"

        await user_service.update_profile(db, cache, await user_service.get_user(db, sender.id), {"first_name": "Bob"})

        after = await recommendation_service.list_received(db, cache, recipient, {})
        assert after["recommendations"][0]["sender"]["first_name"] == "Bob"


class TestHardDelete:
    async def test_cascade_and_recount(self, db, cache, session_factory, make_user, make_property, user_stats):
        owner = await make_user()
        fan = await make_user()
        friend = await make_user()
        prop = await make_property(owner)
        await favorite_service.add_favorite(db, cache, fan, str(prop.id), {})
        await recommendation_service.send_recommendation(
            db, cache, fan, {"recipient_email": friend.email, "property_id": str(prop.id)}
        )
        assert (await user_stats(fan))["favorite_count"] == 1
        assert (await user_stats(friend))["recommendations_received"] == 1

        removed = await user_service.delete_user(db, cache, owner.id)

        assert removed == {"properties": 1, "favorites": 1, "recommendations": 1}
        async with session_factory() as session:
            assert await session.get(User, owner.id) is None
            for model in (Property, Favorite, Recommendation):
                assert (await session.execute(select(func.count(model.id)))).scalar() == 0
        assert (await user_stats(fan)) == {
            "properties_listed": 0,
            "favorite_count": 0,
            "recommendations_sent": 0,
            "recommendations_received": 0,
        }
        assert (await user_stats(friend))["recommendations_received"] == 0

    async def test_clears_every_cached_kind(self, db, cache, memory_backend, make_user):
        user = await make_user()
        for key in ("test:users:x", "test:properties:stats", "test:favorites:list:y", "test:recommendations:z"):
            await cache.set(key, 1)

        await user_service.delete_user(db, cache, user.id)

        assert memory_backend.keys() == []

    async def test_unknown_user(self, db, cache):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            await user_service.delete_user(db, cache, uuid4())
