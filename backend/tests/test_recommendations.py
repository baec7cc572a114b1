"""Tests for recommendations: send rules, uniqueness while active, status progression, reminders, expiry."""

from datetime import timedelta

import pytest

from app.exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.models.base import as_utc, utcnow
from app.models.recommendation import Recommendation
from app.models.user import default_preferences
from app.services import property_service, recommendation_service


def payload(recipient, prop, **extra) -> dict:
    return {"recipient_email": recipient.email, "property_id": str(prop.id), **extra}


@pytest.fixture
async def trio(make_user, make_property):
    """An owner's listing, a sender and a verified recipient."""
    owner = await make_user()
    sender = await make_user(first_name="Ravi", last_name="Kumar")
    recipient = await make_user()
    prop = await make_property(owner, city="Pune", tags=["family"])
    return sender, recipient, prop


# ── Sending ──────────────────────────────────────────────────────────────

class TestSend:
    async def test_send_defaults_and_counters(self, db, cache, trio, user_stats):
        sender, recipient, prop = trio

        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        assert rec.status == "pending"
        assert rec.is_active is True
        assert rec.subject == "Ravi Kumar recommended a property for you"
        assert rec.context == {"location": {"city": "Pune", "state": "Karnataka"}, "tags": ["family"]}
        expected_expiry = rec.sent_at + timedelta(days=30)
        assert abs(as_utc(rec.expires_at) - as_utc(expected_expiry)) < timedelta(seconds=1)
        assert (await user_stats(sender))["recommendations_sent"] == 1
        assert (await user_stats(recipient))["recommendations_received"] == 1

    async def test_concurrent_duplicate_is_conflict(self, db, cache, concurrent_writer, trio, user_stats):
        sender, recipient, prop = trio
        concurrent_writer(Recommendation, sender_id=sender.id, recipient_id=recipient.id, property_id=prop.id)

        with pytest.raises(ConflictError) as exc:
            await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        assert exc.value.code == "DUPLICATE_RECOMMENDATION"
        assert (await user_stats(sender))["recommendations_sent"] == 0
        assert (await user_stats(recipient))["recommendations_received"] == 0

    async def test_self_recommendation_rejected_first(self, db, cache, make_user):
        sender = await make_user()
        with pytest.raises(InvalidInputError) as exc:
            await recommendation_service.send_recommendation(
                db, cache, sender, {"recipient_email": sender.email.upper(), "property_id": "not-a-real-id"}
            )
        assert exc.value.code == "SELF_RECOMMENDATION"

    async def test_unverified_recipient_not_found(self, db, cache, make_user, make_property):
        sender = await make_user()
        recipient = await make_user(verified=False)
        prop = await make_property(sender)

        with pytest.raises(NotFoundError):
            await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

    async def test_recipient_opted_out(self, db, cache, make_user, make_property):
        preferences = default_preferences()
        preferences["notifications"]["recommendations"] = False
        sender = await make_user()
        recipient = await make_user(preferences=preferences)
        prop = await make_property(sender)

        with pytest.raises(ForbiddenError) as exc:
            await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))
        assert exc.value.code == "RECOMMENDATIONS_DISABLED"

    async def test_inactive_property_not_found(self, db, cache, make_user, make_property):
        sender = await make_user()
        recipient = await make_user()
        prop = await make_property(sender)
        await property_service.soft_delete_property(db, cache, sender, str(prop.id))

        with pytest.raises(NotFoundError):
            await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

    async def test_duplicate_while_active(self, db, cache, trio, user_stats):
        sender, recipient, prop = trio
        await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        with pytest.raises(ConflictError) as exc:
            await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        assert exc.value.code == "DUPLICATE_RECOMMENDATION"
        assert (await user_stats(sender))["recommendations_sent"] == 1

    async def test_resend_after_dismissal(self, db, cache, trio):
        sender, recipient, prop = trio
        first = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))
        await recommendation_service.update_status(db, cache, recipient, str(first.id), "dismissed")

        second = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        assert second.id != first.id
        assert second.is_active is True


# ── Status progression ───────────────────────────────────────────────────

class TestStatus:
    async def test_recipient_read_marks_viewed(self, db, cache, trio):
        sender, recipient, prop = trio
        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        detail = await recommendation_service.get_recommendation(db, cache, recipient, str(rec.id))

        assert detail["status"] == "viewed"
        assert detail["viewed_at"] is not None
        assert detail["is_recipient"] is True
        assert detail["can_respond"] is True

    async def test_sender_read_leaves_pending(self, db, cache, trio):
        sender, recipient, prop = trio
        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        detail = await recommendation_service.get_recommendation(db, cache, sender, str(rec.id))

        assert detail["status"] == "pending"
        assert detail["is_sender"] is True

    async def test_stranger_cannot_read(self, db, cache, trio, make_user):
        sender, recipient, prop = trio
        stranger = await make_user()
        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        with pytest.raises(NotFoundError):
            await recommendation_service.get_recommendation(db, cache, stranger, str(rec.id))

    async def test_responses_stamp_view_response_and_contact(self, db, cache, trio):
        sender, recipient, prop = trio
        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        await recommendation_service.update_status(db, cache, recipient, str(rec.id), "interested")
        updated = await recommendation_service.update_status(db, cache, recipient, str(rec.id), "contacted")

        assert updated.status == "contacted"
        assert updated.responded_at is not None
        assert updated.contacted_at is not None
        assert updated.viewed_at is not None

    async def test_dismissed_then_interested_rejected(self, db, cache, trio):
        sender, recipient, prop = trio
        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))
        await recommendation_service.update_status(db, cache, recipient, str(rec.id), "dismissed")

        with pytest.raises(InvalidInputError) as exc:
            await recommendation_service.update_status(db, cache, recipient, str(rec.id), "interested")
        assert exc.value.code == "INVALID_STATUS_TRANSITION"

    async def test_only_recipient_updates_status(self, db, cache, trio):
        sender, recipient, prop = trio
        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        with pytest.raises(NotFoundError):
            await recommendation_service.update_status(db, cache, sender, str(rec.id), "interested")


# ── Reminders and expiry ─────────────────────────────────────────────────

class TestReminders:
    async def test_first_reminder_sent_then_cooldown(self, db, cache, trio):
        sender, recipient, prop = trio
        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        first = await recommendation_service.send_reminder(db, cache, sender, str(rec.id))
        second = await recommendation_service.send_reminder(db, cache, sender, str(rec.id))

        assert first["sent"] is True
        assert first["reminder_count"] == 1
        assert second["sent"] is False
        assert second["reason"] == "REMINDER_COOLDOWN"
        assert second["reminder_count"] == 1

    async def test_viewed_is_not_remindable(self, db, cache, trio):
        sender, recipient, prop = trio
        rec = await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))
        await recommendation_service.get_recommendation(db, cache, recipient, str(rec.id))

        result = await recommendation_service.send_reminder(db, cache, sender, str(rec.id))
        assert result["reason"] == "NOT_PENDING"

    async def test_expiry_job_hides_from_inbox(self, db, cache, trio):
        sender, recipient, prop = trio
        await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, prop))

        expired = await db.run_sync(recommendation_service.expire_recommendations, utcnow() + timedelta(days=31))
        await db.commit()

        assert expired == 1
        inbox = await recommendation_service.list_received(db, cache, recipient, {})
        assert inbox["recommendations"] == []


# ── Lists and analytics ──────────────────────────────────────────────────

class TestLists:
    async def test_inbox_skips_deactivated_listings(self, db, cache, make_user, make_property):
        owner = await make_user()
        sender = await make_user()
        recipient = await make_user()
        live = await make_property(owner)
        gone = await make_property(owner)
        await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, live))
        await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, gone))
        await property_service.soft_delete_property(db, cache, owner, str(gone.id))

        inbox = await recommendation_service.list_received(db, cache, recipient, {})

        assert [r["property_id"] for r in inbox["recommendations"]] == [str(live.id)]
        assert inbox["recommendations"][0]["sender"]["id"] == str(sender.id)

    async def test_inbox_reflects_new_recommendation(self, db, cache, make_user, make_property):
        owner = await make_user()
        sender = await make_user()
        recipient = await make_user()
        first = await make_property(owner)
        second = await make_property(owner)
        await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, first))
        before = await recommendation_service.list_received(db, cache, recipient, {})

        await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, second))

        after = await recommendation_service.list_received(db, cache, recipient, {})
        assert before["pagination"]["total_count"] == 1
        assert after["pagination"]["total_count"] == 2
        assert after["status_counts"] == {"pending": 2}

    async def test_analytics_response_rate(self, db, cache, make_user, make_property):
        owner = await make_user()
        sender = await make_user()
        recipient = await make_user()
        first = await make_property(owner)
        second = await make_property(owner)
        rec = await recommendation_service.send_recommendation(
            db, cache, sender, payload(recipient, first, category="perfect_match")
        )
        await recommendation_service.send_recommendation(db, cache, sender, payload(recipient, second))
        await recommendation_service.update_status(db, cache, recipient, str(rec.id), "interested")

        stats = await recommendation_service.analytics(db, cache, sender)

        assert stats["sent"] == {"total": 2, "by_status": {"interested": 1, "pending": 1}}
        assert stats["response_rate"] == 50.0
        assert stats["top_categories"] == {"perfect_match": 1, "general": 1}
