"""
tests/test_comments_notifications.py — Comments, Inbox & Profiles
===================================================================
"""

from __future__ import annotations

import pytest
from conftest import make_post, make_user

from civica.database.models import NotificationType
from civica.engine.entities import Location
from civica.errors import NotFoundError
from civica.services import comment_service, notification_service, post_service, user_service


@pytest.fixture
def engine(db_engine):
    make_user(db_engine, "author", "Author")
    make_user(db_engine, "fan", "Fan")
    return db_engine


# ===========================================================================
# Comments
# ===========================================================================
class TestComments:
    def test_add_bumps_counter_and_notifies(self, engine):
        post = make_post(engine, "author")
        comment = comment_service.add_comment(
            engine, post.id, author_id="fan", author_name="Fan",
            content="Ini sudah lama sekali rusaknya, mohon segera diperbaiki",
        )
        assert post_service.get_post(engine, post.id).engagement.comments == 1

        inbox = notification_service.get_user_notifications(engine, "author")
        assert len(inbox) == 1
        assert inbox[0].type == NotificationType.COMMENT
        assert inbox[0].title == "Komentar Baru"
        assert inbox[0].body == 'Fan mengomentari postingan anda: "Ini sudah lama sekali rusaknya..."'
        assert inbox[0].data["comment_id"] == comment.id

    def test_reply_uses_reply_type(self, engine):
        post = make_post(engine, "author")
        parent = comment_service.add_comment(
            engine, post.id, author_id="fan", author_name="Fan", content="a",
        )
        comment_service.add_comment(
            engine, post.id, author_id="fan", author_name="Fan", content="b", parent_id=parent.id,
        )
        types = [n.type for n in notification_service.get_user_notifications(engine, "author")]
        assert NotificationType.REPLY in types

    def test_own_comment_does_not_notify(self, engine):
        post = make_post(engine, "author")
        comment_service.add_comment(
            engine, post.id, author_id="author", author_name="Author", content="update",
        )
        assert notification_service.get_user_notifications(engine, "author") == []

    def test_missing_post_raises(self, engine):
        with pytest.raises(NotFoundError):
            comment_service.add_comment(
                engine, "nope", author_id="fan", author_name="Fan", content="x",
            )

    def test_delete_decrements(self, engine):
        post = make_post(engine, "author")
        comment = comment_service.add_comment(
            engine, post.id, author_id="fan", author_name="Fan", content="x",
        )
        assert comment_service.delete_comment(engine, comment.id, post.id) is True
        assert post_service.get_post(engine, post.id).engagement.comments == 0
        assert comment_service.delete_comment(engine, comment.id, post.id) is False

    def test_delete_uses_comment_post(self, engine):
        first = make_post(engine, "author", content="a")
        second = make_post(engine, "author", content="b")
        comment_service.add_comment(engine, second.id, author_id="fan", author_name="Fan", content="y")
        comment = comment_service.add_comment(
            engine, first.id, author_id="fan", author_name="Fan", content="x",
        )
        with pytest.raises(ValueError, match="does not belong"):
            comment_service.delete_comment(engine, comment.id, second.id)
        assert post_service.get_post(engine, second.id).engagement.comments == 1

        assert comment_service.delete_comment(engine, comment.id) is True
        assert post_service.get_post(engine, first.id).engagement.comments == 0
        assert post_service.get_post(engine, second.id).engagement.comments == 1
        assert comment_service.get_comments(engine, first.id) == []

    def test_like_toggle(self, engine):
        post = make_post(engine, "author")
        comment = comment_service.add_comment(
            engine, post.id, author_id="fan", author_name="Fan", content="x",
        )
        assert comment_service.toggle_comment_like(engine, comment.id, "author") is True
        assert comment_service.get_comments(engine, post.id)[0].likes == 1
        assert comment_service.toggle_comment_like(engine, comment.id, "author") is False
        assert comment_service.get_comments(engine, post.id)[0].likes == 0
        assert comment_service.toggle_comment_like(engine, "nope", "author") is False

    def test_update(self, engine):
        post = make_post(engine, "author")
        comment = comment_service.add_comment(
            engine, post.id, author_id="fan", author_name="Fan", content="x",
        )
        assert comment_service.update_comment(engine, comment.id, "y").content == "y"
        with pytest.raises(NotFoundError):
            comment_service.update_comment(engine, "nope", "y")


# ===========================================================================
# Notifications
# ===========================================================================
class TestNotifications:
    def test_send_drops_none_data(self, engine):
        nid = notification_service.send_notification(
            engine, "fan", "city_alert", "Banjir", "Hindari Jl. Dago",
            {"post_id": None, "area": "Dago"},
        )
        item = notification_service.get_notification(engine, nid)
        assert item.data == {"area": "Dago"}
        assert item.read is False

    def test_mark_read(self, engine):
        nid = notification_service.send_notification(engine, "fan", "achievement", "t", "b")
        assert notification_service.unread_count(engine, "fan") == 1
        assert notification_service.mark_as_read(engine, nid) is True
        assert notification_service.unread_count(engine, "fan") == 0
        assert notification_service.mark_as_read(engine, "nope") is False

    def test_mark_all_read(self, engine):
        for _ in range(3):
            notification_service.send_notification(engine, "fan", "achievement", "t", "b")
        notification_service.send_notification(engine, "author", "achievement", "t", "b")
        assert notification_service.mark_all_as_read(engine, "fan") == 3
        assert notification_service.unread_count(engine, "author") == 1

    def test_limit(self, engine):
        for i in range(4):
            notification_service.send_notification(engine, "fan", "achievement", f"t{i}", "b")
        assert len(notification_service.get_user_notifications(engine, "fan", limit=2)) == 2

    def test_subscription_is_scoped_to_user(self, engine):
        calls = []
        unsubscribe = notification_service.subscribe_user_notifications(
            engine, "fan", lambda items: calls.append(len(items)),
        )
        notification_service.send_notification(engine, "fan", "achievement", "t", "b")
        notification_service.send_notification(engine, "author", "achievement", "t", "b")
        unsubscribe()
        notification_service.send_notification(engine, "fan", "achievement", "t", "b")
        assert calls == [0, 1]


# ===========================================================================
# Profiles
# ===========================================================================
class TestUserProfiles:
    def test_defaults_filled(self, engine):
        user = user_service.get_user_profile(engine, "fan")
        assert user.badges == ["newcomer"]
        assert user.stats.points == 0
        assert user.preferences["nearby_radius"] == 10
        assert user_service.has_completed_onboarding(engine, "fan") is True
        assert user_service.has_completed_onboarding(engine, "ghost") is False

    def test_update_merges_preferences(self, engine):
        user = user_service.update_user_profile(
            engine, "fan",
            {"preferences": {"dark_mode": True}, "display_name": None,
             "location": Location(city="Jakarta")},
        )
        assert user.preferences["dark_mode"] is True
        assert user.preferences["nearby_radius"] == 10
        assert user.display_name == "Fan"
        assert user.location.city == "Jakarta"

    def test_update_rejects_stats(self, engine):
        with pytest.raises(ValueError):
            user_service.update_user_profile(engine, "fan", {"stats": {}})

    def test_update_missing_user(self, engine):
        with pytest.raises(NotFoundError):
            user_service.update_user_profile(engine, "ghost", {"display_name": "x"})
