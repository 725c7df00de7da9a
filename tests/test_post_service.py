"""
tests/test_post_service.py — Posts Gateway Integration Tests
==============================================================

Creation rules, upvote/watch toggles, the report lifecycle and feed
paging, against an in-memory SQLite database.
"""

from __future__ import annotations

import pytest
from conftest import make_post, make_user

from civica.database.models import NotificationType, ReportStatus
from civica.engine.entities import Location
from civica.errors import NotFoundError
from civica.services import comment_service, notification_service, post_service, user_service
from civica.services.post_service import FeedFilters


@pytest.fixture
def engine(db_engine):
    make_user(db_engine, "author", "Author")
    make_user(db_engine, "fan", "Fan")
    return db_engine


# ===========================================================================
# Creation
# ===========================================================================
class TestCreatePost:
    def test_report_gets_lifecycle_fields(self, engine):
        post = make_post(engine, "author", severity="high")
        assert post.type == "REPORT"
        assert post.status == ReportStatus.ACTIVE
        assert post.severity == "high"
        assert post.verified_count == 0
        assert post.updates == []
        assert post.engagement.upvotes == 0

    def test_report_severity_defaults_to_medium(self, engine):
        post = make_post(engine, "author", severity=None)
        assert post.severity == "medium"

    def test_non_report_has_no_status(self, engine):
        post = make_post(engine, "author", category="NEWS", severity=None)
        assert post.status is None
        assert post.severity is None

    def test_anonymous_hides_author(self, engine):
        post = make_post(engine, "author", is_anonymous=True, author_avatar="http://x/a.jpg")
        assert post.author_name == "Anonymous"
        assert post.author_avatar is None
        assert post.author_id == "author"

    def test_media_and_location(self, engine):
        post = make_post(
            engine, "author",
            media_urls=["http://x/1.jpg"],
            location=Location(city="Bandung", district="Dago"),
        )
        assert [m.url for m in post.media] == ["http://x/1.jpg"]
        assert post.location.district == "Dago"

    def test_report_counts_toward_author_stats(self, engine):
        make_post(engine, "author")
        assert user_service.get_user_profile(engine, "author").stats.total_reports == 1


# ===========================================================================
# Reads
# ===========================================================================
class TestGetPosts:
    def test_latest_first_with_cursor(self, engine):
        ids = [make_post(engine, "author", content=f"p{i}").id for i in range(3)]
        page, cursor = post_service.get_posts(engine, page_size=2)
        assert [p.id for p in page] == [ids[2], ids[1]]
        rest, last = post_service.get_posts(engine, cursor=cursor, page_size=2)
        assert [p.id for p in rest] == [ids[0]]
        empty, none = post_service.get_posts(engine, cursor=last, page_size=2)
        assert empty == [] and none is None

    def test_trending_orders_by_upvotes(self, engine):
        quiet = make_post(engine, "author", content="quiet")
        popular = make_post(engine, "author", content="popular")
        post_service.toggle_upvote(engine, quiet.id, "fan")
        post_service.toggle_upvote(engine, popular.id, "fan")
        post_service.toggle_upvote(engine, popular.id, "x")
        page, _ = post_service.get_posts(engine, FeedFilters(sort_by="trending"))
        assert [p.id for p in page] == [popular.id, quiet.id]

    def test_status_filter(self, engine):
        active = make_post(engine, "author")
        done = make_post(engine, "author")
        post_service.update_report_status(engine, done.id, "resolved")
        page, _ = post_service.get_posts(engine, FeedFilters(type="REPORT", status="resolved"))
        assert [p.id for p in page] == [done.id]
        assert active.id not in {p.id for p in page}

    def test_unknown_type_raises(self, engine):
        with pytest.raises(ValueError):
            post_service.get_posts(engine, FeedFilters(type="WEATHER"))

    def test_missing_post_is_none(self, engine):
        assert post_service.get_post(engine, "nope") is None

    def test_posts_by_user(self, engine):
        make_post(engine, "author")
        make_post(engine, "fan")
        assert len(post_service.get_posts_by_user(engine, "author")) == 1


# ===========================================================================
# Toggles
# ===========================================================================
class TestToggleUpvote:
    def test_add_and_remove(self, engine):
        post = make_post(engine, "author")
        assert post_service.toggle_upvote(engine, post.id, "fan") is True
        stored = post_service.get_post(engine, post.id)
        assert stored.upvoted_by == {"fan"}
        assert stored.engagement.upvotes == 1
        assert post_service.toggle_upvote(engine, post.id, "fan") is False
        stored = post_service.get_post(engine, post.id)
        assert stored.upvoted_by == set()
        assert stored.engagement.upvotes == 0

    def test_missing_post_raises(self, engine):
        with pytest.raises(NotFoundError):
            post_service.toggle_upvote(engine, "nope", "fan")

    def test_credits_author_and_notifies(self, engine):
        post = make_post(engine, "author")
        post_service.toggle_upvote(engine, post.id, "fan")
        stats = user_service.get_user_profile(engine, "author").stats
        assert stats.total_upvotes == 1
        assert stats.points == pytest.approx(0.4)
        inbox = notification_service.get_user_notifications(engine, "author")
        assert len(inbox) == 1
        assert inbox[0].type == NotificationType.UPVOTE
        assert inbox[0].body == "Fan menyukai postingan anda"
        assert inbox[0].data == {"post_id": post.id, "user_id": "fan"}

    def test_unknown_liker_named_someone(self, engine):
        post = make_post(engine, "author")
        post_service.toggle_upvote(engine, post.id, "stranger")
        inbox = notification_service.get_user_notifications(engine, "author")
        assert inbox[0].body.startswith("Seseorang")

    def test_self_upvote_does_not_notify(self, engine):
        post = make_post(engine, "author")
        post_service.toggle_upvote(engine, post.id, "author")
        assert notification_service.get_user_notifications(engine, "author") == []

    def test_remove_does_not_notify(self, engine):
        post = make_post(engine, "author")
        post_service.toggle_upvote(engine, post.id, "fan")
        post_service.toggle_upvote(engine, post.id, "fan")
        assert len(notification_service.get_user_notifications(engine, "author")) == 1


class TestToggleWatch:
    def test_watch_counter(self, engine):
        post = make_post(engine, "author")
        assert post_service.toggle_watch(engine, post.id, "fan") is True
        assert post_service.get_post(engine, post.id).engagement.watchers == 1
        assert post_service.toggle_watch(engine, post.id, "fan") is False
        assert post_service.get_post(engine, post.id).engagement.watchers == 0


# ===========================================================================
# Report lifecycle
# ===========================================================================
class TestReportLifecycle:
    def test_add_report_update(self, engine):
        post = make_post(engine, "author")
        update = post_service.add_report_update(
            engine, post.id, author_id="fan", author_name="Fan", content="Sudah diperbaiki sebagian",
        )
        assert update.id.isdigit()
        stored = post_service.get_post(engine, post.id)
        assert [u.content for u in stored.updates] == ["Sudah diperbaiki sebagian"]

    def test_add_update_to_missing_post(self, engine):
        with pytest.raises(NotFoundError):
            post_service.add_report_update(
                engine, "nope", author_id="fan", author_name="Fan", content="x",
            )

    def test_resolve_notifies_and_counts(self, engine):
        post = make_post(engine, "author")
        updated = post_service.update_report_status(engine, post.id, "resolved")
        assert updated.status == ReportStatus.RESOLVED
        assert user_service.get_user_profile(engine, "author").stats.resolved_issues == 1
        inbox = notification_service.get_user_notifications(engine, "author")
        assert inbox[0].type == NotificationType.REPORT_RESOLVED
        assert inbox[0].title == "Laporan Selesai"

    def test_verify_notifies(self, engine):
        post = make_post(engine, "author")
        post_service.update_report_status(engine, post.id, ReportStatus.VERIFIED)
        inbox = notification_service.get_user_notifications(engine, "author")
        assert inbox[0].type == NotificationType.REPORT_VERIFIED

    def test_same_status_is_silent(self, engine):
        post = make_post(engine, "author")
        post_service.update_report_status(engine, post.id, "active")
        assert notification_service.get_user_notifications(engine, "author") == []


# ===========================================================================
# Update / delete / views
# ===========================================================================
class TestUpdateDelete:
    def test_reclassified_as_report(self, engine):
        post = make_post(engine, "author", category="GENERAL", severity=None)
        updated = post_service.update_post(engine, post.id, {"type": "REPORT", "content": None})
        assert updated.status == ReportStatus.ACTIVE
        assert updated.severity == "medium"
        assert updated.content == post.content

    def test_rejects_unknown_fields(self, engine):
        post = make_post(engine, "author")
        with pytest.raises(ValueError, match="Cannot update"):
            post_service.update_post(engine, post.id, {"upvoted_by": []})

    def test_delete_removes_comments(self, engine):
        post = make_post(engine, "author")
        comment_service.add_comment(
            engine, post.id, author_id="fan", author_name="Fan", content="setuju",
        )
        assert post_service.delete_post(engine, post.id) is True
        assert post_service.get_post(engine, post.id) is None
        assert comment_service.get_comments(engine, post.id) == []
        assert post_service.delete_post(engine, post.id) is False

    def test_increment_views_never_raises(self, engine):
        post = make_post(engine, "author")
        post_service.increment_views(engine, post.id)
        post_service.increment_views(engine, "nope")
        assert post_service.get_post(engine, post.id).engagement.views == 1
