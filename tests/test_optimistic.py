"""
tests/test_optimistic.py — Local Feed State & Rollback
========================================================
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from civica.database.models import PostType
from civica.engine.entities import AIClassification, Engagement, Post
from civica.engine.optimistic import FeedState


def _post(pid: str, upvoted_by: set[str] | None = None) -> Post:
    members = set(upvoted_by or ())
    now = datetime.now(UTC)
    return Post(
        id=pid,
        author_id="author",
        author_name="Author",
        content="halo",
        type=PostType.GENERAL,
        classification=AIClassification(),
        engagement=Engagement(upvotes=len(members)),
        created_at=now,
        updated_at=now,
        upvoted_by=members,
    )


@pytest.fixture
def state():
    s = FeedState("viewer")
    s.replace_all([_post("p1"), _post("p2", {"viewer", "other"})])
    return s


class TestBeginUpvote:
    def test_add(self, state):
        pending = state.begin_upvote("p1")
        assert pending.was_upvoted is False
        assert pending.previous_upvotes == 0
        assert state.is_upvoted("p1")
        assert state.upvote_count("p1") == 1
        assert "viewer" in state.get("p1").upvoted_by

    def test_remove(self, state):
        state.begin_upvote("p2")
        assert not state.is_upvoted("p2")
        assert state.upvote_count("p2") == 1
        assert state.get("p2").upvoted_by == {"other"}

    def test_unknown_post(self, state):
        with pytest.raises(KeyError):
            state.begin_upvote("missing")

    def test_counter_matches_membership(self, state):
        for pid in ("p1", "p2", "p1"):
            state.begin_upvote(pid)
            post = state.get(pid)
            assert post.engagement.upvotes == len(post.upvoted_by)


class TestRollback:
    def test_restores_add(self, state):
        pending = state.begin_upvote("p1")
        state.rollback(pending)
        assert not state.is_upvoted("p1")
        assert state.upvote_count("p1") == 0
        assert state.get("p1").upvoted_by == set()

    def test_restores_remove(self, state):
        pending = state.begin_upvote("p2")
        state.rollback(pending)
        assert state.is_upvoted("p2")
        assert state.upvote_count("p2") == 2
        assert state.get("p2").upvoted_by == {"viewer", "other"}


class TestSnapshots:
    def test_replace_all_derives_upvoted_set(self, state):
        assert state.is_upvoted("p2")
        assert not state.is_upvoted("p1")

    def test_extend_skips_duplicates(self, state):
        state.extend([_post("p2"), _post("p3", {"viewer"})])
        assert [p.id for p in state.posts] == ["p1", "p2", "p3"]
        assert state.is_upvoted("p3")

    def test_listeners_see_every_change(self, state):
        seen = []
        unsubscribe = state.subscribe(lambda posts: seen.append(len(posts)))
        state.begin_upvote("p1")
        state.extend([_post("p3")])
        unsubscribe()
        state.begin_upvote("p1")
        assert seen == [2, 3]
