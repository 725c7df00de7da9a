"""
tests/test_gamification.py — Points, Levels & the Stats Transaction
=====================================================================

Pure level math first, then the row-locked service wrapper against an
in-memory SQLite database.
"""

from __future__ import annotations

import pytest
from conftest import make_user

from civica.constants import badge_status
from civica.database.models import Level
from civica.engine.gamification import apply_delta, points_for_upvotes, progress
from civica.errors import NotFoundError
from civica.services import gamification_service, user_service


# ===========================================================================
# Pure calculation
# ===========================================================================
class TestApplyDelta:
    def test_adds_points_below_threshold(self):
        result = apply_delta(10, Level.BRONZE, 5)
        assert result.points == 15
        assert result.level == Level.BRONZE
        assert result.leveled_up is False

    def test_points_never_negative(self):
        result = apply_delta(3, Level.SILVER, -10)
        assert result.points == 0
        assert result.level == Level.SILVER

    def test_reaching_threshold_promotes_and_resets(self):
        result = apply_delta(98, Level.BRONZE, 2)
        assert result.level == Level.SILVER
        assert result.points == 0
        assert result.leveled_up is True
        assert result.old_level == Level.BRONZE

    def test_single_promotion_per_call(self):
        result = apply_delta(0, Level.BRONZE, 1000)
        assert result.level == Level.SILVER
        assert result.points == 0

    def test_gold_promotes_to_diamond(self):
        result = apply_delta(349, "gold", 1)
        assert result.level == Level.DIAMOND

    def test_diamond_is_terminal_and_accumulates(self):
        result = apply_delta(600, Level.DIAMOND, 50)
        assert result.level == Level.DIAMOND
        assert result.points == 650
        assert result.leveled_up is False

    def test_missing_points_treated_as_zero(self):
        assert apply_delta(None, Level.BRONZE, 4).points == 4


class TestHelpers:
    def test_five_upvotes_are_two_points(self):
        assert points_for_upvotes(5) == 2.0

    def test_negative_upvotes_remove_points(self):
        assert points_for_upvotes(-1) == -0.4

    @pytest.mark.parametrize(
        "points, level, expected",
        [(0, "bronze", 0.0), (50, "bronze", 0.5), (400, "silver", 1.0), (-5, "gold", 0.0)],
    )
    def test_progress_is_clamped(self, points, level, expected):
        assert progress(points, level) == expected

    def test_badge_status(self):
        badges = badge_status({"total_reports": 5, "resolved_issues": 0, "total_upvotes": 12})
        assert badges["1"] and badges["2"] and badges["4"]
        assert not badges["3"]
        assert not badges["5"]
        assert not badges["6"]


# ===========================================================================
# Service wrapper
# ===========================================================================
class TestApplyPoints:
    def test_updates_stored_stats(self, db_engine):
        make_user(db_engine)
        gamification_service.apply_points(db_engine, "u1", 10)
        stats = user_service.get_user_profile(db_engine, "u1").stats
        assert stats.points == 10
        assert stats.level == Level.BRONZE

    def test_level_up_is_persisted(self, db_engine):
        make_user(db_engine)
        gamification_service.apply_points(db_engine, "u1", 99)
        result = gamification_service.apply_points(db_engine, "u1", 1)
        assert result.leveled_up is True
        stats = user_service.get_user_profile(db_engine, "u1").stats
        assert stats.level == Level.SILVER
        assert stats.points == 0

    def test_upvote_change_floors_at_zero(self, db_engine):
        make_user(db_engine)
        gamification_service.apply_points(db_engine, "u1", -0.4, upvote_change=-1)
        stats = user_service.get_user_profile(db_engine, "u1").stats
        assert stats.total_upvotes == 0
        assert stats.points == 0

    def test_missing_user_raises(self, db_engine):
        with pytest.raises(NotFoundError):
            gamification_service.apply_points(db_engine, "ghost", 5)

    def test_increment_stat_rejects_unknown_counter(self, db_engine):
        make_user(db_engine)
        with pytest.raises(ValueError, match="Unknown stats counter"):
            gamification_service.increment_stat(db_engine, "u1", "points")

    def test_increment_stat(self, db_engine):
        make_user(db_engine)
        assert gamification_service.increment_stat(db_engine, "u1", "resolved_issues") == 1
        assert gamification_service.increment_stat(db_engine, "u1", "resolved_issues", by=2) == 3


class TestEventEntryPoints:
    def test_upvote_received_credits_author(self, db_engine):
        make_user(db_engine)
        for _ in range(5):
            gamification_service.on_upvote_received(db_engine, "u1", added=True)
        stats = user_service.get_user_profile(db_engine, "u1").stats
        assert stats.points == pytest.approx(2.0)
        assert stats.total_upvotes == 5

    def test_failures_are_dropped(self, db_engine):
        assert gamification_service.on_upvote_received(db_engine, "ghost", added=True) is None
        gamification_service.on_report_created(db_engine, "ghost")
        gamification_service.on_report_resolved(db_engine, "ghost")
