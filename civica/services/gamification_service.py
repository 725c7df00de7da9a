"""
civica.services.gamification_service — Atomic Points & Level Update
=====================================================================

Applies a signed point delta to a user's stats as one read-modify-write
transaction.  The user row is locked with ``SELECT ... FOR UPDATE`` so
concurrent deltas (simultaneous upvotes from different viewers) cannot
lose updates.  The level math itself lives in
:mod:`civica.engine.gamification`.

Two layers:
  * :func:`apply_points` / :func:`increment_stat` raise on failure.  No
    retries.
  * The event-level entry points (:func:`on_upvote_received`,
    :func:`on_report_created`, :func:`on_report_resolved`) log and drop
    failures; the stats are corrected by the next successful event.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from civica.constants import default_stats
from civica.database.engine import get_session
from civica.database.models import User
from civica.engine.changefeed import feed_for
from civica.engine.gamification import PointsResult, apply_delta, points_for_upvotes
from civica.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_COUNTERS = frozenset({"total_reports", "total_upvotes", "resolved_issues"})


def _lock_user(session: Session, user_id: str) -> User:
    user = session.scalar(select(User).where(User.id == user_id).with_for_update())
    if user is None:
        raise NotFoundError(f"User {user_id} does not exist")
    return user


def _current_stats(user: User) -> dict:
    stats = default_stats()
    stats.update(user.stats or {})
    return stats


def apply_points(
    engine: Engine, user_id: str, delta: float, upvote_change: int = 0
) -> PointsResult:
    """Apply *delta* points (and an optional upvote counter change) atomically.

    Raises NotFoundError if the user does not exist; database errors
    propagate unchanged.
    """
    with get_session(engine) as session:
        user = _lock_user(session, user_id)
        stats = _current_stats(user)

        result = apply_delta(stats["points"], stats["level"], delta)
        stats["points"] = result.points
        stats["level"] = result.level.value
        if upvote_change:
            stats["total_upvotes"] = max(0, stats["total_upvotes"] + upvote_change)

        # Reassign so the JSONB column is flagged dirty
        user.stats = stats

    if result.leveled_up:
        logger.info(
            "User %s leveled up: %s → %s", user_id, result.old_level, result.level,
        )
    feed_for(engine).publish("users", "stats", user_id)
    return result


def increment_stat(engine: Engine, user_id: str, field: str, by: int = 1) -> int:
    """Atomically add *by* to a stats counter (floored at 0); returns the new value."""
    if field not in _COUNTERS:
        raise ValueError(f"Unknown stats counter: {field!r}")

    with get_session(engine) as session:
        user = _lock_user(session, user_id)
        stats = _current_stats(user)
        stats[field] = max(0, stats[field] + by)
        user.stats = stats
        value = stats[field]

    feed_for(engine).publish("users", "stats", user_id)
    return value


# ---------------------------------------------------------------------------
# Event-level entry points — failures are logged and dropped
# ---------------------------------------------------------------------------
def on_upvote_received(engine: Engine, author_id: str, added: bool) -> PointsResult | None:
    """Credit (or debit) the post author for one upvote."""
    sign = 1 if added else -1
    try:
        return apply_points(engine, author_id, sign * points_for_upvotes(1), upvote_change=sign)
    except Exception:
        logger.exception("Points update for %s dropped (upvote %s)", author_id, "+" if added else "-")
        return None


def on_report_created(engine: Engine, author_id: str) -> None:
    try:
        increment_stat(engine, author_id, "total_reports")
    except Exception:
        logger.exception("Report counter update for %s dropped", author_id)


def on_report_resolved(engine: Engine, author_id: str) -> None:
    try:
        increment_stat(engine, author_id, "resolved_issues")
    except Exception:
        logger.exception("Resolved counter update for %s dropped", author_id)
