"""
civica.services.pulse_service — Live City Pulse Dashboard
===========================================================

Read-side derived state over report posts: today's snapshot, the
seven-day series, urgent issues and top contributors.  Nothing is
persisted; every :meth:`PulseDashboard.refresh` re-issues the capped
queries and recomputes from scratch with :mod:`civica.engine.aggregation`.

While started, the dashboard refreshes on every ``posts`` change.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_, select

from civica.constants import CONTRIBUTOR_QUERY_LIMIT, URGENT_QUERY_LIMIT
from civica.database.engine import get_session, run_db
from civica.database.models import Post as PostRow
from civica.database.models import PostType, ReportStatus
from civica.engine import aggregation
from civica.engine.changefeed import feed_for
from civica.engine.entities import Post, post_from_row

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

Listener = Callable[["PulseData"], None]


@dataclass(slots=True)
class PulseData:
    snapshot: dict[str, Any]
    weekly: list[dict[str, Any]]
    urgent: list[aggregation.UrgentIssue]
    contributors: list[aggregation.Contributor]
    refreshed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot": self.snapshot,
            "weekly": self.weekly,
            "urgent": [
                {
                    "id": i.id,
                    "title": i.title,
                    "location": i.location,
                    "severity": i.severity.value,
                    "reported_ago": i.reported_ago,
                    "upvotes": i.upvotes,
                }
                for i in self.urgent
            ],
            "contributors": [
                {
                    "id": c.id,
                    "name": c.name,
                    "points": c.points,
                    "reports": c.reports,
                    "upvotes": c.upvotes,
                }
                for c in self.contributors
            ],
            "refreshed_at": self.refreshed_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def fetch_window_reports(engine: Engine, now: datetime) -> list[Post]:
    """Reports created in the last seven days or changed today."""
    week_start = aggregation.start_of_day(now, 6)
    today = aggregation.start_of_day(now)
    with get_session(engine) as session:
        rows = session.scalars(
            select(PostRow).where(
                PostRow.type == PostType.REPORT.value,
                or_(PostRow.created_at >= week_start, PostRow.updated_at >= today),
            )
        ).all()
        return [post_from_row(r) for r in rows]


def fetch_open_reports(engine: Engine, limit: int = URGENT_QUERY_LIMIT) -> list[Post]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(PostRow)
            .where(
                PostRow.type == PostType.REPORT.value,
                PostRow.status.in_([ReportStatus.ACTIVE.value, ReportStatus.VERIFIED.value]),
            )
            .order_by(PostRow.created_at.desc())
            .limit(limit)
        ).all()
        return [post_from_row(r) for r in rows]


def fetch_recent_reports(engine: Engine, limit: int = CONTRIBUTOR_QUERY_LIMIT) -> list[Post]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(PostRow)
            .where(PostRow.type == PostType.REPORT.value)
            .order_by(PostRow.created_at.desc())
            .limit(limit)
        ).all()
        return [post_from_row(r) for r in rows]


def compute_pulse(engine: Engine, now: datetime, language: str = "id") -> PulseData:
    """Run every dashboard query and reduce the results."""
    window = fetch_window_reports(engine, now)
    return PulseData(
        snapshot=aggregation.todays_snapshot(window, now),
        weekly=aggregation.weekly_series(window, now, language),
        urgent=aggregation.urgent_issues(fetch_open_reports(engine), now),
        contributors=aggregation.top_contributors(fetch_recent_reports(engine)),
        refreshed_at=now,
    )


# ---------------------------------------------------------------------------
# Live dashboard
# ---------------------------------------------------------------------------
class PulseDashboard:
    """Holds the latest :class:`PulseData` and keeps it fresh while started."""

    def __init__(
        self,
        engine: Engine,
        language: str = "id",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._engine = engine
        self.language = language
        self._clock = clock or (lambda: datetime.now(UTC))
        self._data: PulseData | None = None
        self._listeners: list[Listener] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._pending: set[asyncio.Task] = set()
        self._closed = False

    @property
    def data(self) -> PulseData | None:
        return self._data

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def refresh(self) -> PulseData:
        """Recompute everything now."""
        data = await run_db(compute_pulse, self._engine, self._clock(), self.language)
        if not self._closed:
            self._data = data
            for listener in list(self._listeners):
                listener(data)
        return data

    async def start(self) -> PulseData:
        """Initial refresh, then refresh on every ``posts`` change."""
        self._loop = asyncio.get_running_loop()
        if self._unsubscribe is None:
            self._unsubscribe = feed_for(self._engine).subscribe("posts", self._on_change)
        return await self.refresh()

    def _on_change(self, payload: dict[str, Any]) -> None:
        loop = self._loop
        if self._closed or loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._spawn_refresh)

    def _spawn_refresh(self) -> None:
        if self._closed:
            return
        task = asyncio.ensure_future(self._safe_refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _safe_refresh(self) -> None:
        try:
            await self.refresh()
        except Exception:
            logger.exception("Pulse refresh failed")

    async def wait_idle(self) -> None:
        """Wait for any scheduled live refreshes to finish."""
        await asyncio.sleep(0)
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def close(self) -> None:
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
