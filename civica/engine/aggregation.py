"""
civica.engine.aggregation — Pulse Dashboard Reducers
======================================================

Pure functions over already-fetched report posts.  The pulse service
issues the capped queries and hands the results here; every refresh
recomputes from scratch.

All day boundaries are taken in the timezone of the ``now`` argument,
so callers decide whose "today" it is.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from civica.constants import (
    CONTRIBUTOR_REPORT_WEIGHT,
    CONTRIBUTOR_UPVOTE_WEIGHT,
    PULSE_TOP_N,
    SEVERITY_ORDER,
    URGENT_SEVERITIES,
    WEEKDAY_SHORT,
)
from civica.database.models import ReportStatus, Severity
from civica.engine.entities import Post

__all__ = [
    "Contributor",
    "UrgentIssue",
    "format_time_ago",
    "start_of_day",
    "todays_snapshot",
    "top_contributors",
    "urgent_issues",
    "weekly_series",
]


@dataclass(frozen=True, slots=True)
class UrgentIssue:
    id: str
    title: str
    location: str
    severity: Severity
    reported_ago: str
    upvotes: int
    created_at: datetime


@dataclass(frozen=True, slots=True)
class Contributor:
    id: str
    name: str
    points: int
    reports: int
    upvotes: int


def start_of_day(now: datetime, days_ago: int = 0) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=days_ago)


def format_time_ago(then: datetime, now: datetime) -> str:
    """Short relative age label, e.g. ``"5 menit"`` or ``"2 hari"``."""
    diff = now - then
    minutes = int(diff.total_seconds() // 60)
    if minutes < 1:
        return "baru saja"
    if minutes < 60:
        return f"{minutes} menit"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} jam"
    return f"{hours // 24} hari"


# ---------------------------------------------------------------------------
# Today's snapshot
# ---------------------------------------------------------------------------
def todays_snapshot(reports: list[Post], now: datetime) -> dict[str, Any]:
    """Same-day vs previous-day counts plus resolution stats for today."""
    today = start_of_day(now)
    yesterday = start_of_day(now, 1)

    today_reports = [p for p in reports if p.created_at >= today]
    yesterday_count = sum(1 for p in reports if yesterday <= p.created_at < today)
    today_count = len(today_reports)

    if yesterday_count > 0:
        change = round((today_count - yesterday_count) / yesterday_count * 100)
    elif today_count > 0:
        change = 100
    else:
        change = 0

    resolved_today = [
        p for p in reports
        if p.status == ReportStatus.RESOLVED and p.updated_at >= today
    ]
    active_users = {p.author_id for p in today_reports if p.author_id}

    if resolved_today:
        total_hours = sum(
            (p.updated_at - p.created_at).total_seconds() / 3600 for p in resolved_today
        )
        avg_response = f"{total_hours / len(resolved_today):.1f}h"
    else:
        avg_response = "-"

    return {
        "new_reports": {"value": today_count, "change": abs(change), "is_up": change >= 0},
        "resolved": {"value": len(resolved_today), "change": 0, "is_up": True},
        "active_users": {"value": len(active_users), "change": 0, "is_up": True},
        "avg_response": {"value": avg_response, "change": 0, "is_up": True},
    }


# ---------------------------------------------------------------------------
# 7-day series
# ---------------------------------------------------------------------------
def weekly_series(
    reports: list[Post], now: datetime, language: str = "id"
) -> list[dict[str, Any]]:
    """Seven ``{day, reports, resolved}`` entries, oldest first, ending today."""
    labels = WEEKDAY_SHORT.get(language, WEEKDAY_SHORT["en"])
    series: list[dict[str, Any]] = []
    for days_ago in range(6, -1, -1):
        day_start = start_of_day(now, days_ago)
        day_end = day_start + timedelta(days=1)
        day_reports = [p for p in reports if day_start <= p.created_at < day_end]
        series.append({
            "day": labels[day_start.weekday()],
            "date": day_start.date().isoformat(),
            "reports": len(day_reports),
            "resolved": sum(1 for p in day_reports if p.status == ReportStatus.RESOLVED),
        })
    return series


# ---------------------------------------------------------------------------
# Ranked lists
# ---------------------------------------------------------------------------
def _effective_severity(post: Post) -> Severity:
    raw = post.severity or post.classification.severity or Severity.MEDIUM.value
    try:
        return Severity(raw)
    except ValueError:
        return Severity.MEDIUM


def _issue_title(content: str) -> str:
    if not content:
        return "Laporan"
    return content[:50] + ("..." if len(content) > 50 else "")


def _issue_location(post: Post) -> str:
    loc = post.location
    if loc.district:
        return f"{loc.district}, {loc.city}"
    return loc.address or "Lokasi tidak diketahui"


def urgent_issues(
    reports: list[Post], now: datetime, limit: int = PULSE_TOP_N
) -> list[UrgentIssue]:
    """Open reports ranked by severity, then newest first."""
    issues: list[UrgentIssue] = []
    for post in reports:
        if post.status not in (ReportStatus.ACTIVE, ReportStatus.VERIFIED):
            continue
        severity = _effective_severity(post)
        if severity not in URGENT_SEVERITIES:
            continue
        issues.append(UrgentIssue(
            id=post.id,
            title=_issue_title(post.content),
            location=_issue_location(post),
            severity=severity,
            reported_ago=format_time_ago(post.created_at, now),
            upvotes=post.engagement.upvotes,
            created_at=post.created_at,
        ))

    # Stable sorts: newest first, then by severity rank
    issues.sort(key=lambda i: i.created_at, reverse=True)
    issues.sort(key=lambda i: SEVERITY_ORDER.index(i.severity))
    return issues[:limit]


def top_contributors(reports: list[Post], limit: int = PULSE_TOP_N) -> list[Contributor]:
    """Group reports by (non-anonymous) author and rank by composite score."""
    grouped: dict[str, dict[str, Any]] = {}
    for post in reports:
        if not post.author_id or post.is_anonymous:
            continue
        entry = grouped.setdefault(
            post.author_id, {"name": post.author_name or "Anonymous", "reports": 0, "upvotes": 0}
        )
        entry["reports"] += 1
        entry["upvotes"] += post.engagement.upvotes

    contributors = [
        Contributor(
            id=author_id,
            name=entry["name"],
            points=entry["reports"] * CONTRIBUTOR_REPORT_WEIGHT
            + entry["upvotes"] * CONTRIBUTOR_UPVOTE_WEIGHT,
            reports=entry["reports"],
            upvotes=entry["upvotes"],
        )
        for author_id, entry in grouped.items()
    ]
    contributors.sort(key=lambda c: c.points, reverse=True)
    return contributors[:limit]
