"""
civica.services.post_service — Posts Gateway
==============================================

Translates feed intents (create, toggle upvote, add report update, ...)
into queries against the ``posts`` table and hands back typed
:class:`~civica.engine.entities.Post` entities.

Contract:
  * reads that find nothing return ``None`` / an empty list;
  * writes raise on failure (including :class:`NotFoundError` for a
    missing post) so the caller can roll back its optimistic state;
  * nothing here retries.

Every successful write publishes a ``posts`` change on the engine's
change feed after commit.  Side effects that belong to someone else
(notifying the author, crediting points) are best-effort: they are
logged and dropped on failure and never undo the write.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, or_, select

from civica.constants import ANONYMOUS_NAME, SOMEONE_NAME, default_engagement
from civica.database.engine import get_session
from civica.database.models import Comment as CommentRow
from civica.database.models import NotificationType, PostType, ReportStatus, Severity, utcnow
from civica.database.models import Post as PostRow
from civica.engine.changefeed import feed_for
from civica.engine.entities import (
    AIClassification,
    Location,
    Post,
    ReportUpdate,
    post_from_row,
)
from civica.errors import NotFoundError
from civica.services import gamification_service, notification_service, user_service

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

POSTS_PER_PAGE = 20

_UPDATABLE = frozenset({
    "content",
    "media",
    "location",
    "classification",
    "type",
    "severity",
})


@dataclass(frozen=True, slots=True)
class FeedFilters:
    """Feed query options.  ``type="all"`` disables the type filter."""

    type: str = "all"
    status: str | None = None
    sort_by: str = "latest"  # or "trending"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _lock_post(session: Session, post_id: str) -> PostRow:
    row = session.scalar(select(PostRow).where(PostRow.id == post_id).with_for_update())
    if row is None:
        raise NotFoundError(f"Post {post_id} not found")
    return row


def _engagement(row: PostRow) -> dict[str, int]:
    engagement = default_engagement()
    engagement.update(row.engagement or {})
    return engagement


def _publish(engine: Engine, op: str, post_id: str, **extra: Any) -> None:
    feed_for(engine).publish("posts", op, post_id, **extra)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_posts(
    engine: Engine,
    filters: FeedFilters | None = None,
    cursor: str | None = None,
    page_size: int = POSTS_PER_PAGE,
) -> tuple[list[Post], str | None]:
    """One page of the feed plus the cursor for the next page.

    *cursor* is the id of the last post of the previous page.  The
    returned cursor is ``None`` when the page came back empty.
    """
    filters = filters or FeedFilters()
    trending = filters.sort_by == "trending"

    with get_session(engine) as session:
        stmt = select(PostRow)
        if filters.type and filters.type != "all":
            stmt = stmt.where(PostRow.type == PostType(filters.type).value)
        if filters.status:
            stmt = stmt.where(PostRow.status == ReportStatus(filters.status).value)

        if cursor:
            anchor = session.get(PostRow, cursor)
            if anchor is not None:
                newer_tie = and_(
                    PostRow.created_at == anchor.created_at, PostRow.id < anchor.id
                )
                after_by_time = or_(PostRow.created_at < anchor.created_at, newer_tie)
                if trending:
                    stmt = stmt.where(or_(
                        PostRow.upvote_count < anchor.upvote_count,
                        and_(PostRow.upvote_count == anchor.upvote_count, after_by_time),
                    ))
                else:
                    stmt = stmt.where(after_by_time)

        if trending:
            stmt = stmt.order_by(
                PostRow.upvote_count.desc(), PostRow.created_at.desc(), PostRow.id.desc()
            )
        else:
            stmt = stmt.order_by(PostRow.created_at.desc(), PostRow.id.desc())

        rows = session.scalars(stmt.limit(page_size)).all()
        posts = [post_from_row(r) for r in rows]

    next_cursor = posts[-1].id if posts else None
    return posts, next_cursor


def get_posts_by_user(engine: Engine, user_id: str) -> list[Post]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(PostRow)
            .where(PostRow.author_id == user_id)
            .order_by(PostRow.created_at.desc())
        ).all()
        return [post_from_row(r) for r in rows]


def get_post(engine: Engine, post_id: str) -> Post | None:
    with get_session(engine) as session:
        row = session.get(PostRow, post_id)
        return post_from_row(row) if row is not None else None


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------
def create_post(
    engine: Engine,
    *,
    author_id: str,
    author_name: str,
    content: str,
    classification: AIClassification,
    author_avatar: str | None = None,
    is_anonymous: bool = False,
    media_urls: list[str] | None = None,
    location: Location | None = None,
) -> Post:
    """Insert a post typed by its classification.

    Report posts start ``active`` with no updates and no verifications;
    their severity comes from the classification (default ``medium``).
    """
    post_type = classification.category
    row = PostRow(
        id=str(uuid.uuid4()),
        author_id=author_id,
        author_name=ANONYMOUS_NAME if is_anonymous else author_name,
        author_avatar=None if is_anonymous else author_avatar,
        is_anonymous=is_anonymous,
        content=content,
        media=[{"url": url, "type": "image"} for url in media_urls or []],
        location=(location or Location()).to_dict(),
        type=post_type.value,
        classification=classification.to_dict(),
        engagement=default_engagement(),
        upvoted_by=[],
        watched_by=[],
        upvote_count=0,
    )
    if post_type == PostType.REPORT:
        row.status = ReportStatus.ACTIVE.value
        row.severity = Severity(classification.severity or Severity.MEDIUM).value
        row.updates = []
        row.verified_count = 0

    with get_session(engine) as session:
        session.add(row)
        session.flush()
        post = post_from_row(row)

    logger.info("Created %s post %s", post.type, post.id)
    _publish(engine, "create", post.id)
    if post.is_report and author_id:
        gamification_service.on_report_created(engine, author_id)
    return post


def update_post(engine: Engine, post_id: str, updates: dict[str, Any]) -> Post:
    """Apply a partial update; ``None`` values are dropped."""
    unknown = set(updates) - _UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update post fields: {sorted(unknown)}")

    with get_session(engine) as session:
        row = _lock_post(session, post_id)
        for key, value in updates.items():
            if value is None:
                continue
            if isinstance(value, (Location, AIClassification)):
                value = value.to_dict()
            elif key == "type":
                value = PostType(value).value
            elif key == "severity":
                value = Severity(value).value
            setattr(row, key, value)
        # A post reclassified as a report gets the report lifecycle fields
        if row.type == PostType.REPORT.value and row.status is None:
            row.status = ReportStatus.ACTIVE.value
            row.severity = row.severity or Severity.MEDIUM.value
            row.updates = []
            row.verified_count = 0
        row.updated_at = utcnow()
        session.flush()
        post = post_from_row(row)

    _publish(engine, "update", post_id)
    return post


def delete_post(engine: Engine, post_id: str) -> bool:
    """Delete a post and its comments.  Returns False if it did not exist."""
    with get_session(engine) as session:
        row = session.get(PostRow, post_id)
        if row is None:
            return False
        session.execute(delete(CommentRow).where(CommentRow.post_id == post_id))
        session.delete(row)

    _publish(engine, "delete", post_id)
    return True


# ---------------------------------------------------------------------------
# Engagement toggles
# ---------------------------------------------------------------------------
def toggle_upvote(engine: Engine, post_id: str, user_id: str) -> bool:
    """Flip *user_id*'s upvote server-side.  Returns True if now upvoted.

    Membership and counter change in the same row-locked transaction.
    """
    with get_session(engine) as session:
        row = _lock_post(session, post_id)
        members = list(row.upvoted_by or [])
        engagement = _engagement(row)

        if user_id in members:
            members.remove(user_id)
            engagement["upvotes"] = max(0, engagement["upvotes"] - 1)
            upvoted = False
        else:
            members.append(user_id)
            engagement["upvotes"] += 1
            upvoted = True

        row.upvoted_by = members
        row.engagement = engagement
        row.upvote_count = engagement["upvotes"]
        author_id = row.author_id

    _publish(engine, "upvote", post_id, user_id=user_id)

    if author_id and author_id != user_id:
        gamification_service.on_upvote_received(engine, author_id, added=upvoted)
        if upvoted:
            _notify_upvote(engine, post_id, author_id, user_id)
    return upvoted


def _notify_upvote(engine: Engine, post_id: str, author_id: str, liker_id: str) -> None:
    try:
        liker = user_service.get_user_profile(engine, liker_id)
        liker_name = liker.display_name if liker and liker.display_name else SOMEONE_NAME
        notification_service.send_notification(
            engine,
            author_id,
            NotificationType.UPVOTE,
            "Postingan Disukai",
            f"{liker_name} menyukai postingan anda",
            {"post_id": post_id, "user_id": liker_id},
        )
    except Exception:
        logger.exception("Upvote notification for post %s dropped", post_id)


def toggle_watch(engine: Engine, post_id: str, user_id: str) -> bool:
    """Flip *user_id*'s watch on a report.  Returns True if now watching."""
    with get_session(engine) as session:
        row = _lock_post(session, post_id)
        members = list(row.watched_by or [])
        engagement = _engagement(row)

        if user_id in members:
            members.remove(user_id)
            engagement["watchers"] = max(0, engagement["watchers"] - 1)
            watching = False
        else:
            members.append(user_id)
            engagement["watchers"] += 1
            watching = True

        row.watched_by = members
        row.engagement = engagement

    _publish(engine, "watch", post_id, user_id=user_id)
    return watching


# ---------------------------------------------------------------------------
# Report lifecycle
# ---------------------------------------------------------------------------
def add_report_update(
    engine: Engine,
    post_id: str,
    *,
    author_id: str,
    author_name: str,
    content: str,
    author_avatar: str | None = None,
    media_urls: list[str] | None = None,
) -> ReportUpdate:
    """Append a community update to a report's timeline."""
    with get_session(engine) as session:
        row = _lock_post(session, post_id)
        entry = {
            "id": str(time.time_ns() // 1_000_000),
            "author_id": author_id,
            "author_name": author_name,
            "author_avatar": author_avatar,
            "content": content,
            "media": [{"url": url, "type": "image"} for url in media_urls or []],
            "created_at": utcnow().isoformat(),
        }
        row.updates = [*(row.updates or []), entry]
        row.updated_at = utcnow()

    _publish(engine, "report_update", post_id)
    return ReportUpdate.from_dict(entry)


def update_report_status(engine: Engine, post_id: str, status: ReportStatus | str) -> Post:
    """Move a report to *status* and notify its author of verify/resolve."""
    status = ReportStatus(status)
    with get_session(engine) as session:
        row = _lock_post(session, post_id)
        previous = row.status
        row.status = status.value
        row.updated_at = utcnow()
        session.flush()
        post = post_from_row(row)

    _publish(engine, "status", post_id, status=status.value)

    if post.author_id and previous != status.value:
        if status == ReportStatus.RESOLVED:
            gamification_service.on_report_resolved(engine, post.author_id)
        _notify_status(engine, post, status)
    return post


_STATUS_NOTIFICATIONS: dict[ReportStatus, tuple[NotificationType, str, str]] = {
    ReportStatus.VERIFIED: (
        NotificationType.REPORT_VERIFIED,
        "Laporan Terverifikasi",
        "Laporan anda telah diverifikasi",
    ),
    ReportStatus.RESOLVED: (
        NotificationType.REPORT_RESOLVED,
        "Laporan Selesai",
        "Laporan anda telah diselesaikan",
    ),
}


def _notify_status(engine: Engine, post: Post, status: ReportStatus) -> None:
    spec = _STATUS_NOTIFICATIONS.get(status)
    if spec is None:
        return
    ntype, title, body = spec
    try:
        notification_service.send_notification(
            engine, post.author_id, ntype, title, body, {"post_id": post.id}
        )
    except Exception:
        logger.exception("Status notification for post %s dropped", post.id)


def increment_views(engine: Engine, post_id: str) -> None:
    """Bump the view counter.  Failures are logged, never raised."""
    try:
        with get_session(engine) as session:
            row = _lock_post(session, post_id)
            engagement = _engagement(row)
            engagement["views"] += 1
            row.engagement = engagement
    except Exception:
        logger.exception("Error incrementing views for post %s", post_id)
