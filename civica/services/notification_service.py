"""
civica.services.notification_service — Notifications Gateway
==============================================================

Per-user inbox.  Notifications are written once and never changed
except for the ``read`` flag.

:func:`subscribe_user_notifications` is the live view: the callback is
called immediately with the latest notifications and again after every
change to that user's inbox.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update

from civica.database.engine import get_session
from civica.database.models import Notification as NotificationRow
from civica.database.models import NotificationType
from civica.engine.changefeed import feed_for
from civica.engine.entities import Notification, notification_from_row

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


def send_notification(
    engine: Engine,
    to_user_id: str,
    type: NotificationType | str,
    title: str,
    body: str,
    data: dict[str, str] | None = None,
) -> str:
    """Insert an unread notification and return its id."""
    notification_id = str(uuid.uuid4())
    with get_session(engine) as session:
        session.add(NotificationRow(
            id=notification_id,
            user_id=to_user_id,
            type=NotificationType(type).value,
            title=title,
            body=body,
            data={k: v for k, v in (data or {}).items() if v is not None},
            read=False,
        ))

    feed_for(engine).publish("notifications", "create", notification_id, user_id=to_user_id)
    return notification_id


def get_user_notifications(
    engine: Engine, user_id: str, limit: int = DEFAULT_LIMIT
) -> list[Notification]:
    """Latest notifications for *user_id*, newest first."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(NotificationRow)
            .where(NotificationRow.user_id == user_id)
            .order_by(NotificationRow.created_at.desc())
            .limit(limit)
        ).all()
        return [notification_from_row(r) for r in rows]


def subscribe_user_notifications(
    engine: Engine,
    user_id: str,
    callback: Callable[[list[Notification]], Any],
    limit: int = DEFAULT_LIMIT,
) -> Callable[[], None]:
    """Call *callback* now and on every change to the user's inbox.

    Returns the unsubscribe function.
    """

    def _on_change(payload: dict[str, Any]) -> None:
        if payload.get("user_id") != user_id:
            return
        callback(get_user_notifications(engine, user_id, limit))

    unsubscribe = feed_for(engine).subscribe("notifications", _on_change)
    callback(get_user_notifications(engine, user_id, limit))
    return unsubscribe


def get_notification(engine: Engine, notification_id: str) -> Notification | None:
    with get_session(engine) as session:
        row = session.get(NotificationRow, notification_id)
        return notification_from_row(row) if row is not None else None


def mark_as_read(engine: Engine, notification_id: str) -> bool:
    """Set the read flag.  Returns False if the notification does not exist."""
    with get_session(engine) as session:
        row = session.get(NotificationRow, notification_id)
        if row is None:
            return False
        row.read = True
        user_id = row.user_id

    feed_for(engine).publish("notifications", "read", notification_id, user_id=user_id)
    return True


def mark_all_as_read(engine: Engine, user_id: str) -> int:
    """Mark every unread notification of *user_id* as read; returns the count."""
    with get_session(engine) as session:
        result = session.execute(
            update(NotificationRow)
            .where(NotificationRow.user_id == user_id, NotificationRow.read.is_(False))
            .values(read=True)
        )
        count = result.rowcount or 0

    if count:
        feed_for(engine).publish("notifications", "read_all", user_id, user_id=user_id)
    return count


def unread_count(engine: Engine, user_id: str) -> int:
    with get_session(engine) as session:
        return session.scalar(
            select(func.count())
            .select_from(NotificationRow)
            .where(NotificationRow.user_id == user_id, NotificationRow.read.is_(False))
        ) or 0
