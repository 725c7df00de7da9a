"""
civica.services.comment_service — Comments Gateway
====================================================

One level of threading (``parent_id``).  Adding or deleting a comment
keeps the parent post's ``engagement.comments`` counter in step.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select

from civica.constants import default_engagement
from civica.database.engine import get_session
from civica.database.models import Comment as CommentRow
from civica.database.models import NotificationType, utcnow
from civica.database.models import Post as PostRow
from civica.engine.changefeed import feed_for
from civica.engine.entities import Comment, comment_from_row
from civica.errors import NotFoundError
from civica.services import notification_service

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 30


def _bump_comment_count(session: Session, post_id: str, by: int) -> PostRow:
    post = session.scalar(select(PostRow).where(PostRow.id == post_id).with_for_update())
    if post is None:
        raise NotFoundError(f"Post {post_id} not found")
    engagement = default_engagement()
    engagement.update(post.engagement or {})
    engagement["comments"] = max(0, engagement["comments"] + by)
    post.engagement = engagement
    return post


def get_comments(engine: Engine, post_id: str) -> list[Comment]:
    """All comments on *post_id*, newest first."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(CommentRow)
            .where(CommentRow.post_id == post_id)
            .order_by(CommentRow.created_at.desc())
        ).all()
        return [comment_from_row(r) for r in rows]


def add_comment(
    engine: Engine,
    post_id: str,
    *,
    author_id: str,
    author_name: str,
    content: str,
    author_avatar: str | None = None,
    parent_id: str | None = None,
) -> Comment:
    """Insert a comment, bump the post counter and notify the post author."""
    with get_session(engine) as session:
        post = _bump_comment_count(session, post_id, 1)
        row = CommentRow(
            id=str(uuid.uuid4()),
            post_id=post_id,
            author_id=author_id,
            author_name=author_name,
            author_avatar=author_avatar,
            content=content,
            parent_id=parent_id,
            likes=0,
            liked_by=[],
        )
        session.add(row)
        session.flush()
        comment = comment_from_row(row)
        post_author = post.author_id

    feed = feed_for(engine)
    feed.publish("comments", "create", comment.id, post_id=post_id)
    feed.publish("posts", "comment", post_id)

    if post_author and post_author != author_id:
        preview = content[:PREVIEW_LENGTH] + ("..." if len(content) > PREVIEW_LENGTH else "")
        try:
            notification_service.send_notification(
                engine,
                post_author,
                NotificationType.REPLY if parent_id else NotificationType.COMMENT,
                "Komentar Baru",
                f'{author_name} mengomentari postingan anda: "{preview}"',
                {"post_id": post_id, "comment_id": comment.id, "user_id": author_id},
            )
        except Exception:
            logger.exception("Comment notification for post %s dropped", post_id)
    return comment


def delete_comment(engine: Engine, comment_id: str, post_id: str | None = None) -> bool:
    """Delete a comment and decrement its post's counter.

    Returns False if the comment did not exist.  Raises ValueError if
    *post_id* is given and is not the comment's post.
    """
    with get_session(engine) as session:
        row = session.get(CommentRow, comment_id)
        if row is None:
            return False
        if post_id is not None and post_id != row.post_id:
            raise ValueError(f"Comment {comment_id} does not belong to post {post_id}")
        post_id = row.post_id
        session.delete(row)
        _bump_comment_count(session, post_id, -1)

    feed = feed_for(engine)
    feed.publish("comments", "delete", comment_id, post_id=post_id)
    feed.publish("posts", "comment", post_id)
    return True


def toggle_comment_like(engine: Engine, comment_id: str, user_id: str) -> bool:
    """Flip *user_id*'s like.  Returns True if now liked, False if unliked
    or the comment does not exist.
    """
    with get_session(engine) as session:
        row = session.scalar(
            select(CommentRow).where(CommentRow.id == comment_id).with_for_update()
        )
        if row is None:
            return False
        members = list(row.liked_by or [])
        if user_id in members:
            members.remove(user_id)
            row.likes = max(0, (row.likes or 0) - 1)
            liked = False
        else:
            members.append(user_id)
            row.likes = (row.likes or 0) + 1
            liked = True
        row.liked_by = members
        post_id = row.post_id

    feed_for(engine).publish("comments", "like", comment_id, post_id=post_id)
    return liked


def update_comment(engine: Engine, comment_id: str, content: str) -> Comment:
    with get_session(engine) as session:
        row = session.get(CommentRow, comment_id)
        if row is None:
            raise NotFoundError(f"Comment {comment_id} not found")
        row.content = content
        row.updated_at = utcnow()
        session.flush()
        comment = comment_from_row(row)

    feed_for(engine).publish("comments", "update", comment_id, post_id=comment.post_id)
    return comment
