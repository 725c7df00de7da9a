"""
civica.database.models — SQLAlchemy 2.0 Data Models
=====================================================

The four document collections of the app, stored relationally.
Document-shaped sub-objects (location, classification, engagement,
member sets, report updates) live in JSONB columns so a row reads back
like the document the mobile client expects.

Tables:
- users          — Profiles created at onboarding completion
- posts          — Feed items (reports, news, general, promotions)
- comments       — One-level threaded comments on posts
- notifications  — Per-user inbox; only the read flag ever changes
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all CIVICA ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PostType(enum.StrEnum):
    REPORT = "REPORT"
    NEWS = "NEWS"
    GENERAL = "GENERAL"
    PROMOTION = "PROMOTION"


class ReportStatus(enum.StrEnum):
    """Report lifecycle: active → verified → resolved / closed."""
    ACTIVE = "active"
    VERIFIED = "verified"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Severity(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Level(enum.StrEnum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"


class Persona(enum.StrEnum):
    MERCHANT = "merchant"
    OFFICE_WORKER = "office_worker"
    RESIDENT = "resident"
    STUDENT = "student"


class NotificationType(enum.StrEnum):
    UPVOTE = "upvote"
    COMMENT = "comment"
    REPLY = "reply"
    REPORT_UPDATE = "report_update"
    REPORT_VERIFIED = "report_verified"
    REPORT_RESOLVED = "report_resolved"
    NEW_FOLLOWER = "new_follower"
    ACHIEVEMENT = "achievement"
    CITY_ALERT = "city_alert"


# ---------------------------------------------------------------------------
# Users — one row per onboarded account (identity provider uid as PK)
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    persona: Mapped[str] = mapped_column(String(20), nullable=False)
    location: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    interests: Mapped[list | None] = mapped_column(JSONB, default=list)
    preferences: Mapped[dict | None] = mapped_column(JSONB, default=None)
    # Missing stats are default-filled on read (see engine.entities)
    stats: Mapped[dict | None] = mapped_column(JSONB, default=None)
    badges: Mapped[list | None] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.display_name!r}>"


# ---------------------------------------------------------------------------
# Posts — community feed items
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    author_id: Mapped[str | None] = mapped_column(String(128), default=None)
    author_name: Mapped[str] = mapped_column(String(100), nullable=False)
    author_avatar: Mapped[str | None] = mapped_column(String(500), default=None)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False)

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    media: Mapped[list | None] = mapped_column(JSONB, default=list)
    location: Mapped[dict | None] = mapped_column(JSONB, default=dict)

    type: Mapped[str] = mapped_column(String(20), nullable=False, default=PostType.GENERAL.value)
    classification: Mapped[dict | None] = mapped_column(JSONB, default=dict)

    engagement: Mapped[dict | None] = mapped_column(JSONB, default=None)
    upvoted_by: Mapped[list | None] = mapped_column(JSONB, default=list)
    watched_by: Mapped[list | None] = mapped_column(JSONB, default=list)

    # Report-only fields (NULL for other post types)
    status: Mapped[str | None] = mapped_column(String(20), default=None)
    severity: Mapped[str | None] = mapped_column(String(20), default=None)
    updates: Mapped[list | None] = mapped_column(JSONB, default=None)
    verified_count: Mapped[int | None] = mapped_column(Integer, default=None)

    # Denormalised for the trending sort
    upvote_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_posts_type_created", "type", "created_at"),
        Index("ix_posts_author", "author_id"),
        Index("ix_posts_upvote_count", "upvote_count"),
    )

    def __repr__(self) -> str:
        return f"<Post id={self.id} type={self.type} status={self.status}>"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(128), nullable=False)
    author_name: Mapped[str] = mapped_column(String(100), nullable=False)
    author_avatar: Mapped[str | None] = mapped_column(String(500), default=None)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[str | None] = mapped_column(String(36), default=None)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    liked_by: Mapped[list | None] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_comments_post_created", "post_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Comment id={self.id} post={self.post_id}>"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.type}>"
