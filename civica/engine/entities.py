"""
civica.engine.entities — Typed entities and row translation
=============================================================

The gateway never hands ORM rows to callers.  Every read goes through
one of the ``*_from_row`` translators below, which coerce timestamps to
timezone-aware UTC and default-fill sub-objects a stored document may
lack (engagement counters, user stats, preferences).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from civica.constants import default_engagement, default_preferences, default_stats
from civica.database import models
from civica.database.models import Level, PostType

__all__ = [
    "AIClassification",
    "Comment",
    "Engagement",
    "Location",
    "Media",
    "Notification",
    "OnboardingData",
    "Post",
    "ReportUpdate",
    "User",
    "UserStats",
    "as_utc",
    "comment_from_row",
    "notification_from_row",
    "post_from_row",
    "user_from_row",
]


def as_utc(value: datetime | str | None) -> datetime:
    """Coerce a stored timestamp to an aware UTC datetime.

    Missing values (a server timestamp not yet resolved) read as *now*.
    """
    if value is None:
        return datetime.now(UTC)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Location:
    city: str = ""
    district: str = ""
    address: str = ""
    latitude: float | None = None
    longitude: float | None = None

    @classmethod
    def from_dict(cls, raw: dict | None) -> Location:
        raw = raw or {}
        return cls(
            city=raw.get("city", ""),
            district=raw.get("district", ""),
            address=raw.get("address", ""),
            latitude=raw.get("latitude"),
            longitude=raw.get("longitude"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Media:
    url: str
    type: str = "image"
    thumbnail_url: str | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> Media:
        return cls(
            url=raw["url"],
            type=raw.get("type", "image"),
            thumbnail_url=raw.get("thumbnail_url"),
        )


@dataclass(slots=True)
class AIClassification:
    """Output of the post classifier (or its conservative default)."""

    category: PostType = PostType.GENERAL
    confidence: float = 0.5
    severity: str | None = None
    tags: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    sentiment: str | None = None
    sub_category: str | None = None

    @classmethod
    def from_dict(cls, raw: dict | None) -> AIClassification:
        raw = raw or {}
        return cls(
            category=PostType(str(raw.get("category") or PostType.GENERAL).upper()),
            confidence=float(raw.get("confidence", 0.5)),
            severity=raw.get("severity"),
            tags=list(raw.get("tags") or []),
            keywords=list(raw.get("keywords") or []),
            sentiment=raw.get("sentiment"),
            sub_category=raw.get("sub_category"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["category"] = self.category.value
        return data


@dataclass(slots=True)
class Engagement:
    upvotes: int = 0
    comments: int = 0
    shares: int = 0
    watchers: int = 0
    views: int = 0

    @classmethod
    def from_dict(cls, raw: dict | None) -> Engagement:
        filled = default_engagement()
        filled.update({k: v for k, v in (raw or {}).items() if k in filled})
        return cls(**filled)


@dataclass(slots=True)
class ReportUpdate:
    id: str
    author_id: str
    author_name: str
    content: str
    created_at: datetime
    author_avatar: str | None = None
    media: list[Media] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict) -> ReportUpdate:
        return cls(
            id=raw["id"],
            author_id=raw["author_id"],
            author_name=raw.get("author_name", ""),
            content=raw.get("content", ""),
            created_at=as_utc(raw.get("created_at")),
            author_avatar=raw.get("author_avatar"),
            media=[Media.from_dict(m) for m in raw.get("media") or []],
        )


# ---------------------------------------------------------------------------
# Post
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Post:
    id: str
    author_id: str | None
    author_name: str
    content: str
    type: PostType
    classification: AIClassification
    engagement: Engagement
    created_at: datetime
    updated_at: datetime
    author_avatar: str | None = None
    is_anonymous: bool = False
    media: list[Media] = field(default_factory=list)
    location: Location = field(default_factory=Location)
    upvoted_by: set[str] = field(default_factory=set)
    watched_by: set[str] = field(default_factory=set)

    # Report-only
    status: str | None = None
    severity: str | None = None
    updates: list[ReportUpdate] = field(default_factory=list)
    verified_count: int = 0

    @property
    def is_report(self) -> bool:
        return self.type == PostType.REPORT

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["classification"] = self.classification.to_dict()
        data["upvoted_by"] = sorted(self.upvoted_by)
        data["watched_by"] = sorted(self.watched_by)
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        for upd in data["updates"]:
            upd["created_at"] = upd["created_at"].isoformat()
        return data


def post_from_row(row: models.Post) -> Post:
    return Post(
        id=row.id,
        author_id=row.author_id,
        author_name=row.author_name,
        author_avatar=row.author_avatar,
        is_anonymous=bool(row.is_anonymous),
        content=row.content or "",
        media=[Media.from_dict(m) for m in row.media or []],
        location=Location.from_dict(row.location),
        type=PostType(row.type),
        classification=AIClassification.from_dict(row.classification),
        engagement=Engagement.from_dict(row.engagement),
        upvoted_by=set(row.upvoted_by or []),
        watched_by=set(row.watched_by or []),
        status=row.status,
        severity=row.severity,
        updates=sorted(
            (ReportUpdate.from_dict(u) for u in row.updates or []),
            key=lambda u: u.created_at,
        ),
        verified_count=row.verified_count or 0,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class UserStats:
    total_reports: int = 0
    total_upvotes: int = 0
    resolved_issues: int = 0
    points: float = 0
    level: Level = Level.BRONZE

    @classmethod
    def from_dict(cls, raw: dict | None) -> UserStats:
        filled = default_stats()
        filled.update({k: v for k, v in (raw or {}).items() if k in filled})
        filled["level"] = Level(filled["level"])
        return cls(**filled)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["level"] = self.level.value
        return data


@dataclass(slots=True)
class User:
    id: str
    email: str
    display_name: str
    persona: str
    location: Location
    interests: list[str]
    preferences: dict[str, Any]
    stats: UserStats
    badges: list[str]
    created_at: datetime
    updated_at: datetime
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["stats"] = self.stats.to_dict()
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data


def user_from_row(row: models.User) -> User:
    preferences = default_preferences()
    preferences.update(row.preferences or {})
    return User(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        avatar_url=row.avatar_url,
        persona=row.persona,
        location=Location.from_dict(row.location),
        interests=list(row.interests or []),
        preferences=preferences,
        stats=UserStats.from_dict(row.stats),
        badges=list(row.badges or []),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


# ---------------------------------------------------------------------------
# Comment / Notification
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Comment:
    id: str
    post_id: str
    author_id: str
    author_name: str
    content: str
    created_at: datetime
    updated_at: datetime
    author_avatar: str | None = None
    parent_id: str | None = None
    likes: int = 0
    liked_by: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["liked_by"] = sorted(self.liked_by)
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data


def comment_from_row(row: models.Comment) -> Comment:
    return Comment(
        id=row.id,
        post_id=row.post_id,
        author_id=row.author_id,
        author_name=row.author_name,
        author_avatar=row.author_avatar,
        content=row.content,
        parent_id=row.parent_id,
        likes=row.likes or 0,
        liked_by=set(row.liked_by or []),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


@dataclass(slots=True)
class Notification:
    id: str
    user_id: str
    type: str
    title: str
    body: str
    created_at: datetime
    data: dict[str, str] = field(default_factory=dict)
    read: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


def notification_from_row(row: models.Notification) -> Notification:
    return Notification(
        id=row.id,
        user_id=row.user_id,
        type=row.type,
        title=row.title,
        body=row.body,
        data=dict(row.data or {}),
        read=bool(row.read),
        created_at=as_utc(row.created_at),
    )


# ---------------------------------------------------------------------------
# Onboarding accumulator (transient)
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class OnboardingData:
    location: Location | None = None
    interests: list[str] | None = None
    persona: str | None = None
    preferences: list[str] | None = None
