"""
civica.api.routes.posts — Feed, post detail and report lifecycle
==================================================================
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from civica.api.deps import CurrentUser, get_ai_client, get_config, get_engine
from civica.config import CivicaConfig
from civica.database.engine import run_db
from civica.database.models import PostType, ReportStatus, Severity
from civica.engine.entities import AIClassification, Location, Post
from civica.errors import NotFoundError
from civica.services import post_service, user_service
from civica.services.ai_service import AIClient
from civica.services.post_service import FeedFilters

router = APIRouter(prefix="/posts", tags=["posts"])


class LocationBody(BaseModel):
    city: str = ""
    district: str = ""
    address: str = ""
    latitude: float | None = None
    longitude: float | None = None


class ClassificationBody(BaseModel):
    category: PostType = PostType.GENERAL
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    severity: Severity | None = None
    tags: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    sentiment: Literal["positive", "neutral", "negative"] | None = None
    sub_category: str | None = None

    @field_validator("category", mode="before")
    @classmethod
    def _upper_category(cls, value):
        return value.upper() if isinstance(value, str) else value


class CreatePostBody(BaseModel):
    content: str = Field(min_length=1)
    is_anonymous: bool = False
    media_urls: list[str] = Field(default_factory=list)
    location: LocationBody = Field(default_factory=LocationBody)
    # Pre-computed classification; classified server-side when omitted
    classification: ClassificationBody | None = None


class ReportUpdateBody(BaseModel):
    content: str = Field(min_length=1)
    media_urls: list[str] = Field(default_factory=list)


class StatusBody(BaseModel):
    status: ReportStatus


def _post_dict(post: Post, viewer_id: str | None = None) -> dict:
    data = post.to_dict()
    if post.is_anonymous and viewer_id != post.author_id:
        data["author_id"] = None
    if viewer_id is not None:
        data["is_upvoted"] = viewer_id in post.upvoted_by
        data["is_watching"] = viewer_id in post.watched_by
    return data


async def _owned_post(engine, post_id: str, user_id: str) -> Post:
    post = await run_db(post_service.get_post, engine, post_id)
    if post is None:
        raise HTTPException(404, "Post not found")
    if post.author_id != user_id:
        raise HTTPException(403, "Not the author of this post")
    return post


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("")
async def list_posts(
    user: CurrentUser,
    type: str = Query("all"),
    status: ReportStatus | None = Query(None),
    sort_by: str = Query("latest", pattern="^(latest|trending)$"),
    cursor: str | None = Query(None),
    engine=Depends(get_engine),
    cfg: CivicaConfig = Depends(get_config),
):
    filters = FeedFilters(type=type, status=status.value if status else None, sort_by=sort_by)
    try:
        posts, next_cursor = await run_db(
            post_service.get_posts, engine, filters, cursor, cfg.feed_page_size
        )
    except ValueError:
        raise HTTPException(400, f"Unknown post type: {type!r}")
    return {
        "posts": [_post_dict(p, user["sub"]) for p in posts],
        "cursor": next_cursor if len(posts) == cfg.feed_page_size else None,
    }


@router.get("/{post_id}")
async def get_post(post_id: str, user: CurrentUser, engine=Depends(get_engine)):
    post = await run_db(post_service.get_post, engine, post_id)
    if post is None:
        raise HTTPException(404, "Post not found")
    await run_db(post_service.increment_views, engine, post_id)
    return _post_dict(post, user["sub"])


# ---------------------------------------------------------------------------
# Create / delete
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
async def create_post(
    body: CreatePostBody,
    user: CurrentUser,
    engine=Depends(get_engine),
    ai: AIClient = Depends(get_ai_client),
):
    if body.classification is not None:
        classification = AIClassification.from_dict(body.classification.model_dump(mode="json"))
    else:
        classification = await ai.classify_post(body.content, body.media_urls)

    profile = await run_db(user_service.get_user_profile, engine, user["sub"])
    post = await run_db(
        lambda: post_service.create_post(
            engine,
            author_id=user["sub"],
            author_name=profile.display_name if profile else user.get("name", ""),
            author_avatar=profile.avatar_url if profile else None,
            is_anonymous=body.is_anonymous,
            content=body.content,
            media_urls=body.media_urls,
            location=Location(**body.location.model_dump()),
            classification=classification,
        )
    )
    return _post_dict(post, user["sub"])


@router.delete("/{post_id}", status_code=204)
async def delete_post(post_id: str, user: CurrentUser, engine=Depends(get_engine)):
    await _owned_post(engine, post_id, user["sub"])
    await run_db(post_service.delete_post, engine, post_id)


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------
@router.post("/{post_id}/upvote")
async def toggle_upvote(post_id: str, user: CurrentUser, engine=Depends(get_engine)):
    try:
        upvoted = await run_db(post_service.toggle_upvote, engine, post_id, user["sub"])
    except NotFoundError:
        raise HTTPException(404, "Post not found")
    post = await run_db(post_service.get_post, engine, post_id)
    return {"upvoted": upvoted, "upvotes": post.engagement.upvotes if post else 0}


@router.post("/{post_id}/watch")
async def toggle_watch(post_id: str, user: CurrentUser, engine=Depends(get_engine)):
    try:
        watching = await run_db(post_service.toggle_watch, engine, post_id, user["sub"])
    except NotFoundError:
        raise HTTPException(404, "Post not found")
    return {"watching": watching}


# ---------------------------------------------------------------------------
# Report lifecycle
# ---------------------------------------------------------------------------
@router.post("/{post_id}/updates", status_code=201)
async def add_report_update(
    post_id: str, body: ReportUpdateBody, user: CurrentUser, engine=Depends(get_engine)
):
    profile = await run_db(user_service.get_user_profile, engine, user["sub"])
    try:
        update = await run_db(
            lambda: post_service.add_report_update(
                engine,
                post_id,
                author_id=user["sub"],
                author_name=profile.display_name if profile else user.get("name", ""),
                author_avatar=profile.avatar_url if profile else None,
                content=body.content,
                media_urls=body.media_urls,
            )
        )
    except NotFoundError:
        raise HTTPException(404, "Post not found")
    return {
        "id": update.id,
        "author_id": update.author_id,
        "author_name": update.author_name,
        "content": update.content,
        "media": [m.url for m in update.media],
        "created_at": update.created_at.isoformat(),
    }


@router.patch("/{post_id}/status")
async def update_status(
    post_id: str, body: StatusBody, user: CurrentUser, engine=Depends(get_engine)
):
    post = await _owned_post(engine, post_id, user["sub"])
    if not post.is_report:
        raise HTTPException(400, "Only reports have a status")
    updated = await run_db(post_service.update_report_status, engine, post_id, body.status)
    return _post_dict(updated, user["sub"])
