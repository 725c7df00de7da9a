"""
civica.api.routes.comments — Post comments
============================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from civica.api.deps import CurrentUser, get_engine
from civica.database.engine import run_db
from civica.errors import NotFoundError
from civica.services import comment_service, user_service

router = APIRouter(prefix="/posts/{post_id}/comments", tags=["comments"])


class CommentBody(BaseModel):
    content: str = Field(min_length=1)
    parent_id: str | None = None


@router.get("")
async def list_comments(post_id: str, user: CurrentUser, engine=Depends(get_engine)):
    comments = await run_db(comment_service.get_comments, engine, post_id)
    return [c.to_dict() for c in comments]


@router.post("", status_code=201)
async def add_comment(
    post_id: str, body: CommentBody, user: CurrentUser, engine=Depends(get_engine)
):
    profile = await run_db(user_service.get_user_profile, engine, user["sub"])
    try:
        comment = await run_db(
            lambda: comment_service.add_comment(
                engine,
                post_id,
                author_id=user["sub"],
                author_name=profile.display_name if profile else user.get("name", ""),
                author_avatar=profile.avatar_url if profile else None,
                content=body.content,
                parent_id=body.parent_id,
            )
        )
    except NotFoundError:
        raise HTTPException(404, "Post not found")
    return comment.to_dict()
