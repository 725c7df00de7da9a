"""Create users, posts, comments and notifications tables

Revision ID: 0f3c5a1e9b27
Revises:
Create Date: 2026-10-19 09:12:31.204118

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0f3c5a1e9b27'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]
    if updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
        )
    return cols


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("persona", sa.String(20), nullable=False),
        sa.Column("location", postgresql.JSONB, nullable=True),
        sa.Column("interests", postgresql.JSONB, nullable=True),
        sa.Column("preferences", postgresql.JSONB, nullable=True),
        sa.Column("stats", postgresql.JSONB, nullable=True),
        sa.Column("badges", postgresql.JSONB, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("author_id", sa.String(128), nullable=True),
        sa.Column("author_name", sa.String(100), nullable=False),
        sa.Column("author_avatar", sa.String(500), nullable=True),
        sa.Column("is_anonymous", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("media", postgresql.JSONB, nullable=True),
        sa.Column("location", postgresql.JSONB, nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="GENERAL"),
        sa.Column("classification", postgresql.JSONB, nullable=True),
        sa.Column("engagement", postgresql.JSONB, nullable=True),
        sa.Column("upvoted_by", postgresql.JSONB, nullable=True),
        sa.Column("watched_by", postgresql.JSONB, nullable=True),
        sa.Column("status", sa.String(20), nullable=True),
        sa.Column("severity", sa.String(20), nullable=True),
        sa.Column("updates", postgresql.JSONB, nullable=True),
        sa.Column("verified_count", sa.Integer, nullable=True),
        sa.Column("upvote_count", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_posts_type_created", "posts", ["type", "created_at"])
    op.create_index("ix_posts_author", "posts", ["author_id"])
    op.create_index("ix_posts_upvote_count", "posts", ["upvote_count"])

    op.create_table(
        "comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "post_id", sa.String(36),
            sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("author_id", sa.String(128), nullable=False),
        sa.Column("author_name", sa.String(100), nullable=False),
        sa.Column("author_avatar", sa.String(500), nullable=True),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("parent_id", sa.String(36), nullable=True),
        sa.Column("likes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("liked_by", postgresql.JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_comments_post_created", "comments", ["post_id", "created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("data", postgresql.JSONB, nullable=True),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_comments_post_created", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_posts_upvote_count", table_name="posts")
    op.drop_index("ix_posts_author", table_name="posts")
    op.drop_index("ix_posts_type_created", table_name="posts")
    op.drop_table("posts")
    op.drop_table("users")
