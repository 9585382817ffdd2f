"""Initial schema: accounts, posts, post likes and comments.

Likes and comments live in child tables owned by their post and are removed
with it. Their account references carry no foreign key; account deletion
clears them through the cascade engine.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the four tables and their lookup indexes."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("username", sa.String(64), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("avatar", sa.Text(), server_default="", nullable=False),
        sa.Column("role", sa.String(16), server_default="user", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_verify_token_hash", sa.String(128), nullable=True),
        sa.Column("email_verify_token_expires_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- posts ---
    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), server_default="", nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("media_type", sa.String(8), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_posts_owner_id", "posts", ["owner_id"])
    op.create_index("ix_posts_category", "posts", ["category"])
    op.create_index("ix_posts_created_at", "posts", ["created_at"])

    # --- post_likes ---
    op.create_table(
        "post_likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.String(36), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("account_id", sa.String(36), nullable=False),
        sa.UniqueConstraint("post_id", "account_id", name="uq_post_likes_post_account"),
    )
    op.create_index("ix_post_likes_account_id", "post_likes", ["account_id"])

    # --- comments ---
    op.create_table(
        "comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("post_id", sa.String(36), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.String(36), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_comments_author_id", "comments", ["author_id"])


def downgrade() -> None:
    """Drop everything created above."""
    op.drop_index("ix_comments_author_id", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_post_likes_account_id", table_name="post_likes")
    op.drop_table("post_likes")
    op.drop_index("ix_posts_created_at", table_name="posts")
    op.drop_index("ix_posts_category", table_name="posts")
    op.drop_index("ix_posts_owner_id", table_name="posts")
    op.drop_table("posts")
    op.drop_table("users")
