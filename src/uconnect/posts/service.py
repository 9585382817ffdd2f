"""Post, like and comment business logic."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from uconnect.db.models import CATEGORIES, DEFAULT_CATEGORY, Comment, Post, User
from uconnect.errors import Forbidden, NotFound, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

ALL_CATEGORIES = "foru"


def normalize_category(raw: str | None) -> str:
    """
    Lower-case and validate a post category.

    Raises:
        ValidationError: If the category is not one of CATEGORIES.
    """
    category = (raw or DEFAULT_CATEGORY).strip().lower() or DEFAULT_CATEGORY
    if category not in CATEGORIES:
        msg = "Invalid category"
        raise ValidationError(msg)
    return category


async def get_post(db: AsyncSession, post_id: str) -> Post:
    """Fetch a post with its likes and comments. Raises NotFound if absent."""
    result = await db.execute(select(Post).where(Post.id == post_id))
    post = result.scalar_one_or_none()
    if post is None:
        msg = "Post not found"
        raise NotFound(msg)
    return post


async def create_post(
    db: AsyncSession,
    owner: User,
    *,
    content: str | None,
    category: str | None,
    media_type: str | None = None,
    media_url: str | None = None,
) -> Post:
    """
    Create a post. Either content or media is required.

    Raises:
        ValidationError: If the post is empty or the category is unknown.
    """
    text = (content or "").strip()
    category = normalize_category(category)
    if not text and not media_url:
        msg = "Post cannot be empty"
        raise ValidationError(msg)

    post = Post(
        owner=owner,
        content=text,
        category=category,
        media_type=media_type if media_url else None,
        media_url=media_url,
        created_at=datetime.now(timezone.utc),
        likes=[],
        comments=[],
    )
    db.add(post)
    await db.flush()
    logger.info("post_created", post_id=post.id, owner_id=owner.id, category=category, media=bool(media_url))
    return post


async def list_feed(db: AsyncSession, category: str | None = None) -> list[Post]:
    """All posts, newest first, optionally restricted to one category (``foru`` means all)."""
    stmt = select(Post).order_by(Post.created_at.desc())
    cat = (category or ALL_CATEGORIES).strip().lower()
    if cat and cat != ALL_CATEGORIES:
        stmt = stmt.where(Post.category == cat)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_posts_by_owner(db: AsyncSession, owner_id: str) -> list[Post]:
    """Posts by one account, newest first."""
    result = await db.execute(
        select(Post).where(Post.owner_id == owner_id).order_by(Post.created_at.desc())
    )
    return list(result.scalars().all())


async def toggle_like(db: AsyncSession, post_id: str, account_id: str) -> tuple[int, bool]:
    """
    Like or unlike a post.

    Returns:
        Tuple of (like_count, liked).
    """
    post = await get_post(db, post_id)
    liked = post.toggle_like(account_id)
    try:
        await db.flush()
    except IntegrityError:
        # a concurrent like by the same account landed first; report what is stored
        await db.rollback()
        result = await db.execute(
            select(Post).where(Post.id == post_id).execution_options(populate_existing=True)
        )
        post = result.scalar_one()
        logger.info("like_race_resolved", post_id=post_id, account_id=account_id)
        return post.like_count, post.has_liked(account_id)
    return post.like_count, liked


async def add_comment(db: AsyncSession, post_id: str, author_id: str, body: str | None) -> tuple[Post, Comment]:
    """
    Append a comment to a post.

    Raises:
        ValidationError: If the body is empty.
    """
    text = (body or "").strip()
    if not text:
        msg = "Empty comment"
        raise ValidationError(msg)
    post = await get_post(db, post_id)
    comment = post.add_comment(author_id, text)
    await db.flush()
    return post, comment


async def list_comments(db: AsyncSession, post_id: str) -> list[Comment]:
    """Comments on a post in the order they were written."""
    post = await get_post(db, post_id)
    return list(post.comments)


async def delete_post(
    db: AsyncSession,
    post_id: str,
    *,
    requester_id: str,
    requester_is_admin: bool,
) -> str | None:
    """
    Delete a post with its likes and comments (owner or admin only).

    Returns:
        The media filename to quarantine once committed, if the post had one.

    Raises:
        NotFound: If the post does not exist.
        Forbidden: If the requester is neither the owner nor an admin.
    """
    post = await get_post(db, post_id)
    if not requester_is_admin and post.owner_id != requester_id:
        raise Forbidden
    media_filename = post.media_filename
    await db.delete(post)
    await db.flush()
    logger.info("post_deleted", post_id=post_id, by=requester_id, media=media_filename)
    return media_filename


async def delete_comment(
    db: AsyncSession,
    post_id: str,
    comment_id: str,
    *,
    requester_id: str,
    requester_is_admin: bool,
) -> None:
    """
    Remove one comment from a post (comment author or admin only).

    Raises:
        NotFound: If the post or comment does not exist.
        Forbidden: If the requester is neither the author nor an admin.
    """
    post = await get_post(db, post_id)
    comment = post.get_comment(comment_id)
    if comment is None:
        msg = "Comment not found"
        raise NotFound(msg)
    if not requester_is_admin and comment.author_id != requester_id:
        raise Forbidden
    post.remove_comment(comment_id)
    await db.flush()
    logger.info("comment_deleted", post_id=post_id, comment_id=comment_id, by=requester_id)
