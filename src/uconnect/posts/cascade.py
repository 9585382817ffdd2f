"""
Cascade deletion of an account's footprint in the content store.

Three steps, each a no-op once its predicate is empty, so running the cascade
again for the same account changes nothing:

1. delete every post the account owns (with that post's likes and comments);
2. remove the account's comments from the remaining posts;
3. remove the account from the remaining posts' liker sets.

The steps share one transaction. On a store error everything is rolled back
and ``ServerError`` is raised; the caller may simply retry.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from uconnect.db.models import Comment, Post, PostLike
from uconnect.errors import ServerError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


@dataclass
class CascadeResult:
    posts_deleted: int = 0
    comments_removed: int = 0
    likes_removed: int = 0
    # media of deleted posts, to be quarantined once the delete is committed
    media_files: list[str] = field(default_factory=list)


async def _delete_owned_posts(db: AsyncSession, account_id: str, result: CascadeResult) -> None:
    posts = (await db.execute(select(Post).where(Post.owner_id == account_id))).scalars().all()
    for post in posts:
        if post.media_filename:
            result.media_files.append(post.media_filename)
        await db.delete(post)
    await db.flush()
    result.posts_deleted = len(posts)


async def _remove_comments(db: AsyncSession, account_id: str, result: CascadeResult) -> None:
    posts = (
        await db.execute(select(Post).where(Post.comments.any(Comment.author_id == account_id)))
    ).scalars().all()
    result.comments_removed = sum(post.remove_comments_by(account_id) for post in posts)
    await db.flush()


async def _remove_likes(db: AsyncSession, account_id: str, result: CascadeResult) -> None:
    posts = (
        await db.execute(select(Post).where(Post.likes.any(PostLike.account_id == account_id)))
    ).scalars().all()
    result.likes_removed = sum(1 for post in posts if post.remove_like(account_id))
    await db.flush()


_Step = Callable[["AsyncSession", str, CascadeResult], Awaitable[None]]

_STEPS: tuple[tuple[str, _Step], ...] = (
    ("delete_owned_posts", _delete_owned_posts),
    ("remove_comments", _remove_comments),
    ("remove_likes", _remove_likes),
)


async def delete_account_cascade(
    db: AsyncSession,
    account_id: str,
    *,
    commit: bool = True,
) -> CascadeResult:
    """
    Remove all posts, comments and likes belonging to ``account_id``.

    Does not delete the account record itself. With ``commit=False`` the
    changes are only flushed so the caller can commit them together with the
    account delete.

    Raises:
        ServerError: If any step fails; the session is rolled back.
    """
    result = CascadeResult()
    for step_name, step in _STEPS:
        try:
            await step(db, account_id, result)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("cascade_step_failed", step=step_name, account_id=account_id)
            raise ServerError from e

    if commit:
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("cascade_commit_failed", account_id=account_id)
            raise ServerError from e

    logger.info(
        "account_cascade_complete",
        account_id=account_id,
        posts_deleted=result.posts_deleted,
        comments_removed=result.comments_removed,
        likes_removed=result.likes_removed,
        committed=commit,
    )
    return result
