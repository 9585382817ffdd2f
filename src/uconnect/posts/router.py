"""Posts router: all /api/posts/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from uconnect.auth.dependencies import AccountContext, get_current_account, get_current_user
from uconnect.database import get_session
from uconnect.db.models import User
from uconnect.errors import ValidationError
from uconnect.media.storage import get_media_storage, quarantine_media
from uconnect.posts.schemas import (
    CommentCountResponse,
    CommentCreateRequest,
    CommentListResponse,
    CommentOut,
    FeedResponse,
    LikeResponse,
    PostOut,
    PostResponse,
)
from uconnect.posts.service import (
    add_comment,
    create_post,
    delete_comment,
    delete_post,
    list_comments,
    list_feed,
    list_posts_by_owner,
    normalize_category,
    toggle_like,
)

router = APIRouter(prefix="/api/posts", tags=["Posts"])


@router.post("", response_model=PostResponse)
@router.post("/", response_model=PostResponse, include_in_schema=False)
async def create_post_endpoint(
    content: str | None = Form(None),
    category: str | None = Form(None),
    media: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PostResponse:
    """Create a post with text and/or one image or video."""
    category = normalize_category(category)
    has_media = media is not None and bool(media.filename)
    if not (content or "").strip() and not has_media:
        msg = "Post cannot be empty"
        raise ValidationError(msg)

    storage = get_media_storage()
    stored = None
    if has_media:
        stored = await storage.save_upload(media)  # type: ignore[arg-type]

    try:
        post = await create_post(
            db,
            user,
            content=content,
            category=category,
            media_type=stored.media_type if stored else None,
            media_url=stored.url if stored else None,
        )
        await db.commit()
    except Exception:
        # no post points at the upload
        if stored is not None:
            await storage.quarantine(stored.filename)
        raise
    return PostResponse(post=PostOut.from_post(post, user.id))


@router.get("", response_model=FeedResponse)
@router.get("/", response_model=FeedResponse, include_in_schema=False)
async def feed_endpoint(
    category: str | None = Query(None),
    account: AccountContext = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
) -> FeedResponse:
    """Feed, newest first. ``category=foru`` (or none) returns every category."""
    posts = await list_feed(db, category)
    return FeedResponse(posts=[PostOut.from_post(p, account.account_id) for p in posts])


@router.get("/user/{account_id}", response_model=FeedResponse)
async def user_posts_endpoint(
    account_id: str,
    account: AccountContext = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
) -> FeedResponse:
    """Posts by one account, newest first."""
    posts = await list_posts_by_owner(db, account_id)
    return FeedResponse(posts=[PostOut.from_post(p, account.account_id) for p in posts])


@router.post("/{post_id}/like", response_model=LikeResponse)
async def like_endpoint(
    post_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LikeResponse:
    """Toggle the caller's like on a post."""
    likes, liked = await toggle_like(db, post_id, user.id)
    await db.commit()
    return LikeResponse(likes=likes, liked=liked)


@router.post("/{post_id}/comments", response_model=CommentCountResponse)
async def add_comment_endpoint(
    post_id: str,
    body: CommentCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CommentCountResponse:
    """Add a comment to a post."""
    post, comment = await add_comment(db, post_id, user.id, body.body)
    await db.commit()
    return CommentCountResponse(comments=len(post.comments), comment_id=comment.id)


@router.get("/{post_id}/comments", response_model=CommentListResponse)
async def list_comments_endpoint(
    post_id: str,
    account: AccountContext = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
) -> CommentListResponse:
    """Comments on a post in the order they were written."""
    comments = await list_comments(db, post_id)
    return CommentListResponse(comments=[CommentOut.from_comment(c) for c in comments])


@router.delete("/{post_id}", response_model=None)
async def delete_post_endpoint(
    post_id: str,
    background_tasks: BackgroundTasks,
    account: AccountContext = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Delete a post (owner or admin). Its media file is moved to quarantine."""
    media_filename = await delete_post(
        db,
        post_id,
        requester_id=account.account_id,
        requester_is_admin=account.is_admin,
    )
    await db.commit()
    if media_filename:
        background_tasks.add_task(quarantine_media, media_filename)
    return {"ok": True, "message": "Post deleted"}


@router.delete("/{post_id}/comments/{comment_id}", response_model=None)
async def delete_comment_endpoint(
    post_id: str,
    comment_id: str,
    account: AccountContext = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Delete a comment (its author or an admin)."""
    await delete_comment(
        db,
        post_id,
        comment_id,
        requester_id=account.account_id,
        requester_is_admin=account.is_admin,
    )
    await db.commit()
    return {"ok": True, "message": "Comment deleted"}
