"""Admin console router: all /api/admin/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from uconnect.auth.dependencies import AccountContext, require_admin
from uconnect.auth.schemas import AccountListResponse, AdminAccountResponse
from uconnect.auth.service import list_accounts, remove_account
from uconnect.database import get_session
from uconnect.media.storage import quarantine_media
from uconnect.posts.service import delete_post

logger = structlog.get_logger()

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/users", response_model=AccountListResponse)
async def list_users_endpoint(
    q: str | None = Query(None, max_length=128),
    _admin: AccountContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> AccountListResponse:
    """List accounts, filtered by a substring of name, username or email."""
    accounts = await list_accounts(db, q)
    return AccountListResponse(users=[AdminAccountResponse.model_validate(a) for a in accounts])


@router.delete("/users/{account_id}", response_model=None)
async def delete_user_endpoint(
    account_id: str,
    background_tasks: BackgroundTasks,
    admin: AccountContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Delete an account with its posts, comments and likes."""
    result = await remove_account(db, account_id)
    for filename in result.media_files:
        background_tasks.add_task(quarantine_media, filename)
    logger.info("admin_deleted_user", admin_id=admin.account_id, account_id=account_id)
    return {"ok": True, "message": "User deleted"}


@router.delete("/posts/{post_id}", response_model=None)
async def delete_any_post_endpoint(
    post_id: str,
    background_tasks: BackgroundTasks,
    admin: AccountContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Delete any post. Its media file is moved to quarantine."""
    media_filename = await delete_post(db, post_id, requester_id=admin.account_id, requester_is_admin=True)
    await db.commit()
    if media_filename:
        background_tasks.add_task(quarantine_media, media_filename)
    return {"ok": True, "message": "Post deleted"}
