"""Account router: all /api/auth/* endpoints."""

from __future__ import annotations

from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, Request, Response, UploadFile
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from uconnect.auth.dependencies import AccountContext, get_current_account, get_current_user
from uconnect.auth.schemas import (
    AccountResponse,
    AdminCreatedResponse,
    AvatarResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    OkResponse,
    SignupRequest,
    UpdateProfileRequest,
)
from uconnect.auth.service import (
    authenticate,
    change_password,
    create_admin,
    remove_account,
    set_avatar,
    signup,
    update_profile,
)
from uconnect.auth.tokens import TokenService, get_token_service
from uconnect.auth.verification import consume_verification, issue_verification
from uconnect.config import Settings, get_settings
from uconnect.database import get_session
from uconnect.db.models import User
from uconnect.email.service import get_email_service
from uconnect.errors import ValidationError
from uconnect.media.storage import IMAGE_EXTENSIONS, filename_from_url, get_media_storage, quarantine_media

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Accounts"])


def _verify_url(request: Request, settings: Settings, token: str) -> str:
    origin = settings.public_base_url.rstrip("/") or str(request.base_url).rstrip("/")
    return f"{origin}/api/auth/verify-email?{urlencode({'token': token})}"


async def send_verification_email(to: str, verify_url: str, name: str | None = None) -> None:
    """Background task: deliver the verification link. Failures are only logged."""
    try:
        delivered = await get_email_service().send_verification_email(to, verify_url, name)
    except Exception:
        logger.exception("verification_email_failed", to=to)
        return
    if not delivered:
        logger.warning("verification_email_not_delivered", to=to)


def _set_session_cookie(response: Response, settings: Settings, token: str, max_age: int) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=max_age,
        httponly=True,
        samesite="strict",
        secure=settings.session_cookie_secure,
    )


def _clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="strict",
        secure=settings.session_cookie_secure,
    )


# ---------------------------------------------------------------------------
# Admin seed
# ---------------------------------------------------------------------------


@router.post("/create-admin", response_model=AdminCreatedResponse)
async def create_admin_endpoint(
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> AdminCreatedResponse:
    """Seed the admin account from configuration."""
    admin = await create_admin(db, settings)
    await db.commit()
    return AdminCreatedResponse(admin={"id": admin.id, "username": admin.username})


# ---------------------------------------------------------------------------
# Signup / verification / login
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=OkResponse)
async def signup_endpoint(
    body: SignupRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
) -> OkResponse:
    """Create an unverified account and email a verification link."""
    account, _created = await signup(
        db,
        settings,
        name=body.name,
        username=body.username,
        email=body.email,
        password=body.password,
    )
    token = await issue_verification(db, tokens, account)
    await db.commit()

    background_tasks.add_task(send_verification_email, account.email, _verify_url(request, settings, token), account.name)
    return OkResponse(message="Signup successful. Please check your email to verify your account.")


@router.get("/verify-email", response_model=None)
async def verify_email_endpoint(
    token: str | None = Query(None),
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
) -> RedirectResponse:
    """Consume a verification link and redirect to the sign-in page."""
    if not token:
        msg = "Missing token"
        raise ValidationError(msg)
    _account, changed = await consume_verification(db, tokens, token)
    if changed:
        await db.commit()
    return RedirectResponse(settings.signin_redirect_url, status_code=302)


@router.post("/login", response_model=LoginResponse)
async def login_endpoint(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
) -> LoginResponse:
    """Login with email or username; sets the session cookie."""
    account = await authenticate(db, settings, body.identifier, body.password)
    await db.commit()

    token = tokens.issue_session(account.id, account.role)
    _set_session_cookie(response, settings, token, tokens.session_ttl)
    logger.info("login_succeeded", account_id=account.id, role=account.role)
    return LoginResponse(
        redirect=settings.admin_home_url if account.is_admin else settings.user_home_url,
        access_token=token,
        expires_in=tokens.session_ttl,
    )


@router.post("/logout", response_model=OkResponse)
async def logout_endpoint(
    response: Response,
    settings: Settings = Depends(get_settings),
) -> OkResponse:
    """Clear the session cookie. The token itself stays valid until it expires."""
    _clear_session_cookie(response, settings)
    return OkResponse()


# ---------------------------------------------------------------------------
# Own account
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
async def me_endpoint(user: User = Depends(get_current_user)) -> MeResponse:
    """Get own profile."""
    return MeResponse(user=AccountResponse.model_validate(user))


@router.post("/upload-avatar", response_model=AvatarResponse)
async def upload_avatar_endpoint(
    avatar: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AvatarResponse:
    """Store a new avatar image and drop the previous local one."""
    if avatar is None or not avatar.filename:
        msg = "No file"
        raise ValidationError(msg)
    storage = get_media_storage()
    stored = await storage.save_upload(avatar, allowed_extensions=IMAGE_EXTENSIONS)
    previous = await set_avatar(db, user, stored.url)
    await db.commit()

    old_file = filename_from_url(previous)
    if old_file and old_file != stored.filename:
        await storage.remove(old_file)
    return AvatarResponse(avatar=stored.url)


@router.post("/update-profile", response_model=OkResponse)
async def update_profile_endpoint(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> OkResponse:
    """Update name and username."""
    await update_profile(db, user, name=body.name, username=body.username)
    await db.commit()
    return OkResponse(message="Profile updated")


@router.post("/change-password", response_model=OkResponse)
async def change_password_endpoint(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> OkResponse:
    """Change password (requires the old password)."""
    await change_password(db, settings, user, old_password=body.old_password, new_password=body.new_password)
    await db.commit()
    return OkResponse(message="Password updated")


@router.delete("/delete-account", response_model=OkResponse)
async def delete_account_endpoint(
    response: Response,
    background_tasks: BackgroundTasks,
    account: AccountContext = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> OkResponse:
    """Delete own account together with its posts, comments and likes."""
    result = await remove_account(db, account.account_id)
    for filename in result.media_files:
        background_tasks.add_task(quarantine_media, filename)
    _clear_session_cookie(response, settings)
    return OkResponse(message="Account deleted")
