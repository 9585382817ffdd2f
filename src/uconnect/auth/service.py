"""
Account business logic.

Handles account lookup, signup, login gating, the admin seed, profile and
password changes, and account removal.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from uconnect.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from uconnect.db.models import ROLE_ADMIN, ROLE_USER, User
from uconnect.errors import (
    AccountAlreadyExists,
    DomainNotAllowed,
    Forbidden,
    InvalidCredentials,
    NotFound,
    NotVerified,
    ServerError,
    ValidationError,
)
from uconnect.posts.cascade import CascadeResult, delete_account_cascade

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from uconnect.config import Settings

logger = structlog.get_logger()

ADMIN_AVATAR = "https://placehold.co/150x150/000000/FFFFFF?text=ADMIN"


def normalize_identity(value: str) -> str:
    """Usernames and emails are stored trimmed and lower-cased."""
    return value.strip().lower()


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        msg = f"{field} is required"
        raise ValidationError(msg)
    return value.strip()


# ---------------------------------------------------------------------------
# Account queries
# ---------------------------------------------------------------------------


async def get_account_by_id(db: AsyncSession, account_id: str) -> User | None:
    """Fetch an account by ID."""
    result = await db.execute(select(User).where(User.id == account_id))
    return result.scalar_one_or_none()


async def get_account_by_username(db: AsyncSession, username: str) -> User | None:
    """Fetch an account by username (case-insensitive)."""
    result = await db.execute(select(User).where(User.username == normalize_identity(username)))
    return result.scalar_one_or_none()


async def get_account_by_identifier(db: AsyncSession, identifier: str) -> User | None:
    """Fetch an account whose email or username equals ``identifier`` (case-insensitive)."""
    ident = normalize_identity(identifier)
    result = await db.execute(
        select(User).where(or_(func.lower(User.email) == ident, func.lower(User.username) == ident)).limit(1)
    )
    return result.scalars().first()


async def list_accounts(db: AsyncSession, query: str | None = None) -> list[User]:
    """List accounts, optionally filtered by a substring of name, username or email."""
    stmt = select(User).order_by(User.created_at.desc())
    q = (query or "").strip().lower()
    if q:
        stmt = stmt.where(
            or_(
                func.lower(User.name).contains(q, autoescape=True),
                func.lower(User.username).contains(q, autoescape=True),
                func.lower(User.email).contains(q, autoescape=True),
            )
        )
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------


async def signup(
    db: AsyncSession,
    settings: Settings,
    *,
    name: str,
    username: str,
    email: str,
    password: str,
) -> tuple[User, bool]:
    """
    Create an unverified account, or reuse a still-unverified one for the same email.

    Returns:
        Tuple of (account, created). ``created`` is False on a re-signup.

    Raises:
        ValidationError: If a field is missing or the password is too weak.
        DomainNotAllowed: If the email domain is not on the allow-list.
        AccountAlreadyExists: If the email/username belongs to a verified account,
            or the username is held by a different pending account.
    """
    name = _require(name, "Name")
    username = normalize_identity(_require(username, "Username"))
    email = normalize_identity(_require(email, "Email"))
    validate_password_strength(password, settings.password_min_length, settings.password_max_length)

    if not settings.is_allowed_email(email):
        msg = "Please use your university email to sign up."
        raise DomainNotAllowed(msg)

    result = await db.execute(select(User).where(or_(User.email == email, User.username == username)))
    reusable: User | None = None
    for existing in result.scalars().all():
        if existing.verified:
            raise AccountAlreadyExists
        if existing.email != email:
            msg = "Username already taken."
            raise AccountAlreadyExists(msg)
        reusable = existing

    if reusable is not None:
        # the newest signup owns the pending record
        reusable.name = name
        reusable.username = username
        reusable.password_hash = hash_password(password)
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            raise AccountAlreadyExists from e
        logger.info("account_resignup", account_id=reusable.id)
        return reusable, False

    account = User(
        name=name,
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=ROLE_USER,
        verified=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(account)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise AccountAlreadyExists from e
    logger.info("account_created", account_id=account.id, email=email)
    return account, True


async def create_admin(db: AsyncSession, settings: Settings) -> User:
    """
    Seed the admin account from configuration.

    Raises:
        Forbidden: If no admin password is configured.
        AccountAlreadyExists: If an admin (or a clashing account) already exists.
    """
    if not settings.admin_password:
        msg = "Admin seeding is disabled"
        raise Forbidden(msg)

    username = normalize_identity(settings.admin_username)
    email = normalize_identity(settings.admin_email)
    result = await db.execute(
        select(User).where(or_(User.role == ROLE_ADMIN, User.username == username, User.email == email)).limit(1)
    )
    if result.scalars().first() is not None:
        msg = "Admin already exists"
        raise AccountAlreadyExists(msg)

    now = datetime.now(timezone.utc)
    admin = User(
        name=settings.admin_name,
        username=username,
        email=email,
        password_hash=hash_password(settings.admin_password),
        role=ROLE_ADMIN,
        verified=True,
        email_verified_at=now,
        avatar=ADMIN_AVATAR,
        created_at=now,
    )
    db.add(admin)
    await db.flush()
    logger.info("admin_created", account_id=admin.id, username=username)
    return admin


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate(
    db: AsyncSession,
    settings: Settings,
    identifier: str,
    password: str,
) -> User:
    """
    Check credentials and the login gates.

    Admins bypass the domain allow-list and the verification requirement.

    Raises:
        InvalidCredentials: Unknown identifier or wrong password (indistinguishable).
        DomainNotAllowed: Non-admin whose email domain is not allowed.
        NotVerified: Non-admin who has not verified their email.
    """
    account = await get_account_by_identifier(db, identifier)
    if account is None or not verify_password(password, account.password_hash):
        logger.info("login_rejected", reason="invalid_credentials")
        raise InvalidCredentials

    if not account.is_admin:
        if not settings.is_allowed_email(account.email):
            logger.info("login_rejected", account_id=account.id, reason="domain_not_allowed")
            raise DomainNotAllowed
        if not account.verified:
            logger.info("login_rejected", account_id=account.id, reason="not_verified")
            raise NotVerified

    if check_needs_rehash(account.password_hash):
        account.password_hash = hash_password(password)
        await db.flush()
        logger.info("password_rehashed", account_id=account.id)

    return account


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


async def update_profile(db: AsyncSession, account: User, *, name: str, username: str) -> User:
    """
    Update name and username.

    Raises:
        AccountAlreadyExists: If the username is taken by another account.
    """
    name = _require(name, "Name")
    username = normalize_identity(_require(username, "Username"))

    other = await get_account_by_username(db, username)
    if other is not None and other.id != account.id:
        msg = "Username already taken"
        raise AccountAlreadyExists(msg)

    account.name = name
    account.username = username
    await db.flush()
    return account


async def change_password(
    db: AsyncSession,
    settings: Settings,
    account: User,
    *,
    old_password: str,
    new_password: str,
) -> None:
    """
    Replace the password hash after checking the old password.

    Raises:
        InvalidCredentials: If the old password is wrong.
        PasswordStrengthError: If the new password is too weak.
    """
    if not verify_password(old_password, account.password_hash):
        msg = "Old password incorrect"
        raise InvalidCredentials(msg)
    validate_password_strength(new_password, settings.password_min_length, settings.password_max_length)
    account.password_hash = hash_password(new_password)
    await db.flush()
    logger.info("password_changed", account_id=account.id)


async def set_avatar(db: AsyncSession, account: User, avatar_url: str) -> str:
    """Point the account at a new avatar. Returns the previous avatar URL."""
    previous = account.avatar or ""
    account.avatar = avatar_url
    await db.flush()
    return previous


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------


async def remove_account(db: AsyncSession, account_id: str) -> CascadeResult:
    """
    Run the cascade for an account and delete the account record.

    The cascade and the account delete commit together.

    Raises:
        NotFound: If the account does not exist.
        ServerError: If the store fails; nothing is committed and the call can be retried.
    """
    account = await get_account_by_id(db, account_id)
    if account is None:
        msg = "User not found"
        raise NotFound(msg)

    result = await delete_account_cascade(db, account_id, commit=False)
    try:
        await db.delete(account)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("account_delete_failed", account_id=account_id)
        raise ServerError from e

    logger.info(
        "account_deleted",
        account_id=account_id,
        posts_deleted=result.posts_deleted,
        comments_removed=result.comments_removed,
        likes_removed=result.likes_removed,
    )
    return result
