"""FastAPI authorization dependencies."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from uconnect.auth.service import get_account_by_id
from uconnect.auth.tokens import TokenService, get_token_service
from uconnect.config import Settings, get_settings
from uconnect.database import get_session
from uconnect.db.models import ROLE_ADMIN, User
from uconnect.errors import Forbidden, InvalidToken, NotFound, TokenExpired, Unauthenticated


@dataclass(frozen=True)
class AccountContext:
    """The authenticated caller, as carried by the session token."""

    account_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def can_modify(self, owner_id: str) -> bool:
        """Owners may modify their own content; admins may modify anything."""
        return self.is_admin or self.account_id == owner_id


def extract_session_token(request: Request, cookie_name: str) -> str | None:
    """Session cookie first, then ``Authorization: Bearer``."""
    cookie = request.cookies.get(cookie_name)
    if cookie:
        return cookie
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def get_current_account(
    request: Request,
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
) -> AccountContext:
    """
    Authenticate the request from its session token.

    Missing, expired and invalid tokens all raise ``Unauthenticated`` (401)
    with distinct messages and codes.
    """
    token = extract_session_token(request, settings.session_cookie_name)
    if token is None:
        raise Unauthenticated("No token, authorization denied", code="token_missing")
    try:
        claims = tokens.verify_session(token)
    except TokenExpired as e:
        raise Unauthenticated("Token expired, please login again", code="token_expired") from e
    except InvalidToken as e:
        raise Unauthenticated("Token is not valid", code="token_invalid") from e
    return AccountContext(account_id=str(claims["sub"]), role=str(claims["role"]))


async def require_admin(
    account: AccountContext = Depends(get_current_account),
) -> AccountContext:
    """Same as get_current_account but rejects non-admins with 403."""
    if not account.is_admin:
        msg = "Admin access required"
        raise Forbidden(msg)
    return account


async def get_current_user(
    account: AccountContext = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Load the authenticated account's record; 404 if it has since been deleted."""
    user = await get_account_by_id(db, account.account_id)
    if user is None:
        msg = "User not found"
        raise NotFound(msg)
    return user
