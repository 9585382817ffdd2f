"""
Email verification state machine.

An account is either ``Unverified`` (with a pending token hash and expiry) or
``Verified`` (with ``email_verified_at``). Only the most recently issued token
is accepted: issuing a new one overwrites the stored hash, which revokes every
earlier token even while it is still cryptographically valid.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog

from uconnect.auth.service import get_account_by_id
from uconnect.auth.tokens import hash_token
from uconnect.errors import InvalidToken, TokenMismatch

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from uconnect.auth.tokens import TokenService
    from uconnect.db.models import User

logger = structlog.get_logger()


async def issue_verification(db: AsyncSession, tokens: TokenService, account: User) -> str:
    """
    Issue a verification token for an unverified account and store its hash.

    Returns the raw token to send to the user.
    """
    token = tokens.issue_verification(account.id, account.email)
    account.email_verify_token_hash = hash_token(token)
    account.email_verify_token_expires_at = datetime.now(timezone.utc) + timedelta(
        seconds=tokens.email_verify_ttl
    )
    await db.flush()
    logger.info("verification_token_issued", account_id=account.id)
    return token


async def consume_verification(db: AsyncSession, tokens: TokenService, token: str) -> tuple[User, bool]:
    """
    Move an account from unverified to verified.

    Returns:
        Tuple of (account, changed). ``changed`` is False when the account was
        already verified, in which case nothing is written.

    Raises:
        InvalidToken: Bad signature, expired (``TokenExpired``), unknown account,
            or an email that no longer matches the account.
        TokenMismatch: A valid token that is not the latest one issued.
    """
    claims = tokens.verify_verification(token)

    account = await get_account_by_id(db, str(claims["sub"]))
    if account is None or account.email != claims["email"]:
        raise InvalidToken

    if account.verified:
        return account, False

    if account.email_verify_token_hash != hash_token(token):
        logger.info("verification_token_mismatch", account_id=account.id)
        raise TokenMismatch

    account.verified = True
    account.email_verified_at = datetime.now(timezone.utc)
    account.email_verify_token_hash = None
    account.email_verify_token_expires_at = None
    await db.flush()
    logger.info("email_verified", account_id=account.id)
    return account, True
