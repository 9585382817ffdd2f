"""
HS256 JWT token management.

One signing secret serves two token kinds, told apart by the ``purpose`` claim:
session tokens ``{sub, role}`` and email verification tokens ``{sub, email}``.
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from uconnect.config import Settings, get_settings
from uconnect.errors import InvalidToken, TokenExpired

PURPOSE_SESSION = "session"
PURPOSE_EMAIL_VERIFY = "email_verify"


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store a token without keeping the token itself."""
    return hashlib.sha256(token.encode()).hexdigest()


class TokenService:
    """Issues and verifies signed, expiring tokens."""

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self.session_ttl = settings.session_ttl_seconds
        self.email_verify_ttl = settings.email_verify_ttl_seconds

    def issue(self, claims: Mapping[str, Any], ttl_seconds: int) -> str:
        """Sign ``claims`` with an ``exp`` of now + ``ttl_seconds``."""
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = dict(claims)
        payload["iat"] = now
        payload["exp"] = now + timedelta(seconds=ttl_seconds)
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """
        Check signature and expiry and return the claims.

        Raises:
            TokenExpired: If the token is past its ``exp``.
            InvalidToken: If the token is malformed or the signature does not match.
        """
        try:
            payload: dict[str, Any] = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpired from None
        except jwt.InvalidTokenError:
            raise InvalidToken from None
        return payload

    # --- Sessions ---

    def issue_session(self, account_id: str, role: str) -> str:
        return self.issue(
            {"sub": account_id, "role": role, "purpose": PURPOSE_SESSION},
            self.session_ttl,
        )

    def verify_session(self, token: str) -> dict[str, Any]:
        payload = self._verify_purpose(token, PURPOSE_SESSION)
        if not payload.get("role"):
            raise InvalidToken
        return payload

    # --- Email verification ---

    def issue_verification(self, account_id: str, email: str) -> str:
        # jti keeps two tokens minted within the same second distinct
        return self.issue(
            {
                "sub": account_id,
                "email": email,
                "purpose": PURPOSE_EMAIL_VERIFY,
                "jti": secrets.token_hex(8),
            },
            self.email_verify_ttl,
        )

    def verify_verification(self, token: str) -> dict[str, Any]:
        payload = self._verify_purpose(token, PURPOSE_EMAIL_VERIFY)
        if not payload.get("email"):
            raise InvalidToken
        return payload

    def _verify_purpose(self, token: str, purpose: str) -> dict[str, Any]:
        payload = self.verify(token)
        if payload.get("purpose") != purpose or not payload.get("sub"):
            raise InvalidToken
        return payload


_token_service: TokenService | None = None


def get_token_service() -> TokenService:
    """Get or create the token service singleton (FastAPI dependency)."""
    global _token_service  # noqa: PLW0603
    if _token_service is None:
        _token_service = TokenService(get_settings())
    return _token_service


def reset_token_service() -> None:
    """Reset the token service singleton (for testing)."""
    global _token_service  # noqa: PLW0603
    _token_service = None
