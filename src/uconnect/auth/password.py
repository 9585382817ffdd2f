"""
Password hashing and validation using argon2id.

Only the hash is ever stored on an account.
"""

from __future__ import annotations

import argon2

from uconnect.errors import ValidationError

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)


class PasswordStrengthError(ValidationError):
    """Raised when a password does not meet the length policy."""

    code = "weak_password"


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full hash string."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its argon2id hash.

    Returns True if the password matches. Never raises on mismatch.
    """
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


def check_needs_rehash(password_hash: str) -> bool:
    """Check if the hash needs to be updated (parameters changed)."""
    return _hasher.check_needs_rehash(password_hash)


def validate_password_strength(password: str, min_length: int = 8, max_length: int = 128) -> None:
    """
    Enforce the password length policy.

    Raises:
        PasswordStrengthError: If the password is blank, too short or too long.
    """
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < min_length:
        msg = f"Password must be at least {min_length} characters"
        raise PasswordStrengthError(msg)
    if len(password) > max_length:
        msg = f"Password must not exceed {max_length} characters"
        raise PasswordStrengthError(msg)
