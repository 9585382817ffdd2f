"""Request/response schemas for account endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator


class OkResponse(BaseModel):
    ok: bool = True
    message: str | None = None


# ---------------------------------------------------------------------------
# Signup / login
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Create an unverified account (or resend the link for a pending one)."""

    name: str = Field(..., min_length=1, max_length=128)
    username: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(BaseModel):
    """Login with email or username + password."""

    identifier: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class LoginResponse(BaseModel):
    ok: bool = True
    redirect: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class UpdateProfileRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    username: str = Field(..., min_length=1, max_length=64)


class ChangePasswordRequest(BaseModel):
    """Change password (requires the current one)."""

    old_password: str = Field(
        ..., min_length=1, max_length=128, validation_alias=AliasChoices("old_password", "oldPassword")
    )
    new_password: str = Field(
        ..., min_length=1, max_length=128, validation_alias=AliasChoices("new_password", "newPassword")
    )


class AccountResponse(BaseModel):
    """The caller's own account."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    username: str
    email: str
    avatar: str
    role: str
    verified: bool


class MeResponse(BaseModel):
    ok: bool = True
    user: AccountResponse


class AvatarResponse(BaseModel):
    ok: bool = True
    avatar: str


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class AdminCreatedResponse(BaseModel):
    ok: bool = True
    message: str = "Admin created"
    admin: dict[str, str]


class AdminAccountResponse(AccountResponse):
    created_at: datetime | None = None


class AccountListResponse(BaseModel):
    ok: bool = True
    users: list[AdminAccountResponse]
