"""Pydantic models for authentication domain."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from app.api.contracts.models import CamelModel

Role = Literal["user", "admin"]
TokenType = Literal["access", "refresh"]


class UserProfile(CamelModel):
    """Free-form public profile attached to a user."""

    first_name: str = ""
    last_name: str = ""
    bio: str = ""


class AuthUser(BaseModel):
    """Persisted user record (credential store document)."""

    user_id: str
    email: str
    username: str
    password_hash: str
    role: Role = "user"
    is_active: bool = True
    is_email_verified: bool = False
    email_verification_token: str | None = None
    active_refresh_tokens: list[str] = Field(default_factory=list)
    followers: list[str] = Field(default_factory=list)
    following: list[str] = Field(default_factory=list)
    profile: UserProfile = Field(default_factory=UserProfile)
    created_at: str = ""
    updated_at: str = ""


class AccessClaims(BaseModel):
    """Identity decoded from a signed token. Never persisted."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str
    role: Role
    issuer: str
    audience: str
    is_email_verified: bool | None = None

    def to_token_claims(self, token_type: TokenType) -> dict[str, Any]:
        """Return wire claims for ``token_type``."""
        claims: dict[str, Any] = {
            "userId": self.user_id,
            "name": self.name,
            "role": self.role,
            "iss": self.issuer,
            "aud": self.audience,
            "type": token_type,
        }
        if self.is_email_verified is not None:
            claims["isEmailVerified"] = bool(self.is_email_verified)
        return claims

    @classmethod
    def from_token_claims(cls, payload: dict[str, Any]) -> "AccessClaims":
        """Rebuild claims from a verified token payload."""
        verified = payload.get("isEmailVerified")
        return cls(
            user_id=str(payload.get("userId") or ""),
            name=str(payload.get("name") or ""),
            role="admin" if payload.get("role") == "admin" else "user",
            issuer=str(payload.get("iss") or ""),
            audience=str(payload.get("aud") or ""),
            is_email_verified=None if verified is None else bool(verified),
        )


class RegisterRequest(CamelModel):
    """Registration request payload."""

    email: str = ""
    password: str = ""
    username: str = ""
    profile: UserProfile | None = None
    role: Role = "user"


class LoginRequest(CamelModel):
    """Login request payload; either email or username identifies the user."""

    email: str | None = None
    username: str | None = None
    password: str = ""


class RefreshRequest(CamelModel):
    """Refresh request payload."""

    refresh_token: str | None = None


class LogoutRequest(CamelModel):
    """Logout request payload."""

    refresh_token: str | None = None


class ResendVerificationRequest(CamelModel):
    """Resend verification request payload."""

    email: str = ""


class TokenPair(CamelModel):
    """Access/refresh token pair returned by session operations."""

    access_token: str
    refresh_token: str
