"""Request models for user, profile and admin endpoints."""

from __future__ import annotations

from app.api.contracts.models import CamelModel
from app.auth.models import UserProfile


class ProfilePatch(CamelModel):
    """Profile fields that may be changed; omitted fields stay untouched."""

    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None


class ProfileUpdateRequest(CamelModel):
    """Body of ``PATCH /api/me`` and profile updates."""

    profile: ProfilePatch | None = None


class UserCreateRequest(CamelModel):
    """Admin/profile user creation payload."""

    username: str = ""
    email: str = ""
    password: str = ""
    profile: UserProfile | None = None


class UserUpdateRequest(CamelModel):
    """Admin user update payload."""

    username: str | None = None
    email: str | None = None
    profile: ProfilePatch | None = None


class FollowRequest(CamelModel):
    """Follow/unfollow payload naming the acting follower."""

    user_id: str | None = None


class RoleChangeRequest(CamelModel):
    role: str | None = None


class StatusChangeRequest(CamelModel):
    is_active: bool | None = None
