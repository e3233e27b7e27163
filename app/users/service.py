"""Business logic for current-user, profile and admin user endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from app.api.contracts import (
    FollowResponse,
    ProfileFields,
    ProfileResponse,
    StatisticsData,
    StatisticsResponse,
    TodoListResponse,
    TodoStatistics,
    UserListResponse,
    UserResponse,
    UsersByRole,
    UsersByStatus,
    UserStatistics,
    UserSummaryResponse,
)
from app.api.errors import ApiError, ApiErrorCode, forbidden, user_not_found, validation_error
from app.auth.models import AccessClaims, AuthUser, RegisterRequest
from app.auth.registration import RegistrationService
from app.auth.repository import UserAlreadyExistsError
from app.todos.service import TodoService, page_meta
from app.users.models import (
    ProfilePatch,
    ProfileUpdateRequest,
    UserCreateRequest,
    UserUpdateRequest,
)

LOGGER = logging.getLogger(__name__)

_ROLES = {"user", "admin"}


class UserRepositoryProtocol(Protocol):
    """Protocol describing repository methods used by user service."""

    def get_user(self, user_id: str) -> AuthUser | None:
        """Return user by id."""

    def get_users_by_ids(self, user_ids: list[str]) -> list[AuthUser]:
        """Return users for ids."""

    def list_users(
        self, *, search: str = "", page: int = 1, limit: int = 10
    ) -> tuple[list[AuthUser], int]:
        """Return a page of users and the total count."""

    def count_users(self, **criteria: Any) -> int:
        """Count users."""

    def update_user_fields(self, user_id: str, fields: dict[str, Any]) -> AuthUser | None:
        """Set fields on a user."""

    def delete_user(self, user_id: str) -> bool:
        """Delete a user."""

    def add_follow(self, follower_id: str, followee_id: str) -> bool:
        """Add a follow edge."""

    def remove_follow(self, follower_id: str, followee_id: str) -> bool:
        """Remove a follow edge."""


def _profile_fields(patch: ProfilePatch | None) -> dict[str, Any]:
    if patch is None:
        return {}
    return {
        f"profile.{key}": value
        for key, value in patch.model_dump(exclude_none=True).items()
    }


class UserService:
    """User management on top of the credential store."""

    def __init__(
        self,
        repo: UserRepositoryProtocol,
        registration: RegistrationService,
        todos: TodoService,
    ) -> None:
        self._repo = repo
        self._registration = registration
        self._todos = todos

    def _require_user(self, user_id: str) -> AuthUser:
        user = self._repo.get_user(user_id)
        if user is None:
            raise user_not_found()
        return user

    def _update(self, user_id: str, fields: dict[str, Any]) -> AuthUser:
        try:
            user = self._repo.update_user_fields(user_id, fields)
        except UserAlreadyExistsError as exc:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.USER_ALREADY_EXISTS,
                message="Email or username already taken",
            ) from exc
        if user is None:
            raise user_not_found()
        return user

    def _profile_view(self, user: AuthUser) -> ProfileResponse:
        def summaries(ids: list[str]) -> list[UserSummaryResponse]:
            return [
                UserSummaryResponse(
                    user_id=ref.user_id,
                    username=ref.username,
                    profile=ProfileFields(**ref.profile.model_dump()),
                )
                for ref in self._repo.get_users_by_ids(ids)
            ]

        return ProfileResponse(
            user_id=user.user_id,
            username=user.username,
            role=user.role,
            profile=ProfileFields(**user.profile.model_dump()),
            followers=summaries(user.followers),
            following=summaries(user.following),
        )

    # Current user

    def get_me(self, claims: AccessClaims) -> UserResponse:
        return UserResponse.from_user(self._require_user(claims.user_id))

    def update_me(self, claims: AccessClaims, req: ProfileUpdateRequest) -> UserResponse:
        """Update the caller's profile block."""
        if req.profile is None:
            raise validation_error("Profile data required")
        fields = _profile_fields(req.profile)
        if not fields:
            raise validation_error("No valid fields to update")
        return UserResponse.from_user(self._update(claims.user_id, fields))

    # Admin

    def list_users(self, *, search: str, page: int, limit: int) -> UserListResponse:
        users, total = self._repo.list_users(search=search.strip(), page=page, limit=limit)
        return UserListResponse(
            data=[UserResponse.from_user(user) for user in users],
            meta=page_meta(total, page, limit),
        )

    def get_user(self, user_id: str) -> UserResponse:
        return UserResponse.from_user(self._require_user(user_id))

    def create_user(self, req: UserCreateRequest) -> UserResponse:
        """Create a regular, unverified user with a pending verification link."""
        if not req.username.strip():
            raise validation_error("Username is required")
        if not req.password.strip():
            raise validation_error("Password is required")
        user = self._registration.register(
            RegisterRequest(
                email=req.email,
                password=req.password,
                username=req.username,
                profile=req.profile,
                role="user",
            )
        )
        return UserResponse.from_user(user)

    def replace_user(self, user_id: str, req: UserUpdateRequest) -> UserResponse:
        """Full update of identity fields; username and email are required."""
        username = (req.username or "").strip()
        email = (req.email or "").strip().lower()
        if not username or not email:
            raise validation_error("Username and email are required")
        fields = {"username": username, "email": email, **_profile_fields(req.profile)}
        return UserResponse.from_user(self._update(user_id, fields))

    def patch_user(self, user_id: str, req: UserUpdateRequest) -> UserResponse:
        fields: dict[str, Any] = _profile_fields(req.profile)
        if req.username is not None and req.username.strip():
            fields["username"] = req.username.strip()
        if req.email is not None and req.email.strip():
            fields["email"] = req.email.strip().lower()
        if not fields:
            raise validation_error("Body must not be empty")
        return UserResponse.from_user(self._update(user_id, fields))

    def delete_user(self, user_id: str) -> None:
        if not self._repo.delete_user(user_id):
            raise user_not_found()
        LOGGER.info("user_deleted", extra={"user_id": user_id})

    def follow(self, target_id: str, follower_id: str | None) -> FollowResponse:
        """Make ``follower_id`` follow ``target_id``; idempotent."""
        follower_id = self._check_follow_pair(target_id, follower_id, "follow")
        followed = self._repo.add_follow(follower_id, target_id)
        target = self._require_user(target_id)
        return FollowResponse(
            data=UserResponse.from_user(target),
            followers_count=len(target.followers),
            followed=followed,
        )

    def unfollow(self, target_id: str, follower_id: str | None) -> FollowResponse:
        follower_id = self._check_follow_pair(target_id, follower_id, "unfollow")
        self._repo.remove_follow(follower_id, target_id)
        target = self._require_user(target_id)
        return FollowResponse(
            data=UserResponse.from_user(target),
            followers_count=len(target.followers),
            followed=False,
        )

    def _check_follow_pair(self, target_id: str, follower_id: str | None, verb: str) -> str:
        if not follower_id:
            raise validation_error("User ID is required")
        if follower_id == target_id:
            raise validation_error(f"You cannot {verb} yourself")
        self._require_user(target_id)
        self._require_user(follower_id)
        return follower_id

    def change_role(self, user_id: str, role: str | None) -> UserResponse:
        if role not in _ROLES:
            raise validation_error("Invalid role")
        user = self._update(user_id, {"role": role})
        LOGGER.info("user_role_changed", extra={"user_id": user_id})
        return UserResponse.from_user(user)

    def change_status(self, user_id: str, is_active: bool | None) -> UserResponse:
        if is_active is None:
            raise validation_error("Invalid status")
        return UserResponse.from_user(self._update(user_id, {"is_active": is_active}))

    def user_todos(self, user_id: str) -> TodoListResponse:
        self._require_user(user_id)
        return TodoListResponse(data=self._todos.list_all_for_owner(user_id))

    def statistics(self, now: datetime | None = None) -> StatisticsResponse:
        """Aggregate user and todo counters across all tenants."""
        now = now or datetime.now(timezone.utc)
        todo_stats = self._todos.stats()
        return StatisticsResponse(
            data=StatisticsData(
                users=UserStatistics(
                    by_role=UsersByRole(
                        admin=self._repo.count_users(role="admin"),
                        user=self._repo.count_users(role="user"),
                    ),
                    by_status=UsersByStatus(
                        active=self._repo.count_users(is_active=True),
                        inactive=self._repo.count_users(is_active=False),
                    ),
                ),
                todos=TodoStatistics(
                    completed=todo_stats.completed,
                    pending=todo_stats.pending,
                    overdue=self._todos.overdue_count(now),
                ),
                generated_at=now.isoformat(),
            )
        )

    # Profiles

    def get_profile(self, user_id: str) -> ProfileResponse:
        return self._profile_view(self._require_user(user_id))

    def update_profile(
        self, claims: AccessClaims, user_id: str, req: ProfileUpdateRequest
    ) -> ProfileResponse:
        """Update profile fields of ``user_id``; owner or admin only."""
        self._check_owner_or_admin(claims, user_id, "update")
        fields = _profile_fields(req.profile)
        if not fields:
            raise validation_error("No valid fields to update")
        return self._profile_view(self._update(user_id, fields))

    def delete_profile(self, claims: AccessClaims, user_id: str) -> None:
        self._check_owner_or_admin(claims, user_id, "delete")
        self.delete_user(user_id)

    @staticmethod
    def _check_owner_or_admin(claims: AccessClaims, user_id: str, verb: str) -> None:
        if claims.user_id != user_id and claims.role != "admin":
            raise forbidden(f"You can {verb} only your own profile or must be admin")
