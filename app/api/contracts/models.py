"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from app.auth.models import AuthUser
    from app.todos.models import TodoRecord


class CamelModel(BaseModel):
    """Base model exchanged with clients using camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class ProfileFields(CamelModel):
    """Public profile block as exposed to clients."""

    first_name: str = ""
    last_name: str = ""
    bio: str = ""


class UserResponse(CamelModel):
    """User DTO without credentials or session state."""

    user_id: str
    email: str
    username: str
    role: str
    is_active: bool
    is_email_verified: bool
    profile: ProfileFields
    followers: list[str] = Field(default_factory=list)
    following: list[str] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_user(cls, user: "AuthUser") -> "UserResponse":
        return cls(
            user_id=user.user_id,
            email=user.email,
            username=user.username,
            role=user.role,
            is_active=user.is_active,
            is_email_verified=user.is_email_verified,
            profile=ProfileFields(**user.profile.model_dump()),
            followers=list(user.followers),
            following=list(user.following),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserSummaryResponse(CamelModel):
    """Short user reference used in follower listings."""

    user_id: str
    username: str
    profile: ProfileFields


class ProfileResponse(CamelModel):
    """Public profile view with resolved follower references."""

    user_id: str
    username: str
    role: str
    profile: ProfileFields
    followers: list[UserSummaryResponse] = Field(default_factory=list)
    following: list[UserSummaryResponse] = Field(default_factory=list)


class PageMeta(CamelModel):
    """Pagination metadata."""

    total: int
    page: int
    limit: int
    total_page: int


class UserEnvelope(CamelModel):
    """Single user response envelope."""

    success: bool = True
    data: UserResponse


class UserListResponse(CamelModel):
    """Paged user listing."""

    success: bool = True
    data: list[UserResponse]
    meta: PageMeta


class ProfileEnvelope(CamelModel):
    """Single profile response envelope."""

    success: bool = True
    data: ProfileResponse


class FollowResponse(CamelModel):
    """Result of a follow/unfollow operation on the target user."""

    success: bool = True
    data: UserResponse
    followers_count: int
    followed: bool


class UsersByRole(CamelModel):
    admin: int
    user: int


class UsersByStatus(CamelModel):
    active: int
    inactive: int


class UserStatistics(CamelModel):
    by_role: UsersByRole
    by_status: UsersByStatus


class TodoStatistics(CamelModel):
    completed: int
    pending: int
    overdue: int


class StatisticsData(CamelModel):
    users: UserStatistics
    todos: TodoStatistics
    generated_at: str


class StatisticsResponse(CamelModel):
    """Admin-wide statistics."""

    success: bool = True
    data: StatisticsData


class TodoResponse(CamelModel):
    """Todo DTO."""

    todo_id: str
    text: str
    completed: bool
    priority: str
    due_date: datetime | None = None
    owner_id: str
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_record(cls, record: "TodoRecord") -> "TodoResponse":
        return cls(
            todo_id=record.todo_id,
            text=record.text,
            completed=record.completed,
            priority=record.priority,
            due_date=datetime.fromisoformat(record.due_date) if record.due_date else None,
            owner_id=record.owner_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class TodoEnvelope(CamelModel):
    """Single todo response envelope."""

    success: bool = True
    data: TodoResponse


class TodoListResponse(CamelModel):
    """Paged todo listing."""

    success: bool = True
    data: list[TodoResponse]
    meta: PageMeta | None = None


class TodosByPriority(CamelModel):
    low: int
    medium: int
    high: int


class TodoStatsResponse(CamelModel):
    """Global todo counters."""

    total: int
    completed: int
    pending: int
    by_priority: TodosByPriority
