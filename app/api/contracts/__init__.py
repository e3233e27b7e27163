"""Public API response contracts."""

from app.api.contracts.models import (
    ApiErrorResponse,
    CamelModel,
    FollowResponse,
    HealthResponse,
    PageMeta,
    ProfileEnvelope,
    ProfileFields,
    ProfileResponse,
    StatisticsData,
    StatisticsResponse,
    TodoEnvelope,
    TodoListResponse,
    TodoResponse,
    TodoStatistics,
    TodosByPriority,
    TodoStatsResponse,
    UserEnvelope,
    UserListResponse,
    UserResponse,
    UsersByRole,
    UsersByStatus,
    UserStatistics,
    UserSummaryResponse,
)

__all__ = [
    "ApiErrorResponse",
    "CamelModel",
    "FollowResponse",
    "HealthResponse",
    "PageMeta",
    "ProfileEnvelope",
    "ProfileFields",
    "ProfileResponse",
    "StatisticsData",
    "StatisticsResponse",
    "TodoEnvelope",
    "TodoListResponse",
    "TodoResponse",
    "TodoStatistics",
    "TodosByPriority",
    "TodoStatsResponse",
    "UserEnvelope",
    "UserListResponse",
    "UserResponse",
    "UsersByRole",
    "UsersByStatus",
    "UserStatistics",
    "UserSummaryResponse",
]
