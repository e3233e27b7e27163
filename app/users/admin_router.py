"""FastAPI router for admin user management endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from app.api.contracts import (
    ApiErrorResponse,
    FollowResponse,
    StatisticsResponse,
    TodoListResponse,
    UserEnvelope,
    UserListResponse,
)
from app.auth.guard import AccessGuard
from app.users.models import (
    FollowRequest,
    RoleChangeRequest,
    StatusChangeRequest,
    UserCreateRequest,
    UserUpdateRequest,
)
from app.users.service import UserService

_ERRORS = {
    400: {"model": ApiErrorResponse},
    403: {"model": ApiErrorResponse},
    404: {"model": ApiErrorResponse},
}


def create_admin_router(service: UserService, guard: AccessGuard) -> APIRouter:
    """Build admin router; the role gate applies to every route."""
    router = APIRouter(
        prefix="/api/admin",
        tags=["admin"],
        dependencies=[Depends(guard.require_role("admin"))],
        responses=_ERRORS,
    )

    @router.get("/users", response_model=UserListResponse)
    def list_users(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        search: str = Query(default=""),
    ) -> UserListResponse:
        """List users whose username contains ``search``."""
        return service.list_users(search=search, page=page, limit=limit)

    @router.get("/statistics", response_model=StatisticsResponse)
    def statistics() -> StatisticsResponse:
        return service.statistics()

    @router.get("/users/{user_id}", response_model=UserEnvelope)
    def get_user(user_id: str) -> UserEnvelope:
        return UserEnvelope(data=service.get_user(user_id))

    @router.post("/users", response_model=UserEnvelope, status_code=201)
    def create_user(req: UserCreateRequest) -> UserEnvelope:
        return UserEnvelope(data=service.create_user(req))

    @router.put("/users/{user_id}", response_model=UserEnvelope)
    def replace_user(user_id: str, req: UserUpdateRequest) -> UserEnvelope:
        return UserEnvelope(data=service.replace_user(user_id, req))

    @router.patch("/users/{user_id}", response_model=UserEnvelope)
    def patch_user(user_id: str, req: UserUpdateRequest) -> UserEnvelope:
        return UserEnvelope(data=service.patch_user(user_id, req))

    @router.delete("/users/{user_id}", status_code=204)
    def delete_user(user_id: str) -> Response:
        service.delete_user(user_id)
        return Response(status_code=204)

    @router.post("/users/{user_id}/follow", response_model=FollowResponse)
    def follow(user_id: str, req: FollowRequest) -> FollowResponse:
        """Make ``req.user_id`` follow ``user_id``."""
        return service.follow(user_id, req.user_id)

    @router.post("/users/{user_id}/unfollow", response_model=FollowResponse)
    def unfollow(user_id: str, req: FollowRequest) -> FollowResponse:
        return service.unfollow(user_id, req.user_id)

    @router.put("/users/{user_id}/role", response_model=UserEnvelope)
    def change_role(user_id: str, req: RoleChangeRequest) -> UserEnvelope:
        return UserEnvelope(data=service.change_role(user_id, req.role))

    @router.put("/users/{user_id}/status", response_model=UserEnvelope)
    def change_status(user_id: str, req: StatusChangeRequest) -> UserEnvelope:
        return UserEnvelope(data=service.change_status(user_id, req.is_active))

    @router.get("/users/{user_id}/todos", response_model=TodoListResponse)
    def user_todos(user_id: str) -> TodoListResponse:
        return service.user_todos(user_id)

    return router
