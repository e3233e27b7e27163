"""FastAPI router for owner-scoped todo endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from app.api.contracts import (
    ApiErrorResponse,
    TodoEnvelope,
    TodoListResponse,
    TodoStatsResponse,
)
from app.auth.guard import AccessGuard
from app.auth.models import AccessClaims
from app.todos.models import Priority, TodoPatchRequest, TodoWriteRequest
from app.todos.service import TodoService

_NOT_FOUND = {404: {"model": ApiErrorResponse}}


def create_todos_router(service: TodoService, guard: AccessGuard) -> APIRouter:
    """Build todo router; every route requires an authenticated user."""
    router = APIRouter(prefix="/api/protected/todos", tags=["todos"])
    require_admin = guard.require_role("admin")

    @router.get("", response_model=TodoListResponse)
    def list_todos(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        completed: bool | None = Query(default=None),
        priority: Priority | None = Query(default=None),
        search: str = Query(default=""),
        claims: AccessClaims = Depends(guard.current_user),
    ) -> TodoListResponse:
        """List the caller's todos."""
        return service.list_todos(
            claims.user_id,
            page=page,
            limit=limit,
            completed=completed,
            priority=priority,
            search=search,
        )

    @router.get(
        "/stats",
        response_model=TodoStatsResponse,
        responses={403: {"model": ApiErrorResponse}},
    )
    def todo_stats(_: AccessClaims = Depends(require_admin)) -> TodoStatsResponse:
        """Global todo counters."""
        return service.stats()

    @router.get("/{todo_id}", response_model=TodoEnvelope, responses=_NOT_FOUND)
    def get_todo(
        todo_id: str, claims: AccessClaims = Depends(guard.current_user)
    ) -> TodoEnvelope:
        return TodoEnvelope(data=service.get_todo(claims.user_id, todo_id))

    @router.post("", response_model=TodoEnvelope, status_code=201)
    def create_todo(
        req: TodoWriteRequest, claims: AccessClaims = Depends(guard.current_user)
    ) -> TodoEnvelope:
        return TodoEnvelope(data=service.create_todo(claims.user_id, req))

    @router.put("/{todo_id}", response_model=TodoEnvelope, responses=_NOT_FOUND)
    def replace_todo(
        todo_id: str,
        req: TodoWriteRequest,
        claims: AccessClaims = Depends(guard.current_user),
    ) -> TodoEnvelope:
        return TodoEnvelope(data=service.replace_todo(claims.user_id, todo_id, req))

    @router.patch("/{todo_id}", response_model=TodoEnvelope, responses=_NOT_FOUND)
    def patch_todo(
        todo_id: str,
        req: TodoPatchRequest,
        claims: AccessClaims = Depends(guard.current_user),
    ) -> TodoEnvelope:
        return TodoEnvelope(data=service.patch_todo(claims.user_id, todo_id, req))

    @router.delete("/{todo_id}", status_code=204, responses=_NOT_FOUND)
    def delete_todo(
        todo_id: str, claims: AccessClaims = Depends(guard.current_user)
    ) -> Response:
        service.delete_todo(claims.user_id, todo_id)
        return Response(status_code=204)

    return router
