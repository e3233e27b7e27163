"""Business logic for owner-scoped todo endpoints."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from app.api.contracts import (
    PageMeta,
    TodoListResponse,
    TodoResponse,
    TodosByPriority,
    TodoStatsResponse,
)
from app.api.errors import ApiError, ApiErrorCode, validation_error
from app.todos.models import TodoPatchRequest, TodoRecord, TodoWriteRequest

LOGGER = logging.getLogger(__name__)


class TodoRepositoryProtocol(Protocol):
    """Protocol describing repository methods used by todo service."""

    def create_todo(self, record: TodoRecord) -> TodoRecord:
        """Insert a todo."""

    def get_todo(self, owner_id: str, todo_id: str) -> TodoRecord | None:
        """Return an owned todo."""

    def list_todos(
        self,
        owner_id: str | None,
        *,
        completed: bool | None = None,
        priority: str | None = None,
        search: str = "",
        page: int = 1,
        limit: int = 0,
    ) -> tuple[list[TodoRecord], int]:
        """List todos with filters."""

    def update_todo(
        self, owner_id: str, todo_id: str, fields: dict[str, Any]
    ) -> TodoRecord | None:
        """Update an owned todo."""

    def delete_todo(self, owner_id: str, todo_id: str) -> bool:
        """Delete an owned todo."""

    def count_todos(self, **criteria: Any) -> int:
        """Count todos."""

    def count_overdue(self, now_iso: str) -> int:
        """Count overdue todos."""


def to_utc_iso(value: datetime | None) -> str | None:
    """Normalize a datetime to an ISO-8601 UTC string; naive means UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def page_meta(total: int, page: int, limit: int) -> PageMeta:
    """Build pagination metadata."""
    return PageMeta(
        total=total,
        page=page,
        limit=limit,
        total_page=math.ceil(total / limit) if limit else 0,
    )


def _todo_not_found() -> ApiError:
    return ApiError(
        status_code=404, error_code=ApiErrorCode.TODO_NOT_FOUND, message="Todo not found"
    )


def _clean_text(text: str | None) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise validation_error("Todo text is required")
    return cleaned


class TodoService:
    """Todo CRUD; every operation is scoped to the requesting owner."""

    def __init__(self, repo: TodoRepositoryProtocol) -> None:
        self._repo = repo

    def list_todos(
        self,
        owner_id: str,
        *,
        page: int = 1,
        limit: int = 10,
        completed: bool | None = None,
        priority: str | None = None,
        search: str = "",
    ) -> TodoListResponse:
        """Return a page of the owner's todos."""
        items, total = self._repo.list_todos(
            owner_id,
            completed=completed,
            priority=priority,
            search=search.strip(),
            page=page,
            limit=limit,
        )
        return TodoListResponse(
            data=[TodoResponse.from_record(item) for item in items],
            meta=page_meta(total, page, limit),
        )

    def list_all_for_owner(self, owner_id: str) -> list[TodoResponse]:
        """Return every todo of ``owner_id`` (admin view)."""
        items, _ = self._repo.list_todos(owner_id)
        return [TodoResponse.from_record(item) for item in items]

    def get_todo(self, owner_id: str, todo_id: str) -> TodoResponse:
        record = self._repo.get_todo(owner_id, todo_id)
        if record is None:
            raise _todo_not_found()
        return TodoResponse.from_record(record)

    def create_todo(self, owner_id: str, req: TodoWriteRequest) -> TodoResponse:
        record = self._repo.create_todo(
            TodoRecord(
                todo_id=uuid.uuid4().hex,
                text=_clean_text(req.text),
                completed=bool(req.completed),
                priority=req.priority or "low",
                due_date=to_utc_iso(req.due_date),
                owner_id=owner_id,
            )
        )
        LOGGER.info("todo_created", extra={"user_id": owner_id, "todo_id": record.todo_id})
        return TodoResponse.from_record(record)

    def replace_todo(
        self, owner_id: str, todo_id: str, req: TodoWriteRequest
    ) -> TodoResponse:
        """Full update: omitted completed/priority fall back to defaults."""
        fields: dict[str, Any] = {
            "text": _clean_text(req.text),
            "completed": bool(req.completed),
            "priority": req.priority or "low",
        }
        if "due_date" in req.model_fields_set:
            fields["due_date"] = to_utc_iso(req.due_date)
        record = self._repo.update_todo(owner_id, todo_id, fields)
        if record is None:
            raise _todo_not_found()
        return TodoResponse.from_record(record)

    def patch_todo(
        self, owner_id: str, todo_id: str, req: TodoPatchRequest
    ) -> TodoResponse:
        fields: dict[str, Any] = {}
        provided = req.model_fields_set
        if "text" in provided:
            fields["text"] = _clean_text(req.text)
        if "completed" in provided and req.completed is not None:
            fields["completed"] = req.completed
        if "priority" in provided and req.priority is not None:
            fields["priority"] = req.priority
        if "due_date" in provided:
            fields["due_date"] = to_utc_iso(req.due_date)
        if not fields:
            raise validation_error("No valid fields to update")
        record = self._repo.update_todo(owner_id, todo_id, fields)
        if record is None:
            raise _todo_not_found()
        return TodoResponse.from_record(record)

    def delete_todo(self, owner_id: str, todo_id: str) -> None:
        if not self._repo.delete_todo(owner_id, todo_id):
            raise _todo_not_found()
        LOGGER.info("todo_deleted", extra={"user_id": owner_id, "todo_id": todo_id})

    def stats(self) -> TodoStatsResponse:
        """Global counters across all owners (admin only)."""
        return TodoStatsResponse(
            total=self._repo.count_todos(),
            completed=self._repo.count_todos(completed=True),
            pending=self._repo.count_todos(completed=False),
            by_priority=TodosByPriority(
                low=self._repo.count_todos(priority="low"),
                medium=self._repo.count_todos(priority="medium"),
                high=self._repo.count_todos(priority="high"),
            ),
        )

    def overdue_count(self, now: datetime) -> int:
        return self._repo.count_overdue(to_utc_iso(now) or "")
