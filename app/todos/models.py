"""Pydantic models for the todo domain."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from app.api.contracts.models import CamelModel

Priority = Literal["low", "medium", "high"]


class TodoRecord(BaseModel):
    """Persisted todo document. Timestamps are ISO-8601 UTC strings."""

    todo_id: str
    text: str
    completed: bool = False
    priority: Priority = "low"
    due_date: str | None = None
    owner_id: str
    created_at: str = ""
    updated_at: str = ""


class TodoWriteRequest(CamelModel):
    """Create or full-replace payload."""

    text: str = ""
    completed: bool | None = None
    priority: Priority | None = None
    due_date: datetime | None = None


class TodoPatchRequest(CamelModel):
    """Partial update payload; only fields present in the body are applied."""

    text: str | None = None
    completed: bool | None = None
    priority: Priority | None = None
    due_date: datetime | None = None
