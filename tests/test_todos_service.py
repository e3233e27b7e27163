from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from app.api.errors import ApiError
from app.todos.models import TodoPatchRequest, TodoWriteRequest
from app.todos.repository import TodoRepository
from app.todos.service import TodoService, page_meta, to_utc_iso


def _service(tmp_path: Path) -> TodoService:
    return TodoService(TodoRepository(fallback_dir=tmp_path))


def test_create_todo_applies_defaults_and_owner(tmp_path: Path) -> None:
    service = _service(tmp_path)

    todo = service.create_todo("u1", TodoWriteRequest(text="  buy milk "))

    assert todo.text == "buy milk"
    assert todo.completed is False
    assert todo.priority == "low"
    assert todo.owner_id == "u1"
    assert todo.created_at


def test_create_todo_requires_text(tmp_path: Path) -> None:
    service = _service(tmp_path)

    with pytest.raises(ApiError) as exc:
        service.create_todo("u1", TodoWriteRequest(text="   "))

    assert exc.value.status_code == 400


def test_todos_are_scoped_to_owner(tmp_path: Path) -> None:
    service = _service(tmp_path)
    todo = service.create_todo("u1", TodoWriteRequest(text="private"))

    for call in (
        lambda: service.get_todo("u2", todo.todo_id),
        lambda: service.patch_todo("u2", todo.todo_id, TodoPatchRequest(completed=True)),
        lambda: service.delete_todo("u2", todo.todo_id),
    ):
        with pytest.raises(ApiError) as exc:
            call()
        assert exc.value.status_code == 404

    assert service.list_todos("u2").data == []
    assert service.get_todo("u1", todo.todo_id).text == "private"


def test_list_todos_filters_and_pages(tmp_path: Path) -> None:
    service = _service(tmp_path)
    service.create_todo("u1", TodoWriteRequest(text="Write report", priority="high"))
    service.create_todo("u1", TodoWriteRequest(text="read book", completed=True))
    service.create_todo("u1", TodoWriteRequest(text="REPORT review", priority="high"))

    high = service.list_todos("u1", priority="high")
    searched = service.list_todos("u1", search="report", limit=1, page=2)
    done = service.list_todos("u1", completed=True)

    assert len(high.data) == 2
    assert searched.meta is not None
    assert searched.meta.total == 2
    assert searched.meta.total_page == 2
    assert len(searched.data) == 1
    assert [t.text for t in done.data] == ["read book"]


def test_patch_todo_updates_only_provided_fields(tmp_path: Path) -> None:
    service = _service(tmp_path)
    todo = service.create_todo("u1", TodoWriteRequest(text="draft", priority="medium"))

    patched = service.patch_todo("u1", todo.todo_id, TodoPatchRequest(completed=True))

    assert patched.completed is True
    assert patched.priority == "medium"
    assert patched.text == "draft"
    with pytest.raises(ApiError) as exc:
        service.patch_todo("u1", todo.todo_id, TodoPatchRequest())
    assert exc.value.status_code == 400


def test_replace_todo_resets_omitted_fields(tmp_path: Path) -> None:
    service = _service(tmp_path)
    todo = service.create_todo(
        "u1", TodoWriteRequest(text="draft", priority="high", completed=True)
    )

    replaced = service.replace_todo("u1", todo.todo_id, TodoWriteRequest(text="final"))

    assert replaced.text == "final"
    assert replaced.priority == "low"
    assert replaced.completed is False


def test_delete_todo_removes_it(tmp_path: Path) -> None:
    service = _service(tmp_path)
    todo = service.create_todo("u1", TodoWriteRequest(text="temp"))

    service.delete_todo("u1", todo.todo_id)

    with pytest.raises(ApiError):
        service.get_todo("u1", todo.todo_id)


def test_stats_and_overdue_counts_are_global(tmp_path: Path) -> None:
    service = _service(tmp_path)
    now = datetime(2026, 1, 10, tzinfo=timezone.utc)
    service.create_todo(
        "u1", TodoWriteRequest(text="late", due_date=now - timedelta(days=1))
    )
    service.create_todo(
        "u2", TodoWriteRequest(text="future", due_date=now + timedelta(days=1))
    )
    service.create_todo(
        "u2",
        TodoWriteRequest(
            text="late but done", completed=True, priority="high", due_date=now - timedelta(days=2)
        ),
    )

    stats = service.stats()

    assert stats.total == 3
    assert stats.completed == 1
    assert stats.pending == 2
    assert stats.by_priority.high == 1
    assert stats.by_priority.low == 2
    assert service.overdue_count(now) == 1


def test_helpers_normalize_dates_and_paging() -> None:
    naive = datetime(2026, 1, 1, 12, 0)

    assert to_utc_iso(naive) == "2026-01-01T12:00:00+00:00"
    assert to_utc_iso(None) is None
    assert page_meta(11, 2, 5).total_page == 3
    assert page_meta(0, 1, 10).total_page == 0
