"""Todo store with MongoDB primary and file-store fallback."""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pymongo import ReturnDocument

from app.core.mongo import TODOS_COLLECTION, store_errors
from app.todos.models import TodoRecord

LOGGER = logging.getLogger(__name__)

_PROJECTION = {"_id": 0}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TodoRepository:
    """Owner-scoped todo persistence."""

    def __init__(self, db: Any | None = None, *, fallback_dir: Path | None = None) -> None:
        self._lock = threading.RLock()
        self._collection = db[TODOS_COLLECTION] if db is not None else None
        self._todos_file: Path | None = None
        if self._collection is None:
            if fallback_dir is None:
                raise ValueError("fallback_dir is required without a MongoDB database")
            fallback_dir.mkdir(parents=True, exist_ok=True)
            self._todos_file = fallback_dir / "todos.json"
            LOGGER.warning("TodoRepository using local file store: %s", self._todos_file)

    def _read_rows(self) -> list[dict[str, Any]]:
        assert self._todos_file is not None
        if not self._todos_file.exists():
            return []
        try:
            payload = json.loads(self._todos_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.exception("Failed reading todos file: %s", self._todos_file)
            return []
        return payload if isinstance(payload, list) else []

    def _write_rows(self, rows: list[dict[str, Any]]) -> None:
        assert self._todos_file is not None
        tmp_path = self._todos_file.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._todos_file)

    @staticmethod
    def _filter(
        owner_id: str | None,
        *,
        completed: bool | None = None,
        priority: str | None = None,
        search: str = "",
    ) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if owner_id is not None:
            query["owner_id"] = owner_id
        if completed is not None:
            query["completed"] = completed
        if priority:
            query["priority"] = priority
        if search:
            query["text"] = {"$regex": re.escape(search), "$options": "i"}
        return query

    @staticmethod
    def _row_matches(row: dict[str, Any], query: dict[str, Any]) -> bool:
        for key, expected in query.items():
            value = row.get(key)
            if isinstance(expected, dict):
                if "$regex" in expected:
                    pattern = re.compile(expected["$regex"], re.IGNORECASE)
                    if not pattern.search(str(value or "")):
                        return False
                if "$lt" in expected and not (value is not None and value < expected["$lt"]):
                    return False
            elif value != expected:
                return False
        return True

    def create_todo(self, record: TodoRecord) -> TodoRecord:
        """Insert a todo and return it with timestamps set."""
        now = _now_iso()
        record = record.model_copy(update={"created_at": now, "updated_at": now})
        doc = record.model_dump()
        if self._collection is not None:
            with store_errors("create_todo"):
                self._collection.insert_one(dict(doc))
            return record
        with self._lock:
            rows = self._read_rows()
            rows.append(doc)
            self._write_rows(rows)
        return record

    def get_todo(self, owner_id: str, todo_id: str) -> TodoRecord | None:
        """Return a todo only if it belongs to ``owner_id``."""
        query = {"todo_id": todo_id, "owner_id": owner_id}
        if self._collection is not None:
            with store_errors("get_todo"):
                doc = self._collection.find_one(query, _PROJECTION)
            return TodoRecord.model_validate(doc) if doc else None
        with self._lock:
            for row in self._read_rows():
                if self._row_matches(row, query):
                    return TodoRecord.model_validate(row)
        return None

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
        """List todos newest first; ``limit=0`` returns every match."""
        query = self._filter(owner_id, completed=completed, priority=priority, search=search)
        offset = (page - 1) * limit if limit else 0
        if self._collection is not None:
            with store_errors("list_todos"):
                total = self._collection.count_documents(query)
                cursor = self._collection.find(query, _PROJECTION).sort("created_at", -1)
                if limit:
                    cursor = cursor.skip(offset).limit(limit)
                items = [TodoRecord.model_validate(doc) for doc in cursor]
            return items, total

        with self._lock:
            rows = [row for row in self._read_rows() if self._row_matches(row, query)]
        rows.sort(key=lambda row: str(row.get("created_at") or ""), reverse=True)
        window = rows[offset : offset + limit] if limit else rows
        return [TodoRecord.model_validate(row) for row in window], len(rows)

    def update_todo(
        self, owner_id: str, todo_id: str, fields: dict[str, Any]
    ) -> TodoRecord | None:
        """Set ``fields`` on an owned todo and return it."""
        query = {"todo_id": todo_id, "owner_id": owner_id}
        update = dict(fields)
        update["updated_at"] = _now_iso()
        if self._collection is not None:
            with store_errors("update_todo"):
                doc = self._collection.find_one_and_update(
                    query,
                    {"$set": update},
                    projection=_PROJECTION,
                    return_document=ReturnDocument.AFTER,
                )
            return TodoRecord.model_validate(doc) if doc else None

        with self._lock:
            rows = self._read_rows()
            for row in rows:
                if self._row_matches(row, query):
                    row.update(update)
                    self._write_rows(rows)
                    return TodoRecord.model_validate(row)
        return None

    def delete_todo(self, owner_id: str, todo_id: str) -> bool:
        """Delete an owned todo."""
        query = {"todo_id": todo_id, "owner_id": owner_id}
        if self._collection is not None:
            with store_errors("delete_todo"):
                result = self._collection.delete_one(query)
            return result.deleted_count == 1

        with self._lock:
            rows = self._read_rows()
            remaining = [row for row in rows if not self._row_matches(row, query)]
            if len(remaining) == len(rows):
                return False
            self._write_rows(remaining)
        return True

    def count_todos(self, **criteria: Any) -> int:
        """Count todos across all owners matching exact field values."""
        if self._collection is not None:
            with store_errors("count_todos"):
                return int(self._collection.count_documents(criteria))
        with self._lock:
            return sum(1 for row in self._read_rows() if self._row_matches(row, criteria))

    def count_overdue(self, now_iso: str) -> int:
        """Count pending todos whose due date is before ``now_iso``."""
        query = {"completed": False, "due_date": {"$lt": now_iso}}
        if self._collection is not None:
            with store_errors("count_overdue"):
                return int(self._collection.count_documents(query))
        with self._lock:
            return sum(1 for row in self._read_rows() if self._row_matches(row, query))
