"""Credential store: user records, refresh-token sets and follow edges.

Two backends share one interface: MongoDB when a database handle is given,
and a JSON file under the runtime directory otherwise. Every mutation of
``active_refresh_tokens`` is a single conditional operation: one MongoDB
update, or one read-modify-write under the repository lock for the file
backend.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.auth.models import AuthUser
from app.core.mongo import USERS_COLLECTION, store_errors

LOGGER = logging.getLogger(__name__)

_PROJECTION = {"_id": 0}


class UserAlreadyExistsError(ValueError):
    """Raised when email or username is already taken."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches(row: dict[str, Any], criteria: dict[str, Any]) -> bool:
    return all(row.get(key) == value for key, value in criteria.items())


class UserRepository:
    """User repository with MongoDB primary and file-store fallback."""

    def __init__(self, db: Any | None = None, *, fallback_dir: Path | None = None) -> None:
        """Bind to a MongoDB database, or to a JSON file in ``fallback_dir``."""
        self._lock = threading.RLock()
        self._mongo_users = db[USERS_COLLECTION] if db is not None else None
        self._users_file: Path | None = None
        if self._mongo_users is None:
            if fallback_dir is None:
                raise ValueError("fallback_dir is required without a MongoDB database")
            fallback_dir.mkdir(parents=True, exist_ok=True)
            self._users_file = fallback_dir / "users.json"
            LOGGER.warning("UserRepository using local file store: %s", self._users_file)

    # File backend helpers

    def _read_rows(self) -> list[dict[str, Any]]:
        """Read user rows from JSON file with empty fallback."""
        assert self._users_file is not None
        if not self._users_file.exists():
            return []
        try:
            payload = json.loads(self._users_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.exception("Failed reading users file: %s", self._users_file)
            return []
        return payload if isinstance(payload, list) else []

    def _write_rows(self, rows: list[dict[str, Any]]) -> None:
        """Persist user rows to JSON file."""
        assert self._users_file is not None
        tmp_path = self._users_file.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._users_file)

    def _find_row(self, predicate: Callable[[dict[str, Any]], bool]) -> AuthUser | None:
        with self._lock:
            for row in self._read_rows():
                if predicate(row):
                    return AuthUser.model_validate(row)
        return None

    def _mutate_row(
        self,
        predicate: Callable[[dict[str, Any]], bool],
        mutate: Callable[[dict[str, Any]], None],
    ) -> AuthUser | None:
        """Apply ``mutate`` to the first matching row and return it updated."""
        with self._lock:
            rows = self._read_rows()
            for row in rows:
                if predicate(row):
                    mutate(row)
                    row["updated_at"] = _now_iso()
                    self._write_rows(rows)
                    return AuthUser.model_validate(row)
        return None

    # Lookups

    def get_user(self, user_id: str) -> AuthUser | None:
        """Get user by id."""
        if self._mongo_users is not None:
            with store_errors("get_user"):
                doc = self._mongo_users.find_one({"user_id": user_id}, _PROJECTION)
            return AuthUser.model_validate(doc) if doc else None
        return self._find_row(lambda row: row.get("user_id") == user_id)

    def get_user_by_email(self, email: str) -> AuthUser | None:
        """Get user by normalized email."""
        key = email.strip().lower()
        if self._mongo_users is not None:
            with store_errors("get_user_by_email"):
                doc = self._mongo_users.find_one({"email": key}, _PROJECTION)
            return AuthUser.model_validate(doc) if doc else None
        return self._find_row(lambda row: row.get("email") == key)

    def find_by_credential(
        self, *, email: str | None = None, username: str | None = None
    ) -> AuthUser | None:
        """Find user whose email or username matches, first match wins."""
        clauses: list[dict[str, str]] = []
        if email and email.strip():
            clauses.append({"email": email.strip().lower()})
        if username and username.strip():
            clauses.append({"username": username.strip()})
        if not clauses:
            return None
        if self._mongo_users is not None:
            with store_errors("find_by_credential"):
                doc = self._mongo_users.find_one({"$or": clauses}, _PROJECTION)
            return AuthUser.model_validate(doc) if doc else None
        return self._find_row(
            lambda row: any(_matches(row, clause) for clause in clauses)
        )

    def find_by_refresh_token(self, token: str) -> AuthUser | None:
        """Return the user whose active set holds ``token``."""
        if self._mongo_users is not None:
            with store_errors("find_by_refresh_token"):
                doc = self._mongo_users.find_one(
                    {"active_refresh_tokens": token}, _PROJECTION
                )
            return AuthUser.model_validate(doc) if doc else None
        return self._find_row(
            lambda row: token in (row.get("active_refresh_tokens") or [])
        )

    def get_users_by_ids(self, user_ids: list[str]) -> list[AuthUser]:
        """Return users for the given ids, preserving the requested order."""
        if not user_ids:
            return []
        if self._mongo_users is not None:
            with store_errors("get_users_by_ids"):
                docs = list(
                    self._mongo_users.find({"user_id": {"$in": user_ids}}, _PROJECTION)
                )
        else:
            with self._lock:
                docs = [
                    row for row in self._read_rows() if row.get("user_id") in user_ids
                ]
        by_id = {str(doc.get("user_id")): AuthUser.model_validate(doc) for doc in docs}
        return [by_id[user_id] for user_id in user_ids if user_id in by_id]

    def list_users(
        self, *, search: str = "", page: int = 1, limit: int = 10
    ) -> tuple[list[AuthUser], int]:
        """List users newest first, optionally filtered by username substring."""
        offset = (page - 1) * limit
        if self._mongo_users is not None:
            query: dict[str, Any] = {}
            if search:
                query["username"] = {"$regex": re.escape(search), "$options": "i"}
            with store_errors("list_users"):
                total = self._mongo_users.count_documents(query)
                docs = (
                    self._mongo_users.find(query, _PROJECTION)
                    .sort("created_at", -1)
                    .skip(offset)
                    .limit(limit)
                )
                users = [AuthUser.model_validate(doc) for doc in docs]
            return users, total

        needle = search.lower()
        with self._lock:
            rows = [
                row
                for row in self._read_rows()
                if not needle or needle in str(row.get("username", "")).lower()
            ]
        rows.sort(key=lambda row: str(row.get("created_at") or ""), reverse=True)
        return (
            [AuthUser.model_validate(row) for row in rows[offset : offset + limit]],
            len(rows),
        )

    def count_users(self, **criteria: Any) -> int:
        """Count users matching exact field values."""
        if self._mongo_users is not None:
            with store_errors("count_users"):
                return int(self._mongo_users.count_documents(criteria))
        with self._lock:
            return sum(1 for row in self._read_rows() if _matches(row, criteria))

    # Writes

    def create_user(self, user: AuthUser) -> AuthUser:
        """Insert a new user; raise ``UserAlreadyExistsError`` on conflict."""
        now = _now_iso()
        user = user.model_copy(
            update={
                "email": user.email.strip().lower(),
                "username": user.username.strip(),
                "created_at": user.created_at or now,
                "updated_at": now,
            }
        )
        doc = user.model_dump()
        if self._mongo_users is not None:
            with store_errors("create_user"):
                try:
                    self._mongo_users.insert_one(dict(doc))
                except DuplicateKeyError as exc:
                    raise UserAlreadyExistsError("Email or username already taken") from exc
            return user

        with self._lock:
            rows = self._read_rows()
            for row in rows:
                if row.get("email") == user.email or row.get("username") == user.username:
                    raise UserAlreadyExistsError("Email or username already taken")
            rows.append(doc)
            self._write_rows(rows)
        return user

    def update_user_fields(self, user_id: str, fields: dict[str, Any]) -> AuthUser | None:
        """Set top-level or dotted (``profile.bio``) fields and return the user."""
        if not fields:
            return self.get_user(user_id)
        if self._mongo_users is not None:
            update = dict(fields)
            update["updated_at"] = _now_iso()
            with store_errors("update_user_fields"):
                try:
                    doc = self._mongo_users.find_one_and_update(
                        {"user_id": user_id},
                        {"$set": update},
                        projection=_PROJECTION,
                        return_document=ReturnDocument.AFTER,
                    )
                except DuplicateKeyError as exc:
                    raise UserAlreadyExistsError("Email or username already taken") from exc
            return AuthUser.model_validate(doc) if doc else None

        def apply(row: dict[str, Any]) -> None:
            for key, value in fields.items():
                node = row
                parts = key.split(".")
                for part in parts[:-1]:
                    node = node.setdefault(part, {})
                node[parts[-1]] = value

        with self._lock:
            for unique_key in ("email", "username"):
                if unique_key in fields:
                    taken = self._find_row(
                        lambda row, k=unique_key: row.get(k) == fields[k]
                        and row.get("user_id") != user_id
                    )
                    if taken is not None:
                        raise UserAlreadyExistsError("Email or username already taken")
            return self._mutate_row(lambda row: row.get("user_id") == user_id, apply)

    def delete_user(self, user_id: str) -> bool:
        """Delete user and drop it from every follower/following list."""
        if self._mongo_users is not None:
            with store_errors("delete_user"):
                result = self._mongo_users.delete_one({"user_id": user_id})
                if result.deleted_count != 1:
                    return False
                self._mongo_users.update_many(
                    {"$or": [{"followers": user_id}, {"following": user_id}]},
                    {"$pull": {"followers": user_id, "following": user_id}},
                )
            return True

        with self._lock:
            rows = self._read_rows()
            remaining = [row for row in rows if row.get("user_id") != user_id]
            if len(remaining) == len(rows):
                return False
            for row in remaining:
                row["followers"] = [i for i in row.get("followers") or [] if i != user_id]
                row["following"] = [i for i in row.get("following") or [] if i != user_id]
            self._write_rows(remaining)
        return True

    # Refresh-token set

    def add_active_refresh_token(self, user_id: str, token: str) -> bool:
        """Append ``token`` to the user's active set."""
        if self._mongo_users is not None:
            with store_errors("add_active_refresh_token"):
                result = self._mongo_users.update_one(
                    {"user_id": user_id},
                    {
                        "$push": {"active_refresh_tokens": token},
                        "$set": {"updated_at": _now_iso()},
                    },
                )
            return result.matched_count == 1

        def append(row: dict[str, Any]) -> None:
            row.setdefault("active_refresh_tokens", []).append(token)

        return self._mutate_row(lambda row: row.get("user_id") == user_id, append) is not None

    def rotate_refresh_token(self, user_id: str, old_token: str, new_token: str) -> bool:
        """Replace ``old_token`` with ``new_token`` only if ``old_token`` is active.

        Returns ``False`` when the old token was already consumed, so exactly
        one of several concurrent rotations of the same token can succeed.
        """
        if self._mongo_users is not None:
            pipeline = [
                {
                    "$set": {
                        "active_refresh_tokens": {
                            "$concatArrays": [
                                {
                                    "$filter": {
                                        "input": "$active_refresh_tokens",
                                        "cond": {"$ne": ["$$this", old_token]},
                                    }
                                },
                                [new_token],
                            ]
                        },
                        "updated_at": _now_iso(),
                    }
                }
            ]
            with store_errors("rotate_refresh_token"):
                result = self._mongo_users.update_one(
                    {"user_id": user_id, "active_refresh_tokens": old_token},
                    pipeline,
                )
            return result.modified_count == 1

        def rotate(row: dict[str, Any]) -> None:
            tokens = [t for t in row.get("active_refresh_tokens") or [] if t != old_token]
            tokens.append(new_token)
            row["active_refresh_tokens"] = tokens

        return (
            self._mutate_row(
                lambda row: row.get("user_id") == user_id
                and old_token in (row.get("active_refresh_tokens") or []),
                rotate,
            )
            is not None
        )

    def remove_active_refresh_token(self, token: str) -> AuthUser | None:
        """Remove ``token`` from whichever user holds it; return that user."""
        if self._mongo_users is not None:
            with store_errors("remove_active_refresh_token"):
                doc = self._mongo_users.find_one_and_update(
                    {"active_refresh_tokens": token},
                    {
                        "$pull": {"active_refresh_tokens": token},
                        "$set": {"updated_at": _now_iso()},
                    },
                    projection=_PROJECTION,
                    return_document=ReturnDocument.AFTER,
                )
            return AuthUser.model_validate(doc) if doc else None

        def remove(row: dict[str, Any]) -> None:
            row["active_refresh_tokens"] = [
                t for t in row.get("active_refresh_tokens") or [] if t != token
            ]

        return self._mutate_row(
            lambda row: token in (row.get("active_refresh_tokens") or []), remove
        )

    # Email verification

    def redeem_verification_token(self, token: str) -> AuthUser | None:
        """Mark the token owner verified and clear the token, atomically."""
        if self._mongo_users is not None:
            with store_errors("redeem_verification_token"):
                doc = self._mongo_users.find_one_and_update(
                    {"email_verification_token": token},
                    {
                        "$set": {
                            "is_email_verified": True,
                            "email_verification_token": None,
                            "updated_at": _now_iso(),
                        }
                    },
                    projection=_PROJECTION,
                    return_document=ReturnDocument.AFTER,
                )
            return AuthUser.model_validate(doc) if doc else None

        def redeem(row: dict[str, Any]) -> None:
            row["is_email_verified"] = True
            row["email_verification_token"] = None

        return self._mutate_row(
            lambda row: bool(token) and row.get("email_verification_token") == token,
            redeem,
        )

    # Follow graph

    def add_follow(self, follower_id: str, followee_id: str) -> bool:
        """Record ``follower_id`` -> ``followee_id``; ``False`` if already present."""
        if self._mongo_users is not None:
            with store_errors("add_follow"):
                result = self._mongo_users.update_one(
                    {"user_id": follower_id, "following": {"$ne": followee_id}},
                    {"$push": {"following": followee_id}, "$set": {"updated_at": _now_iso()}},
                )
                self._mongo_users.update_one(
                    {"user_id": followee_id},
                    {"$addToSet": {"followers": follower_id}, "$set": {"updated_at": _now_iso()}},
                )
            return result.modified_count == 1

        with self._lock:
            rows = self._read_rows()
            follower = next((r for r in rows if r.get("user_id") == follower_id), None)
            followee = next((r for r in rows if r.get("user_id") == followee_id), None)
            if follower is None or followee is None:
                return False
            following = follower.setdefault("following", [])
            followers = followee.setdefault("followers", [])
            added = followee_id not in following
            if added:
                following.append(followee_id)
            if follower_id not in followers:
                followers.append(follower_id)
            now = _now_iso()
            follower["updated_at"] = now
            followee["updated_at"] = now
            self._write_rows(rows)
        return added

    def remove_follow(self, follower_id: str, followee_id: str) -> bool:
        """Drop ``follower_id`` -> ``followee_id`` from both sides."""
        if self._mongo_users is not None:
            with store_errors("remove_follow"):
                result = self._mongo_users.update_one(
                    {"user_id": follower_id, "following": followee_id},
                    {"$pull": {"following": followee_id}, "$set": {"updated_at": _now_iso()}},
                )
                self._mongo_users.update_one(
                    {"user_id": followee_id},
                    {"$pull": {"followers": follower_id}, "$set": {"updated_at": _now_iso()}},
                )
            return result.modified_count == 1

        with self._lock:
            rows = self._read_rows()
            removed = False
            for row in rows:
                if row.get("user_id") == follower_id:
                    before = row.get("following") or []
                    row["following"] = [i for i in before if i != followee_id]
                    removed = len(row["following"]) != len(before)
                elif row.get("user_id") == followee_id:
                    row["followers"] = [
                        i for i in row.get("followers") or [] if i != follower_id
                    ]
            self._write_rows(rows)
        return removed
