from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from app.api.errors import ApiError
from app.auth.models import AccessClaims, AuthUser
from app.auth.registration import RegistrationService
from app.auth.repository import UserRepository
from app.auth.service import AuthService
from app.core.config import AuthConfig
from app.todos.models import TodoWriteRequest
from app.todos.repository import TodoRepository
from app.todos.service import TodoService
from app.users.models import ProfilePatch, ProfileUpdateRequest, UserCreateRequest, UserUpdateRequest
from app.users.service import UserService


@dataclass
class _Notifier:
    sent: list[str] = field(default_factory=list)

    def send_verification(self, *, email: str, token: str) -> None:
        self.sent.append(email)


@dataclass
class _Env:
    users: UserService
    repo: UserRepository
    todos: TodoService
    notifier: _Notifier


def _env(tmp_path: Path) -> _Env:
    repo = UserRepository(fallback_dir=tmp_path)
    auth = AuthService(
        repo,
        AuthConfig(
            access_token_secret="access-secret",
            refresh_token_secret="refresh-secret",
            access_token_ttl_seconds=300,
            refresh_token_ttl_seconds=1200,
            issuer="todo-test",
            audience="todo-test-users",
        ),
    )
    notifier = _Notifier()
    todos = TodoService(TodoRepository(fallback_dir=tmp_path))
    service = UserService(repo, RegistrationService(repo, auth, notifier), todos)
    for user_id, name, role in (("u1", "ann", "admin"), ("u2", "bob", "user"), ("u3", "cid", "user")):
        repo.create_user(
            AuthUser(
                user_id=user_id,
                email=f"{name}@test.local",
                username=name,
                password_hash="hash",
                role=role,
                is_email_verified=True,
            )
        )
    return _Env(users=service, repo=repo, todos=todos, notifier=notifier)


def _claims(user_id: str, role: str = "user") -> AccessClaims:
    return AccessClaims(
        user_id=user_id,
        name=user_id,
        role=role,
        issuer="todo-test",
        audience="todo-test-users",
        is_email_verified=True,
    )


def test_get_me_hides_credentials(tmp_path: Path) -> None:
    env = _env(tmp_path)

    me = env.users.get_me(_claims("u2"))
    payload = me.model_dump(by_alias=True)

    assert payload["userId"] == "u2"
    assert "passwordHash" not in payload
    assert "activeRefreshTokens" not in payload


def test_get_me_for_deleted_user_is_not_found(tmp_path: Path) -> None:
    env = _env(tmp_path)
    env.repo.delete_user("u2")

    with pytest.raises(ApiError) as exc:
        env.users.get_me(_claims("u2"))

    assert exc.value.status_code == 404


def test_update_me_requires_profile(tmp_path: Path) -> None:
    env = _env(tmp_path)

    with pytest.raises(ApiError) as exc:
        env.users.update_me(_claims("u2"), ProfileUpdateRequest())
    updated = env.users.update_me(
        _claims("u2"), ProfileUpdateRequest(profile=ProfilePatch(first_name="Bob"))
    )

    assert exc.value.status_code == 400
    assert updated.profile.first_name == "Bob"
    assert updated.profile.bio == ""


def test_create_user_goes_through_registration(tmp_path: Path) -> None:
    env = _env(tmp_path)

    created = env.users.create_user(
        UserCreateRequest(username="dan", email="Dan@Test.Local", password="pw123456")
    )

    assert created.role == "user"
    assert created.is_email_verified is False
    assert env.notifier.sent == ["dan@test.local"]


def test_replace_user_requires_username_and_email(tmp_path: Path) -> None:
    env = _env(tmp_path)

    with pytest.raises(ApiError) as exc:
        env.users.replace_user("u2", UserUpdateRequest(username="bobby"))

    assert exc.value.status_code == 400


def test_patch_user_rejects_empty_body_and_conflicts(tmp_path: Path) -> None:
    env = _env(tmp_path)

    with pytest.raises(ApiError) as empty:
        env.users.patch_user("u2", UserUpdateRequest())
    with pytest.raises(ApiError) as taken:
        env.users.patch_user("u2", UserUpdateRequest(username="cid"))

    assert empty.value.status_code == 400
    assert taken.value.status_code == 409


def test_follow_and_unfollow_maintain_counts(tmp_path: Path) -> None:
    env = _env(tmp_path)

    first = env.users.follow("u2", "u3")
    again = env.users.follow("u2", "u3")
    dropped = env.users.unfollow("u2", "u3")

    assert first.followed is True
    assert first.followers_count == 1
    assert again.followed is False
    assert again.followers_count == 1
    assert dropped.followers_count == 0
    assert env.repo.get_user("u3").following == []


def test_follow_self_or_missing_user_is_rejected(tmp_path: Path) -> None:
    env = _env(tmp_path)

    with pytest.raises(ApiError) as self_follow:
        env.users.follow("u2", "u2")
    with pytest.raises(ApiError) as missing:
        env.users.follow("ghost", "u2")
    with pytest.raises(ApiError) as no_follower:
        env.users.follow("u2", None)

    assert self_follow.value.status_code == 400
    assert missing.value.status_code == 404
    assert no_follower.value.status_code == 400


def test_change_role_and_status_validate_input(tmp_path: Path) -> None:
    env = _env(tmp_path)

    promoted = env.users.change_role("u2", "admin")
    disabled = env.users.change_status("u2", False)

    assert promoted.role == "admin"
    assert disabled.is_active is False
    with pytest.raises(ApiError) as bad_role:
        env.users.change_role("u2", "root")
    with pytest.raises(ApiError) as bad_status:
        env.users.change_status("u2", None)
    assert bad_role.value.status_code == 400
    assert bad_status.value.status_code == 400


def test_profile_updates_are_limited_to_owner_or_admin(tmp_path: Path) -> None:
    env = _env(tmp_path)
    req = ProfileUpdateRequest(profile=ProfilePatch(bio="hi"))

    with pytest.raises(ApiError) as exc:
        env.users.update_profile(_claims("u3"), "u2", req)
    own = env.users.update_profile(_claims("u2"), "u2", req)
    by_admin = env.users.update_profile(
        _claims("u1", "admin"), "u2", ProfileUpdateRequest(profile=ProfilePatch(last_name="B"))
    )

    assert exc.value.status_code == 403
    assert own.profile.bio == "hi"
    assert by_admin.profile.bio == "hi"
    assert by_admin.profile.last_name == "B"


def test_delete_profile_by_stranger_is_forbidden(tmp_path: Path) -> None:
    env = _env(tmp_path)

    with pytest.raises(ApiError) as exc:
        env.users.delete_profile(_claims("u3"), "u2")
    env.users.delete_profile(_claims("u2"), "u2")

    assert exc.value.status_code == 403
    assert env.repo.get_user("u2") is None


def test_get_profile_resolves_follow_references(tmp_path: Path) -> None:
    env = _env(tmp_path)
    env.users.follow("u2", "u3")

    profile = env.users.get_profile("u2")

    assert [ref.username for ref in profile.followers] == ["cid"]
    assert profile.following == []


def test_statistics_counts_users_and_todos(tmp_path: Path) -> None:
    env = _env(tmp_path)
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    env.users.change_status("u3", False)
    env.todos.create_todo("u2", TodoWriteRequest(text="late", due_date=now - timedelta(hours=1)))
    env.todos.create_todo("u3", TodoWriteRequest(text="done", completed=True))

    stats = env.users.statistics(now).data

    assert stats.users.by_role.admin == 1
    assert stats.users.by_role.user == 2
    assert stats.users.by_status.active == 2
    assert stats.users.by_status.inactive == 1
    assert stats.todos.completed == 1
    assert stats.todos.pending == 1
    assert stats.todos.overdue == 1
    assert stats.generated_at == now.isoformat()


def test_user_todos_lists_all_todos_of_user(tmp_path: Path) -> None:
    env = _env(tmp_path)
    env.todos.create_todo("u2", TodoWriteRequest(text="one"))
    env.todos.create_todo("u2", TodoWriteRequest(text="two"))
    env.todos.create_todo("u3", TodoWriteRequest(text="other"))

    listed = env.users.user_todos("u2")

    assert sorted(t.text for t in listed.data) == ["one", "two"]
    with pytest.raises(ApiError):
        env.users.user_todos("ghost")
