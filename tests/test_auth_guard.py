from __future__ import annotations

import pytest

from app.api.errors import ApiError
from app.auth.guard import check_role, extract_bearer_token
from app.auth.models import AccessClaims


def _claims(role: str) -> AccessClaims:
    return AccessClaims(
        user_id="u1",
        name="ann",
        role=role,
        issuer="todo-test",
        audience="todo-test-users",
        is_email_verified=True,
    )


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc", "abc"),
        ("bearer  abc ", "abc"),
        ("Basic abc", ""),
        ("Bearer", ""),
        (None, ""),
    ],
)
def test_extract_bearer_token(header: str | None, expected: str) -> None:
    assert extract_bearer_token(header) == expected


def test_check_role_without_identity_is_unauthorized() -> None:
    with pytest.raises(ApiError) as exc:
        check_role(None, "admin")

    assert exc.value.status_code == 401


def test_check_role_mismatch_is_forbidden() -> None:
    with pytest.raises(ApiError) as exc:
        check_role(_claims("user"), "admin")

    assert exc.value.status_code == 403


def test_check_role_match_returns_claims() -> None:
    claims = _claims("admin")

    assert check_role(claims, "admin") is claims
