from __future__ import annotations

import pytest

from app.core.security import (
    InvalidSignatureError,
    TokenExpiredError,
    generate_verification_token,
    hash_password,
    issue_token,
    verify_password,
    verify_token,
)


def test_issue_and_verify_token_returns_claims_with_expiry() -> None:
    token = issue_token({"userId": "u1", "role": "user"}, "secret-a", 60, now=1_000)

    payload = verify_token(token, "secret-a", now=1_030)

    assert payload["userId"] == "u1"
    assert payload["iat"] == 1_000
    assert payload["exp"] == 1_060


def test_verify_token_with_other_secret_raises_invalid_signature() -> None:
    token = issue_token({"userId": "u1"}, "secret-a", 60)

    with pytest.raises(InvalidSignatureError):
        verify_token(token, "secret-b")


def test_verify_token_past_expiry_raises_token_expired() -> None:
    token = issue_token({"userId": "u1"}, "secret-a", 60, now=1_000)

    with pytest.raises(TokenExpiredError):
        verify_token(token, "secret-a", now=1_061)


def test_expired_token_with_wrong_secret_reports_signature_first() -> None:
    token = issue_token({"userId": "u1"}, "secret-a", 60, now=1_000)

    with pytest.raises(InvalidSignatureError):
        verify_token(token, "secret-b", now=5_000)


def test_verify_token_rejects_tampered_payload() -> None:
    token = issue_token({"userId": "u1", "role": "user"}, "secret-a", 60)
    forged = issue_token({"userId": "u1", "role": "admin"}, "secret-a", 60)
    header, _, signature = token.split(".")
    tampered = ".".join([header, forged.split(".")[1], signature])

    with pytest.raises(InvalidSignatureError):
        verify_token(tampered, "secret-a")


@pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d"])
def test_verify_token_rejects_malformed_tokens(token: str) -> None:
    with pytest.raises(InvalidSignatureError):
        verify_token(token, "secret-a")


def test_password_hash_roundtrip_and_salt() -> None:
    first = hash_password("hunter2")
    second = hash_password("hunter2")

    assert first != second
    assert verify_password("hunter2", first)
    assert not verify_password("hunter3", first)
    assert not verify_password("hunter2", "not-a-hash")


def test_verification_tokens_are_long_and_unique() -> None:
    tokens = {generate_verification_token() for _ in range(20)}

    assert len(tokens) == 20
    assert all(len(token) == 64 for token in tokens)
