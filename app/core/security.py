"""Token codec and password hashing primitives.

Tokens are compact three-part strings (``header.payload.signature``) signed
with HMAC-SHA256. Access and refresh tokens use separate secrets; the codec
itself only knows about signatures and expiry, claim semantics live in
``app.auth.service``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import secrets
import time
from typing import Any

PASSWORD_HASH_ALGORITHM = "pbkdf2_sha256"
PASSWORD_HASH_ROUNDS = 120_000
VERIFICATION_TOKEN_BYTES = 32

_TOKEN_HEADER = {"alg": "HS256", "typ": "JWT"}


class TokenVerificationError(ValueError):
    """Base error for tokens that cannot be trusted."""


class InvalidSignatureError(TokenVerificationError):
    """Raised when a token is malformed or its signature does not match."""


class TokenExpiredError(TokenVerificationError):
    """Raised when a correctly signed token is past its expiry."""


def _b64url_encode(raw: bytes) -> str:
    """Return URL-safe base64 string without padding."""
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    """Decode URL-safe base64 string with optional missing padding."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def _sign(signing_input: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()


def hash_password(password: str) -> str:
    """Hash password using PBKDF2-HMAC-SHA256 with random salt."""
    salt = os.urandom(16)
    derived = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, PASSWORD_HASH_ROUNDS
    )
    return (
        f"{PASSWORD_HASH_ALGORITHM}${PASSWORD_HASH_ROUNDS}$"
        f"{_b64url_encode(salt)}${_b64url_encode(derived)}"
    )


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify password against a stored PBKDF2 hash."""
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != PASSWORD_HASH_ALGORITHM:
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
    except (ValueError, TypeError, AttributeError):
        return False

    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(derived, expected)


def generate_verification_token() -> str:
    """Return a random single-use email verification token (hex)."""
    return secrets.token_hex(VERIFICATION_TOKEN_BYTES)


def issue_token(
    claims: dict[str, Any],
    secret: str,
    ttl_seconds: int,
    *,
    now: int | None = None,
) -> str:
    """Sign ``claims`` with ``secret`` adding ``iat`` and ``exp`` fields."""
    issued_at = int(time.time()) if now is None else int(now)
    payload = dict(claims)
    payload["iat"] = issued_at
    payload["exp"] = issued_at + int(ttl_seconds)

    header_part = _b64url_encode(
        json.dumps(_TOKEN_HEADER, separators=(",", ":")).encode("utf-8")
    )
    payload_part = _b64url_encode(
        json.dumps(payload, separators=(",", ":")).encode("utf-8")
    )
    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    signature_part = _b64url_encode(_sign(signing_input, secret))
    return f"{header_part}.{payload_part}.{signature_part}"


def verify_token(token: str, secret: str, *, now: int | None = None) -> dict[str, Any]:
    """Verify signature, then expiry, and return the decoded claims.

    Raises ``InvalidSignatureError`` for malformed or foreign-signed tokens
    and ``TokenExpiredError`` once ``now`` is past ``exp``.
    """
    try:
        header_part, payload_part, signature_part = token.split(".")
        got_sig = _b64url_decode(signature_part)
    except (ValueError, AttributeError) as exc:
        raise InvalidSignatureError("Malformed token") from exc

    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    if not hmac.compare_digest(_sign(signing_input, secret), got_sig):
        raise InvalidSignatureError("Invalid token signature")

    try:
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except ValueError as exc:
        raise InvalidSignatureError("Invalid token payload") from exc
    if not isinstance(payload, dict):
        raise InvalidSignatureError("Invalid token payload")

    current = int(time.time()) if now is None else int(now)
    try:
        exp = int(payload.get("exp") or 0)
    except (TypeError, ValueError) as exc:
        raise InvalidSignatureError("Invalid token expiry") from exc
    if not exp or current > exp:
        raise TokenExpiredError("Token expired")

    return payload
