"""Access control guard: bearer authentication and role gates.

``AccessGuard.current_user`` is the only source of request identity. Role
gates depend on it, so FastAPI always resolves authentication first and a
failure at any step stops the request before the route body runs.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header

from app.api.errors import ApiError, ApiErrorCode, forbidden
from app.auth.models import AccessClaims, Role
from app.auth.service import AuthService


def extract_bearer_token(authorization: str | None) -> str:
    """Extract bearer token from Authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def check_role(claims: AccessClaims | None, expected: Role) -> AccessClaims:
    """Return ``claims`` when they carry ``expected`` role."""
    if claims is None:
        raise ApiError(
            status_code=401,
            error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
            message="Authentication required",
        )
    if claims.role != expected:
        raise forbidden("Insufficient role")
    return claims


class AccessGuard:
    """FastAPI dependency provider bound to an ``AuthService``."""

    def __init__(self, service: AuthService) -> None:
        self._service = service

    def current_user(
        self, authorization: str | None = Header(default=None)
    ) -> AccessClaims:
        """Authenticate the request bearer token."""
        token = extract_bearer_token(authorization)
        if not token:
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
                message="Missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return self._service.authenticate(token)

    def require_role(self, expected: Role) -> Callable[..., AccessClaims]:
        """Build a dependency admitting only ``expected`` role."""

        def role_dependency(
            claims: AccessClaims = Depends(self.current_user),
        ) -> AccessClaims:
            return check_role(claims, expected)

        role_dependency.__name__ = f"require_role_{expected}"
        return role_dependency
