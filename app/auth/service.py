"""Session management: login, refresh rotation, logout, token authentication."""

from __future__ import annotations

import logging
import uuid
from typing import Protocol

from app.api.errors import ApiError, ApiErrorCode, forbidden
from app.auth.models import AccessClaims, AuthUser, TokenPair, TokenType
from app.core.config import AuthConfig
from app.core.security import (
    TokenExpiredError,
    TokenVerificationError,
    hash_password,
    issue_token,
    verify_password,
    verify_token,
)

LOGGER = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Credential-store operations used by the session manager."""

    def get_user(self, user_id: str) -> AuthUser | None:
        """Return user by id."""

    def get_user_by_email(self, email: str) -> AuthUser | None:
        """Return user by normalized email."""

    def find_by_credential(
        self, *, email: str | None = None, username: str | None = None
    ) -> AuthUser | None:
        """Return first user matching email or username."""

    def create_user(self, user: AuthUser) -> AuthUser:
        """Insert a new user."""

    def add_active_refresh_token(self, user_id: str, token: str) -> bool:
        """Append refresh token to the user's active set."""

    def rotate_refresh_token(self, user_id: str, old_token: str, new_token: str) -> bool:
        """Swap an active refresh token for a new one."""

    def remove_active_refresh_token(self, token: str) -> AuthUser | None:
        """Remove refresh token from its owner's active set."""


def _invalid_credentials() -> ApiError:
    return ApiError(
        status_code=401,
        error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
        message="Invalid credentials",
    )


def _missing_refresh_token() -> ApiError:
    return ApiError(
        status_code=401,
        error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
        message="Refresh token is required",
    )


class AuthService:
    """Issues, rotates and authenticates access/refresh tokens."""

    def __init__(self, repo: SessionRepository, config: AuthConfig) -> None:
        """Initialize service dependencies."""
        self._repo = repo
        self._config = config

    def bootstrap_admin_user(self) -> None:
        """Ensure bootstrap admin user exists from configured values."""
        if not self._config.bootstrap_admin_enabled:
            return
        if self._repo.get_user_by_email(self._config.admin_email) is not None:
            return

        self._repo.create_user(
            AuthUser(
                user_id=uuid.uuid4().hex,
                email=self._config.admin_email,
                username=self._config.admin_username,
                password_hash=hash_password(self._config.admin_password),
                role="admin",
                is_email_verified=True,
            )
        )
        LOGGER.info("bootstrap_admin_created")

    # Issuance

    def claims_for_user(self, user: AuthUser) -> AccessClaims:
        """Build the identity claims carried by tokens for ``user``."""
        return AccessClaims(
            user_id=user.user_id,
            name=user.username,
            role=user.role,
            issuer=self._config.issuer,
            audience=self._config.audience,
            is_email_verified=bool(user.is_email_verified),
        )

    def _encode(self, claims: AccessClaims, token_type: TokenType) -> str:
        if token_type == "refresh":
            # Verification state belongs to access tokens only.
            claims = claims.model_copy(update={"is_email_verified": None})
        payload = claims.to_token_claims(token_type)
        # Unique id keeps two tokens minted in the same second distinct.
        payload["jti"] = uuid.uuid4().hex
        if token_type == "access":
            return issue_token(
                payload,
                self._config.access_token_secret,
                self._config.access_token_ttl_seconds,
            )
        return issue_token(
            payload,
            self._config.refresh_token_secret,
            self._config.refresh_token_ttl_seconds,
        )

    def issue_token_pair(self, user: AuthUser) -> TokenPair:
        """Issue both tokens for ``user`` and record the refresh token."""
        claims = self.claims_for_user(user)
        pair = TokenPair(
            access_token=self._encode(claims, "access"),
            refresh_token=self._encode(claims, "refresh"),
        )
        if not self._repo.add_active_refresh_token(user.user_id, pair.refresh_token):
            raise ApiError(
                status_code=404,
                error_code=ApiErrorCode.USER_NOT_FOUND,
                message="User not found",
            )
        return pair

    # Session operations

    def login(
        self,
        *,
        password: str,
        email: str | None = None,
        username: str | None = None,
    ) -> TokenPair:
        """Authenticate by email or username and issue a token pair."""
        user = self._repo.find_by_credential(email=email, username=username)
        if user is None or not user.is_active:
            LOGGER.info("login_failed")
            raise _invalid_credentials()
        if not verify_password(password or "", user.password_hash):
            LOGGER.info("login_failed", extra={"user_id": user.user_id})
            raise _invalid_credentials()

        pair = self.issue_token_pair(user)
        LOGGER.info("login_succeeded", extra={"user_id": user.user_id})
        return pair

    def refresh(self, refresh_token: str | None) -> TokenPair:
        """Consume ``refresh_token`` and return a rotated token pair."""
        if not refresh_token:
            raise _missing_refresh_token()
        try:
            payload = verify_token(refresh_token, self._config.refresh_token_secret)
        except TokenVerificationError as exc:
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_TOKEN_INVALID,
                message="Invalid refresh token",
            ) from exc

        user_id = str(payload.get("userId") or "")
        user = self._repo.get_user(user_id) if user_id else None
        if user is None or not user.is_active:
            raise forbidden("Refresh token owner not found")
        if refresh_token not in user.active_refresh_tokens:
            LOGGER.warning("refresh_token_reuse_rejected", extra={"user_id": user_id})
            raise forbidden("Refresh token is not active")

        claims = self.claims_for_user(user)
        new_refresh_token = self._encode(claims, "refresh")
        if not self._repo.rotate_refresh_token(user_id, refresh_token, new_refresh_token):
            # Lost a race with a concurrent rotation or logout of the same token.
            LOGGER.warning("refresh_token_reuse_rejected", extra={"user_id": user_id})
            raise forbidden("Refresh token is not active")

        LOGGER.info("refresh_token_rotated", extra={"user_id": user_id})
        return TokenPair(
            access_token=self._encode(claims, "access"),
            refresh_token=new_refresh_token,
        )

    def logout(self, refresh_token: str | None) -> None:
        """Remove ``refresh_token`` from its owner's active set."""
        if not refresh_token:
            raise _missing_refresh_token()
        owner = self._repo.remove_active_refresh_token(refresh_token)
        if owner is None:
            raise forbidden("Refresh token is not active")
        LOGGER.info("logout_completed", extra={"user_id": owner.user_id})

    # Authentication

    def authenticate(self, token: str) -> AccessClaims:
        """Verify an access token and return trusted, verified claims."""
        try:
            payload = verify_token(token, self._config.access_token_secret)
        except TokenExpiredError as exc:
            raise ApiError(
                status_code=403,
                error_code=ApiErrorCode.AUTH_TOKEN_EXPIRED,
                message="Invalid or expired token",
            ) from exc
        except TokenVerificationError as exc:
            raise ApiError(
                status_code=403,
                error_code=ApiErrorCode.AUTH_TOKEN_INVALID,
                message="Invalid or expired token",
            ) from exc

        claims = AccessClaims.from_token_claims(payload)
        if (
            claims.issuer != self._config.issuer
            or claims.audience != self._config.audience
            or payload.get("type") != "access"
            or not claims.user_id
        ):
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_TOKEN_CLAIMS_INVALID,
                message="Invalid token claims",
            )
        if not claims.is_email_verified:
            raise ApiError(
                status_code=403,
                error_code=ApiErrorCode.AUTH_EMAIL_NOT_VERIFIED,
                message="Email not verified",
            )
        return claims
