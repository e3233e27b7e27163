"""Registration and email verification flow."""

from __future__ import annotations

import logging
import uuid
from typing import Protocol

from app.api.errors import ApiError, ApiErrorCode, validation_error
from app.auth.models import AuthUser, RegisterRequest, TokenPair, UserProfile
from app.auth.notifications import VerificationNotifier
from app.auth.repository import UserAlreadyExistsError
from app.auth.service import AuthService
from app.core.security import generate_verification_token, hash_password

LOGGER = logging.getLogger(__name__)


class RegistrationRepository(Protocol):
    """Credential-store operations used by the registration flow."""

    def get_user_by_email(self, email: str) -> AuthUser | None:
        """Return user by normalized email."""

    def create_user(self, user: AuthUser) -> AuthUser:
        """Insert a new user."""

    def redeem_verification_token(self, token: str) -> AuthUser | None:
        """Verify the owner of ``token`` and clear it."""


class RegistrationService:
    """Creates unverified users and redeems their verification tokens."""

    def __init__(
        self,
        repo: RegistrationRepository,
        auth_service: AuthService,
        notifier: VerificationNotifier,
    ) -> None:
        self._repo = repo
        self._auth_service = auth_service
        self._notifier = notifier

    def register(self, req: RegisterRequest) -> AuthUser:
        """Create an unverified user and send its verification link."""
        email = req.email.strip().lower()
        username = req.username.strip()
        if not email or not req.password or not username:
            raise validation_error("Missing required fields")

        verification_token = generate_verification_token()
        try:
            user = self._repo.create_user(
                AuthUser(
                    user_id=uuid.uuid4().hex,
                    email=email,
                    username=username,
                    password_hash=hash_password(req.password),
                    role=req.role,
                    is_email_verified=False,
                    email_verification_token=verification_token,
                    profile=req.profile or UserProfile(),
                )
            )
        except UserAlreadyExistsError as exc:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.USER_ALREADY_EXISTS,
                message="Email or username already registered",
            ) from exc

        LOGGER.info("user_registered", extra={"user_id": user.user_id})
        self._notifier.send_verification(email=user.email, token=verification_token)
        return user

    def verify_email(self, token: str | None) -> AuthUser:
        """Redeem a verification token; each token works exactly once."""
        if not token or not token.strip():
            raise validation_error("Token is required")
        user = self._repo.redeem_verification_token(token.strip())
        if user is None:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.AUTH_TOKEN_INVALID,
                message="Invalid token",
            )
        LOGGER.info("email_verified", extra={"user_id": user.user_id})
        return user

    def resend_verification(self, email: str) -> TokenPair:
        """Issue tokens for the current state and re-send the pending link.

        Tokens are handed out even while the email is unverified; the access
        guard keeps rejecting them until verification completes.
        """
        user = self._repo.get_user_by_email(email) if email.strip() else None
        if user is None:
            raise ApiError(
                status_code=404,
                error_code=ApiErrorCode.USER_NOT_FOUND,
                message="User not found",
            )
        if not user.is_active:
            LOGGER.info("resend_verification_rejected", extra={"user_id": user.user_id})
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
                message="Invalid credentials",
            )
        if not user.is_email_verified and user.email_verification_token:
            self._notifier.send_verification(
                email=user.email, token=user.email_verification_token
            )
        return self._auth_service.issue_token_pair(user)
