"""Authentication API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import PlainTextResponse

from app.api.contracts import ApiErrorResponse, HealthResponse, UserEnvelope, UserResponse
from app.auth.guard import AccessGuard
from app.auth.models import (
    AccessClaims,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    ResendVerificationRequest,
    TokenPair,
)
from app.auth.registration import RegistrationService
from app.auth.service import AuthService
from app.users.models import ProfileUpdateRequest
from app.users.service import UserService


def create_auth_router(
    service: AuthService,
    registration: RegistrationService,
    users: UserService,
    guard: AccessGuard,
) -> APIRouter:
    """Build authentication router with session, verification and me endpoints."""
    router = APIRouter(tags=["auth"])

    @router.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @router.post(
        "/api/auth/register",
        response_model=UserResponse,
        status_code=201,
        responses={400: {"model": ApiErrorResponse}, 409: {"model": ApiErrorResponse}},
    )
    def register(req: RegisterRequest) -> UserResponse:
        """Create an unverified user and send its verification link."""
        return UserResponse.from_user(registration.register(req))

    @router.get(
        "/api/auth/verify-email",
        response_class=PlainTextResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def verify_email(token: str | None = Query(default=None)) -> PlainTextResponse:
        registration.verify_email(token)
        return PlainTextResponse("Email verified successfully")

    @router.post(
        "/api/auth/resend-verification",
        response_model=TokenPair,
        responses={404: {"model": ApiErrorResponse}},
    )
    def resend_verification(req: ResendVerificationRequest) -> TokenPair:
        return registration.resend_verification(req.email.strip().lower())

    @router.post(
        "/api/auth/login",
        response_model=TokenPair,
        responses={401: {"model": ApiErrorResponse}},
    )
    def login(req: LoginRequest) -> TokenPair:
        """Authenticate user by email or username and return token pair."""
        return service.login(password=req.password, email=req.email, username=req.username)

    @router.post(
        "/api/auth/refresh",
        response_model=TokenPair,
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
    )
    def refresh(req: RefreshRequest) -> TokenPair:
        """Rotate refresh token and issue new session tokens."""
        return service.refresh(req.refresh_token)

    @router.post(
        "/api/auth/logout",
        status_code=204,
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
    )
    def logout(req: LogoutRequest) -> Response:
        """Invalidate supplied refresh token."""
        service.logout(req.refresh_token)
        return Response(status_code=204)

    @router.get(
        "/api/me",
        response_model=UserEnvelope,
        responses={401: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def me(claims: AccessClaims = Depends(guard.current_user)) -> UserEnvelope:
        """Return the stored record of the authenticated user."""
        return UserEnvelope(data=users.get_me(claims))

    @router.patch(
        "/api/me",
        response_model=UserEnvelope,
        responses={400: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def update_me(
        req: ProfileUpdateRequest, claims: AccessClaims = Depends(guard.current_user)
    ) -> UserEnvelope:
        return UserEnvelope(data=users.update_me(claims, req))

    return router
