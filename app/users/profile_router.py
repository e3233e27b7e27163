"""FastAPI router for public profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from app.api.contracts import ApiErrorResponse, FollowResponse, ProfileEnvelope, UserEnvelope
from app.auth.guard import AccessGuard
from app.auth.models import AccessClaims
from app.users.models import FollowRequest, ProfileUpdateRequest, UserCreateRequest
from app.users.service import UserService

_ERRORS = {
    400: {"model": ApiErrorResponse},
    403: {"model": ApiErrorResponse},
    404: {"model": ApiErrorResponse},
}


def create_profile_router(service: UserService, guard: AccessGuard) -> APIRouter:
    """Build profile router; follow edges may only be changed by admins."""
    router = APIRouter(prefix="/api/profile", tags=["profile"], responses=_ERRORS)
    require_admin = guard.require_role("admin")

    @router.get("", response_model=ProfileEnvelope)
    def own_profile(claims: AccessClaims = Depends(guard.current_user)) -> ProfileEnvelope:
        return ProfileEnvelope(data=service.get_profile(claims.user_id))

    @router.get("/{user_id}", response_model=ProfileEnvelope)
    def get_profile(
        user_id: str, _: AccessClaims = Depends(guard.current_user)
    ) -> ProfileEnvelope:
        return ProfileEnvelope(data=service.get_profile(user_id))

    @router.post("", response_model=UserEnvelope, status_code=201)
    def create_profile(
        req: UserCreateRequest, _: AccessClaims = Depends(guard.current_user)
    ) -> UserEnvelope:
        """Create a user together with its profile block."""
        return UserEnvelope(data=service.create_user(req))

    @router.put("/{user_id}", response_model=ProfileEnvelope)
    def replace_profile(
        user_id: str,
        req: ProfileUpdateRequest,
        claims: AccessClaims = Depends(guard.current_user),
    ) -> ProfileEnvelope:
        return ProfileEnvelope(data=service.update_profile(claims, user_id, req))

    @router.patch("/{user_id}", response_model=ProfileEnvelope)
    def patch_profile(
        user_id: str,
        req: ProfileUpdateRequest,
        claims: AccessClaims = Depends(guard.current_user),
    ) -> ProfileEnvelope:
        return ProfileEnvelope(data=service.update_profile(claims, user_id, req))

    @router.delete("/{user_id}", status_code=204)
    def delete_profile(
        user_id: str, claims: AccessClaims = Depends(guard.current_user)
    ) -> Response:
        service.delete_profile(claims, user_id)
        return Response(status_code=204)

    @router.post("/{user_id}/follow", response_model=FollowResponse)
    def follow(
        user_id: str, req: FollowRequest, _: AccessClaims = Depends(require_admin)
    ) -> FollowResponse:
        return service.follow(user_id, req.user_id)

    @router.post("/{user_id}/unfollow", response_model=FollowResponse)
    def unfollow(
        user_id: str, req: FollowRequest, _: AccessClaims = Depends(require_admin)
    ) -> FollowResponse:
        return service.unfollow(user_id, req.user_id)

    return router
