"""Identity synchronisation and profile endpoints.

POST /auth.sync, GET /auth.me, POST /auth.update_profile.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.api.middleware import request_ip
from voto_popular.core.authorization import Actor
from voto_popular.core.dependencies import (
    get_antifraud_policy,
    get_async_session,
    get_bearer_token,
    get_identity_verifier,
    require_operation,
)
from voto_popular.core.errors import UnauthenticatedError
from voto_popular.core.identity import IdentityVerificationError, IdentityVerifier
from voto_popular.schemas.auth import ProfileUpdateRequest, SyncResponse, UserResponse
from voto_popular.services import auth_service
from voto_popular.services.antifraud_service import AntifraudPolicy

router = APIRouter(tags=["auth"])


@router.post("/auth.sync", response_model=SyncResponse)
async def sync(
    request: Request,
    token: Annotated[str | None, Depends(get_bearer_token)],
    verifier: Annotated[IdentityVerifier, Depends(get_identity_verifier)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    policy: Annotated[AntifraudPolicy, Depends(get_antifraud_policy)],
) -> SyncResponse:
    """Create or refresh the caller's user record from a verified identity token."""
    ip_address = request_ip(request)
    if token is None:
        raise UnauthenticatedError("Identity token required")
    try:
        identity = await verifier.verify(token)
    except IdentityVerificationError as e:
        await auth_service.record_failed_sync(session, token, policy=policy, ip_address=ip_address)
        raise UnauthenticatedError("Invalid identity token") from e

    user, created = await auth_service.sync_user(session, identity, policy=policy, ip_address=ip_address)
    return SyncResponse(user=UserResponse.from_user(user), created=created)


@router.get("/auth.me", response_model=UserResponse)
async def me(
    actor: Annotated[Actor, Depends(require_operation("auth.me"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> UserResponse:
    """Return the current user's record."""
    user = await auth_service.get_current_user(session, actor)
    return UserResponse.from_user(user)


@router.post("/auth.update_profile", response_model=UserResponse)
async def update_profile(
    request: Request,
    body: ProfileUpdateRequest,
    actor: Annotated[Actor, Depends(require_operation("auth.update_profile"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    policy: Annotated[AntifraudPolicy, Depends(get_antifraud_policy)],
) -> UserResponse:
    """Update the caller's own profile. Only provided fields change."""
    user = await auth_service.update_profile(
        session,
        actor,
        body.model_dump(exclude_unset=True),
        policy=policy,
        ip_address=request_ip(request),
    )
    return UserResponse.from_user(user)
