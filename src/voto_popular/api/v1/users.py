"""User administration endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.api.middleware import request_ip
from voto_popular.core.authorization import Actor
from voto_popular.core.dependencies import get_async_session, require_operation
from voto_popular.core.roles import Role
from voto_popular.schemas.auth import UserResponse
from voto_popular.schemas.common import PaginationMeta, PaginationParams
from voto_popular.schemas.user import AssignRoleRequest, PaginatedUserResponse
from voto_popular.services import user_service

router = APIRouter(tags=["users"])


@router.get("/users.list", response_model=PaginatedUserResponse)
async def list_users(
    actor: Annotated[Actor, Depends(require_operation("users.list"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    municipality_id: str | None = Query(None, max_length=64),
    role: Role | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedUserResponse:
    """List users of the administrator's municipality."""
    users, total = await user_service.list_users(
        session, actor, municipality_id=municipality_id, role=role, page=page, page_size=page_size
    )
    return PaginatedUserResponse(
        items=[UserResponse.from_user(u) for u in users],
        pagination=PaginationMeta.build(total, PaginationParams(page=page, page_size=page_size)),
    )


@router.post("/users.assign_role", response_model=UserResponse)
async def assign_role(
    request: Request,
    body: AssignRoleRequest,
    actor: Annotated[Actor, Depends(require_operation("users.assign_role"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> UserResponse:
    """Change another user's role and municipality binding."""
    user = await user_service.assign_role(
        session,
        actor,
        body.user_id,
        body.role,
        municipality_id=body.municipality_id,
        ip_address=request_ip(request),
    )
    return UserResponse.from_user(user)
