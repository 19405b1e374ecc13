"""Municipality provisioning and theme endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.api.middleware import request_ip
from voto_popular.core.authorization import Actor
from voto_popular.core.dependencies import get_async_session, require_operation
from voto_popular.schemas.municipality import (
    MunicipalityCreateRequest,
    MunicipalityResponse,
    MunicipalityUpdateRequest,
    ThemeConfigResponse,
    ThemeUpdateRequest,
)
from voto_popular.services import municipality_service

router = APIRouter(tags=["municipalities"])


# ---------------------------------------------------------------------------
# Municipalities
# ---------------------------------------------------------------------------


@router.get("/municipalities.get", response_model=MunicipalityResponse)
async def get(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    municipality_id: str = Query(..., min_length=1, max_length=64),
) -> MunicipalityResponse:
    """Return a municipality and its branding (public)."""
    municipality = await municipality_service.get_municipality(session, municipality_id)
    return MunicipalityResponse.model_validate(municipality)


@router.get("/municipalities.list", response_model=list[MunicipalityResponse])
async def list_all(
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> list[MunicipalityResponse]:
    """List every municipality (public)."""
    municipalities = await municipality_service.list_municipalities(session)
    return [MunicipalityResponse.model_validate(m) for m in municipalities]


@router.post("/municipalities.create", response_model=MunicipalityResponse, status_code=status.HTTP_201_CREATED)
async def create(
    request: Request,
    body: MunicipalityCreateRequest,
    actor: Annotated[Actor, Depends(require_operation("municipalities.create"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MunicipalityResponse:
    """Create a municipality. Super-admin only."""
    municipality = await municipality_service.create_municipality(
        session,
        actor,
        slug=body.slug,
        name=body.name,
        branding=body.model_dump(exclude={"slug", "name"}, exclude_none=True),
        ip_address=request_ip(request),
    )
    return MunicipalityResponse.model_validate(municipality)


@router.post("/municipalities.update", response_model=MunicipalityResponse)
async def update(
    request: Request,
    body: MunicipalityUpdateRequest,
    actor: Annotated[Actor, Depends(require_operation("municipalities.update"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MunicipalityResponse:
    """Update a municipality's name, state or branding. Super-admin only."""
    municipality = await municipality_service.update_municipality(
        session,
        actor,
        body.slug,
        body.model_dump(exclude={"slug"}, exclude_unset=True),
        ip_address=request_ip(request),
    )
    return MunicipalityResponse.model_validate(municipality)


# ---------------------------------------------------------------------------
# Themes
# ---------------------------------------------------------------------------


@router.get("/themes.get", response_model=ThemeConfigResponse)
async def get_theme(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    municipality_id: str = Query(..., min_length=1, max_length=64),
) -> ThemeConfigResponse:
    """Return the theme of a municipality, or the platform defaults (public)."""
    theme = await municipality_service.get_theme_config(session, municipality_id)
    return ThemeConfigResponse.model_validate(theme)


@router.post("/themes.update", response_model=ThemeConfigResponse)
async def update_theme(
    request: Request,
    body: ThemeUpdateRequest,
    actor: Annotated[Actor, Depends(require_operation("themes.update"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ThemeConfigResponse:
    """Update a municipality's theme. Super-admin only."""
    theme = await municipality_service.update_theme_config(
        session,
        actor,
        body.municipality_id,
        body.model_dump(exclude={"municipality_id"}, exclude_unset=True),
        ip_address=request_ip(request),
    )
    return ThemeConfigResponse.model_validate(theme)
