"""Complaint endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.api.middleware import request_ip
from voto_popular.core.authorization import Actor
from voto_popular.core.dependencies import get_async_session, require_operation
from voto_popular.models.complaint import ComplaintStatus
from voto_popular.schemas.common import PaginationMeta, PaginationParams
from voto_popular.schemas.complaint import (
    ComplaintResponse,
    ComplaintStatusRequest,
    ComplaintSubmitRequest,
    PaginatedComplaintResponse,
)
from voto_popular.services import complaint_service

router = APIRouter(tags=["complaints"])


@router.post("/complaints.submit", response_model=ComplaintResponse, status_code=status.HTTP_201_CREATED)
async def submit(
    body: ComplaintSubmitRequest,
    actor: Annotated[Actor, Depends(require_operation("complaints.submit"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ComplaintResponse:
    """Submit a complaint."""
    complaint = await complaint_service.submit_complaint(session, actor, body.complaint_text)
    return ComplaintResponse.model_validate(complaint)


@router.get("/complaints.list", response_model=PaginatedComplaintResponse)
async def list_complaints(
    actor: Annotated[Actor, Depends(require_operation("complaints.list"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    municipality_id: str | None = Query(None, max_length=64),
    complaint_status: ComplaintStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedComplaintResponse:
    """List complaints for triage."""
    complaints, total = await complaint_service.list_complaints(
        session,
        actor,
        municipality_id=municipality_id,
        status=complaint_status,
        page=page,
        page_size=page_size,
    )
    return PaginatedComplaintResponse(
        items=[ComplaintResponse.model_validate(c) for c in complaints],
        pagination=PaginationMeta.build(total, PaginationParams(page=page, page_size=page_size)),
    )


@router.post("/complaints.update_status", response_model=ComplaintResponse)
async def update_status(
    request: Request,
    body: ComplaintStatusRequest,
    actor: Annotated[Actor, Depends(require_operation("complaints.update_status"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ComplaintResponse:
    """Move a complaint to another triage status."""
    complaint = await complaint_service.update_complaint_status(
        session,
        actor,
        body.complaint_id,
        body.status,
        asserted_municipality_id=body.municipality_id,
        ip_address=request_ip(request),
    )
    return ComplaintResponse.model_validate(complaint)
