"""Audit trail endpoint."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor
from voto_popular.core.dependencies import get_async_session, require_operation
from voto_popular.models.audit_log import AuditAction
from voto_popular.schemas.audit import AuditLogResponse, PaginatedAuditLogResponse
from voto_popular.schemas.common import PaginationMeta, PaginationParams
from voto_popular.services.audit_service import query_audit_logs

router = APIRouter(tags=["audit"])


@router.get("/audit.list", response_model=PaginatedAuditLogResponse)
async def list_audit_logs(
    actor: Annotated[Actor, Depends(require_operation("audit.list"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    municipality_id: str | None = Query(None, max_length=64),
    user_id: str | None = Query(None, max_length=128),
    action: AuditAction | None = Query(None),
    start_time: datetime | None = Query(None, description="Start of time range"),
    end_time: datetime | None = Query(None, description="End of time range"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedAuditLogResponse:
    """Query the audit trail, newest first."""
    logs, total = await query_audit_logs(
        session,
        actor,
        municipality_id=municipality_id,
        user_id=user_id,
        action=action,
        start_time=start_time,
        end_time=end_time,
        page=page,
        page_size=page_size,
    )
    return PaginatedAuditLogResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in logs],
        pagination=PaginationMeta.build(total, PaginationParams(page=page, page_size=page_size)),
    )
