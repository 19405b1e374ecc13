"""Proposal endpoints: submission, public browsing, and moderation."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.api.middleware import request_ip
from voto_popular.core.authorization import Actor, scope_municipality
from voto_popular.core.dependencies import get_async_session, require_operation
from voto_popular.models.proposal import ProposalStatus
from voto_popular.schemas.common import PaginationMeta, PaginationParams
from voto_popular.schemas.proposal import (
    PaginatedProposalResponse,
    ProposalCreateRequest,
    ProposalModerationRequest,
    ProposalRejectRequest,
    ProposalResponse,
    ProposalStatsResponse,
    ProposalStatusEnum,
)
from voto_popular.services import proposal_service

router = APIRouter(tags=["proposals"])


def _paginated(proposals: list, total: int, page: int, page_size: int) -> PaginatedProposalResponse:
    return PaginatedProposalResponse(
        items=[ProposalResponse.model_validate(p) for p in proposals],
        pagination=PaginationMeta.build(total, PaginationParams(page=page, page_size=page_size)),
    )


def _status(value: ProposalStatusEnum | None) -> ProposalStatus | None:
    return ProposalStatus(value.value) if value is not None else None


# ---------------------------------------------------------------------------
# Submission and browsing
# ---------------------------------------------------------------------------


@router.post("/proposals.create", response_model=ProposalResponse, status_code=status.HTTP_201_CREATED)
async def create(
    request: Request,
    body: ProposalCreateRequest,
    actor: Annotated[Actor, Depends(require_operation("proposals.create"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ProposalResponse:
    """Submit a proposal in the author's municipality."""
    proposal = await proposal_service.create_proposal(
        session,
        actor,
        title=body.title,
        description=body.description,
        ip_address=request_ip(request),
    )
    return ProposalResponse.model_validate(proposal)


@router.get("/proposals.list_approved", response_model=PaginatedProposalResponse)
async def list_approved(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    municipality_id: str = Query(..., min_length=1, max_length=64),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedProposalResponse:
    """List approved proposals of one municipality (public)."""
    proposals, total = await proposal_service.list_for_citizens(
        session, municipality_id, page=page, page_size=page_size
    )
    return _paginated(proposals, total, page, page_size)


@router.get("/proposals.get", response_model=ProposalResponse)
async def get(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    proposal_id: str = Query(..., min_length=1, max_length=40),
) -> ProposalResponse:
    """Return an approved proposal (public)."""
    proposal = await proposal_service.get_public_proposal(session, proposal_id)
    return ProposalResponse.model_validate(proposal)


@router.get("/proposals.list_mine", response_model=PaginatedProposalResponse)
async def list_mine(
    actor: Annotated[Actor, Depends(require_operation("proposals.list_mine"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    proposal_status: ProposalStatusEnum | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedProposalResponse:
    """List the caller's own proposals in any status."""
    proposals, total = await proposal_service.list_mine(
        session, actor, status=_status(proposal_status), page=page, page_size=page_size
    )
    return _paginated(proposals, total, page, page_size)


@router.get("/proposals.list_for_admin", response_model=PaginatedProposalResponse)
async def list_for_admin(
    actor: Annotated[Actor, Depends(require_operation("proposals.list_for_admin"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    municipality_id: str | None = Query(None, max_length=64),
    proposal_status: ProposalStatusEnum | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedProposalResponse:
    """List every proposal of the administrator's municipality."""
    proposals, total = await proposal_service.list_for_admin(
        session,
        actor,
        municipality_id=municipality_id,
        status=_status(proposal_status),
        page=page,
        page_size=page_size,
    )
    return _paginated(proposals, total, page, page_size)


@router.get("/proposals.stats", response_model=ProposalStatsResponse)
async def stats(
    actor: Annotated[Actor, Depends(require_operation("proposals.stats"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    municipality_id: str | None = Query(None, max_length=64),
) -> ProposalStatsResponse:
    """Count proposals per status for the administrator's municipality."""
    counts = await proposal_service.proposal_stats(session, actor, municipality_id=municipality_id)
    return ProposalStatsResponse(municipality_id=scope_municipality(actor, municipality_id), **counts)


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


@router.post("/proposals.approve", response_model=ProposalResponse)
async def approve(
    request: Request,
    body: ProposalModerationRequest,
    actor: Annotated[Actor, Depends(require_operation("proposals.approve"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ProposalResponse:
    """Approve a pending proposal, opening it for votes."""
    proposal = await proposal_service.approve_proposal(
        session,
        actor,
        body.proposal_id,
        asserted_municipality_id=body.municipality_id,
        ip_address=request_ip(request),
    )
    return ProposalResponse.model_validate(proposal)


@router.post("/proposals.reject", response_model=ProposalResponse)
async def reject(
    request: Request,
    body: ProposalRejectRequest,
    actor: Annotated[Actor, Depends(require_operation("proposals.reject"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ProposalResponse:
    """Reject a pending proposal with an optional reason."""
    proposal = await proposal_service.reject_proposal(
        session,
        actor,
        body.proposal_id,
        reason=body.reason,
        asserted_municipality_id=body.municipality_id,
        ip_address=request_ip(request),
    )
    return ProposalResponse.model_validate(proposal)


@router.post("/proposals.archive", response_model=ProposalResponse)
async def archive(
    request: Request,
    body: ProposalModerationRequest,
    actor: Annotated[Actor, Depends(require_operation("proposals.archive"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ProposalResponse:
    """Archive a proposal."""
    proposal = await proposal_service.archive_proposal(
        session,
        actor,
        body.proposal_id,
        asserted_municipality_id=body.municipality_id,
        ip_address=request_ip(request),
    )
    return ProposalResponse.model_validate(proposal)
