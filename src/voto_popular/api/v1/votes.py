"""Voting endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.api.middleware import request_ip
from voto_popular.core.authorization import Actor
from voto_popular.core.dependencies import get_async_session, get_current_actor, require_operation
from voto_popular.schemas.vote import HasVotedResponse, MyVotesResponse, VoteRequest, VoteResponse
from voto_popular.services import vote_service

router = APIRouter(tags=["votes"])


@router.post("/votes.cast", response_model=VoteResponse)
async def cast(
    request: Request,
    body: VoteRequest,
    actor: Annotated[Actor, Depends(require_operation("votes.cast"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> VoteResponse:
    """Vote on an approved proposal of the caller's municipality. One vote per citizen."""
    _, proposal = await vote_service.cast_vote(session, actor, body.proposal_id, ip_address=request_ip(request))
    return VoteResponse(proposal_id=proposal.public_id, vote_count=proposal.vote_count, has_voted=True)


@router.get("/votes.has_voted", response_model=HasVotedResponse)
async def has_voted(
    actor: Annotated[Actor, Depends(get_current_actor)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    proposal_id: str = Query(..., min_length=1, max_length=40),
) -> HasVotedResponse:
    """Whether the caller has voted on a proposal. False for anonymous callers."""
    voted = await vote_service.has_voted(session, actor, proposal_id)
    return HasVotedResponse(proposal_id=proposal_id, has_voted=voted)


@router.get("/votes.list_mine", response_model=MyVotesResponse)
async def list_mine(
    actor: Annotated[Actor, Depends(require_operation("votes.list_mine"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MyVotesResponse:
    """List public ids of proposals the caller voted on."""
    return MyVotesResponse(proposal_ids=await vote_service.list_my_votes(session, actor))
