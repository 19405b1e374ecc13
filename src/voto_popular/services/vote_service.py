"""Voting ledger service.

A citizen votes at most once per proposal. The lookup before insert gives
a friendly CONFLICT in the common case; the unique constraint on
(citizen_id, proposal_id) is what actually guarantees it, including for
concurrent double submissions. The vote insert and the counter increment
commit together.
"""

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor, authorize
from voto_popular.core.errors import ConflictError, ForbiddenError, NotFoundError, NotOpenForVotingError
from voto_popular.core.logging import security_logger
from voto_popular.models.audit_log import AuditAction
from voto_popular.models.proposal import Proposal, ProposalStatus
from voto_popular.models.vote import Vote
from voto_popular.services.audit_service import record_event
from voto_popular.services.proposal_service import get_by_public_id

ALREADY_VOTED = "You have already voted on this proposal"


async def _find_vote(session: AsyncSession, citizen_id: str, proposal: Proposal) -> Vote | None:
    result = await session.execute(
        select(Vote).where(Vote.citizen_id == citizen_id, Vote.proposal_id == proposal.id)
    )
    return result.scalar_one_or_none()


async def cast_vote(
    session: AsyncSession,
    actor: Actor,
    public_id: str,
    *,
    ip_address: str | None = None,
) -> tuple[Vote, Proposal]:
    """Record the actor's vote on a proposal.

    Args:
        session: The database session.
        actor: The voting citizen.
        public_id: Public id of the proposal.
        ip_address: Source address for the audit trail.

    Returns:
        Tuple of (the new Vote, the Proposal with its updated count).

    Raises:
        NotFoundError: If the proposal does not exist.
        ForbiddenError: If it belongs to another municipality.
        NotOpenForVotingError: If it is not approved.
        ConflictError: If the actor already voted on it.
    """
    authorize(actor, "votes.cast")
    proposal = await get_by_public_id(session, public_id)
    if proposal is None:
        raise NotFoundError("Proposal not found")

    if actor.municipality_id is None or actor.municipality_id != proposal.municipality_id:
        security_logger.warning(f"User {actor.user_id} tried to vote on {public_id} outside their municipality")
        raise ForbiddenError()

    if proposal.status != ProposalStatus.APPROVED:
        raise NotOpenForVotingError()

    if await _find_vote(session, actor.user_id, proposal) is not None:
        raise ConflictError(ALREADY_VOTED)

    vote = Vote(
        proposal_id=proposal.id,
        citizen_id=actor.user_id,
        municipality_id=proposal.municipality_id,
    )
    session.add(vote)
    try:
        await session.flush()
        result = await session.execute(
            update(Proposal)
            .where(Proposal.id == proposal.id, Proposal.status == ProposalStatus.APPROVED)
            .values(vote_count=Proposal.vote_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Moderated away between the status check and the increment.
            await session.rollback()
            raise NotOpenForVotingError()
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.info(f"Duplicate vote by {actor.user_id} on {public_id} rejected by constraint")
        raise ConflictError(ALREADY_VOTED) from e

    await session.refresh(proposal)
    logger.info(f"User {actor.user_id} voted on {public_id} (count={proposal.vote_count})")
    await record_event(
        session,
        action=AuditAction.VOTE_CAST,
        user_id=actor.user_id,
        municipality_id=proposal.municipality_id,
        details=f"Vote on {public_id}",
        ip_address=ip_address,
    )
    return vote, proposal


async def has_voted(session: AsyncSession, actor: Actor, public_id: str) -> bool:
    """Whether the actor has voted on a proposal.

    Advisory only: anonymous actors, actors without a usable role and
    unknown proposals all yield False instead of an error. Roles rank
    upwards from citizen, so council members and admins are looked up
    like citizens; they answer True only for a vote they actually cast.
    """
    if not actor.is_authenticated or actor.role is None:
        return False
    proposal = await get_by_public_id(session, public_id)
    if proposal is None:
        return False
    return await _find_vote(session, actor.user_id, proposal) is not None


async def list_my_votes(session: AsyncSession, actor: Actor) -> list[str]:
    """Return public ids of every proposal the actor voted on, newest first."""
    authorize(actor, "votes.list_mine")
    result = await session.execute(
        select(Proposal.public_id)
        .join(Vote, Vote.proposal_id == Proposal.id)
        .where(Vote.citizen_id == actor.user_id)
        .order_by(Vote.created_at.desc())
    )
    return list(result.scalars().all())
