"""Proposal lifecycle service.

Council members submit proposals in their own municipality; admins of the
same municipality approve, reject or archive them; citizens browse the
approved ones. Every moderation call re-checks the tenant before looking
at the status, so a foreign admin always gets the same FORBIDDEN answer.
"""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor, authorize, ensure_tenant_access, scope_municipality
from voto_popular.core.errors import ConflictError, NotFoundError, ValidationFailedError
from voto_popular.models.audit_log import AuditAction
from voto_popular.models.proposal import Proposal, ProposalStatus
from voto_popular.services.audit_service import record_event

TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 255
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 5000

# Target status -> statuses it may be reached from. Reaching the current
# status again is accepted as a repeat of the same moderation.
_ALLOWED_TRANSITIONS: dict[ProposalStatus, frozenset[ProposalStatus]] = {
    ProposalStatus.APPROVED: frozenset({ProposalStatus.PENDING, ProposalStatus.APPROVED}),
    ProposalStatus.REJECTED: frozenset({ProposalStatus.PENDING, ProposalStatus.REJECTED}),
    ProposalStatus.ARCHIVED: frozenset(
        {ProposalStatus.PENDING, ProposalStatus.APPROVED, ProposalStatus.REJECTED, ProposalStatus.ARCHIVED}
    ),
}

_AUDIT_ACTION_BY_STATUS: dict[ProposalStatus, AuditAction] = {
    ProposalStatus.APPROVED: AuditAction.PROPOSAL_APPROVED,
    ProposalStatus.REJECTED: AuditAction.PROPOSAL_REJECTED,
    ProposalStatus.ARCHIVED: AuditAction.PROPOSAL_ARCHIVED,
}


def can_transition(current: str, target: ProposalStatus) -> bool:
    """Return True if a proposal in ``current`` may move to ``target``."""
    try:
        return ProposalStatus(current) in _ALLOWED_TRANSITIONS[target]
    except (KeyError, ValueError):
        return False


def _validate_text(title: str, description: str) -> tuple[str, str]:
    title = title.strip()
    description = description.strip()
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise ValidationFailedError(
            f"Title must have {TITLE_MIN_LENGTH} to {TITLE_MAX_LENGTH} characters",
            field="title",
        )
    if not DESCRIPTION_MIN_LENGTH <= len(description) <= DESCRIPTION_MAX_LENGTH:
        raise ValidationFailedError(
            f"Description must have {DESCRIPTION_MIN_LENGTH} to {DESCRIPTION_MAX_LENGTH} characters",
            field="description",
        )
    return title, description


async def _paginate(
    session: AsyncSession,
    filters: list,
    page: int,
    page_size: int,
) -> tuple[list[Proposal], int]:
    total = (await session.execute(select(func.count(Proposal.id)).where(*filters))).scalar_one()
    offset = (page - 1) * page_size
    result = await session.execute(
        select(Proposal).where(*filters).order_by(Proposal.created_at.desc(), Proposal.id).offset(offset).limit(page_size)
    )
    return list(result.scalars().all()), total


async def get_by_public_id(session: AsyncSession, public_id: str) -> Proposal | None:
    """Load a proposal by its public identifier, regardless of status."""
    result = await session.execute(select(Proposal).where(Proposal.public_id == public_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_proposal(
    session: AsyncSession,
    actor: Actor,
    *,
    title: str,
    description: str,
    ip_address: str | None = None,
) -> Proposal:
    """Submit a new proposal in the author's municipality.

    The municipality always comes from the actor, never from input.

    Args:
        session: The database session.
        actor: The submitting council member (or higher role).
        title: Proposal title, 5-255 characters.
        description: Proposal body, 10-5000 characters.
        ip_address: Source address for the audit trail.

    Returns:
        The created Proposal in ``pending`` with no votes.

    Raises:
        ValidationFailedError: If title or description length is out of bounds.
        ForbiddenError: If the actor lacks the role or a municipality binding.
    """
    authorize(actor, "proposals.create")
    title, description = _validate_text(title, description)
    municipality_id = actor.municipality_id
    if municipality_id is None:
        # Only reachable by an unbound super-admin.
        raise ValidationFailedError("Author must belong to a municipality", field="municipality_id")

    proposal = Proposal(
        municipality_id=municipality_id,
        author_id=actor.user_id,
        title=title,
        description=description,
        status=ProposalStatus.PENDING,
        vote_count=0,
    )
    session.add(proposal)
    await session.commit()
    await session.refresh(proposal)

    logger.info(f"User {actor.user_id} created proposal {proposal.public_id} in {municipality_id}")
    await record_event(
        session,
        action=AuditAction.PROPOSAL_CREATED,
        user_id=actor.user_id,
        municipality_id=municipality_id,
        details=f"Created proposal {proposal.public_id}",
        ip_address=ip_address,
    )
    return proposal


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------


async def list_for_citizens(
    session: AsyncSession,
    municipality_id: str,
    *,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Proposal], int]:
    """List approved proposals of one municipality for public browsing.

    The given municipality is the only scoping input.
    """
    filters = [Proposal.municipality_id == municipality_id, Proposal.status == ProposalStatus.APPROVED]
    return await _paginate(session, filters, page, page_size)


async def get_public_proposal(session: AsyncSession, public_id: str) -> Proposal:
    """Return an approved proposal for the public detail page.

    Raises:
        NotFoundError: If the proposal does not exist or is not approved.
    """
    proposal = await get_by_public_id(session, public_id)
    if proposal is None or proposal.status != ProposalStatus.APPROVED:
        raise NotFoundError("Proposal not found")
    return proposal


async def list_mine(
    session: AsyncSession,
    actor: Actor,
    *,
    status: ProposalStatus | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Proposal], int]:
    """List proposals authored by the actor, in any status."""
    authorize(actor, "proposals.list_mine")
    filters = [Proposal.author_id == actor.user_id]
    if status is not None:
        filters.append(Proposal.status == status)
    return await _paginate(session, filters, page, page_size)


async def list_for_admin(
    session: AsyncSession,
    actor: Actor,
    *,
    municipality_id: str | None = None,
    status: ProposalStatus | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Proposal], int]:
    """List every proposal of the administrator's municipality.

    City admins always get their own municipality. A super-admin must name
    the municipality it is looking at.

    Raises:
        ValidationFailedError: If a super-admin omits ``municipality_id``.
    """
    authorize(actor, "proposals.list_for_admin")
    scope = scope_municipality(actor, municipality_id)
    if scope is None:
        raise ValidationFailedError("municipality_id is required", field="municipality_id")
    filters = [Proposal.municipality_id == scope]
    if status is not None:
        filters.append(Proposal.status == status)
    return await _paginate(session, filters, page, page_size)


async def proposal_stats(
    session: AsyncSession,
    actor: Actor,
    *,
    municipality_id: str | None = None,
) -> dict[str, int]:
    """Count proposals per status and total votes for one municipality.

    Returns:
        Mapping with one key per status plus ``total`` and ``votes``.
    """
    authorize(actor, "proposals.stats")
    scope = scope_municipality(actor, municipality_id)
    if scope is None:
        raise ValidationFailedError("municipality_id is required", field="municipality_id")

    result = await session.execute(
        select(Proposal.status, func.count(Proposal.id), func.coalesce(func.sum(Proposal.vote_count), 0))
        .where(Proposal.municipality_id == scope)
        .group_by(Proposal.status)
    )
    stats = {status.value: 0 for status in ProposalStatus}
    stats["total"] = 0
    stats["votes"] = 0
    for status, count, votes in result.all():
        stats[status] = count
        stats["total"] += count
        stats["votes"] += int(votes)
    return stats


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


async def _moderate(
    session: AsyncSession,
    actor: Actor,
    public_id: str,
    target: ProposalStatus,
    *,
    operation: str,
    asserted_municipality_id: str | None,
    reason: str | None = None,
    ip_address: str | None = None,
) -> Proposal:
    authorize(actor, operation)
    proposal = await get_by_public_id(session, public_id)
    if proposal is None:
        raise NotFoundError("Proposal not found")

    # Tenant check before anything status-dependent.
    ensure_tenant_access(actor, proposal.municipality_id, asserted_municipality_id=asserted_municipality_id)

    if not can_transition(proposal.status, target):
        raise ConflictError(f"Cannot move a {proposal.status} proposal to {target}")

    previous = proposal.status
    values: dict[str, object] = {"status": target}
    if target is not ProposalStatus.ARCHIVED:
        values["reviewed_by"] = actor.user_id
        values["reviewed_at"] = datetime.now(UTC)
    if target is ProposalStatus.REJECTED:
        values["rejection_reason"] = reason.strip() if reason and reason.strip() else None
    elif target is ProposalStatus.APPROVED:
        values["rejection_reason"] = None

    # Status guard repeated in the UPDATE: a transition committed after the
    # load above must not be overwritten.
    result = await session.execute(
        update(Proposal)
        .where(Proposal.id == proposal.id, Proposal.status.in_(list(_ALLOWED_TRANSITIONS[target])))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        logger.info(f"Moderation of {public_id} to {target} lost a race with another transition")
        raise ConflictError(f"Proposal {public_id} changed status; cannot move it to {target}")

    await session.commit()
    await session.refresh(proposal)

    logger.info(f"User {actor.user_id} moved proposal {public_id} from {previous} to {target}")
    await record_event(
        session,
        action=_AUDIT_ACTION_BY_STATUS[target],
        user_id=actor.user_id,
        municipality_id=proposal.municipality_id,
        details=f"Proposal {public_id}: {previous} -> {target}" + (f" ({proposal.rejection_reason})" if reason else ""),
        ip_address=ip_address,
    )
    return proposal


async def approve_proposal(
    session: AsyncSession,
    actor: Actor,
    public_id: str,
    *,
    asserted_municipality_id: str | None = None,
    ip_address: str | None = None,
) -> Proposal:
    """Approve a proposal, opening it for votes.

    Args:
        session: The database session.
        actor: The moderating administrator.
        public_id: Public id of the proposal.
        asserted_municipality_id: Municipality a super-admin declares it acts in.
        ip_address: Source address for the audit trail.

    Returns:
        The approved Proposal.

    Raises:
        NotFoundError: If the proposal does not exist.
        ForbiddenError: If it belongs to another municipality.
        ConflictError: If it is rejected or archived.
    """
    return await _moderate(
        session,
        actor,
        public_id,
        ProposalStatus.APPROVED,
        operation="proposals.approve",
        asserted_municipality_id=asserted_municipality_id,
        ip_address=ip_address,
    )


async def reject_proposal(
    session: AsyncSession,
    actor: Actor,
    public_id: str,
    *,
    reason: str | None = None,
    asserted_municipality_id: str | None = None,
    ip_address: str | None = None,
) -> Proposal:
    """Reject a proposal with an optional reason.

    Raises:
        NotFoundError: If the proposal does not exist.
        ForbiddenError: If it belongs to another municipality.
        ConflictError: If it is approved or archived.
    """
    return await _moderate(
        session,
        actor,
        public_id,
        ProposalStatus.REJECTED,
        operation="proposals.reject",
        asserted_municipality_id=asserted_municipality_id,
        reason=reason,
        ip_address=ip_address,
    )


async def archive_proposal(
    session: AsyncSession,
    actor: Actor,
    public_id: str,
    *,
    asserted_municipality_id: str | None = None,
    ip_address: str | None = None,
) -> Proposal:
    """Archive a proposal. Archived proposals never leave that state."""
    return await _moderate(
        session,
        actor,
        public_id,
        ProposalStatus.ARCHIVED,
        operation="proposals.archive",
        asserted_municipality_id=asserted_municipality_id,
        ip_address=ip_address,
    )
