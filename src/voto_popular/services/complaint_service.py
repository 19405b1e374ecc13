"""Complaint service: submission by any signed-in user, triage by admins."""

import uuid

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor, authorize, ensure_tenant_access, scope_municipality
from voto_popular.core.errors import NotFoundError, ValidationFailedError
from voto_popular.models.audit_log import AuditAction
from voto_popular.models.complaint import Complaint, ComplaintStatus
from voto_popular.services.audit_service import record_event

COMPLAINT_MIN_LENGTH = 10
COMPLAINT_MAX_LENGTH = 2000


async def submit_complaint(session: AsyncSession, actor: Actor, text: str) -> Complaint:
    """Submit a complaint scoped to the submitter's municipality.

    Raises:
        ValidationFailedError: If the text is shorter than 10 or longer than 2000 characters.
    """
    authorize(actor, "complaints.submit")
    text = text.strip()
    if not COMPLAINT_MIN_LENGTH <= len(text) <= COMPLAINT_MAX_LENGTH:
        raise ValidationFailedError(
            f"Complaint must have {COMPLAINT_MIN_LENGTH} to {COMPLAINT_MAX_LENGTH} characters",
            field="complaint_text",
        )

    complaint = Complaint(
        user_id=actor.user_id,
        municipality_id=actor.municipality_id,
        complaint_text=text,
        status=ComplaintStatus.OPEN,
    )
    session.add(complaint)
    await session.commit()
    await session.refresh(complaint)
    logger.info(f"User {actor.user_id} submitted complaint {complaint.id}")
    return complaint


async def list_complaints(
    session: AsyncSession,
    actor: Actor,
    *,
    municipality_id: str | None = None,
    status: ComplaintStatus | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Complaint], int]:
    """List complaints for triage, newest first.

    City admins see their municipality; a super-admin sees everything or the
    municipality it names.
    """
    authorize(actor, "complaints.list")
    scope = scope_municipality(actor, municipality_id)
    filters = []
    if scope is not None:
        filters.append(Complaint.municipality_id == scope)
    if status is not None:
        filters.append(Complaint.status == status)

    total = (await session.execute(select(func.count(Complaint.id)).where(*filters))).scalar_one()
    offset = (page - 1) * page_size
    result = await session.execute(
        select(Complaint).where(*filters).order_by(Complaint.created_at.desc()).offset(offset).limit(page_size)
    )
    return list(result.scalars().all()), total


async def update_complaint_status(
    session: AsyncSession,
    actor: Actor,
    complaint_id: uuid.UUID,
    status: ComplaintStatus,
    *,
    asserted_municipality_id: str | None = None,
    ip_address: str | None = None,
) -> Complaint:
    """Move a complaint to another triage status.

    Raises:
        NotFoundError: If the complaint does not exist.
        ForbiddenError: If it belongs to another municipality.
    """
    authorize(actor, "complaints.update_status")
    complaint = await session.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFoundError("Complaint not found")
    ensure_tenant_access(actor, complaint.municipality_id, asserted_municipality_id=asserted_municipality_id)

    previous = complaint.status
    complaint.status = status
    await session.commit()
    await session.refresh(complaint)

    logger.info(f"User {actor.user_id} moved complaint {complaint_id} from {previous} to {status}")
    await record_event(
        session,
        action=AuditAction.COMPLAINT_STATUS_CHANGED,
        user_id=actor.user_id,
        municipality_id=complaint.municipality_id,
        details=f"Complaint {complaint_id}: {previous} -> {status}",
        ip_address=ip_address,
    )
    return complaint
