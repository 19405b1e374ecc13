"""Audit trail service.

Records append-only security events and serves them to administrators.
Recording is best effort: a failure to write an entry is logged and
swallowed so it never turns a successful business operation into an error.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor, authorize, scope_municipality
from voto_popular.models.audit_log import AuditAction, AuditLog


async def record_event(
    session: AsyncSession,
    *,
    action: AuditAction | str,
    user_id: str | None = None,
    municipality_id: str | None = None,
    details: str | None = None,
    ip_address: str | None = None,
) -> AuditLog | None:
    """Append an audit entry in its own commit.

    Call this after the business operation has committed.

    Args:
        session: The database session.
        action: The event being recorded.
        user_id: The acting user, when known.
        municipality_id: The tenant the event belongs to.
        details: Short free-text context (never secrets or documents).
        ip_address: Source address of the request.

    Returns:
        The created AuditLog, or None if it could not be written.
    """
    entry = AuditLog(
        action=str(action),
        user_id=user_id,
        municipality_id=municipality_id,
        details=details,
        ip_address=ip_address,
    )
    try:
        session.add(entry)
        await session.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to record audit event {action}")
        try:
            await session.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after audit failure also failed")
        return None
    return entry


async def query_audit_logs(
    session: AsyncSession,
    actor: Actor,
    *,
    municipality_id: str | None = None,
    user_id: str | None = None,
    action: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[AuditLog], int]:
    """Query audit entries visible to an administrator.

    City admins only see their own municipality. A super-admin sees the
    whole platform, or one municipality when it passes ``municipality_id``.

    Args:
        session: The database session.
        actor: The requesting administrator.
        municipality_id: Municipality filter (honoured for super-admins only).
        user_id: Filter by acting user.
        action: Filter by action name.
        start_time: Filter records at or after this timestamp.
        end_time: Filter records at or before this timestamp.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (audit log records, total count).
    """
    authorize(actor, "audit.list")
    scope = scope_municipality(actor, municipality_id)

    filters = []
    if scope is not None:
        filters.append(AuditLog.municipality_id == scope)
    if user_id is not None:
        filters.append(AuditLog.user_id == user_id)
    if action is not None:
        filters.append(AuditLog.action == action)
    if start_time is not None:
        filters.append(AuditLog.created_at >= start_time)
    if end_time is not None:
        filters.append(AuditLog.created_at <= end_time)

    total = (await session.execute(select(func.count(AuditLog.id)).where(*filters))).scalar_one()

    offset = (page - 1) * page_size
    query = select(AuditLog).where(*filters).order_by(AuditLog.created_at.desc()).offset(offset).limit(page_size)
    result = await session.execute(query)
    return list(result.scalars().all()), total
