"""AuditLog model for the append-only security event trail."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from voto_popular.models.base import Base, UUIDMixin, utcnow


class AuditAction(enum.StrEnum):
    """Security-relevant events recorded in the audit trail."""

    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    PROPOSAL_CREATED = "PROPOSAL_CREATED"
    PROPOSAL_APPROVED = "PROPOSAL_APPROVED"
    PROPOSAL_REJECTED = "PROPOSAL_REJECTED"
    PROPOSAL_ARCHIVED = "PROPOSAL_ARCHIVED"
    VOTE_CAST = "VOTE_CAST"
    MUNICIPALITY_CREATED = "MUNICIPALITY_CREATED"
    MUNICIPALITY_UPDATED = "MUNICIPALITY_UPDATED"
    THEME_UPDATED = "THEME_UPDATED"
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    COMPLAINT_STATUS_CHANGED = "COMPLAINT_STATUS_CHANGED"


class AuditLog(Base, UUIDMixin):
    """Immutable record of a security-relevant event. Write-only (no updates or deletes).

    Columns reference users and municipalities by value, without foreign
    keys, so entries outlive anything they mention.
    """

    __tablename__ = "audit_logs"

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    municipality_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    action: Mapped[str] = mapped_column(String(40), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_created_at", "created_at"),
        Index("ix_audit_logs_user_id", "user_id"),
        Index("ix_audit_logs_municipality_action", "municipality_id", "action"),
    )
