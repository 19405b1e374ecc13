"""Complaint model: free-text issue reports triaged by municipal admins."""

import enum

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from voto_popular.models.base import Base, TimestampMixin, UUIDMixin


class ComplaintStatus(enum.StrEnum):
    """Complaint triage status."""

    OPEN = "open"
    IN_REVIEW = "in_review"
    CLOSED = "closed"


class Complaint(Base, UUIDMixin, TimestampMixin):
    """A user-submitted complaint.

    ``municipality_id`` is taken from the submitter and is null for users
    not yet bound to a municipality (platform-wide complaints).
    """

    __tablename__ = "complaints"

    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False)
    municipality_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("municipalities.id"), nullable=True)
    complaint_text: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ComplaintStatus.OPEN,
        server_default=ComplaintStatus.OPEN.value,
    )

    __table_args__ = (
        CheckConstraint("status IN ('open', 'in_review', 'closed')", name="ck_complaint_status"),
        Index("ix_complaints_municipality_status", "municipality_id", "status"),
    )
