"""Proposal model with its moderation lifecycle.

A proposal is created ``pending`` by a council member, moderated to
``approved`` or ``rejected`` by an admin of the same municipality, and can
be ``archived`` from any state. ``archived`` is terminal.
"""

import enum
import secrets
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from voto_popular.models.base import Base, TimestampMixin, UUIDMixin

PUBLIC_ID_PREFIX = "prop_"


class ProposalStatus(enum.StrEnum):
    """Proposal lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


def generate_public_id() -> str:
    """Return an opaque, non-sequential public identifier."""
    return f"{PUBLIC_ID_PREFIX}{secrets.token_urlsafe(12)}"


class Proposal(Base, UUIDMixin, TimestampMixin):
    """A legislative proposal authored by a council member.

    Attributes:
        public_id: Opaque identifier exposed in URLs and API payloads.
        municipality_id: Copied from the author at creation; immutable.
        author_id: The council member who submitted the proposal.
        status: Lifecycle state.
        vote_count: Denormalized number of votes; never negative.
        reviewed_by: Admin who last moderated the proposal.
        reviewed_at: When the last moderation happened.
        rejection_reason: Optional reason given on rejection.
    """

    __tablename__ = "proposals"

    public_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, default=generate_public_id)
    municipality_id: Mapped[str] = mapped_column(String(64), ForeignKey("municipalities.id"), nullable=False)
    author_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ProposalStatus.PENDING,
        server_default=ProposalStatus.PENDING.value,
    )
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    reviewed_by: Mapped[str | None] = mapped_column(String(128), ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'archived')",
            name="ck_proposal_status",
        ),
        CheckConstraint("vote_count >= 0", name="ck_proposal_vote_count"),
        Index("ix_proposals_municipality_status", "municipality_id", "status"),
        Index("ix_proposals_author_id", "author_id"),
    )
