"""Vote model: one irrevocable endorsement per citizen and proposal."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from voto_popular.models.base import Base, UUIDMixin, utcnow


class Vote(Base, UUIDMixin):
    """A citizen's vote on a proposal.

    The unique constraint on (citizen_id, proposal_id) is the authoritative
    guard against duplicate votes, including concurrent submissions.
    Votes are never updated or deleted.
    """

    __tablename__ = "votes"

    proposal_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("proposals.id"), nullable=False)
    citizen_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False)
    municipality_id: Mapped[str] = mapped_column(String(64), ForeignKey("municipalities.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("citizen_id", "proposal_id", name="uq_votes_citizen_proposal"),
        Index("ix_votes_proposal_id", "proposal_id"),
        Index("ix_votes_municipality_id", "municipality_id"),
    )
