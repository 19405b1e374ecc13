"""Proposal Pydantic v2 schemas."""

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from voto_popular.schemas.common import PaginationMeta


class ProposalStatusEnum(enum.StrEnum):
    """Proposal lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ProposalCreateRequest(BaseModel):
    """Body of ``proposals.create``. The municipality is never accepted from input."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(min_length=5, max_length=255)
    description: str = Field(min_length=10, max_length=5000)


class ProposalModerationRequest(BaseModel):
    """Body of ``proposals.approve`` and ``proposals.archive``."""

    model_config = ConfigDict(extra="forbid")

    proposal_id: str = Field(min_length=1, max_length=40, description="Public proposal id")
    municipality_id: str | None = Field(
        default=None,
        max_length=64,
        description="Municipality a super-admin explicitly acts in",
    )


class ProposalRejectRequest(ProposalModerationRequest):
    """Body of ``proposals.reject``."""

    reason: str | None = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ProposalResponse(BaseModel):
    """A proposal. ``id`` is the public identifier."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(validation_alias="public_id")
    municipality_id: str
    author_id: str
    title: str
    description: str
    status: ProposalStatusEnum
    vote_count: int
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class PaginatedProposalResponse(BaseModel):
    """Paginated list of proposals."""

    items: list[ProposalResponse]
    pagination: PaginationMeta


class ProposalStatsResponse(BaseModel):
    """Proposal counts per status for one municipality."""

    municipality_id: str
    pending: int
    approved: int
    rejected: int
    archived: int
    total: int
    votes: int
