"""Complaint Pydantic v2 schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from voto_popular.models.complaint import ComplaintStatus
from voto_popular.schemas.common import PaginationMeta


class ComplaintSubmitRequest(BaseModel):
    """Body of ``complaints.submit``."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    complaint_text: str = Field(min_length=10, max_length=2000)


class ComplaintStatusRequest(BaseModel):
    """Body of ``complaints.update_status``."""

    model_config = ConfigDict(extra="forbid")

    complaint_id: uuid.UUID
    status: ComplaintStatus
    municipality_id: str | None = Field(default=None, max_length=64)


class ComplaintResponse(BaseModel):
    """A complaint as seen by its triaging admin."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    municipality_id: str | None = None
    complaint_text: str
    status: ComplaintStatus
    created_at: datetime
    updated_at: datetime


class PaginatedComplaintResponse(BaseModel):
    """Paginated list of complaints."""

    items: list[ComplaintResponse]
    pagination: PaginationMeta
