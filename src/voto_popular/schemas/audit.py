"""Audit trail Pydantic v2 schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from voto_popular.schemas.common import PaginationMeta


class AuditLogResponse(BaseModel):
    """A single audit entry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime
    user_id: str | None = None
    municipality_id: str | None = None
    action: str
    details: str | None = None
    ip_address: str | None = None


class PaginatedAuditLogResponse(BaseModel):
    """Paginated list of audit entries."""

    items: list[AuditLogResponse]
    pagination: PaginationMeta
