"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from voto_popular.models.audit_log import AuditAction, AuditLog
from voto_popular.models.base import Base
from voto_popular.models.complaint import Complaint, ComplaintStatus
from voto_popular.models.municipality import Municipality
from voto_popular.models.proposal import Proposal, ProposalStatus
from voto_popular.models.user import User
from voto_popular.models.vote import Vote

__all__ = [
    "AuditAction",
    "AuditLog",
    "Base",
    "Complaint",
    "ComplaintStatus",
    "Municipality",
    "Proposal",
    "ProposalStatus",
    "User",
    "Vote",
]
