"""Initial migration: municipalities, users, proposals, votes, complaints and audit_logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "municipalities",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("state", sa.String(2), nullable=True),
        sa.Column("primary_color", sa.String(7), nullable=False, server_default="#0066cc"),
        sa.Column("secondary_color", sa.String(7), nullable=False, server_default="#f0f0f0"),
        sa.Column("accent_color", sa.String(7), nullable=False, server_default="#ff6b35"),
        sa.Column("logo_url", sa.String(1000), nullable=True),
        sa.Column("font_family", sa.String(255), nullable=False, server_default="'Inter', sans-serif"),
        *_timestamps(),
        sa.CheckConstraint("length(id) >= 1", name="ck_municipality_id_not_empty"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("cpf", sa.String(11), unique=True, nullable=True),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("zip_code", sa.String(8), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="citizen"),
        sa.Column("municipality_id", sa.String(64), sa.ForeignKey("municipalities.id"), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("is_email_verified", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_cpf_verified", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("failed_login_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_failed_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_signed_in_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('citizen', 'council_member', 'city_admin', 'super_admin')",
            name="ck_user_role",
        ),
        sa.CheckConstraint("failed_login_count >= 0", name="ck_user_failed_login_count"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_municipality_role", "users", ["municipality_id", "role"])

    op.create_table(
        "proposals",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("public_id", sa.String(40), unique=True, nullable=False),
        sa.Column("municipality_id", sa.String(64), sa.ForeignKey("municipalities.id"), nullable=False),
        sa.Column("author_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("vote_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reviewed_by", sa.String(128), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'archived')",
            name="ck_proposal_status",
        ),
        sa.CheckConstraint("vote_count >= 0", name="ck_proposal_vote_count"),
    )
    op.create_index("ix_proposals_municipality_status", "proposals", ["municipality_id", "status"])
    op.create_index("ix_proposals_author_id", "proposals", ["author_id"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("proposal_id", sa.Uuid, sa.ForeignKey("proposals.id"), nullable=False),
        sa.Column("citizen_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("municipality_id", sa.String(64), sa.ForeignKey("municipalities.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("citizen_id", "proposal_id", name="uq_votes_citizen_proposal"),
    )
    op.create_index("ix_votes_proposal_id", "votes", ["proposal_id"])
    op.create_index("ix_votes_municipality_id", "votes", ["municipality_id"])

    op.create_table(
        "complaints",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("municipality_id", sa.String(64), sa.ForeignKey("municipalities.id"), nullable=True),
        sa.Column("complaint_text", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        *_timestamps(),
        sa.CheckConstraint("status IN ('open', 'in_review', 'closed')", name="ck_complaint_status"),
    )
    op.create_index("ix_complaints_municipality_status", "complaints", ["municipality_id", "status"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=True),
        sa.Column("municipality_id", sa.String(64), nullable=True),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_municipality_action", "audit_logs", ["municipality_id", "action"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("complaints")
    op.drop_table("votes")
    op.drop_table("proposals")
    op.drop_table("users")
    op.drop_table("municipalities")
