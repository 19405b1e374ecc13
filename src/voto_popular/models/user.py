"""User model: identity-provider subject bound to a role and a municipality."""

from datetime import date, datetime

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from voto_popular.core.roles import Role
from voto_popular.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Platform user.

    The primary key is the identity provider's stable subject id; it is
    never generated locally. Non super-admin users without a municipality
    hold no privileged capability.

    Attributes:
        id: External subject identifier.
        email: Unique, lower-cased email address.
        cpf: National taxpayer id (digits only), unique when present.
        role: One of the ``Role`` values.
        municipality_id: Tenant binding; null for super-admins and unbound citizens.
        failed_login_count: Failed attempts within the current window.
        last_failed_login_at: Time of the latest failed attempt.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cpf: Mapped[str | None] = mapped_column(String(11), unique=True, nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Role.CITIZEN, server_default=Role.CITIZEN.value
    )
    municipality_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("municipalities.id"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_cpf_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    failed_login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_failed_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_signed_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('citizen', 'council_member', 'city_admin', 'super_admin')",
            name="ck_user_role",
        ),
        CheckConstraint("failed_login_count >= 0", name="ck_user_failed_login_count"),
        Index("ix_users_municipality_role", "municipality_id", "role"),
    )
