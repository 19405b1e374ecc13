"""Municipality model: the tenant every other record is partitioned by.

Branding columns double as the municipality's theme configuration.
"""

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from voto_popular.models.base import Base, TimestampMixin

DEFAULT_PRIMARY_COLOR = "#0066cc"
DEFAULT_SECONDARY_COLOR = "#f0f0f0"
DEFAULT_ACCENT_COLOR = "#ff6b35"
DEFAULT_FONT_FAMILY = "'Inter', sans-serif"


class Municipality(Base, TimestampMixin):
    """A tenant, identified by a permanent public slug.

    Attributes:
        id: Lowercase slug such as ``muriae-mg``; immutable once created.
        name: Display name.
        state: Two-letter federative unit code, when known.
        primary_color: Primary brand colour (``#RRGGBB``).
        secondary_color: Secondary brand colour.
        accent_color: Accent brand colour.
        logo_url: Public logo URL.
        font_family: CSS font family for the municipality pages.
    """

    __tablename__ = "municipalities"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    primary_color: Mapped[str] = mapped_column(
        String(7), nullable=False, default=DEFAULT_PRIMARY_COLOR, server_default=DEFAULT_PRIMARY_COLOR
    )
    secondary_color: Mapped[str] = mapped_column(
        String(7), nullable=False, default=DEFAULT_SECONDARY_COLOR, server_default=DEFAULT_SECONDARY_COLOR
    )
    accent_color: Mapped[str] = mapped_column(
        String(7), nullable=False, default=DEFAULT_ACCENT_COLOR, server_default=DEFAULT_ACCENT_COLOR
    )
    logo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    font_family: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_FONT_FAMILY, server_default=DEFAULT_FONT_FAMILY
    )

    __table_args__ = (CheckConstraint("length(id) >= 1", name="ck_municipality_id_not_empty"),)
