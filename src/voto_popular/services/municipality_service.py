"""Tenant provisioning and branding service.

Municipalities are created and edited by super-admins only. The slug is a
permanent public identifier, so it is validated strictly and must be
unique. Branding columns also serve as the public theme configuration.
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor, authorize
from voto_popular.core.errors import ConflictError, NotFoundError, ValidationFailedError
from voto_popular.lib.validators import MUNICIPALITY_SLUG_MAX_LENGTH, is_valid_hex_color, is_valid_http_url, is_valid_slug
from voto_popular.models.audit_log import AuditAction
from voto_popular.models.municipality import (
    DEFAULT_ACCENT_COLOR,
    DEFAULT_FONT_FAMILY,
    DEFAULT_PRIMARY_COLOR,
    DEFAULT_SECONDARY_COLOR,
    Municipality,
)
from voto_popular.services.audit_service import record_event

_THEME_FIELDS: frozenset[str] = frozenset(
    {
        "primary_color",
        "secondary_color",
        "accent_color",
        "logo_url",
        "font_family",
    }
)

_UPDATABLE_FIELDS: frozenset[str] = _THEME_FIELDS | {"name", "state"}

_COLOR_FIELDS = ("primary_color", "secondary_color", "accent_color")


@dataclass(frozen=True)
class ThemeConfig:
    """Branding served to the client for one municipality."""

    municipality_id: str
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR
    accent_color: str = DEFAULT_ACCENT_COLOR
    logo_url: str | None = None
    font_family: str = DEFAULT_FONT_FAMILY
    is_default: bool = False

    @classmethod
    def from_municipality(cls, municipality: Municipality) -> "ThemeConfig":
        return cls(
            municipality_id=municipality.id,
            primary_color=municipality.primary_color,
            secondary_color=municipality.secondary_color,
            accent_color=municipality.accent_color,
            logo_url=municipality.logo_url,
            font_family=municipality.font_family,
        )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _validate_slug(slug: str) -> None:
    if not is_valid_slug(slug):
        raise ValidationFailedError(
            "Slug must use lowercase letters, digits and single hyphens "
            f"(at most {MUNICIPALITY_SLUG_MAX_LENGTH} characters)",
            field="slug",
        )


def _clean_fields(data: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    """Keep whitelisted fields and validate their values.

    Raises:
        ValidationFailedError: On the first invalid value.
    """
    cleaned: dict[str, Any] = {}
    for field, value in data.items():
        if field not in allowed:
            continue
        if field == "name":
            if value is None or not (3 <= len(value.strip()) <= 255):
                raise ValidationFailedError("Name must have 3 to 255 characters", field="name")
            value = value.strip()
        elif field == "state" and value is not None:
            if len(value) != 2 or not value.isalpha():
                raise ValidationFailedError("State must be a two-letter code", field="state")
            value = value.upper()
        elif field in _COLOR_FIELDS:
            if value is None or not is_valid_hex_color(value):
                raise ValidationFailedError("Colour must look like #RRGGBB", field=field)
            value = value.lower()
        elif field == "logo_url" and value is not None:
            if not is_valid_http_url(value):
                raise ValidationFailedError("Logo must be an http(s) URL", field="logo_url")
        elif field == "font_family":
            if value is None or not value.strip() or len(value) > 255:
                raise ValidationFailedError("Font family must have 1 to 255 characters", field="font_family")
        cleaned[field] = value
    return cleaned


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------


async def get_municipality(session: AsyncSession, slug: str) -> Municipality:
    """Get a municipality by slug.

    Raises:
        NotFoundError: If no municipality has this slug.
    """
    municipality = await session.get(Municipality, slug)
    if municipality is None:
        raise NotFoundError("Municipality not found")
    return municipality


async def list_municipalities(session: AsyncSession) -> list[Municipality]:
    """List every municipality ordered by name."""
    result = await session.execute(select(Municipality).order_by(Municipality.name, Municipality.id))
    return list(result.scalars().all())


async def get_theme_config(session: AsyncSession, slug: str) -> ThemeConfig:
    """Return a municipality's theme, or the platform defaults if it is unknown."""
    municipality = await session.get(Municipality, slug)
    if municipality is None:
        return ThemeConfig(municipality_id=slug, is_default=True)
    return ThemeConfig.from_municipality(municipality)


# ---------------------------------------------------------------------------
# Write operations
# ---------------------------------------------------------------------------


async def create_municipality(
    session: AsyncSession,
    actor: Actor,
    *,
    slug: str,
    name: str,
    branding: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> Municipality:
    """Create a municipality.

    Args:
        session: The database session.
        actor: The requesting super-admin.
        slug: Permanent identifier, e.g. ``muriae-mg``.
        name: Display name.
        branding: Optional state and theme fields.
        ip_address: Source address for the audit trail.

    Returns:
        The created Municipality.

    Raises:
        ValidationFailedError: If the slug or a branding value is malformed.
        ConflictError: If the slug is already taken.
    """
    authorize(actor, "municipalities.create")
    _validate_slug(slug)
    fields = _clean_fields({"name": name, **(branding or {})}, _UPDATABLE_FIELDS)

    if await session.get(Municipality, slug) is not None:
        raise ConflictError(f"Municipality '{slug}' already exists")

    municipality = Municipality(id=slug, **fields)
    session.add(municipality)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError(f"Municipality '{slug}' already exists") from e
    await session.refresh(municipality)

    logger.info(f"Super-admin {actor.user_id} created municipality {slug}")
    await record_event(
        session,
        action=AuditAction.MUNICIPALITY_CREATED,
        user_id=actor.user_id,
        municipality_id=slug,
        details=f"Created municipality {slug}",
        ip_address=ip_address,
    )
    return municipality


async def update_municipality(
    session: AsyncSession,
    actor: Actor,
    slug: str,
    updates: dict[str, Any],
    *,
    ip_address: str | None = None,
) -> Municipality:
    """Update a municipality's name, state or branding. The slug never changes.

    Raises:
        NotFoundError: If the municipality does not exist.
        ValidationFailedError: If a value is malformed.
    """
    authorize(actor, "municipalities.update")
    return await _apply_updates(
        session,
        actor,
        slug,
        _clean_fields(updates, _UPDATABLE_FIELDS),
        action=AuditAction.MUNICIPALITY_UPDATED,
        ip_address=ip_address,
    )


async def update_theme_config(
    session: AsyncSession,
    actor: Actor,
    slug: str,
    updates: dict[str, Any],
    *,
    ip_address: str | None = None,
) -> ThemeConfig:
    """Update only the theme fields of a municipality.

    Raises:
        NotFoundError: If the municipality does not exist.
        ValidationFailedError: If a value is malformed.
    """
    authorize(actor, "themes.update")
    municipality = await _apply_updates(
        session,
        actor,
        slug,
        _clean_fields(updates, _THEME_FIELDS),
        action=AuditAction.THEME_UPDATED,
        ip_address=ip_address,
    )
    return ThemeConfig.from_municipality(municipality)


async def _apply_updates(
    session: AsyncSession,
    actor: Actor,
    slug: str,
    fields: dict[str, Any],
    *,
    action: AuditAction,
    ip_address: str | None,
) -> Municipality:
    municipality = await get_municipality(session, slug)
    for field, value in fields.items():
        setattr(municipality, field, value)

    await session.commit()
    await session.refresh(municipality)
    logger.info(f"Super-admin {actor.user_id} updated {sorted(fields)} of municipality {slug}")
    await record_event(
        session,
        action=action,
        user_id=actor.user_id,
        municipality_id=slug,
        details=f"Updated fields: {', '.join(sorted(fields)) or 'none'}",
        ip_address=ip_address,
    )
    return municipality
