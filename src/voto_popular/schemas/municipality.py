"""Municipality and theme Pydantic v2 schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

_HEX_COLOR = r"^#[0-9a-fA-F]{6}$"
_SLUG = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class ThemeFields(BaseModel):
    """Branding values shared by create, update and theme requests."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    primary_color: str | None = Field(default=None, pattern=_HEX_COLOR)
    secondary_color: str | None = Field(default=None, pattern=_HEX_COLOR)
    accent_color: str | None = Field(default=None, pattern=_HEX_COLOR)
    logo_url: str | None = Field(default=None, max_length=1000)
    font_family: str | None = Field(default=None, min_length=1, max_length=255)


class MunicipalityCreateRequest(ThemeFields):
    """Body of ``municipalities.create``."""

    slug: str = Field(min_length=1, max_length=64, pattern=_SLUG, description="Permanent public identifier")
    name: str = Field(min_length=3, max_length=255)
    state: str | None = Field(default=None, min_length=2, max_length=2)


class MunicipalityUpdateRequest(ThemeFields):
    """Body of ``municipalities.update``; the slug selects the record and never changes."""

    slug: str = Field(min_length=1, max_length=64)
    name: str | None = Field(default=None, min_length=3, max_length=255)
    state: str | None = Field(default=None, min_length=2, max_length=2)


class ThemeUpdateRequest(ThemeFields):
    """Body of ``themes.update``."""

    municipality_id: str = Field(min_length=1, max_length=64)


class MunicipalityResponse(BaseModel):
    """Public municipality record with branding."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    state: str | None = None
    primary_color: str
    secondary_color: str
    accent_color: str
    logo_url: str | None = None
    font_family: str
    created_at: datetime


class ThemeConfigResponse(BaseModel):
    """Theme served to the client; platform defaults for unknown municipalities."""

    model_config = ConfigDict(from_attributes=True)

    municipality_id: str
    primary_color: str
    secondary_color: str
    accent_color: str
    logo_url: str | None = None
    font_family: str
    is_default: bool = False
