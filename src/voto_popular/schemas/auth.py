"""Identity synchronisation and profile Pydantic v2 schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from voto_popular.core.roles import Role


class UserResponse(BaseModel):
    """A user as seen by the user themself or by administrators.

    The CPF is never returned, only whether it is set.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    role: Role
    municipality_id: str | None = None
    birth_date: date | None = None
    zip_code: str | None = None
    has_cpf: bool = False
    is_active: bool
    is_email_verified: bool
    is_cpf_verified: bool
    created_at: datetime
    last_signed_in_at: datetime | None = None

    @classmethod
    def from_user(cls, user: object) -> "UserResponse":
        response = cls.model_validate(user)
        response.has_cpf = getattr(user, "cpf", None) is not None
        return response


class SyncResponse(BaseModel):
    """Result of ``auth.sync``."""

    user: UserResponse
    created: bool = Field(description="Whether this sign-in created the user record")


class ProfileUpdateRequest(BaseModel):
    """Partial update of the caller's own profile (all fields optional)."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    cpf: str | None = Field(default=None, min_length=11, max_length=14, pattern=r"^[0-9.\-]+$")
    birth_date: date | None = None
    zip_code: str | None = Field(default=None, min_length=8, max_length=9, pattern=r"^\d{5}-?\d{3}$")
    municipality_id: str | None = Field(default=None, min_length=1, max_length=64)
