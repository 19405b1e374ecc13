"""User administration Pydantic v2 schemas."""

from pydantic import BaseModel, ConfigDict, Field

from voto_popular.core.roles import Role
from voto_popular.schemas.auth import UserResponse
from voto_popular.schemas.common import PaginationMeta


class AssignRoleRequest(BaseModel):
    """Body of ``users.assign_role``."""

    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1, max_length=128)
    role: Role
    municipality_id: str | None = Field(default=None, max_length=64)


class PaginatedUserResponse(BaseModel):
    """Paginated list of users."""

    items: list[UserResponse]
    pagination: PaginationMeta
