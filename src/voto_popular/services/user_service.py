"""User administration service: listing users and assigning roles.

Role changes are the only way to gain privileges, so every rule lives
here: a super-admin may assign any role; a city admin may only promote or
demote citizens and council members inside its own municipality; nobody
may change their own role.
"""

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor, authorize, ensure_tenant_access, scope_municipality
from voto_popular.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from voto_popular.core.roles import Role
from voto_popular.models.audit_log import AuditAction
from voto_popular.models.municipality import Municipality
from voto_popular.models.user import User
from voto_popular.services.audit_service import record_event

# Roles a city admin may hand out.
_CITY_ADMIN_ASSIGNABLE: frozenset[Role] = frozenset({Role.CITIZEN, Role.COUNCIL_MEMBER})


async def list_users(
    session: AsyncSession,
    actor: Actor,
    *,
    municipality_id: str | None = None,
    role: Role | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[User], int]:
    """List users visible to an administrator.

    Args:
        session: The database session.
        actor: The requesting administrator.
        municipality_id: Municipality filter (honoured for super-admins only).
        role: Optional role filter.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (users list, total count).
    """
    authorize(actor, "users.list")
    scope = scope_municipality(actor, municipality_id)
    filters = []
    if scope is not None:
        filters.append(User.municipality_id == scope)
    if role is not None:
        filters.append(User.role == role)

    total = (await session.execute(select(func.count(User.id)).where(*filters))).scalar_one()
    offset = (page - 1) * page_size
    result = await session.execute(
        select(User).where(*filters).order_by(User.created_at, User.id).offset(offset).limit(page_size)
    )
    return list(result.scalars().all()), total


async def assign_role(
    session: AsyncSession,
    actor: Actor,
    target_user_id: str,
    role: Role,
    *,
    municipality_id: str | None = None,
    ip_address: str | None = None,
) -> User:
    """Change a user's role and municipality binding.

    Args:
        session: The database session.
        actor: The requesting administrator.
        target_user_id: Subject id of the user to change.
        role: The new role.
        municipality_id: Municipality to bind the user to. City admins can
            only use their own, which is also the default for them.
        ip_address: Source address for the audit trail.

    Returns:
        The updated User.

    Raises:
        NotFoundError: If the target user does not exist.
        ForbiddenError: If the change exceeds the actor's rights.
        ValidationFailedError: If the municipality is missing or unknown.
    """
    authorize(actor, "users.assign_role")
    if target_user_id == actor.user_id:
        raise ForbiddenError("You cannot change your own role")

    target = await session.get(User, target_user_id)
    if target is None:
        raise NotFoundError("User not found")

    if actor.is_super_admin:
        new_municipality = await _resolve_municipality_for_super_admin(
            session, role, municipality_id or actor.municipality_id
        )
    else:
        new_municipality = _resolve_municipality_for_city_admin(actor, target, role, municipality_id)

    previous_role, previous_municipality = target.role, target.municipality_id
    target.role = role
    target.municipality_id = new_municipality
    await session.commit()
    await session.refresh(target)

    logger.info(
        f"User {actor.user_id} changed {target.id} from {previous_role}@{previous_municipality} "
        f"to {role}@{new_municipality}"
    )
    await record_event(
        session,
        action=AuditAction.ROLE_ASSIGNED,
        user_id=actor.user_id,
        municipality_id=new_municipality or previous_municipality,
        details=f"{target.id}: {previous_role} -> {role}",
        ip_address=ip_address,
    )
    return target


async def _resolve_municipality_for_super_admin(
    session: AsyncSession,
    role: Role,
    municipality_id: str | None,
) -> str | None:
    if role is Role.SUPER_ADMIN:
        return None
    if municipality_id is None:
        raise ValidationFailedError("municipality_id is required for this role", field="municipality_id")
    if await session.get(Municipality, municipality_id) is None:
        raise ValidationFailedError("Unknown municipality", field="municipality_id")
    return municipality_id


def _resolve_municipality_for_city_admin(
    actor: Actor,
    target: User,
    role: Role,
    municipality_id: str | None,
) -> str:
    if role not in _CITY_ADMIN_ASSIGNABLE:
        raise ForbiddenError()

    current_role = Role.parse(target.role)
    if current_role is None or current_role.satisfies(Role.CITY_ADMIN):
        raise ForbiddenError()

    requested = municipality_id or actor.municipality_id
    ensure_tenant_access(actor, requested)
    if target.municipality_id is not None:
        ensure_tenant_access(actor, target.municipality_id)
    assert requested is not None
    return requested
