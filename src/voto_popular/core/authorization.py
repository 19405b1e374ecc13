"""Authorization guard chain.

Every operation is checked by the same fixed chain of guards over a
frozen ``Actor`` snapshot:

1. ``authenticate``: the actor must be a persisted, active user.
2. ``role_floor``: the persisted role must satisfy the operation's floor.
3. ``tenant_binding``: roles below super-admin must be bound to a municipality.

Each guard is a total, side-effect free function ``(actor, policy) -> Decision``.
The chain stops at the first denial. Resource-level tenant checks
(``ensure_tenant_access``) run inside services once the target record is loaded.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from voto_popular.core.errors import ErrorCode, ForbiddenError, error_for
from voto_popular.core.logging import security_logger
from voto_popular.core.roles import Role

if TYPE_CHECKING:
    from voto_popular.models.user import User


@dataclass(frozen=True)
class Actor:
    """Snapshot of the caller taken once per request."""

    user_id: str | None = None
    email: str | None = None
    name: str | None = None
    role: Role | None = None
    municipality_id: str | None = None
    is_active: bool = False
    is_persisted: bool = False

    @classmethod
    def anonymous(cls) -> "Actor":
        return cls()

    @classmethod
    def from_user(cls, user: "User") -> "Actor":
        """Build an actor from a persisted user record.

        An unrecognised role string yields ``role=None``, which satisfies no floor.
        """
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=Role.parse(user.role),
            municipality_id=user.municipality_id,
            is_active=bool(user.is_active),
            is_persisted=True,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.is_persisted and self.is_active and self.user_id is not None

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN


@dataclass(frozen=True)
class AccessPolicy:
    """Requirements an operation declares as data.

    Attributes:
        authenticated: Whether a persisted, active actor is required.
        floor: Minimum role, or None when any authenticated actor will do.
        tenant_bound: Whether roles below super-admin need a municipality.
    """

    authenticated: bool = True
    floor: Role | None = None
    tenant_bound: bool = False

    @property
    def is_public(self) -> bool:
        return not self.authenticated and self.floor is None and not self.tenant_bound


@dataclass(frozen=True)
class Decision:
    """Outcome of a guard or of the whole chain."""

    allowed: bool
    code: ErrorCode | None = None
    reason: str | None = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, code: ErrorCode, reason: str) -> "Decision":
        return cls(allowed=False, code=code, reason=reason)


Guard = Callable[[Actor, AccessPolicy], Decision]


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def authenticate(actor: Actor, policy: AccessPolicy) -> Decision:
    """Require a persisted, active user when the policy asks for any identity."""
    needs_identity = policy.authenticated or policy.floor is not None or policy.tenant_bound
    if needs_identity and not actor.is_authenticated:
        return Decision.deny(ErrorCode.UNAUTHENTICATED, "Authentication required")
    return Decision.allow()


def role_floor(actor: Actor, policy: AccessPolicy) -> Decision:
    """Require the persisted role to be at or above the policy floor."""
    if policy.floor is None:
        return Decision.allow()
    if actor.role is None or not actor.role.satisfies(policy.floor):
        return Decision.deny(ErrorCode.FORBIDDEN, f"Requires role {policy.floor.value} or higher")
    return Decision.allow()


def tenant_binding(actor: Actor, policy: AccessPolicy) -> Decision:
    """Require a municipality binding for every role below super-admin."""
    if not policy.tenant_bound or actor.is_super_admin:
        return Decision.allow()
    if not actor.municipality_id:
        return Decision.deny(ErrorCode.FORBIDDEN, "Actor is not bound to a municipality")
    return Decision.allow()


GUARD_CHAIN: tuple[Guard, ...] = (authenticate, role_floor, tenant_binding)


def evaluate(actor: Actor, policy: AccessPolicy, guards: tuple[Guard, ...] = GUARD_CHAIN) -> Decision:
    """Run the guard chain, stopping at the first denial."""
    for guard in guards:
        decision = guard(actor, policy)
        if not decision.allowed:
            return decision
    return Decision.allow()


def authorize(actor: Actor, operation: str) -> Actor:
    """Check an actor against a named operation's policy.

    Args:
        actor: The caller snapshot.
        operation: Operation name from the policy table.

    Returns:
        The same actor, for convenient chaining.

    Raises:
        PlatformError: ``UnauthenticatedError`` or ``ForbiddenError`` on denial.
        KeyError: If the operation is not registered.
    """
    from voto_popular.core.policies import OPERATIONS

    decision = evaluate(actor, OPERATIONS[operation].policy)
    if not decision.allowed:
        assert decision.code is not None
        security_logger.warning(f"Denied {operation} for user={actor.user_id or 'anonymous'}: {decision.reason}")
        # Reasons are logged but never returned to the caller.
        raise error_for(decision.code)
    return actor


# ---------------------------------------------------------------------------
# Resource-level tenant check
# ---------------------------------------------------------------------------


def ensure_tenant_access(
    actor: Actor,
    resource_municipality_id: str | None,
    *,
    asserted_municipality_id: str | None = None,
) -> None:
    """Require the actor to act within the resource's municipality.

    The actor passes when it is bound to exactly the resource's
    municipality. A super-admin is usually unbound; it also passes when it
    explicitly asserts the resource's municipality, never implicitly.

    Args:
        actor: The caller snapshot.
        resource_municipality_id: Municipality that owns the resource.
        asserted_municipality_id: Municipality a super-admin declares it is acting in.

    Raises:
        ForbiddenError: On any mismatch, with a generic message.
    """
    if resource_municipality_id is None:
        allowed = actor.is_super_admin
    elif actor.municipality_id == resource_municipality_id:
        allowed = True
    else:
        allowed = actor.is_super_admin and asserted_municipality_id == resource_municipality_id

    if not allowed:
        security_logger.warning(
            f"Tenant check failed for user={actor.user_id} "
            f"(actor={actor.municipality_id}, resource={resource_municipality_id})"
        )
        raise ForbiddenError()


def scope_municipality(actor: Actor, asserted_municipality_id: str | None = None) -> str | None:
    """Resolve the municipality a tenant-scoped listing should be filtered by.

    Bound actors below super-admin always get their own municipality. A
    super-admin gets the municipality it asserts, then its own binding, or
    None meaning platform-wide.
    """
    if actor.is_super_admin:
        return asserted_municipality_id or actor.municipality_id
    if not actor.municipality_id:
        raise ForbiddenError()
    return actor.municipality_id
