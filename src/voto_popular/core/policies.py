"""Operation table: every RPC operation with its access policy.

The operation name doubles as the RPC path under the API prefix, so
routes, dependencies and services all look policies up by the same key.
"""

from dataclasses import dataclass

from voto_popular.core.authorization import AccessPolicy
from voto_popular.core.roles import Role


@dataclass(frozen=True)
class Operation:
    """A named RPC operation.

    Attributes:
        name: Dotted operation name, also the route path.
        kind: ``query`` (GET) or ``mutation`` (POST).
        policy: Access requirements checked by the guard chain.
        resource_tenant_check: Whether the service also compares the target
            record's municipality with the actor's.
        summary: One-line description used in the OpenAPI document.
    """

    name: str
    kind: str
    policy: AccessPolicy
    resource_tenant_check: bool = False
    summary: str = ""

    @property
    def method(self) -> str:
        return "GET" if self.kind == "query" else "POST"

    @property
    def path(self) -> str:
        return f"/{self.name}"


_PUBLIC = AccessPolicy(authenticated=False)
_AUTHENTICATED = AccessPolicy(authenticated=True)


def _floor(role: Role, *, tenant_bound: bool = True) -> AccessPolicy:
    return AccessPolicy(authenticated=True, floor=role, tenant_bound=tenant_bound)


_OPERATION_LIST: tuple[Operation, ...] = (
    # auth
    Operation("auth.sync", "mutation", _PUBLIC, summary="Create or refresh the caller's user record"),
    Operation("auth.me", "query", _AUTHENTICATED, summary="Current user"),
    Operation("auth.update_profile", "mutation", _AUTHENTICATED, summary="Update own profile"),
    # proposals
    Operation("proposals.create", "mutation", _floor(Role.COUNCIL_MEMBER), summary="Submit a proposal"),
    Operation("proposals.list_approved", "query", _PUBLIC, summary="Approved proposals of a municipality"),
    Operation("proposals.get", "query", _PUBLIC, summary="Approved proposal detail"),
    Operation("proposals.list_mine", "query", _floor(Role.COUNCIL_MEMBER), summary="Own proposals"),
    Operation("proposals.list_for_admin", "query", _floor(Role.CITY_ADMIN), summary="All municipality proposals"),
    Operation("proposals.stats", "query", _floor(Role.CITY_ADMIN), summary="Proposal counts per status"),
    Operation(
        "proposals.approve",
        "mutation",
        _floor(Role.CITY_ADMIN),
        resource_tenant_check=True,
        summary="Approve a proposal",
    ),
    Operation(
        "proposals.reject",
        "mutation",
        _floor(Role.CITY_ADMIN),
        resource_tenant_check=True,
        summary="Reject a proposal",
    ),
    Operation(
        "proposals.archive",
        "mutation",
        _floor(Role.CITY_ADMIN),
        resource_tenant_check=True,
        summary="Archive a proposal",
    ),
    # votes
    Operation("votes.cast", "mutation", _floor(Role.CITIZEN), resource_tenant_check=True, summary="Vote"),
    Operation("votes.has_voted", "query", _PUBLIC, summary="Whether the caller voted on a proposal"),
    Operation("votes.list_mine", "query", _floor(Role.CITIZEN), summary="Proposals the caller voted on"),
    # municipalities and branding
    Operation("municipalities.get", "query", _PUBLIC, summary="Municipality branding"),
    Operation("municipalities.list", "query", _PUBLIC, summary="All municipalities"),
    Operation(
        "municipalities.create",
        "mutation",
        _floor(Role.SUPER_ADMIN, tenant_bound=False),
        summary="Create a municipality",
    ),
    Operation(
        "municipalities.update",
        "mutation",
        _floor(Role.SUPER_ADMIN, tenant_bound=False),
        summary="Update a municipality",
    ),
    Operation("themes.get", "query", _PUBLIC, summary="Theme configuration"),
    Operation(
        "themes.update",
        "mutation",
        _floor(Role.SUPER_ADMIN, tenant_bound=False),
        summary="Update theme configuration",
    ),
    # users
    Operation("users.list", "query", _floor(Role.CITY_ADMIN), summary="Users of the municipality"),
    Operation(
        "users.assign_role",
        "mutation",
        _floor(Role.CITY_ADMIN),
        resource_tenant_check=True,
        summary="Assign a role",
    ),
    # complaints
    Operation("complaints.submit", "mutation", _AUTHENTICATED, summary="Submit a complaint"),
    Operation("complaints.list", "query", _floor(Role.CITY_ADMIN), summary="Complaints of the municipality"),
    Operation(
        "complaints.update_status",
        "mutation",
        _floor(Role.CITY_ADMIN),
        resource_tenant_check=True,
        summary="Triage a complaint",
    ),
    # audit
    Operation("audit.list", "query", _floor(Role.CITY_ADMIN), summary="Audit trail"),
)

OPERATIONS: dict[str, Operation] = {op.name: op for op in _OPERATION_LIST}
