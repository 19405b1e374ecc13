"""Tests for the operation table."""

from voto_popular.core.policies import OPERATIONS
from voto_popular.core.roles import Role


class TestOperations:
    """Tests for operation metadata."""

    def test_queries_are_get_and_mutations_post(self) -> None:
        for operation in OPERATIONS.values():
            assert operation.kind in ("query", "mutation")
            assert operation.method == ("GET" if operation.kind == "query" else "POST")
            assert operation.path == f"/{operation.name}"

    def test_public_operations(self) -> None:
        public = {name for name, op in OPERATIONS.items() if op.policy.is_public}
        assert public == {
            "auth.sync",
            "proposals.list_approved",
            "proposals.get",
            "votes.has_voted",
            "municipalities.get",
            "municipalities.list",
            "themes.get",
        }

    def test_floors(self) -> None:
        assert OPERATIONS["proposals.create"].policy.floor is Role.COUNCIL_MEMBER
        assert OPERATIONS["proposals.approve"].policy.floor is Role.CITY_ADMIN
        assert OPERATIONS["votes.cast"].policy.floor is Role.CITIZEN
        assert OPERATIONS["municipalities.create"].policy.floor is Role.SUPER_ADMIN
        assert OPERATIONS["themes.update"].policy.floor is Role.SUPER_ADMIN

    def test_resource_checked_operations_are_tenant_bound(self) -> None:
        for operation in OPERATIONS.values():
            if operation.resource_tenant_check:
                assert operation.policy.tenant_bound, operation.name
