"""Tests for user administration service."""

import pytest
from sqlalchemy import select

from voto_popular.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from voto_popular.core.roles import Role
from voto_popular.models.audit_log import AuditAction, AuditLog
from voto_popular.services.user_service import assign_role, list_users


class TestAssignRoleBySuperAdmin:
    """Super-admins may assign any role anywhere."""

    @pytest.mark.asyncio
    async def test_promote_to_city_admin(self, async_session, super_admin, citizen, as_actor) -> None:
        user = await assign_role(async_session, as_actor(super_admin), citizen.id, Role.CITY_ADMIN, municipality_id="muriae-mg")
        assert user.role == Role.CITY_ADMIN
        assert user.municipality_id == "muriae-mg"

        logs = (await async_session.execute(select(AuditLog))).scalars().all()
        assert [log.action for log in logs] == [AuditAction.ROLE_ASSIGNED]
        assert logs[0].user_id == super_admin.id

    @pytest.mark.asyncio
    async def test_super_admin_role_is_unbound(self, async_session, super_admin, city_admin, as_actor) -> None:
        user = await assign_role(async_session, as_actor(super_admin), city_admin.id, Role.SUPER_ADMIN)
        assert user.municipality_id is None

    @pytest.mark.asyncio
    async def test_municipality_required(self, async_session, super_admin, make_user, as_actor) -> None:
        unbound = await make_user("citizen-new", Role.CITIZEN, None)
        with pytest.raises(ValidationFailedError):
            await assign_role(async_session, as_actor(super_admin), unbound.id, Role.COUNCIL_MEMBER)

    @pytest.mark.asyncio
    async def test_unknown_municipality(self, async_session, super_admin, citizen, as_actor) -> None:
        with pytest.raises(ValidationFailedError):
            await assign_role(
                async_session, as_actor(super_admin), citizen.id, Role.COUNCIL_MEMBER, municipality_id="atlantida"
            )

    @pytest.mark.asyncio
    async def test_unknown_user(self, async_session, super_admin, muriae, as_actor) -> None:
        with pytest.raises(NotFoundError):
            await assign_role(async_session, as_actor(super_admin), "ghost", Role.CITIZEN, municipality_id="muriae-mg")

    @pytest.mark.asyncio
    async def test_cannot_change_own_role(self, async_session, super_admin, as_actor) -> None:
        with pytest.raises(ForbiddenError):
            await assign_role(async_session, as_actor(super_admin), super_admin.id, Role.CITIZEN)


class TestAssignRoleByCityAdmin:
    """City admins manage citizens and council members of their municipality."""

    @pytest.mark.asyncio
    async def test_promote_citizen_to_council(self, async_session, city_admin, citizen, as_actor) -> None:
        user = await assign_role(async_session, as_actor(city_admin), citizen.id, Role.COUNCIL_MEMBER)
        assert user.role == Role.COUNCIL_MEMBER
        assert user.municipality_id == "muriae-mg"

    @pytest.mark.asyncio
    async def test_demote_council_member(self, async_session, city_admin, council_member, as_actor) -> None:
        user = await assign_role(async_session, as_actor(city_admin), council_member.id, Role.CITIZEN)
        assert user.role == Role.CITIZEN

    @pytest.mark.asyncio
    async def test_binds_unbound_citizen(self, async_session, city_admin, make_user, as_actor) -> None:
        unbound = await make_user("citizen-new", Role.CITIZEN, None)
        user = await assign_role(async_session, as_actor(city_admin), unbound.id, Role.COUNCIL_MEMBER)
        assert user.municipality_id == "muriae-mg"

    @pytest.mark.asyncio
    async def test_cannot_grant_admin(self, async_session, city_admin, citizen, as_actor) -> None:
        with pytest.raises(ForbiddenError):
            await assign_role(async_session, as_actor(city_admin), citizen.id, Role.CITY_ADMIN)

    @pytest.mark.asyncio
    async def test_cannot_touch_peer_admin(self, async_session, city_admin, make_user, as_actor) -> None:
        peer = await make_user("admin-3", Role.CITY_ADMIN, "muriae-mg")
        with pytest.raises(ForbiddenError):
            await assign_role(async_session, as_actor(city_admin), peer.id, Role.CITIZEN)

    @pytest.mark.asyncio
    async def test_cannot_reach_other_municipality(
        self, async_session, city_admin, cataguases, make_user, as_actor
    ) -> None:
        outsider = await make_user("citizen-9", Role.CITIZEN, "cataguases-mg")
        with pytest.raises(ForbiddenError):
            await assign_role(async_session, as_actor(city_admin), outsider.id, Role.COUNCIL_MEMBER)
        with pytest.raises(ForbiddenError):
            await assign_role(
                async_session, as_actor(city_admin), outsider.id, Role.COUNCIL_MEMBER, municipality_id="cataguases-mg"
            )

    @pytest.mark.asyncio
    async def test_council_member_forbidden(self, async_session, council_member, citizen, as_actor) -> None:
        with pytest.raises(ForbiddenError):
            await assign_role(async_session, as_actor(council_member), citizen.id, Role.COUNCIL_MEMBER)


class TestListUsers:
    """Tests for list_users."""

    @pytest.mark.asyncio
    async def test_city_admin_sees_own_municipality(
        self, async_session, city_admin, citizen, foreign_admin, as_actor
    ) -> None:
        users, total = await list_users(async_session, as_actor(city_admin), municipality_id="cataguases-mg")
        assert total == 2
        assert {u.id for u in users} == {"admin-1", "citizen-1"}

    @pytest.mark.asyncio
    async def test_role_filter(self, async_session, city_admin, citizen, council_member, as_actor) -> None:
        users, total = await list_users(async_session, as_actor(city_admin), role=Role.COUNCIL_MEMBER)
        assert total == 1
        assert users[0].id == "council-1"

    @pytest.mark.asyncio
    async def test_super_admin_platform_wide(
        self, async_session, super_admin, city_admin, foreign_admin, as_actor
    ) -> None:
        _, total = await list_users(async_session, as_actor(super_admin))
        assert total == 3

    @pytest.mark.asyncio
    async def test_pagination(self, async_session, city_admin, make_user, as_actor) -> None:
        for i in range(5):
            await make_user(f"citizen-{i}", Role.CITIZEN, "muriae-mg")
        users, total = await list_users(async_session, as_actor(city_admin), page=2, page_size=4)
        assert total == 6
        assert len(users) == 2
