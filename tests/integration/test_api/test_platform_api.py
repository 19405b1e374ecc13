"""End-to-end tests of the RPC surface over the real application and a SQLite store."""

from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from voto_popular.main import create_app

API = "/api/v1"


@pytest.fixture
async def app(settings, async_engine) -> AsyncGenerator[FastAPI]:
    """Application bound to the same SQLite file the record fixtures write to."""
    application = create_app(settings)
    yield application
    await application.state.database.dispose()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def bearer(identity_token):
    """Authorization headers for a user id."""

    def _headers(user_id: str) -> dict[str, str]:
        return _auth(identity_token(user_id))

    return _headers


class TestSystem:
    """Health and info endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get(f"{API}/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": True}
        assert response.headers["X-Frame-Options"] == "DENY"


class TestAuthFlow:
    """auth.sync, auth.me and auth.update_profile."""

    @pytest.mark.asyncio
    async def test_sync_creates_then_refreshes(self, client: AsyncClient, identity_token) -> None:
        token = identity_token("uid-new", "nova@example.com", name="Nova Cidadã")

        first = await client.post(f"{API}/auth.sync", headers=_auth(token))
        assert first.status_code == 200
        body = first.json()
        assert body["created"] is True
        assert body["user"]["role"] == "citizen"
        assert body["user"]["municipality_id"] is None
        assert body["user"]["has_cpf"] is False

        second = await client.post(f"{API}/auth.sync", headers=_auth(token))
        assert second.json()["created"] is False
        assert second.json()["user"]["id"] == "uid-new"

    @pytest.mark.asyncio
    async def test_sync_requires_token(self, client: AsyncClient) -> None:
        response = await client.post(f"{API}/auth.sync")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["code"] == "UNAUTHENTICATED"

    @pytest.mark.asyncio
    async def test_forged_token_counts_as_failure(
        self, client: AsyncClient, async_session, citizen, identity_token
    ) -> None:
        forged = identity_token(citizen.id, secret="not-the-platform-secret-0123456789abcdef")
        response = await client.post(f"{API}/auth.sync", headers=_auth(forged))
        assert response.status_code == 401

        await async_session.refresh(citizen)
        assert citizen.failed_login_count == 1

    @pytest.mark.asyncio
    async def test_expired_token_is_anonymous(self, client: AsyncClient, citizen, identity_token) -> None:
        expired = identity_token(citizen.id, expires_in=-60)
        response = await client.get(f"{API}/auth.me", headers=_auth(expired))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, city_admin, bearer) -> None:
        response = await client.get(f"{API}/auth.me", headers=bearer(city_admin.id))
        assert response.status_code == 200
        assert response.json()["role"] == "city_admin"
        assert response.json()["municipality_id"] == "muriae-mg"

    @pytest.mark.asyncio
    async def test_update_profile(self, client: AsyncClient, citizen, bearer) -> None:
        response = await client.post(
            f"{API}/auth.update_profile",
            headers=bearer(citizen.id),
            json={"name": "Maria Silva", "cpf": "529.982.247-25"},
        )
        assert response.status_code == 200
        assert response.json()["has_cpf"] is True
        assert "cpf" not in response.json()

    @pytest.mark.asyncio
    async def test_update_profile_rejects_role(self, client: AsyncClient, citizen, bearer) -> None:
        response = await client.post(f"{API}/auth.update_profile", headers=bearer(citizen.id), json={"role": "super_admin"})
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION"


class TestProposalLifecycle:
    """Creation, moderation and voting across roles and tenants."""

    @pytest.mark.asyncio
    async def test_full_cycle(self, client: AsyncClient, citizen, council_member, city_admin, bearer) -> None:
        created = await client.post(
            f"{API}/proposals.create",
            headers=bearer(council_member.id),
            json={"title": "Ciclovia na Avenida Central", "description": "Ligar o centro aos bairros com ciclovia."},
        )
        assert created.status_code == 201
        proposal = created.json()
        assert proposal["status"] == "pending"
        assert proposal["municipality_id"] == "muriae-mg"
        proposal_id = proposal["id"]

        hidden = await client.get(f"{API}/proposals.get", params={"proposal_id": proposal_id})
        assert hidden.status_code == 404

        approved = await client.post(
            f"{API}/proposals.approve", headers=bearer(city_admin.id), json={"proposal_id": proposal_id}
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        listing = await client.get(f"{API}/proposals.list_approved", params={"municipality_id": "muriae-mg"})
        assert [p["id"] for p in listing.json()["items"]] == [proposal_id]
        assert listing.json()["pagination"]["total"] == 1

        vote = await client.post(f"{API}/votes.cast", headers=bearer(citizen.id), json={"proposal_id": proposal_id})
        assert vote.status_code == 200
        assert vote.json() == {"proposal_id": proposal_id, "vote_count": 1, "has_voted": True}

        again = await client.post(f"{API}/votes.cast", headers=bearer(citizen.id), json={"proposal_id": proposal_id})
        assert again.status_code == 409
        assert again.json()["code"] == "CONFLICT"

        voted = await client.get(
            f"{API}/votes.has_voted", headers=bearer(citizen.id), params={"proposal_id": proposal_id}
        )
        assert voted.json()["has_voted"] is True
        anonymous = await client.get(f"{API}/votes.has_voted", params={"proposal_id": proposal_id})
        assert anonymous.json()["has_voted"] is False

        mine = await client.get(f"{API}/votes.list_mine", headers=bearer(citizen.id))
        assert mine.json()["proposal_ids"] == [proposal_id]

        stats = await client.get(f"{API}/proposals.stats", headers=bearer(city_admin.id))
        assert stats.json()["approved"] == 1
        assert stats.json()["votes"] == 1

    @pytest.mark.asyncio
    async def test_citizen_cannot_create(self, client: AsyncClient, citizen, bearer) -> None:
        response = await client.post(
            f"{API}/proposals.create",
            headers=bearer(citizen.id),
            json={"title": "Praça nova", "description": "Reformar a praça da matriz."},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_anonymous_create_is_401(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/proposals.create", json={"title": "Praça nova", "description": "Reformar a praça da matriz."}
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_municipality_cannot_be_supplied(self, client: AsyncClient, council_member, bearer) -> None:
        response = await client.post(
            f"{API}/proposals.create",
            headers=bearer(council_member.id),
            json={
                "title": "Praça nova",
                "description": "Reformar a praça da matriz.",
                "municipality_id": "cataguases-mg",
            },
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_short_title_is_validation_error(self, client: AsyncClient, council_member, bearer) -> None:
        response = await client.post(
            f"{API}/proposals.create",
            headers=bearer(council_member.id),
            json={"title": "Obra", "description": "Reformar a praça da matriz."},
        )
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION"
        assert body["errors"][0]["loc"] == ["body", "title"]

    @pytest.mark.asyncio
    async def test_cross_tenant_moderation_forbidden(
        self, client: AsyncClient, council_member, foreign_admin, make_proposal, bearer
    ) -> None:
        proposal = await make_proposal(council_member)
        response = await client.post(
            f"{API}/proposals.approve", headers=bearer(foreign_admin.id), json={"proposal_id": proposal.public_id}
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_vote_on_pending_not_open(
        self, client: AsyncClient, citizen, council_member, make_proposal, bearer
    ) -> None:
        proposal = await make_proposal(council_member)
        response = await client.post(
            f"{API}/votes.cast", headers=bearer(citizen.id), json={"proposal_id": proposal.public_id}
        )
        assert response.status_code == 409
        assert response.json()["code"] == "NOT_OPEN_FOR_VOTING"


class TestTenantAdministration:
    """Municipalities, themes, roles, complaints and audit over HTTP."""

    @pytest.mark.asyncio
    async def test_super_admin_provisions_municipality(self, client: AsyncClient, super_admin, bearer) -> None:
        response = await client.post(
            f"{API}/municipalities.create",
            headers=bearer(super_admin.id),
            json={"slug": "uba-mg", "name": "Ubá", "state": "MG", "primary_color": "#112233"},
        )
        assert response.status_code == 201
        assert response.json()["primary_color"] == "#112233"

        theme = await client.get(f"{API}/themes.get", params={"municipality_id": "uba-mg"})
        assert theme.json()["is_default"] is False

        listing = await client.get(f"{API}/municipalities.list")
        assert [m["id"] for m in listing.json()] == ["uba-mg"]

    @pytest.mark.asyncio
    async def test_city_admin_cannot_provision(self, client: AsyncClient, city_admin, bearer) -> None:
        response = await client.post(
            f"{API}/municipalities.create", headers=bearer(city_admin.id), json={"slug": "uba-mg", "name": "Ubá"}
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_theme_defaults(self, client: AsyncClient) -> None:
        response = await client.get(f"{API}/themes.get", params={"municipality_id": "atlantida"})
        assert response.status_code == 200
        assert response.json()["is_default"] is True

    @pytest.mark.asyncio
    async def test_city_admin_promotes_citizen(self, client: AsyncClient, city_admin, citizen, bearer) -> None:
        response = await client.post(
            f"{API}/users.assign_role",
            headers=bearer(city_admin.id),
            json={"user_id": citizen.id, "role": "council_member"},
        )
        assert response.status_code == 200
        assert response.json()["role"] == "council_member"

        me = await client.get(f"{API}/auth.me", headers=bearer(citizen.id))
        assert me.json()["role"] == "council_member"

    @pytest.mark.asyncio
    async def test_complaint_and_audit(self, client: AsyncClient, citizen, city_admin, bearer) -> None:
        submitted = await client.post(
            f"{API}/complaints.submit",
            headers=bearer(citizen.id),
            json={"complaint_text": "Buraco enorme na Rua Sete de Setembro."},
        )
        assert submitted.status_code == 201
        complaint_id = submitted.json()["id"]

        updated = await client.post(
            f"{API}/complaints.update_status",
            headers=bearer(city_admin.id),
            json={"complaint_id": complaint_id, "status": "closed"},
        )
        assert updated.json()["status"] == "closed"

        audit = await client.get(f"{API}/audit.list", headers=bearer(city_admin.id))
        assert audit.status_code == 200
        actions = [entry["action"] for entry in audit.json()["items"]]
        assert "COMPLAINT_STATUS_CHANGED" in actions

    @pytest.mark.asyncio
    async def test_citizen_cannot_read_audit(self, client: AsyncClient, citizen, bearer) -> None:
        response = await client.get(f"{API}/audit.list", headers=bearer(citizen.id))
        assert response.status_code == 403
