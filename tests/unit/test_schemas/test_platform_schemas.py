"""Unit tests for proposal, vote, municipality, user and complaint schemas."""

from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from voto_popular.core.roles import Role
from voto_popular.models.complaint import ComplaintStatus
from voto_popular.schemas.complaint import ComplaintStatusRequest, ComplaintSubmitRequest
from voto_popular.schemas.municipality import MunicipalityCreateRequest, ThemeUpdateRequest
from voto_popular.schemas.proposal import ProposalCreateRequest, ProposalRejectRequest, ProposalResponse
from voto_popular.schemas.user import AssignRoleRequest
from voto_popular.schemas.vote import VoteRequest

NOW = datetime(2026, 3, 1, tzinfo=UTC)


class TestProposalSchemas:
    """Tests for proposal request and response schemas."""

    def test_create_strips_whitespace(self) -> None:
        req = ProposalCreateRequest(title="  Ciclovia  ", description="Uma ciclovia no centro.")
        assert req.title == "Ciclovia"

    def test_municipality_not_accepted(self) -> None:
        """The municipality always comes from the author."""
        with pytest.raises(ValidationError):
            ProposalCreateRequest(title="Ciclovia", description="Uma ciclovia no centro.", municipality_id="x")

    @pytest.mark.parametrize("title", ["Obra", "x" * 256])
    def test_title_bounds(self, title: str) -> None:
        with pytest.raises(ValidationError):
            ProposalCreateRequest(title=title, description="Uma ciclovia no centro.")

    def test_reject_reason_optional(self) -> None:
        assert ProposalRejectRequest(proposal_id="p1").reason is None

    def test_response_uses_public_id(self) -> None:
        proposal = SimpleNamespace(
            id=42,
            public_id="p_abc",
            municipality_id="muriae-mg",
            author_id="council-1",
            title="Ciclovia",
            description="Uma ciclovia no centro.",
            status="approved",
            vote_count=3,
            reviewed_at=NOW,
            rejection_reason=None,
            created_at=NOW,
            updated_at=NOW,
        )
        response = ProposalResponse.model_validate(proposal)
        assert response.id == "p_abc"
        assert response.model_dump()["id"] == "p_abc"


class TestMunicipalitySchemas:
    """Tests for municipality and theme requests."""

    def test_create_valid(self) -> None:
        req = MunicipalityCreateRequest(slug="muriae-mg", name="Muriaé", primary_color="#0066CC")
        assert req.model_dump(exclude={"slug", "name"}, exclude_none=True) == {"primary_color": "#0066CC"}

    @pytest.mark.parametrize("slug", ["Muriae", "muriae_mg", "muriae--mg"])
    def test_slug_pattern(self, slug: str) -> None:
        with pytest.raises(ValidationError):
            MunicipalityCreateRequest(slug=slug, name="Muriaé")

    def test_colour_pattern(self) -> None:
        with pytest.raises(ValidationError):
            ThemeUpdateRequest(municipality_id="muriae-mg", accent_color="orange")

    def test_unknown_theme_field(self) -> None:
        with pytest.raises(ValidationError):
            ThemeUpdateRequest(municipality_id="muriae-mg", background="#000000")


class TestOtherRequests:
    """Tests for vote, role and complaint requests."""

    def test_vote_requires_proposal(self) -> None:
        with pytest.raises(ValidationError):
            VoteRequest()

    def test_assign_role_parses_role(self) -> None:
        assert AssignRoleRequest(user_id="u1", role="council_member").role is Role.COUNCIL_MEMBER

    def test_assign_role_rejects_unknown(self) -> None:
        with pytest.raises(ValidationError):
            AssignRoleRequest(user_id="u1", role="mayor")

    def test_complaint_length(self) -> None:
        with pytest.raises(ValidationError):
            ComplaintSubmitRequest(complaint_text="curta")

    def test_complaint_status(self) -> None:
        req = ComplaintStatusRequest(complaint_id="8f14e45f-ceea-467a-9af4-2c2f7a6a9d60", status="in_review")
        assert req.status == ComplaintStatus.IN_REVIEW
