"""Vote Pydantic v2 schemas."""

from pydantic import BaseModel, ConfigDict, Field


class VoteRequest(BaseModel):
    """Body of ``votes.cast``."""

    model_config = ConfigDict(extra="forbid")

    proposal_id: str = Field(min_length=1, max_length=40, description="Public proposal id")


class VoteResponse(BaseModel):
    """Result of a successful vote."""

    proposal_id: str
    vote_count: int
    has_voted: bool = True


class HasVotedResponse(BaseModel):
    """Advisory vote-button state."""

    proposal_id: str
    has_voted: bool


class MyVotesResponse(BaseModel):
    """Proposals the caller voted on."""

    proposal_ids: list[str]
