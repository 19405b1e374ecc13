"""Shared test fixtures for async database, sessions, records, and identity tokens."""

import time
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import jwt
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from voto_popular.core.authorization import Actor
from voto_popular.core.config import Settings
from voto_popular.core.roles import Role
from voto_popular.models.base import Base
from voto_popular.models.municipality import Municipality
from voto_popular.models.proposal import Proposal, ProposalStatus
from voto_popular.models.user import User

TEST_SHARED_SECRET = "test-identity-secret-not-for-production-0123456789"


@pytest.fixture
def database_path(tmp_path: Path) -> Path:
    """File-backed SQLite database so several sessions can run concurrently."""
    return tmp_path / "voto-popular-test.db"


@pytest.fixture
def settings(database_path: Path) -> Settings:
    """Test application settings."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{database_path}",
        identity_shared_secret=TEST_SHARED_SECRET,
        environment="test",
        rate_limit_per_minute=10_000,
        mutation_rate_limit_per_minute=10_000,
    )


@pytest.fixture
async def async_engine(database_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create a file-backed async SQLite engine with all tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{database_path}",
        echo=False,
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for tests that need more than one session."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_municipality(async_session: AsyncSession) -> Callable[..., Awaitable[Municipality]]:
    """Factory creating a municipality with default branding."""

    async def _make(slug: str = "muriae-mg", name: str = "Muriaé", **fields: object) -> Municipality:
        municipality = Municipality(id=slug, name=name, **fields)
        async_session.add(municipality)
        await async_session.commit()
        await async_session.refresh(municipality)
        return municipality

    return _make


@pytest.fixture
def make_user(async_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory creating a persisted user."""

    async def _make(
        user_id: str,
        role: Role = Role.CITIZEN,
        municipality_id: str | None = None,
        **fields: object,
    ) -> User:
        fields.setdefault("email", f"{user_id}@example.com")
        user = User(id=user_id, role=role, municipality_id=municipality_id, **fields)
        async_session.add(user)
        await async_session.commit()
        await async_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_proposal(async_session: AsyncSession) -> Callable[..., Awaitable[Proposal]]:
    """Factory creating a proposal directly in the given status."""

    async def _make(
        author: User,
        status: ProposalStatus = ProposalStatus.PENDING,
        title: str = "Ciclovia na Avenida Central",
        description: str = "Construir uma ciclovia ligando o centro aos bairros.",
        **fields: object,
    ) -> Proposal:
        proposal = Proposal(
            municipality_id=author.municipality_id,
            author_id=author.id,
            title=title,
            description=description,
            status=status,
            **fields,
        )
        async_session.add(proposal)
        await async_session.commit()
        await async_session.refresh(proposal)
        return proposal

    return _make


@pytest.fixture
async def muriae(make_municipality) -> Municipality:
    return await make_municipality("muriae-mg", "Muriaé", state="MG")


@pytest.fixture
async def cataguases(make_municipality) -> Municipality:
    return await make_municipality("cataguases-mg", "Cataguases", state="MG")


@pytest.fixture
async def citizen(make_user, muriae: Municipality) -> User:
    return await make_user("citizen-1", Role.CITIZEN, muriae.id)


@pytest.fixture
async def council_member(make_user, muriae: Municipality) -> User:
    return await make_user("council-1", Role.COUNCIL_MEMBER, muriae.id)


@pytest.fixture
async def city_admin(make_user, muriae: Municipality) -> User:
    return await make_user("admin-1", Role.CITY_ADMIN, muriae.id)


@pytest.fixture
async def foreign_admin(make_user, cataguases: Municipality) -> User:
    return await make_user("admin-2", Role.CITY_ADMIN, cataguases.id)


@pytest.fixture
async def super_admin(make_user) -> User:
    return await make_user("root-1", Role.SUPER_ADMIN, None)


def actor_for(user: User) -> Actor:
    """Snapshot a persisted user as an actor."""
    return Actor.from_user(user)


@pytest.fixture
def as_actor() -> Callable[[User], Actor]:
    return actor_for


# ---------------------------------------------------------------------------
# Identity tokens
# ---------------------------------------------------------------------------


def make_identity_token(
    subject: str,
    email: str | None = None,
    *,
    name: str | None = None,
    email_verified: bool = True,
    secret: str = TEST_SHARED_SECRET,
    expires_in: int = 3600,
) -> str:
    """Sign an HS256 identity token the way the development mode expects."""
    now = int(time.time())
    claims: dict[str, object] = {
        "sub": subject,
        "email": email or f"{subject}@example.com",
        "email_verified": email_verified,
        "iat": now,
        "exp": now + expires_in,
    }
    if name is not None:
        claims["name"] = name
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def identity_token() -> Callable[..., str]:
    """Factory for signed HS256 identity tokens."""
    return make_identity_token
