"""FastAPI dependency injection for sessions, identity, and access control.

The store client and the identity verifier live on ``app.state``; every
request resolves its caller once into a frozen ``Actor``. Token problems
never fail the request here: the caller is simply anonymous and the
operation's policy decides what happens next.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor, authorize
from voto_popular.core.config import Settings
from voto_popular.core.database import Database
from voto_popular.core.identity import IdentityVerificationError, IdentityVerifier, VerifiedIdentity
from voto_popular.models.user import User
from voto_popular.services.antifraud_service import AntifraudPolicy

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was created with."""
    return request.app.state.settings


def get_database(request: Request) -> Database:
    """Return the application's store client."""
    return request.app.state.database


def get_identity_verifier(request: Request) -> IdentityVerifier:
    """Return the application's identity verifier."""
    return request.app.state.identity_verifier


def get_antifraud_policy(settings: Annotated[Settings, Depends(get_app_settings)]) -> AntifraudPolicy:
    """Return the throttling limits configured for this deployment."""
    return AntifraudPolicy.from_settings(settings)


async def get_async_session(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    async with database.session() as session:
        yield session


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Return the raw bearer token, if the request carries one."""
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


async def get_verified_identity(
    token: Annotated[str | None, Depends(get_bearer_token)],
    verifier: Annotated[IdentityVerifier, Depends(get_identity_verifier)],
) -> VerifiedIdentity | None:
    """Verify the bearer token, yielding None when absent or invalid."""
    if token is None:
        return None
    try:
        return await verifier.verify(token)
    except IdentityVerificationError as e:
        logger.debug(f"Bearer token rejected: {e}")
        return None


async def get_current_actor(
    identity: Annotated[VerifiedIdentity | None, Depends(get_verified_identity)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Actor:
    """Resolve the caller into an ``Actor`` snapshot.

    Role and municipality always come from the persisted user record,
    never from token claims. A verified identity without a user record
    (not yet synced) is anonymous.
    """
    if identity is None:
        return Actor.anonymous()
    user = await session.get(User, identity.subject_id)
    if user is None:
        return Actor.anonymous()
    return Actor.from_user(user)


def require_operation(operation: str) -> Callable[..., Any]:
    """Factory that creates a dependency enforcing an operation's policy.

    Args:
        operation: Operation name from the policy table, e.g. ``proposals.approve``.

    Returns:
        A FastAPI dependency returning the authorized actor.
    """

    async def operation_guard(
        actor: Annotated[Actor, Depends(get_current_actor)],
    ) -> Actor:
        return authorize(actor, operation)

    return operation_guard
