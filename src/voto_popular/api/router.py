"""Root API router with the versioned prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from voto_popular.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware, setup_cors
from voto_popular.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Every operation is mounted at ``{prefix}/{operation name}``.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from voto_popular.api.v1.audit import router as audit_router
    from voto_popular.api.v1.auth import router as auth_router
    from voto_popular.api.v1.complaints import router as complaints_router
    from voto_popular.api.v1.municipalities import router as municipalities_router
    from voto_popular.api.v1.proposals import router as proposals_router
    from voto_popular.api.v1.system import router as system_router
    from voto_popular.api.v1.users import router as users_router
    from voto_popular.api.v1.votes import router as votes_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(system_router)
    root_router.include_router(auth_router)
    root_router.include_router(proposals_router)
    root_router.include_router(votes_router)
    root_router.include_router(municipalities_router)
    root_router.include_router(users_router)
    root_router.include_router(complaints_router)
    root_router.include_router(audit_router)

    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=settings.rate_limit_per_minute,
        mutations_per_minute=settings.mutation_rate_limit_per_minute,
        trusted_proxy_headers=settings.trusted_proxy_header_list,
    )
