"""Health and version endpoints (no authentication required)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from voto_popular import __version__
from voto_popular.core.config import Settings
from voto_popular.core.database import Database
from voto_popular.core.dependencies import get_app_settings, get_database

router = APIRouter(tags=["system"])


@router.get("/health", status_code=200)
async def health_check(database: Annotated[Database, Depends(get_database)]) -> dict:
    """Report liveness and whether the store answers. Never fails."""
    database_ok = await database.ping()
    return {"status": "healthy" if database_ok else "degraded", "database": database_ok}


@router.get("/info", status_code=200)
async def info(settings: Annotated[Settings, Depends(get_app_settings)]) -> dict:
    """Return application version and environment."""
    return {
        "version": __version__,
        "environment": settings.environment,
        "identity_enabled": settings.identity_enabled,
    }
