"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata. The store client and identity verifier are built
with the app and kept on ``app.state``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError

from voto_popular import __version__
from voto_popular.core.config import Settings, get_settings
from voto_popular.core.database import Database
from voto_popular.core.errors import ErrorCode, PlatformError, StoreUnavailableError
from voto_popular.core.identity import IdentityVerifier
from voto_popular.core.logging import setup_logging
from voto_popular.schemas.common import ErrorResponse


def _error_response(status_code: int, body: ErrorResponse, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(exclude_none=True)),
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: check the store on startup, dispose on shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_dir, json_logs=settings.log_json)

    database: Database = app.state.database
    database.connect()
    if not await database.ping():
        logger.warning("Database is not reachable at startup; requests will fail until it is")
    if not app.state.identity_verifier.enabled:
        logger.warning("No identity verification configured; every caller is anonymous")
    logger.info(f"Voto Popular API {__version__} started ({settings.environment})")

    yield

    await database.dispose()


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain and infrastructure errors to ``ErrorResponse`` bodies."""

    @app.exception_handler(PlatformError)
    async def platform_error_handler(request: Request, exc: PlatformError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if exc.code is ErrorCode.UNAUTHENTICATED else None
        body = ErrorResponse(detail=exc.message, code=exc.code, errors=exc.errors)
        return _error_response(exc.status_code, body, headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
        body = ErrorResponse(detail="Invalid input", code=ErrorCode.VALIDATION, errors=errors)
        return _error_response(422, body)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _error_response(400, ErrorResponse(detail=str(exc), code=ErrorCode.VALIDATION))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning(f"Constraint violation on {request.url.path}")
        return _error_response(409, ErrorResponse(detail="Resource conflict", code=ErrorCode.CONFLICT))

    async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
        cause = exc.orig if isinstance(exc, DBAPIError) else exc
        logger.error(f"Store failure on {request.url.path}: {type(cause).__name__}")
        error = StoreUnavailableError("Service temporarily unavailable")
        return _error_response(error.status_code, ErrorResponse(detail=error.message, code=error.code))

    # Drivers raise OSError directly (e.g. connection refused) when the
    # first connection of a pool cannot be opened.
    app.add_exception_handler(DBAPIError, store_error_handler)
    app.add_exception_handler(OSError, store_error_handler)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Voto Popular API",
        description="Multi-tenant civic participation: proposals, moderation and voting per municipality",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = Database(settings.database_url, schema=settings.database_schema)
    app.state.database.connect()
    app.state.identity_verifier = IdentityVerifier.from_settings(settings)

    register_exception_handlers(app)

    from voto_popular.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
