"""Async store client with an explicit lifecycle.

A ``Database`` owns one SQLAlchemy async engine and its session factory.
The application creates it in the lifespan handler and keeps it on
``app.state``; CLI commands and tests construct their own instance.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


class Database:
    """Async engine and session factory bound to one connection string.

    Args:
        database_url: Async connection string (``postgresql+asyncpg://`` or
            ``sqlite+aiosqlite://``).
        schema: Optional PostgreSQL schema placed first on the search path.
        **engine_kwargs: Extra keyword arguments for ``create_async_engine``.
    """

    def __init__(self, database_url: str, *, schema: str | None = None, **engine_kwargs: Any) -> None:
        self.database_url = database_url
        self.schema = schema
        self._engine_kwargs = engine_kwargs
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """Return the engine.

        Raises:
            RuntimeError: If ``connect()`` has not been called.
        """
        if self._engine is None:
            msg = "Database not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._engine

    def connect(self) -> AsyncEngine:
        """Create the engine and session factory.

        Engine creation does not open a connection, so this never fails
        because the server is unreachable.

        Returns:
            The created async engine.
        """
        if self._engine is not None:
            return self._engine

        kwargs = dict(self._engine_kwargs)
        if self.schema is not None:
            connect_args = kwargs.pop("connect_args", {})
            if not isinstance(connect_args, dict):
                msg = "connect_args must be a dict"
                raise TypeError(msg)
            connect_args["server_settings"] = {"search_path": f"{self.schema},public"}
            kwargs["connect_args"] = connect_args
        # Only set pool defaults for connection-pooled engines (not SQLite/StaticPool)
        uses_static_pool = kwargs.get("poolclass") is StaticPool or "sqlite" in self.database_url
        if not uses_static_pool:
            kwargs.setdefault("pool_size", 10)
            kwargs.setdefault("max_overflow", 5)
            kwargs.setdefault("pool_pre_ping", True)

        self._engine = create_async_engine(self.database_url, **kwargs)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.debug(f"Database engine created for dialect {self._engine.dialect.name}")
        return self._engine

    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Return the session factory.

        Raises:
            RuntimeError: If ``connect()`` has not been called.
        """
        if self._session_factory is None:
            msg = "Database not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a new session, closing it afterwards."""
        async with self.session_factory()() as session:
            yield session

    async def ping(self) -> bool:
        """Check whether the store answers a trivial query.

        Returns:
            True when reachable, False otherwise.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database ping failed: {type(e).__name__}")
            return False
        return True

    async def dispose(self) -> None:
        """Dispose of the engine and release connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
