"""
Database connection management.
Handles the async SQLAlchemy engine and scoped connection acquisition.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from pgcoord.config import StorageOptions, get_settings

logger = logging.getLogger(__name__)

# Global engine and provider instances
_engine: AsyncEngine | None = None
_provider: "ConnectionProvider | None" = None


class ConnectionProvider:
    """
    Hands out short-lived connections to the lock and the queue.

    Every connection runs inside its own transaction which commits when the
    scope exits normally and rolls back when it raises. The configured schema
    is applied to ORM and Core constructs through ``schema_translate_map``.
    """

    def __init__(self, engine: AsyncEngine, options: StorageOptions):
        """
        Initialize the provider.

        Args:
            engine: The SQLAlchemy async engine.
            options: Storage options; only the schema name is used here.
        """
        self._engine = engine
        self.options = options

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def acquire_connection(self) -> AsyncGenerator[AsyncConnection]:
        """
        Acquire a scoped connection.

        Yields:
            AsyncConnection: A connection inside an open transaction.
        """
        async with self._engine.begin() as connection:
            yield await connection.execution_options(
                schema_translate_map={None: self.options.schema_name}
            )


def get_engine() -> AsyncEngine:
    """
    Get or create the async database engine.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout_seconds,
            echo=settings.log_level == "DEBUG",
            pool_pre_ping=True,
        )
    return _engine


async def init_db(options: StorageOptions | None = None) -> ConnectionProvider:
    """
    Initialize the engine and the shared connection provider.
    Should be called on application startup.

    Args:
        options: Storage options. Defaults to the ones derived from settings.

    Returns:
        ConnectionProvider: The shared provider.
    """
    global _provider
    engine = get_engine()
    _provider = ConnectionProvider(engine, options or get_settings().storage_options())
    logger.info(
        "Database connection initialized",
        extra={"schema": _provider.options.schema_name},
    )
    return _provider


async def close_db() -> None:
    """
    Close the database connection.
    Should be called on application shutdown.
    """
    global _engine, _provider
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _provider = None
        logger.info("Database connection closed")


def get_connection_provider() -> ConnectionProvider:
    """
    Get the shared connection provider.

    Returns:
        ConnectionProvider: The provider created by ``init_db``.

    Raises:
        RuntimeError: If the database is not initialized.
    """
    if _provider is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _provider
