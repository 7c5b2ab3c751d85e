"""
Database Connection Management
Async SQLAlchemy engine and row store construction
Source: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
Verified: 2025-11-14
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from src.api.config import Settings, settings
from src.db.memory_store import InMemoryDataStore
from src.db.sql_store import SQLAlchemyDataStore
from src.db.store import DataStore
from src.utils.logging import get_logger

logger = get_logger(__name__)


# Global engine instance, created lazily and disposed on shutdown
_engine: AsyncEngine | None = None


def get_engine(config: Settings | None = None) -> AsyncEngine:
    """
    Get or create the global async engine.

    Returns:
        AsyncEngine instance
    """
    global _engine
    config = config or settings

    if _engine is None:
        logger.info(f"Creating database engine: {config.database_url.split('@')[-1]}")

        if config.is_testing:
            # NullPool for testing: no connection pooling, no pool parameters
            _engine = create_async_engine(
                config.database_url,
                echo=config.DEBUG,
                poolclass=NullPool,
            )
        else:
            _engine = create_async_engine(
                config.database_url,
                echo=config.DEBUG,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW,
                pool_timeout=config.DB_POOL_TIMEOUT,
                pool_pre_ping=True,  # Verify connections before using
            )

        logger.info("Database engine created successfully")

    return _engine


def create_data_store(config: Settings | None = None) -> DataStore:
    """
    Build the row store selected by ``DATA_BACKEND``.

    ``memory`` returns an empty ``InMemoryDataStore`` (demo mode);
    ``postgres`` reflects the externally owned tables over the async engine.
    """
    config = config or settings
    if config.uses_database:
        logger.info("Using PostgreSQL row store")
        return SQLAlchemyDataStore(get_engine(config))
    logger.info("Using in-memory row store")
    return InMemoryDataStore()


async def close_db_connection() -> None:
    """Close database connection pool."""
    global _engine

    if _engine is not None:
        logger.info("Closing database connection pool...")
        await _engine.dispose()
        _engine = None
        logger.info("Database connection pool closed")


async def check_db_connection(config: Settings | None = None) -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy (or no database is configured),
        False otherwise
    """
    config = config or settings
    if not config.uses_database:
        return True
    try:
        engine = get_engine(config)
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
