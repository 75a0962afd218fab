import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_persistence_disabled = False


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
    """Session factory for the configured database, or None when persistence is disabled."""
    global _engine, _session_factory
    if _session_factory is not None:
        return _session_factory

    settings = get_settings()
    if _persistence_disabled or not settings.database_url:
        return None

    _engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def create_tables() -> bool:
    """Create tables for the configured database.

    Returns False when persistence is disabled. A database that cannot be reached
    disables persistence for the rest of the process instead of failing startup.
    """
    global _persistence_disabled
    if get_session_factory() is None:
        return False
    # Register models on Base.metadata
    import app.models  # noqa: F401

    try:
        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.warning(f"Database unavailable, quote snapshots disabled: {e}")
        await dispose_engine()
        _persistence_disabled = True
        return False
    logger.info("Database tables created")
    return True


async def dispose_engine():
    global _engine, _session_factory, _persistence_disabled
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
    _persistence_disabled = False
