"""Database engine and session management."""
import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import settings
from ..config.settings import DatabaseSettings
from ..models.base import Base

logger = logging.getLogger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _ensure_sqlite_directory(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


def get_engine(config: DatabaseSettings | None = None) -> AsyncEngine:
    """Get or create the database engine."""
    global _engine

    if _engine is None:
        config = config or settings.database
        _ensure_sqlite_directory(config.url)
        _engine = create_async_engine(
            config.url,
            echo=config.echo,
            pool_pre_ping=True,
            pool_recycle=3600,  # 1 hour
        )
        logger.info("Database engine created")

    return _engine


def get_session_factory(
    config: DatabaseSettings | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory."""
    global _session_factory

    if _session_factory is None:
        engine = get_engine(config)
        _session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Session factory created")

    return _session_factory


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Initialize the database tables."""
    engine = engine or get_engine()

    async with engine.begin() as conn:
        # Create all tables
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created")


async def close_db() -> None:
    """Close the database connections."""
    global _engine, _session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed")
