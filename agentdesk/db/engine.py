"""
Async SQLAlchemy engine and session factory.
Uses asyncpg for PostgreSQL and aiosqlite for local SQLite databases.
Engine is lazily created on first use to avoid import-time connection failures.
"""
import logging
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from agentdesk.config.settings import settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def _is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def _engine_options(url: str) -> Dict[str, Any]:
    """Pool settings per backend. SQLite gets the driver defaults."""
    options: Dict[str, Any] = {"pool_pre_ping": True}
    if not _is_sqlite(url):
        options.update(pool_size=10, max_overflow=10, pool_recycle=1800)
    return options


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite enforces foreign keys only when enabled on each connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for(url: str, **overrides) -> AsyncEngine:
    """Build an async engine for `url` with backend-appropriate options."""
    options = _engine_options(url)
    options.update(overrides)
    engine = create_async_engine(url, echo=False, **options)
    if _is_sqlite(url):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    logger.info(f"Created async engine for {make_url(url).render_as_string(hide_password=True)}")
    return engine


def get_engine() -> AsyncEngine:
    """Lazily create and return the async engine singleton."""
    global _engine
    if _engine is None:
        _engine = create_engine_for(settings.database_url)
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Lazily create and return the session factory singleton."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    """Dispose the engine on shutdown (call from lifespan)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Async engine disposed")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency — yields an async DB session per request."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
