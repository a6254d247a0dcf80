"""
Tests for the async engine builder — pool options per backend and SQLite FK enforcement.
Run: pytest tests/test_db_engine.py -v
"""
import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from agentdesk.db.agent_repository import AgentRepository
from agentdesk.db.base import Base
from agentdesk.db.engine import _engine_options, create_engine_for
from agentdesk.db import models  # noqa: F401


class TestEngineOptions:

    def test_postgres_gets_pool_sizing(self):
        options = _engine_options("postgresql+asyncpg://app:secret@db:5432/agentdesk")
        assert options["pool_pre_ping"] is True
        assert options["pool_size"] == 10
        assert options["pool_recycle"] == 1800

    def test_sqlite_keeps_driver_pool(self):
        options = _engine_options("sqlite+aiosqlite:///./agentdesk.db")
        assert options == {"pool_pre_ping": True}


class TestSqliteForeignKeys:

    @pytest.mark.asyncio
    async def test_foreign_keys_enabled_on_connect(self):
        engine = create_engine_for("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text("PRAGMA foreign_keys"))
                assert result.scalar() == 1
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_agent_for_unknown_user_is_rejected(self):
        engine = create_engine_for("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
            async with factory() as session:
                with pytest.raises(IntegrityError):
                    await AgentRepository(session).create(
                        user_id="user-missing", name="Orphan", config="{}",
                    )
                await session.rollback()
        finally:
            await engine.dispose()
