"""
Shared fixtures for the AgentDesk test suite.
"""
import sys
import os
import itertools
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Set env vars before any imports that read them
_TEST_DB_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "agentdesk_test.db"))
if os.path.exists(_TEST_DB_PATH):
    os.remove(_TEST_DB_PATH)

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_PATH}"
os.environ["ENCRYPTION_KEY"] = "agentdesk-test-passphrase"
os.environ["PUBLIC_BASE_URL"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402


class FakeAssistantGateway:
    """
    Stand-in for AssistantGateway: hands out sequential thread ids, replies
    with a canned answer and records every call.
    """

    def __init__(self, reply: str = "Thanks for reaching out!"):
        self.reply = reply
        self.fail_with: Optional[Exception] = None
        self.thread_error: Optional[Exception] = None
        self.calls: List[Tuple] = []
        self._threads = itertools.count(1)
        self._assistants = itertools.count(1)

    async def create_thread(self, user_id: str) -> str:
        if self.thread_error is not None:
            raise self.thread_error
        thread_id = f"thread_{next(self._threads)}"
        self.calls.append(("create_thread", user_id, thread_id))
        return thread_id

    async def send_message(self, user_id: str, thread_id: str, assistant_id: str, text: str) -> str:
        self.calls.append(("send_message", user_id, thread_id, assistant_id, text))
        if self.fail_with is not None:
            raise self.fail_with
        return self.reply

    async def create_assistant(self, user_id: str, name: str, instructions: str, model: str) -> str:
        assistant_id = f"asst_{next(self._assistants)}"
        self.calls.append(("create_assistant", user_id, name, instructions, model))
        return assistant_id

    async def update_assistant(self, user_id, assistant_id, name=None, instructions=None, model=None) -> None:
        self.calls.append(("update_assistant", user_id, assistant_id, name, instructions, model))

    async def delete_assistant(self, user_id: str, assistant_id: str) -> None:
        self.calls.append(("delete_assistant", user_id, assistant_id))

    def called(self, name: str) -> List[Tuple]:
        return [c for c in self.calls if c[0] == name]


@pytest_asyncio.fixture
async def db_session():
    """Fresh in-memory SQLite session with all tables."""
    from agentdesk.db.base import Base
    from agentdesk.db import models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()
    await engine.dispose()


@pytest.fixture
def assistants():
    return FakeAssistantGateway()


@pytest_asyncio.fixture
async def user(db_session):
    """User with an OpenAI key on file."""
    from agentdesk.db.user_repository import UserRepository
    row = await UserRepository(db_session).create(
        email="owner@example.com", name="Jane Doe", openai_api_key="sk-test-owner-1234",
    )
    await db_session.commit()
    return row


@pytest_asyncio.fixture
async def agent(db_session, user):
    """Agent bound to assistant 'asst_sales'."""
    from agentdesk.agent_service.agent_config import AgentConfig
    from agentdesk.db.agent_repository import AgentRepository
    config = AgentConfig(model="gpt-4", prompt="You qualify leads.", assistant_id="asst_sales")
    row = await AgentRepository(db_session).create(
        user_id=user.id, name="Sales Bot", config=config.dumps(), description="You qualify leads.",
    )
    await db_session.commit()
    return row
