"""
SQLAlchemy ORM models for AgentDesk.
Maps to PostgreSQL tables via Alembic migrations.
"""
import uuid
from datetime import datetime

from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from agentdesk.db.base import Base


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# ── Users ─────────────────────────────────────────────────────────────────────

class UserModel(Base):
    """Tenant account. Owns agents and the OpenAI API key they run on."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: _new_id("usr")
    )
    email: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(256), default="", index=True)
    # Fernet-encrypted, see agentdesk.utils.crypto
    openai_api_key: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"


# ── Agents ────────────────────────────────────────────────────────────────────

class AgentModel(Base):
    """
    App-level agent bound to an OpenAI Assistant.
    `config` is a JSON-encoded string: {"model", "prompt", "assistantId"}.
    """
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: _new_id("agt")
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    config: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    webhook_secret: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, default=lambda: uuid.uuid4().hex
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Agent id={self.id} name={self.name!r} user={self.user_id}>"


# ── Chats ─────────────────────────────────────────────────────────────────────

class ChatModel(Base):
    """Binding between an agent and one OpenAI thread."""
    __tablename__ = "chats"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: _new_id("chat")
    )
    agent_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    thread_id: Mapped[str] = mapped_column(String(128), nullable=False)
    source: Mapped[str] = mapped_column(String(32), default="app")
    # JSON string of the originating webhook payload
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_chats_agent_thread", "agent_id", "thread_id"),
    )

    def __repr__(self) -> str:
        return f"<Chat id={self.id} agent={self.agent_id} thread={self.thread_id}>"


class MessageModel(Base):
    """Append-only message log entry for a chat."""
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: _new_id("msg")
    )
    chat_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Insertion order; created_at can tie within one request
    seq: Mapped[int] = mapped_column(Integer, default=0)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Message id={self.id} chat={self.chat_id} role={self.role}>"


# ── Feedback ──────────────────────────────────────────────────────────────────

class FeedbackModel(Base):
    """User rating of a chat with an agent."""
    __tablename__ = "feedback"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: _new_id("fb")
    )
    agent_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    chat_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comment: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Feedback id={self.id} agent={self.agent_id} rating={self.rating}>"
