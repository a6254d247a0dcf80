"""
ChatRepository — chats (agent ↔ thread bindings) and their append-only message log.
"""
import logging
from typing import Optional, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.db.models import ChatModel, MessageModel

logger = logging.getLogger(__name__)

MESSAGE_ROLES = ("user", "assistant")


class ChatRepository:
    """Async CRUD for chats and messages."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # ── Chats ─────────────────────────────────────────────────────

    async def create_chat(
        self,
        agent_id: str,
        user_id: str,
        thread_id: str,
        source: str = "app",
        metadata: Optional[str] = None,
    ) -> ChatModel:
        row = ChatModel(
            agent_id=agent_id,
            user_id=user_id,
            thread_id=thread_id,
            source=source,
            metadata_json=metadata,
        )
        self._session.add(row)
        await self._session.flush()
        logger.info(f"Created chat {row.id} for agent {agent_id} on thread {thread_id} (source={source})")
        return row

    async def get_chat(self, chat_id: str) -> Optional[ChatModel]:
        result = await self._session.execute(
            select(ChatModel).where(ChatModel.id == chat_id)
        )
        return result.scalar_one_or_none()

    async def list_by_agent(self, agent_id: str) -> List[ChatModel]:
        result = await self._session.execute(
            select(ChatModel)
            .where(ChatModel.agent_id == agent_id)
            .order_by(ChatModel.created_at, ChatModel.id)
        )
        return list(result.scalars().all())

    async def count_by_agent(self, agent_id: str) -> int:
        result = await self._session.execute(
            select(func.count(ChatModel.id)).where(ChatModel.agent_id == agent_id)
        )
        return result.scalar_one()

    # ── Messages ──────────────────────────────────────────────────

    async def add_message(self, chat_id: str, role: str, content: str) -> MessageModel:
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Invalid message role '{role}'")
        result = await self._session.execute(
            select(func.coalesce(func.max(MessageModel.seq), 0)).where(MessageModel.chat_id == chat_id)
        )
        row = MessageModel(
            chat_id=chat_id,
            seq=result.scalar_one() + 1,
            role=role,
            content=content,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_messages(self, chat_id: str) -> List[MessageModel]:
        """Messages of a chat in insertion order."""
        result = await self._session.execute(
            select(MessageModel)
            .where(MessageModel.chat_id == chat_id)
            .order_by(MessageModel.seq)
        )
        return list(result.scalars().all())
