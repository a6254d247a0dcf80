"""
AgentRepository — async CRUD for agents backed by PostgreSQL.
Agent config stays a JSON-encoded string column; parsing lives in
agentdesk.agent_service.agent_config.
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.db.models import AgentModel, ChatModel, MessageModel, FeedbackModel

logger = logging.getLogger(__name__)

_UPDATABLE = ("name", "description", "config")


class AgentRepository:
    """Async CRUD operations for agents."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, user_id: str, name: str, config: str, description: str = "") -> AgentModel:
        """Insert a new agent. A webhook secret is generated by the model default."""
        now = datetime.utcnow()
        row = AgentModel(
            user_id=user_id,
            name=name,
            description=description,
            config=config,
            created_at=now,
            updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        logger.info(f"Created agent {row.id} ({row.name}) for user {user_id}")
        return row

    async def get(self, agent_id: str) -> Optional[AgentModel]:
        result = await self._session.execute(
            select(AgentModel).where(AgentModel.id == agent_id)
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, user_id: str, agent_id: str) -> Optional[AgentModel]:
        """Fetch an agent only if it belongs to the given user."""
        result = await self._session.execute(
            select(AgentModel).where(AgentModel.id == agent_id, AgentModel.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: str) -> List[AgentModel]:
        """All agents owned by a user, oldest first."""
        result = await self._session.execute(
            select(AgentModel)
            .where(AgentModel.user_id == user_id)
            .order_by(AgentModel.created_at, AgentModel.id)
        )
        return list(result.scalars().all())

    async def find_by_webhook_secret(self, secret: str) -> Optional[AgentModel]:
        if not secret:
            return None
        result = await self._session.execute(
            select(AgentModel).where(AgentModel.webhook_secret == secret)
        )
        return result.scalar_one_or_none()

    async def update(self, agent_id: str, updates: Dict[str, Any]) -> Optional[AgentModel]:
        """Partial update of name / description / config."""
        row = await self.get(agent_id)
        if not row:
            return None
        for k, v in updates.items():
            if k in _UPDATABLE and v is not None:
                setattr(row, k, v)
        row.updated_at = datetime.utcnow()
        await self._session.flush()
        logger.info(f"Updated agent {agent_id}")
        return row

    async def delete(self, agent_id: str) -> bool:
        """Delete an agent with its chats, messages and feedback."""
        chat_ids = select(ChatModel.id).where(ChatModel.agent_id == agent_id)
        await self._session.execute(delete(MessageModel).where(MessageModel.chat_id.in_(chat_ids)))
        await self._session.execute(delete(FeedbackModel).where(FeedbackModel.agent_id == agent_id))
        await self._session.execute(delete(ChatModel).where(ChatModel.agent_id == agent_id))
        result = await self._session.execute(
            delete(AgentModel).where(AgentModel.id == agent_id)
        )
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted agent {agent_id}")
        return deleted
