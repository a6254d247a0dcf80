"""FeedbackRepository — ratings left on chats."""
import logging
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.db.models import FeedbackModel

logger = logging.getLogger(__name__)


class FeedbackRepository:

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        agent_id: str,
        chat_id: str,
        rating: Optional[int] = None,
        comment: str = "",
    ) -> FeedbackModel:
        row = FeedbackModel(agent_id=agent_id, chat_id=chat_id, rating=rating, comment=comment)
        self._session.add(row)
        await self._session.flush()
        logger.info(f"Recorded feedback {row.id} for chat {chat_id} (rating={rating})")
        return row

    async def list_by_agent(self, agent_id: str) -> List[FeedbackModel]:
        """Newest feedback first."""
        result = await self._session.execute(
            select(FeedbackModel)
            .where(FeedbackModel.agent_id == agent_id)
            .order_by(FeedbackModel.created_at.desc(), FeedbackModel.id)
        )
        return list(result.scalars().all())
