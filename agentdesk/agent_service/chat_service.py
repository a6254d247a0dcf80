"""
Chat Service — in-app and public chats with an agent's assistant.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.agent_service.agent_config import agent_slug, parse_config
from agentdesk.agent_service.assistant_gateway import AssistantGateway
from agentdesk.db.agent_repository import AgentRepository
from agentdesk.db.chat_repository import ChatRepository
from agentdesk.db.feedback_repository import FeedbackRepository
from agentdesk.db.models import AgentModel, ChatModel, FeedbackModel, MessageModel
from agentdesk.db.user_repository import UserRepository
from agentdesk.errors import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)


def _assistant_id(agent: AgentModel) -> str:
    config = parse_config(agent.config)
    if config is None or not config.assistant_id:
        raise BadRequestError("Agent config is missing its assistant id")
    return config.assistant_id


class ChatService:

    def __init__(self, session: AsyncSession, assistants: AssistantGateway):
        self._session = session
        self._assistants = assistants
        self._users = UserRepository(session)
        self._agents = AgentRepository(session)
        self._chats = ChatRepository(session)
        self._feedback = FeedbackRepository(session)

    # ── In-app chat ───────────────────────────────────────────────

    async def start_chat(self, user_id: str, agent_id: str) -> ChatModel:
        """Open a fresh thread and chat; also used to reset a conversation."""
        agent = await self._agents.get_for_user(user_id, agent_id)
        if not agent:
            raise NotFoundError("Agent not found")
        thread_id = await self._assistants.create_thread(user_id)
        return await self._chats.create_chat(agent_id=agent.id, user_id=user_id, thread_id=thread_id)

    async def get_chat(self, chat_id: str) -> ChatModel:
        chat = await self._chats.get_chat(chat_id)
        if not chat:
            raise NotFoundError("Chat session not found")
        return chat

    async def send_message(self, chat_id: str, text: str) -> str:
        if not text.strip():
            raise BadRequestError("Message is empty")
        chat = await self.get_chat(chat_id)
        agent = await self._agents.get(chat.agent_id)
        if not agent:
            raise NotFoundError("Agent not found")
        assistant_id = _assistant_id(agent)

        await self._chats.add_message(chat.id, "user", text)
        await self._session.commit()

        reply = await self._assistants.send_message(chat.user_id, chat.thread_id, assistant_id, text)
        await self._chats.add_message(chat.id, "assistant", reply)
        return reply

    async def list_messages(self, chat_id: str) -> List[MessageModel]:
        await self.get_chat(chat_id)
        return await self._chats.list_messages(chat_id)

    # ── Feedback ──────────────────────────────────────────────────

    async def add_feedback(self, chat_id: str, rating: Optional[int], comment: str = "") -> FeedbackModel:
        chat = await self.get_chat(chat_id)
        return await self._feedback.create(chat.agent_id, chat.id, rating=rating, comment=comment)

    async def list_feedback(self, agent_id: str) -> List[FeedbackModel]:
        if not await self._agents.get(agent_id):
            raise NotFoundError("Agent not found")
        return await self._feedback.list_by_agent(agent_id)

    # ── Public chat (shareable link, nothing persisted) ───────────

    async def resolve_public_agent(self, username: str, slug: str) -> AgentModel:
        user = await self._users.find_by_name(username)
        if not user:
            raise NotFoundError("User not found")
        slug = slug.lower()
        for agent in await self._agents.list_by_user(user.id):
            if agent_slug(agent.name) == slug:
                return agent
        raise NotFoundError("AI Agent not found")

    async def start_public_thread(self, username: str, slug: str) -> Tuple[AgentModel, str]:
        """Resolve the shared agent and open a thread on its owner's key."""
        agent = await self.resolve_public_agent(username, slug)
        thread_id = await self._assistants.create_thread(agent.user_id)
        return agent, thread_id

    async def send_public_message(self, username: str, slug: str, thread_id: str, text: str) -> str:
        if not text.strip():
            raise BadRequestError("Message is empty")
        agent = await self.resolve_public_agent(username, slug)
        return await self._assistants.send_message(agent.user_id, thread_id, _assistant_id(agent), text)
