"""
Assistant Gateway — user-keyed facade over the OpenAI Assistants client.
Every call runs on the OpenAI API key of the user that owns the agent.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.db.user_repository import UserRepository
from agentdesk.errors import BadRequestError
from agentdesk.integrations.openai_assistants import OpenAIAssistantsClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], OpenAIAssistantsClient]


class OpenAIKeyMissingError(BadRequestError):
    def __init__(self, user_id: str):
        super().__init__("OpenAI API key not found for user")
        self.user_id = user_id


class AssistantGateway:
    """Resolves a user's OpenAI key and forwards to a per-key client."""

    def __init__(self, session: AsyncSession, client_factory: Optional[ClientFactory] = None):
        self._users = UserRepository(session)
        self._client_factory = client_factory or OpenAIAssistantsClient

    async def _client_for(self, user_id: str) -> OpenAIAssistantsClient:
        api_key = await self._users.get_openai_api_key(user_id)
        if not api_key:
            logger.warning(f"[Assistants] No OpenAI API key for user {user_id}")
            raise OpenAIKeyMissingError(user_id)
        return self._client_factory(api_key)

    async def create_thread(self, user_id: str) -> str:
        async with await self._client_for(user_id) as client:
            return await client.create_thread()

    async def send_message(self, user_id: str, thread_id: str, assistant_id: str, text: str) -> str:
        async with await self._client_for(user_id) as client:
            return await client.send_message(thread_id, assistant_id, text)

    async def create_assistant(self, user_id: str, name: str, instructions: str, model: str) -> str:
        async with await self._client_for(user_id) as client:
            return await client.create_assistant(name, instructions, model)

    async def update_assistant(
        self,
        user_id: str,
        assistant_id: str,
        name: Optional[str] = None,
        instructions: Optional[str] = None,
        model: Optional[str] = None,
    ) -> None:
        async with await self._client_for(user_id) as client:
            await client.update_assistant(assistant_id, name=name, instructions=instructions, model=model)

    async def delete_assistant(self, user_id: str, assistant_id: str) -> None:
        async with await self._client_for(user_id) as client:
            await client.delete_assistant(assistant_id)
