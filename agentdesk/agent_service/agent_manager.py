"""
Agent Manager — lifecycle of app-level agents and their OpenAI Assistants.
Creation, edits and deletion are mirrored to the assistant first and then
persisted locally; a failed OpenAI call leaves the local row untouched.
"""

import logging
from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.agent_service.agent_config import AgentConfig, SUPPORTED_MODELS, parse_config
from agentdesk.agent_service.assistant_gateway import AssistantGateway
from agentdesk.db.agent_repository import AgentRepository
from agentdesk.db.models import AgentModel, UserModel
from agentdesk.db.user_repository import UserRepository
from agentdesk.errors import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)


def _check_model(model: str) -> None:
    if model not in SUPPORTED_MODELS:
        raise BadRequestError(
            f"Unsupported model '{model}'",
            details=f"Choose one of: {', '.join(SUPPORTED_MODELS)}",
        )


class AgentManager:
    """Agent CRUD for one request scope."""

    def __init__(self, session: AsyncSession, assistants: AssistantGateway):
        self._assistants = assistants
        self._agents = AgentRepository(session)
        self._users = UserRepository(session)

    async def _require_user(self, user_id: str) -> UserModel:
        user = await self._users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def get(self, user_id: str, agent_id: str) -> AgentModel:
        agent = await self._agents.get_for_user(user_id, agent_id)
        if not agent:
            raise NotFoundError("Agent not found")
        return agent

    async def list_for_user(self, user_id: str) -> List[AgentModel]:
        await self._require_user(user_id)
        return await self._agents.list_by_user(user_id)

    async def create(self, user_id: str, name: str, model: str, prompt: str) -> AgentModel:
        user = await self._require_user(user_id)
        if not user.openai_api_key:
            raise BadRequestError("Please add your OpenAI API key before creating an AI agent")
        if not name.strip():
            raise BadRequestError("Agent name is required")
        _check_model(model)

        assistant_id = await self._assistants.create_assistant(user_id, name, prompt, model)
        config = AgentConfig(model=model, prompt=prompt, assistant_id=assistant_id)
        agent = await self._agents.create(
            user_id=user_id,
            name=name,
            description=prompt,
            config=config.dumps(),
        )
        logger.info(f"Agent {agent.id} bound to assistant {assistant_id}")
        return agent

    async def update(
        self,
        user_id: str,
        agent_id: str,
        name: Optional[str] = None,
        model: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> AgentModel:
        agent = await self.get(user_id, agent_id)
        config = parse_config(agent.config)
        if config is None or not config.assistant_id:
            raise BadRequestError("Agent config is missing its assistant id")
        if name is not None and not name.strip():
            raise BadRequestError("Agent name is required")
        if model is not None:
            _check_model(model)

        await self._assistants.update_assistant(
            user_id, config.assistant_id, name=name, instructions=prompt, model=model,
        )

        if model is not None:
            config.model = model
        if prompt is not None:
            config.prompt = prompt
        updated = await self._agents.update(agent_id, {
            "name": name,
            "description": prompt,
            "config": config.dumps(),
        })
        return updated

    async def delete(self, user_id: str, agent_id: str) -> None:
        agent = await self.get(user_id, agent_id)
        config = parse_config(agent.config)
        if config is not None and config.assistant_id:
            await self._assistants.delete_assistant(user_id, config.assistant_id)
        else:
            logger.warning(f"Agent {agent_id} has no assistant id; deleting local row only")
        await self._agents.delete(agent_id)
