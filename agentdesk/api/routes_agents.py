"""
AgentDesk — User & Agent Routes
User registration / OpenAI key settings, agent CRUD backed by OpenAI Assistants,
and per-agent webhook details.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.agent_service.agent_config import SUPPORTED_MODELS, agent_slug, parse_config
from agentdesk.agent_service.agent_manager import AgentManager
from agentdesk.agent_service.assistant_gateway import AssistantGateway
from agentdesk.api.deps import get_assistant_gateway, request_base_url
from agentdesk.channels.webhook_handler import GENERIC_FIELDS
from agentdesk.config.settings import settings
from agentdesk.db.engine import get_db_session
from agentdesk.db.models import AgentModel, UserModel
from agentdesk.db.user_repository import UserRepository
from agentdesk.errors import BadRequestError, ConflictError, NotFoundError
from agentdesk.utils.crypto import decrypt, mask_secret

logger = logging.getLogger(__name__)


# ── Request Models ────────────────────────────────────────────────

class CreateUserRequest(BaseModel):
    email: str = Field(min_length=3)
    name: str = ""
    openai_api_key: str = ""


class SetOpenAIKeyRequest(BaseModel):
    openai_api_key: str = Field(min_length=1)


class CreateAgentRequest(BaseModel):
    name: str
    model: str
    prompt: str = ""


class UpdateAgentRequest(BaseModel):
    name: Optional[str] = None
    model: Optional[str] = None
    prompt: Optional[str] = None


# ── Serializers ───────────────────────────────────────────────────

def user_to_dict(user: UserModel) -> dict:
    key = decrypt(user.openai_api_key) if user.openai_api_key else ""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "has_openai_api_key": bool(key),
        "openai_api_key_preview": mask_secret(key),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def agent_to_dict(agent: AgentModel) -> dict:
    config = parse_config(agent.config)
    return {
        "id": agent.id,
        "user_id": agent.user_id,
        "name": agent.name,
        "slug": agent_slug(agent.name),
        "description": agent.description,
        "config": agent.config,
        "model": config.model if config else None,
        "prompt": config.prompt if config else None,
        "assistant_id": config.assistant_id if config else None,
        "created_at": agent.created_at.isoformat() if agent.created_at else None,
        "updated_at": agent.updated_at.isoformat() if agent.updated_at else None,
    }


# ── Route Registration ───────────────────────────────────────────

def register_agent_routes(app):
    """Register user and agent routes onto the FastAPI app."""

    # ══════════════════════════════════════════════════════════════
    # USERS
    # ══════════════════════════════════════════════════════════════

    @app.post("/api/users", status_code=201, tags=["Users"])
    async def create_user(req: CreateUserRequest, db: AsyncSession = Depends(get_db_session)):
        """Register a user. The OpenAI key is stored encrypted."""
        repo = UserRepository(db)
        email = req.email.strip()
        if "@" not in email:
            raise BadRequestError("Invalid email address")
        if await repo.find_by_email(email):
            raise ConflictError("A user with this email already exists")
        user = await repo.create(email=email, name=req.name, openai_api_key=req.openai_api_key)
        return {"status": "created", "user": user_to_dict(user)}

    @app.get("/api/users/{user_id}", tags=["Users"])
    async def get_user(user_id: str, db: AsyncSession = Depends(get_db_session)):
        user = await UserRepository(db).get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user_to_dict(user)

    @app.put("/api/users/{user_id}/openai-key", tags=["Users"])
    async def set_openai_key(
        user_id: str,
        req: SetOpenAIKeyRequest,
        db: AsyncSession = Depends(get_db_session),
    ):
        user = await UserRepository(db).set_openai_api_key(user_id, req.openai_api_key.strip())
        if not user:
            raise NotFoundError("User not found")
        return {"status": "updated", "user": user_to_dict(user)}

    # ══════════════════════════════════════════════════════════════
    # AGENTS
    # ══════════════════════════════════════════════════════════════

    @app.get("/api/models", tags=["Agents"])
    async def list_models():
        return {"models": [{"id": k, "name": v} for k, v in SUPPORTED_MODELS.items()]}

    @app.get("/api/users/{user_id}/agents", tags=["Agents"])
    async def list_agents(
        user_id: str,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        agents = await AgentManager(db, assistants).list_for_user(user_id)
        return {"count": len(agents), "agents": [agent_to_dict(a) for a in agents]}

    @app.post("/api/users/{user_id}/agents", status_code=201, tags=["Agents"])
    async def create_agent(
        user_id: str,
        req: CreateAgentRequest,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        """Create the OpenAI Assistant, then persist the agent bound to it."""
        agent = await AgentManager(db, assistants).create(user_id, req.name, req.model, req.prompt)
        return {"status": "created", "agent": agent_to_dict(agent)}

    @app.get("/api/users/{user_id}/agents/{agent_id}", tags=["Agents"])
    async def get_agent(
        user_id: str,
        agent_id: str,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        agent = await AgentManager(db, assistants).get(user_id, agent_id)
        return agent_to_dict(agent)

    @app.patch("/api/users/{user_id}/agents/{agent_id}", tags=["Agents"])
    async def update_agent(
        user_id: str,
        agent_id: str,
        req: UpdateAgentRequest,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        agent = await AgentManager(db, assistants).update(
            user_id, agent_id, name=req.name, model=req.model, prompt=req.prompt,
        )
        return {"status": "updated", "agent": agent_to_dict(agent)}

    @app.delete("/api/users/{user_id}/agents/{agent_id}", tags=["Agents"])
    async def delete_agent(
        user_id: str,
        agent_id: str,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        await AgentManager(db, assistants).delete(user_id, agent_id)
        return {"status": "deleted"}

    @app.get("/api/users/{user_id}/agents/{agent_id}/webhook", tags=["Agents"])
    async def get_agent_webhook(
        user_id: str,
        agent_id: str,
        request: Request,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        """Secret webhook URL for the agent plus the payload it accepts."""
        agent = await AgentManager(db, assistants).get(user_id, agent_id)
        base = settings.webhook_url(request_base_url(request))
        return {
            "webhook_url": f"{base}/{agent.webhook_secret}",
            "lead_webhook_url": base,
            "sample_payload": {key: f"value{i}" for i, key in enumerate(GENERIC_FIELDS, start=1)},
        }
