"""
AgentDesk — Integration Routes
Import an agent into a GoHighLevel sub-account by writing its custom values.
"""

import logging

from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.agent_service.agent_config import parse_config
from agentdesk.agent_service.agent_manager import AgentManager
from agentdesk.agent_service.assistant_gateway import AssistantGateway
from agentdesk.api.deps import get_assistant_gateway, get_ghl_client, request_base_url
from agentdesk.config.settings import settings
from agentdesk.db.engine import get_db_session
from agentdesk.db.user_repository import UserRepository
from agentdesk.errors import BadRequestError, NotFoundError
from agentdesk.integrations.ghl_client import DEFAULT_OPENING_MESSAGE, GHLClient

logger = logging.getLogger(__name__)


class GHLImportRequest(BaseModel):
    agent_id: str
    api_key: str = ""
    location_id: str = ""
    opening_message: str = DEFAULT_OPENING_MESSAGE


def register_integration_routes(app):
    """Register GoHighLevel integration routes onto the FastAPI app."""

    @app.post("/api/users/{user_id}/ghl/import", tags=["Integrations"])
    async def import_to_ghl(
        user_id: str,
        req: GHLImportRequest,
        request: Request,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
        ghl: GHLClient = Depends(get_ghl_client),
    ):
        """
        Push the agent's assistant id, opening message, lead webhook URL and the
        owner's email into the GHL location's custom values.
        """
        user = await UserRepository(db).get(user_id)
        if not user:
            raise NotFoundError("User not found")
        agent = await AgentManager(db, assistants).get(user_id, req.agent_id)
        config = parse_config(agent.config)
        if config is None or not config.assistant_id:
            raise BadRequestError("Agent config is missing its assistant id")

        webhook_url = settings.webhook_url(request_base_url(request))
        updated = await ghl.setup_integration(
            api_key=req.api_key.strip(),
            location_id=req.location_id.strip(),
            assistant_id=config.assistant_id,
            opening_message=req.opening_message,
            user_email=user.email,
            webhook_url=webhook_url,
        )
        logger.info(f"[GHL] Agent {agent.id} imported into location {req.location_id}")
        return {
            "success": True,
            "message": "GHL integration setup completed successfully",
            "updated": updated,
        }
