"""
Shared FastAPI dependencies. Tests swap these out via app.dependency_overrides.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.agent_service.assistant_gateway import AssistantGateway
from agentdesk.channels.webhook_log import WebhookLogBuffer
from agentdesk.db.engine import get_db_session
from agentdesk.integrations.ghl_client import GHLClient


def get_webhook_log(request: Request) -> WebhookLogBuffer:
    return request.app.state.webhook_log


def get_assistant_gateway(db: AsyncSession = Depends(get_db_session)) -> AssistantGateway:
    return AssistantGateway(db)


async def get_ghl_client() -> AsyncGenerator[GHLClient, None]:
    async with GHLClient() as client:
        yield client


def request_base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")
