"""
AgentDesk — Webhook Routes
Inbound lead webhook, per-agent secret webhook and the live webhook log.
"""

import logging
from typing import Any

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.agent_service.assistant_gateway import AssistantGateway
from agentdesk.api.deps import get_assistant_gateway, get_webhook_log
from agentdesk.channels.webhook_handler import WebhookChatResolver
from agentdesk.channels.webhook_log import WebhookLogBuffer
from agentdesk.db.engine import get_db_session
from agentdesk.errors import BadRequestError, MissingFieldsError, NotFoundError

logger = logging.getLogger(__name__)

_OTHER_METHODS = ["GET", "PUT", "PATCH", "DELETE"]

# Rejections decided by the resolver itself; anything else (OpenAI, missing
# key, database) is answered as a 500
_RESOLUTION_ERRORS = (MissingFieldsError, NotFoundError)


def method_not_allowed() -> JSONResponse:
    return JSONResponse(status_code=405, content={"error": "Method not allowed"})


async def read_json_body(request: Request) -> Any:
    """Parse the request body; an empty body counts as {}."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return await request.json()
    except ValueError:
        raise BadRequestError("Invalid JSON body")


async def _internal_error(db: AsyncSession, exc: Exception) -> JSONResponse:
    await db.rollback()
    logger.exception(f"Webhook error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc) or exc.__class__.__name__},
    )


def register_webhook_routes(app):
    """Register webhook and webhook-log routes onto the FastAPI app."""

    # ══════════════════════════════════════════════════════════════
    # LEAD WEBHOOK (email + assistant id, optional memory id)
    # ══════════════════════════════════════════════════════════════

    @app.post("/api/webhook", tags=["Webhooks"])
    async def lead_webhook(
        request: Request,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
        webhook_log: WebhookLogBuffer = Depends(get_webhook_log),
    ):
        """Relay a lead's reply to the matching agent and return the assistant's answer."""
        payload = await read_json_body(request)
        resolver = WebhookChatResolver(db, assistants, webhook_log)
        try:
            result = await resolver.handle_lead_response(payload)
        except _RESOLUTION_ERRORS:
            raise
        except Exception as e:
            return await _internal_error(db, e)
        return result.to_response()

    @app.api_route("/api/webhook", methods=_OTHER_METHODS, include_in_schema=False)
    async def lead_webhook_other():
        return method_not_allowed()

    # ══════════════════════════════════════════════════════════════
    # SECRET WEBHOOK (per-agent secret, field1..field5)
    # ══════════════════════════════════════════════════════════════

    @app.post("/api/webhook/{webhook_secret}", tags=["Webhooks"])
    async def secret_webhook(
        webhook_secret: str,
        request: Request,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
        webhook_log: WebhookLogBuffer = Depends(get_webhook_log),
    ):
        """Start a new chat with the agent owning this secret."""
        payload = await read_json_body(request)
        resolver = WebhookChatResolver(db, assistants, webhook_log)
        try:
            result = await resolver.handle_secret_webhook(webhook_secret, payload)
        except _RESOLUTION_ERRORS:
            raise
        except Exception as e:
            return await _internal_error(db, e)
        return result.to_response()

    @app.api_route("/api/webhook/{webhook_secret}", methods=_OTHER_METHODS, include_in_schema=False)
    async def secret_webhook_other(webhook_secret: str):
        return method_not_allowed()

    # ══════════════════════════════════════════════════════════════
    # WEBHOOK LOG (in-memory, newest first)
    # ══════════════════════════════════════════════════════════════

    @app.post("/api/webhook-logs", tags=["Webhooks"])
    async def append_webhook_log(
        request: Request,
        webhook_log: WebhookLogBuffer = Depends(get_webhook_log),
    ):
        payload = await read_json_body(request)
        webhook_log.record(payload)
        return {"success": True}

    @app.get("/api/webhook-logs", tags=["Webhooks"])
    async def list_webhook_logs(webhook_log: WebhookLogBuffer = Depends(get_webhook_log)):
        return [entry.model_dump(mode="json") for entry in webhook_log.entries()]

    @app.api_route("/api/webhook-logs", methods=["PUT", "PATCH", "DELETE"], include_in_schema=False)
    async def webhook_logs_other():
        return method_not_allowed()
