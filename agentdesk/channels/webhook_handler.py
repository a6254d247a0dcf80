"""
Webhook Handler - Inbound webhook chat resolution for AgentDesk.
Maps an inbound CRM / automation payload onto a user, an agent and a chat
thread, relays the lead's message to the agent's OpenAI Assistant and stores
both sides of the exchange.
"""

import json
import logging
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field

from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.agent_service.agent_config import parse_config
from agentdesk.agent_service.assistant_gateway import AssistantGateway
from agentdesk.channels.webhook_log import WebhookLogBuffer
from agentdesk.db.agent_repository import AgentRepository
from agentdesk.db.chat_repository import ChatRepository
from agentdesk.db.models import AgentModel, ChatModel, UserModel
from agentdesk.db.user_repository import UserRepository
from agentdesk.errors import MissingFieldsError, NotFoundError

logger = logging.getLogger(__name__)

WEBHOOK_SOURCE = "webhook"

# Generic webhook fields, in the order they are rendered into the message
GENERIC_FIELDS = ("field1", "field2", "field3", "field4", "field5")


class LeadWebhookPayload(BaseModel):
    """Payload sent by the CRM automation for each lead reply."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    lead_response: Optional[str] = Field(default=None, alias="Lead Response")
    app_email: Optional[str] = Field(default=None, alias="app email")
    active_assistant_id: Optional[str] = Field(default=None, alias="Active Assistant ID")
    assistant_memory_id: Optional[str] = Field(default=None, alias="Assistant Memory Id")


class WebhookChatResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    thread_id: str = Field(alias="threadId")
    chat_id: str = ""

    def to_response(self) -> Dict[str, str]:
        return {"response": self.response, "threadId": self.thread_id}


def _text(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def build_fields_message(payload: Dict[str, Any]) -> str:
    """Render field1..field5 as 'key: value' lines, skipping empty values."""
    lines = []
    for key in GENERIC_FIELDS:
        value = _text(payload, key)
        if value:
            lines.append(f"{key}: {value}")
    return "\n".join(lines)


class WebhookChatResolver:
    """
    Resolves inbound webhook payloads into chat turns.
    One instance per request; commits after each persisted step so a failed
    assistant call leaves the user's message in place.
    """

    def __init__(
        self,
        session: AsyncSession,
        assistants: AssistantGateway,
        log_buffer: Optional[WebhookLogBuffer] = None,
    ):
        self._session = session
        self._assistants = assistants
        self._log = log_buffer
        self._users = UserRepository(session)
        self._agents = AgentRepository(session)
        self._chats = ChatRepository(session)

    def _record(self, payload: Any) -> None:
        if self._log is not None:
            self._log.record(payload)

    # ── Lead webhook: email + assistant id, optional memory id ────

    async def handle_lead_response(self, payload: Dict[str, Any]) -> WebhookChatResult:
        self._record(payload)

        lead = LeadWebhookPayload.model_validate(
            {k: _text(payload, k) or None for k in payload} if isinstance(payload, dict) else {}
        )
        if not lead.lead_response or not lead.app_email or not lead.active_assistant_id:
            raise MissingFieldsError()

        user = await self._users.find_by_email(lead.app_email)
        if not user:
            raise NotFoundError("User not found")

        memory_id = lead.assistant_memory_id
        thread_id = memory_id or await self._assistants.create_thread(user.id)

        agent = await self._find_agent_by_assistant(user, lead.active_assistant_id)
        if not agent:
            raise NotFoundError("Agent not found")

        if not memory_id:
            chat = await self._chats.create_chat(
                agent_id=agent.id,
                user_id=user.id,
                thread_id=thread_id,
                source=WEBHOOK_SOURCE,
                metadata=json.dumps(payload),
            )
        else:
            chat = await self._find_chat_by_thread(agent, thread_id)
            if not chat:
                raise NotFoundError("Chat session not found")

        reply = await self._exchange(
            chat, user.id, thread_id, lead.active_assistant_id, lead.lead_response,
        )
        return WebhookChatResult(response=reply, thread_id=thread_id, chat_id=chat.id)

    async def _find_agent_by_assistant(self, user: UserModel, assistant_id: str) -> Optional[AgentModel]:
        for agent in await self._agents.list_by_user(user.id):
            config = parse_config(agent.config)
            if config is None:
                logger.warning(f"[Webhook] Skipping agent {agent.id}: unreadable config")
                continue
            if config.assistant_id == assistant_id:
                return agent
        return None

    async def _find_chat_by_thread(self, agent: AgentModel, thread_id: str) -> Optional[ChatModel]:
        for chat in await self._chats.list_by_agent(agent.id):
            if chat.thread_id == thread_id:
                return chat
        return None

    # ── Generic webhook: per-agent secret, up to five fields ──────

    async def handle_secret_webhook(self, secret: str, payload: Dict[str, Any]) -> WebhookChatResult:
        self._record(payload)

        agent = await self._agents.find_by_webhook_secret(secret)
        if not agent:
            raise NotFoundError("Invalid webhook secret")

        message = build_fields_message(payload if isinstance(payload, dict) else {})
        if not message:
            raise MissingFieldsError(details=f"Send at least one of {', '.join(GENERIC_FIELDS)}")

        config = parse_config(agent.config)
        if config is None or not config.assistant_id:
            raise NotFoundError("Agent has no assistant configured")

        thread_id = await self._assistants.create_thread(agent.user_id)
        chat = await self._chats.create_chat(
            agent_id=agent.id,
            user_id=agent.user_id,
            thread_id=thread_id,
            source=WEBHOOK_SOURCE,
            metadata=json.dumps(payload),
        )

        reply = await self._exchange(chat, agent.user_id, thread_id, config.assistant_id, message)
        return WebhookChatResult(response=reply, thread_id=thread_id, chat_id=chat.id)

    # ── Shared exchange ───────────────────────────────────────────

    async def _exchange(
        self, chat: ChatModel, user_id: str, thread_id: str, assistant_id: str, text: str,
    ) -> str:
        """Persist the user turn, ask the assistant, persist the reply."""
        await self._chats.add_message(chat.id, "user", text)
        await self._session.commit()

        reply = await self._assistants.send_message(user_id, thread_id, assistant_id, text)

        await self._chats.add_message(chat.id, "assistant", reply)
        await self._session.commit()
        logger.info(f"[Webhook] Chat {chat.id} answered on thread {thread_id}")
        return reply
