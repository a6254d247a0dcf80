"""
AgentDesk — Chat Routes
In-app chats (persisted), feedback, and public shareable chats (not persisted).
"""

import logging
from typing import Optional

from fastapi import Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.agent_service.assistant_gateway import AssistantGateway
from agentdesk.agent_service.chat_service import ChatService
from agentdesk.api.deps import get_assistant_gateway
from agentdesk.db.engine import get_db_session
from agentdesk.db.models import ChatModel, FeedbackModel, MessageModel

logger = logging.getLogger(__name__)


# ── Request Models ────────────────────────────────────────────────

class SendMessageRequest(BaseModel):
    message: str


class FeedbackRequest(BaseModel):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: str = ""


class PublicMessageRequest(BaseModel):
    thread_id: str
    message: str


# ── Serializers ───────────────────────────────────────────────────

def chat_to_dict(chat: ChatModel) -> dict:
    return {
        "id": chat.id,
        "agent_id": chat.agent_id,
        "user_id": chat.user_id,
        "thread_id": chat.thread_id,
        "source": chat.source,
        "metadata": chat.metadata_json,
        "created_at": chat.created_at.isoformat() if chat.created_at else None,
    }


def message_to_dict(message: MessageModel) -> dict:
    return {
        "id": message.id,
        "chat_id": message.chat_id,
        "role": message.role,
        "content": message.content,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


def feedback_to_dict(feedback: FeedbackModel) -> dict:
    return {
        "id": feedback.id,
        "agent_id": feedback.agent_id,
        "chat_id": feedback.chat_id,
        "rating": feedback.rating,
        "comment": feedback.comment,
        "created_at": feedback.created_at.isoformat() if feedback.created_at else None,
    }


# ── Route Registration ───────────────────────────────────────────

def register_chat_routes(app):
    """Register chat, feedback and public chat routes onto the FastAPI app."""

    # ══════════════════════════════════════════════════════════════
    # IN-APP CHAT
    # ══════════════════════════════════════════════════════════════

    @app.post("/api/users/{user_id}/agents/{agent_id}/chats", status_code=201, tags=["Chat"])
    async def start_chat(
        user_id: str,
        agent_id: str,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        """Open a new thread + chat. Starting another chat is how a conversation is reset."""
        chat = await ChatService(db, assistants).start_chat(user_id, agent_id)
        return {"status": "created", "chat": chat_to_dict(chat)}

    @app.get("/api/chats/{chat_id}/messages", tags=["Chat"])
    async def list_messages(
        chat_id: str,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        messages = await ChatService(db, assistants).list_messages(chat_id)
        return {"count": len(messages), "messages": [message_to_dict(m) for m in messages]}

    @app.post("/api/chats/{chat_id}/messages", tags=["Chat"])
    async def send_message(
        chat_id: str,
        req: SendMessageRequest,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        reply = await ChatService(db, assistants).send_message(chat_id, req.message)
        return {"chat_id": chat_id, "response": reply}

    # ══════════════════════════════════════════════════════════════
    # FEEDBACK
    # ══════════════════════════════════════════════════════════════

    @app.post("/api/chats/{chat_id}/feedback", status_code=201, tags=["Chat"])
    async def add_feedback(
        chat_id: str,
        req: FeedbackRequest,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        feedback = await ChatService(db, assistants).add_feedback(chat_id, req.rating, req.comment)
        return {"status": "created", "feedback": feedback_to_dict(feedback)}

    @app.get("/api/agents/{agent_id}/feedback", tags=["Chat"])
    async def list_feedback(
        agent_id: str,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        items = await ChatService(db, assistants).list_feedback(agent_id)
        return {"count": len(items), "feedback": [feedback_to_dict(f) for f in items]}

    # ══════════════════════════════════════════════════════════════
    # PUBLIC CHAT (/{username}/{agent-slug} share links)
    # ══════════════════════════════════════════════════════════════

    @app.post("/api/public/{username}/{agent_slug}/threads", status_code=201, tags=["Public Chat"])
    async def start_public_thread(
        username: str,
        agent_slug: str,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        agent, thread_id = await ChatService(db, assistants).start_public_thread(username, agent_slug)
        return {"agent": {"id": agent.id, "name": agent.name}, "thread_id": thread_id}

    @app.post("/api/public/{username}/{agent_slug}/messages", tags=["Public Chat"])
    async def send_public_message(
        username: str,
        agent_slug: str,
        req: PublicMessageRequest,
        db: AsyncSession = Depends(get_db_session),
        assistants: AssistantGateway = Depends(get_assistant_gateway),
    ):
        reply = await ChatService(db, assistants).send_public_message(
            username, agent_slug, req.thread_id, req.message,
        )
        return {"thread_id": req.thread_id, "response": reply}
