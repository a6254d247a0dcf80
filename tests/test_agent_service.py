"""
Tests for AgentManager and ChatService — agent lifecycle, in-app and public chat.
Run: pytest tests/test_agent_service.py -v
"""
import pytest

from agentdesk.agent_service.agent_config import AgentConfig, agent_slug, parse_config
from agentdesk.agent_service.agent_manager import AgentManager
from agentdesk.agent_service.chat_service import ChatService
from agentdesk.db.agent_repository import AgentRepository
from agentdesk.db.chat_repository import ChatRepository
from agentdesk.db.user_repository import UserRepository
from agentdesk.errors import BadRequestError, NotFoundError


# ══════════════════════════════════════════════════════════════════
# AGENT CONFIG
# ══════════════════════════════════════════════════════════════════


class TestAgentConfig:

    def test_round_trip_uses_camel_case_assistant_id(self):
        raw = AgentConfig(model="gpt-4", prompt="p", assistant_id="asst_1").dumps()
        assert '"assistantId": "asst_1"' in raw
        assert parse_config(raw).assistant_id == "asst_1"

    @pytest.mark.parametrize("raw", [None, "", "not json", "[1, 2]", '"text"'])
    def test_unreadable_config(self, raw):
        assert parse_config(raw) is None

    def test_slug(self):
        assert agent_slug("Sales  Bot Pro") == "sales-bot-pro"


# ══════════════════════════════════════════════════════════════════
# AGENT MANAGER
# ══════════════════════════════════════════════════════════════════


class TestAgentManager:

    @pytest.mark.asyncio
    async def test_create_binds_assistant(self, db_session, assistants, user):
        agent = await AgentManager(db_session, assistants).create(user.id, "Support", "gpt-4", "Be kind")
        config = parse_config(agent.config)
        assert config.assistant_id == "asst_1"
        assert config.model == "gpt-4"
        assert agent.description == "Be kind"
        assert assistants.called("create_assistant") == [("create_assistant", user.id, "Support", "Be kind", "gpt-4")]

    @pytest.mark.asyncio
    async def test_create_requires_openai_key(self, db_session, assistants):
        row = await UserRepository(db_session).create(email="nokey@example.com")
        with pytest.raises(BadRequestError, match="add your OpenAI API key"):
            await AgentManager(db_session, assistants).create(row.id, "Support", "gpt-4", "")
        assert assistants.calls == []

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_model(self, db_session, assistants, user):
        with pytest.raises(BadRequestError, match="Unsupported model"):
            await AgentManager(db_session, assistants).create(user.id, "Support", "gpt-2", "")

    @pytest.mark.asyncio
    async def test_update_mirrors_to_assistant(self, db_session, assistants, user, agent):
        updated = await AgentManager(db_session, assistants).update(
            user.id, agent.id, prompt="New instructions",
        )
        assert parse_config(updated.config).prompt == "New instructions"
        assert parse_config(updated.config).assistant_id == "asst_sales"
        assert updated.name == "Sales Bot"
        assert assistants.called("update_assistant") == [
            ("update_assistant", user.id, "asst_sales", None, "New instructions", None),
        ]

    @pytest.mark.parametrize("blank", ["", "   "])
    @pytest.mark.asyncio
    async def test_update_rejects_blank_name(self, db_session, assistants, user, agent, blank):
        with pytest.raises(BadRequestError, match="Agent name is required"):
            await AgentManager(db_session, assistants).update(user.id, agent.id, name=blank)
        assert assistants.called("update_assistant") == []
        stored = await AgentRepository(db_session).get(agent.id)
        assert stored.name == "Sales Bot"
        assert agent_slug(stored.name) == "sales-bot"

    @pytest.mark.asyncio
    async def test_other_users_agent_is_not_found(self, db_session, assistants, agent):
        other = await UserRepository(db_session).create(email="other@example.com", openai_api_key="sk-x")
        with pytest.raises(NotFoundError):
            await AgentManager(db_session, assistants).get(other.id, agent.id)

    @pytest.mark.asyncio
    async def test_delete_removes_assistant_and_chats(self, db_session, assistants, user, agent):
        service = ChatService(db_session, assistants)
        chat = await service.start_chat(user.id, agent.id)
        await service.send_message(chat.id, "hello")

        await AgentManager(db_session, assistants).delete(user.id, agent.id)

        assert assistants.called("delete_assistant") == [("delete_assistant", user.id, "asst_sales")]
        assert await AgentRepository(db_session).get(agent.id) is None
        assert await ChatRepository(db_session).get_chat(chat.id) is None


# ══════════════════════════════════════════════════════════════════
# CHAT SERVICE
# ══════════════════════════════════════════════════════════════════


class TestChatService:

    @pytest.mark.asyncio
    async def test_in_app_chat_persists_both_turns(self, db_session, assistants, user, agent):
        service = ChatService(db_session, assistants)
        chat = await service.start_chat(user.id, agent.id)
        assert chat.source == "app"

        reply = await service.send_message(chat.id, "What are your hours?")
        assert reply == "Thanks for reaching out!"
        messages = await service.list_messages(chat.id)
        assert [m.role for m in messages] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_unknown_chat(self, db_session, assistants):
        with pytest.raises(NotFoundError, match="Chat session not found"):
            await ChatService(db_session, assistants).send_message("chat-missing", "hi")

    @pytest.mark.asyncio
    async def test_feedback(self, db_session, assistants, user, agent):
        service = ChatService(db_session, assistants)
        chat = await service.start_chat(user.id, agent.id)
        await service.add_feedback(chat.id, 5, "Great answers")
        items = await service.list_feedback(agent.id)
        assert len(items) == 1
        assert items[0].rating == 5
        assert items[0].chat_id == chat.id

    @pytest.mark.asyncio
    async def test_public_chat_resolves_by_name_and_slug(self, db_session, assistants, user, agent):
        service = ChatService(db_session, assistants)
        resolved = await service.resolve_public_agent("jane doe", "Sales-Bot")
        assert resolved.id == agent.id

        shared, thread_id = await service.start_public_thread("Jane Doe", "sales-bot")
        assert shared.id == agent.id
        assert len(assistants.called("create_thread")) == 1
        reply = await service.send_public_message("Jane Doe", "sales-bot", thread_id, "hi")
        assert reply == "Thanks for reaching out!"
        assert await ChatRepository(db_session).count_by_agent(agent.id) == 0

    @pytest.mark.asyncio
    async def test_public_chat_unknown_agent(self, db_session, assistants, user, agent):
        service = ChatService(db_session, assistants)
        with pytest.raises(NotFoundError, match="AI Agent not found"):
            await service.resolve_public_agent("Jane Doe", "support-bot")
        with pytest.raises(NotFoundError, match="User not found"):
            await service.resolve_public_agent("Nobody", "sales-bot")
