"""Agent service — agent lifecycle, chats and the user-keyed OpenAI Assistants gateway"""
from .agent_config import AgentConfig, parse_config, agent_slug, SUPPORTED_MODELS
from .assistant_gateway import AssistantGateway, OpenAIKeyMissingError
from .agent_manager import AgentManager
from .chat_service import ChatService

__all__ = [
    "AgentConfig", "parse_config", "agent_slug", "SUPPORTED_MODELS",
    "AssistantGateway", "OpenAIKeyMissingError",
    "AgentManager", "ChatService",
]
