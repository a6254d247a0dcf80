"""External APIs — OpenAI Assistants and GoHighLevel custom values"""
from .openai_assistants import OpenAIAssistantsClient, OpenAIAPIError, AssistantRunError
from .ghl_client import GHLClient, GHLAPIError, GHLSetupError

__all__ = [
    "OpenAIAssistantsClient", "OpenAIAPIError", "AssistantRunError",
    "GHLClient", "GHLAPIError", "GHLSetupError",
]
