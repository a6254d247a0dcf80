"""Channel Connectors - Inbound webhooks and the live webhook log"""
from .webhook_handler import WebhookChatResolver, WebhookChatResult, build_fields_message
from .webhook_log import WebhookLogBuffer, WebhookLogEntry

__all__ = [
    "WebhookChatResolver",
    "WebhookChatResult",
    "build_fields_message",
    "WebhookLogBuffer",
    "WebhookLogEntry",
]
