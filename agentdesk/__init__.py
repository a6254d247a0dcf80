"""AgentDesk — OpenAI Assistants agents with webhook chat and GoHighLevel sync."""

__version__ = "1.0.0"
