"""
Agent config — the JSON document stored in the agents.config column.
"""

import json
import re
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError

SUPPORTED_MODELS = {
    "gpt-4": "GPT-4",
    "gpt-4-turbo-preview": "GPT-4 Turbo",
    "gpt-3.5-turbo": "GPT-3.5 Turbo",
}


class AgentConfig(BaseModel):
    """{"model", "prompt", "assistantId"} as stored on the agent row."""
    model_config = ConfigDict(populate_by_name=True, extra="allow", protected_namespaces=())

    model: str = ""
    prompt: str = ""
    assistant_id: str = Field(default="", alias="assistantId")

    def dumps(self) -> str:
        return json.dumps(self.model_dump(by_alias=True))


def parse_config(raw: Optional[str]) -> Optional[AgentConfig]:
    """Parse a stored config string; None when it is not a JSON object."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        return AgentConfig.model_validate(data)
    except ValidationError:
        return None


def agent_slug(name: str) -> str:
    """Public URL slug: lower-cased with whitespace runs replaced by '-'."""
    return re.sub(r"\s+", "-", name.lower())
