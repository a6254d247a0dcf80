"""
OpenAI Assistants Client — thin httpx wrapper over the Assistants v2 REST API.
Handles assistant CRUD, thread creation and run execution (add message,
start run, poll to a terminal status, read the reply).
"""

import asyncio
import logging
from typing import Optional, Dict, List, Any

import httpx

from agentdesk.config.settings import settings
from agentdesk.errors import UpstreamError

logger = logging.getLogger(__name__)

ASSISTANTS_BETA_HEADER = "assistants=v2"

# Run statuses that will not change any more
TERMINAL_RUN_STATUSES = {"completed", "failed", "cancelled", "expired", "incomplete", "requires_action"}


class OpenAIAPIError(UpstreamError):
    """Non-2xx response from the OpenAI API."""


class AssistantRunError(UpstreamError):
    """A run ended in a status other than 'completed' or never finished."""

    def __init__(self, message: str, run_id: str = "", status: str = ""):
        super().__init__(message)
        self.run_id = run_id
        self.status = status


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.reason_phrase or f"HTTP {resp.status_code}"
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return err["message"]
    return resp.reason_phrase or f"HTTP {resp.status_code}"


def extract_text(message: Dict[str, Any]) -> str:
    """Join the text parts of an Assistants message object."""
    parts = []
    for block in message.get("content") or []:
        if block.get("type") == "text":
            parts.append((block.get("text") or {}).get("value", ""))
    return "\n".join(p for p in parts if p)


class OpenAIAssistantsClient:
    """Client for one OpenAI API key."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: Optional[float] = None,
        run_timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.poll_interval = settings.openai_run_poll_interval_seconds if poll_interval is None else poll_interval
        self.run_timeout = settings.openai_run_timeout_seconds if run_timeout is None else run_timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.openai_timeout_seconds,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "OpenAI-Beta": ASSISTANTS_BETA_HEADER,
            },
        )

    async def __aenter__(self) -> "OpenAIAssistantsClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        resp = await self._client.request(method, path, **kwargs)
        if resp.is_error:
            message = _error_message(resp)
            logger.warning(f"[OpenAI] {method} {path} failed ({resp.status_code}): {message}")
            raise OpenAIAPIError(f"OpenAI API Error: {message}")
        return resp.json()

    # ── Assistants ────────────────────────────────────────────────

    async def create_assistant(self, name: str, instructions: str, model: str) -> str:
        """Create an assistant and return its id."""
        data = await self._request(
            "POST", "/assistants",
            json={"name": name, "instructions": instructions, "model": model},
        )
        logger.info(f"[OpenAI] Created assistant {data.get('id')} ({name})")
        return data["id"]

    async def update_assistant(
        self,
        assistant_id: str,
        name: Optional[str] = None,
        instructions: Optional[str] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if name is not None:
            body["name"] = name
        if instructions is not None:
            body["instructions"] = instructions
        if model is not None:
            body["model"] = model
        data = await self._request("POST", f"/assistants/{assistant_id}", json=body)
        logger.info(f"[OpenAI] Updated assistant {assistant_id}")
        return data

    async def delete_assistant(self, assistant_id: str) -> bool:
        data = await self._request("DELETE", f"/assistants/{assistant_id}")
        logger.info(f"[OpenAI] Deleted assistant {assistant_id}")
        return bool(data.get("deleted", True))

    # ── Threads & Messages ────────────────────────────────────────

    async def create_thread(self) -> str:
        data = await self._request("POST", "/threads", json={})
        logger.info(f"[OpenAI] Created thread {data.get('id')}")
        return data["id"]

    async def add_message(self, thread_id: str, content: str, role: str = "user") -> Dict[str, Any]:
        return await self._request(
            "POST", f"/threads/{thread_id}/messages",
            json={"role": role, "content": content},
        )

    async def list_messages(self, thread_id: str, limit: int = 20, order: str = "desc") -> List[Dict[str, Any]]:
        data = await self._request(
            "GET", f"/threads/{thread_id}/messages",
            params={"limit": limit, "order": order},
        )
        return data.get("data") or []

    # ── Runs ──────────────────────────────────────────────────────

    async def create_run(self, thread_id: str, assistant_id: str) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/threads/{thread_id}/runs",
            json={"assistant_id": assistant_id},
        )

    async def get_run(self, thread_id: str, run_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")

    async def wait_for_run(self, thread_id: str, run: Dict[str, Any]) -> Dict[str, Any]:
        """Poll a run until it reaches a terminal status or the deadline passes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.run_timeout
        while run.get("status") not in TERMINAL_RUN_STATUSES:
            if loop.time() >= deadline:
                raise AssistantRunError(
                    f"Run {run.get('id')} did not finish within {self.run_timeout}s",
                    run_id=run.get("id", ""), status=run.get("status", ""),
                )
            await asyncio.sleep(self.poll_interval)
            run = await self.get_run(thread_id, run["id"])
        return run

    async def send_message(self, thread_id: str, assistant_id: str, content: str) -> str:
        """
        Post a user message, run the assistant on the thread and return the reply text.
        """
        await self.add_message(thread_id, content)
        run = await self.create_run(thread_id, assistant_id)
        run = await self.wait_for_run(thread_id, run)

        status = run.get("status")
        if status != "completed":
            last_error = (run.get("last_error") or {}).get("message", "")
            raise AssistantRunError(
                f"Assistant run {status}" + (f": {last_error}" if last_error else ""),
                run_id=run.get("id", ""), status=status or "",
            )

        messages = await self.list_messages(thread_id)
        for message in messages:
            if message.get("role") == "assistant" and message.get("run_id") in (None, run.get("id")):
                return extract_text(message)
        raise AssistantRunError("Assistant run completed without a reply", run_id=run.get("id", ""), status=status)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()
