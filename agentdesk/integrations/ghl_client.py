"""
GoHighLevel Client — pushes agent configuration into a GHL account's custom values.
"""

import asyncio
import logging
from typing import Optional, Dict, List

import httpx
from pydantic import BaseModel, ConfigDict, Field

from agentdesk.config.settings import settings
from agentdesk.errors import BadRequestError, UpstreamError

logger = logging.getLogger(__name__)

# Custom value names the GHL snapshot must define (the webhook one is misspelled in GHL)
ASSISTANT_ID_FIELD = "AssistantID"
FIRST_MESSAGE_FIELD = "First Outgoing Message"
WEBHOOK_FIELD = "Webook: Chat GPT-3"
APP_EMAIL_FIELD = "App Email"
REQUIRED_CUSTOM_FIELDS = (ASSISTANT_ID_FIELD, FIRST_MESSAGE_FIELD, WEBHOOK_FIELD, APP_EMAIL_FIELD)

DEFAULT_OPENING_MESSAGE = (
    "Hi it's Sarah from Company Name, is that the same {{contact.first_name}} "
    "who was interested in product/service?"
)


class GHLAPIError(UpstreamError):
    """Non-2xx response from the GHL REST API."""


class GHLSetupError(BadRequestError):
    """The GHL account is missing custom values the integration writes to."""

    def __init__(self, missing: List[str]):
        super().__init__(
            "Required custom fields not found in GHL. "
            "Please ensure all required fields are set up in your GHL account.",
            details=f"Missing: {', '.join(missing)}",
        )
        self.missing = missing


class CustomValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    field_key: str = Field(alias="fieldKey")
    value: Optional[str] = None


class GHLClient:
    """Client for the GHL v1 custom-values API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.ghl_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.ghl_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "GHLClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        try:
            body = resp.json()
        except ValueError:
            body = None
        message = body.get("message") if isinstance(body, dict) else None
        message = message or resp.reason_phrase or f"HTTP {resp.status_code}"
        logger.error(f"[GHL] {resp.request.method} {resp.request.url.path} failed ({resp.status_code}): {message}")
        raise GHLAPIError(f"GHL API Error: {message}")

    # ── Custom values ─────────────────────────────────────────────

    async def get_custom_values(self, api_key: str) -> List[CustomValue]:
        resp = await self._client.get("/v1/custom-values", headers=self._headers(api_key))
        self._raise_for_status(resp)
        data = resp.json() or {}
        return [CustomValue.model_validate(cv) for cv in data.get("customValues") or []]

    async def update_custom_value(self, api_key: str, custom_value_id: str, value: str) -> None:
        resp = await self._client.put(
            f"/v1/custom-values/{custom_value_id}",
            headers=self._headers(api_key),
            json={"value": value},
        )
        self._raise_for_status(resp)

    # ── Integration setup ─────────────────────────────────────────

    async def setup_integration(
        self,
        api_key: str,
        location_id: str,
        assistant_id: str,
        opening_message: str,
        user_email: str,
        webhook_url: str,
    ) -> Dict[str, str]:
        """
        Write the agent's assistant id, opening message, webhook URL and app
        email into the matching GHL custom values.

        All four custom values are located before anything is written; if any
        is missing no update is sent. The updates themselves run concurrently
        and are not rolled back if one of them fails.

        Returns:
            Mapping of custom value name → value written.
        """
        if not all([api_key, location_id, assistant_id, opening_message, user_email, webhook_url]):
            raise BadRequestError("All fields are required")

        custom_values = await self.get_custom_values(api_key)
        by_name: Dict[str, CustomValue] = {}
        for cv in custom_values:
            by_name.setdefault(cv.name, cv)

        missing = [name for name in REQUIRED_CUSTOM_FIELDS if not (by_name.get(name) and by_name[name].id)]
        if missing:
            logger.warning(f"[GHL] Location {location_id} is missing custom values: {missing}")
            raise GHLSetupError(missing)

        values = {
            ASSISTANT_ID_FIELD: assistant_id,
            FIRST_MESSAGE_FIELD: opening_message,
            WEBHOOK_FIELD: webhook_url,
            APP_EMAIL_FIELD: user_email,
        }
        await asyncio.gather(*[
            self.update_custom_value(api_key, by_name[name].id, value)
            for name, value in values.items()
        ])
        logger.info(f"[GHL] Synced assistant {assistant_id} into location {location_id}")
        return values

    async def close(self):
        await self._client.aclose()
