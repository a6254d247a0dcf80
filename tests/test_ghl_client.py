"""
Tests for GHLClient — custom value sync against a mocked GHL REST API.
Run: pytest tests/test_ghl_client.py -v
"""
import json

import httpx
import pytest

from agentdesk.errors import BadRequestError
from agentdesk.integrations.ghl_client import (
    GHLAPIError,
    GHLClient,
    GHLSetupError,
    REQUIRED_CUSTOM_FIELDS,
)


ALL_CUSTOM_VALUES = [
    {"id": "cv-1", "name": "AssistantID", "fieldKey": "{{ custom_values.assistantid }}", "value": ""},
    {"id": "cv-2", "name": "First Outgoing Message", "fieldKey": "{{ custom_values.first }}", "value": ""},
    {"id": "cv-3", "name": "Webook: Chat GPT-3", "fieldKey": "{{ custom_values.webook }}", "value": ""},
    {"id": "cv-4", "name": "App Email", "fieldKey": "{{ custom_values.app_email }}", "value": ""},
    {"id": "cv-5", "name": "Unrelated", "fieldKey": "{{ custom_values.unrelated }}", "value": "x"},
]

SETUP_ARGS = dict(
    api_key="ghl-key",
    location_id="loc-1",
    assistant_id="asst_sales",
    opening_message="Hi there",
    user_email="owner@example.com",
    webhook_url="https://app.example.com/api/webhook",
)


class FakeGHL:
    """Records requests and serves the configured custom values."""

    def __init__(self, custom_values, put_status=200):
        self.custom_values = custom_values
        self.put_status = put_status
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET" and request.url.path == "/v1/custom-values":
            return httpx.Response(200, json={"customValues": self.custom_values})
        if request.method == "PUT":
            if self.put_status >= 400:
                return httpx.Response(self.put_status, json={"message": "Location not authorized"})
            return httpx.Response(200, json={"id": request.url.path.rsplit("/", 1)[-1]})
        return httpx.Response(404, json={"message": "not found"})

    def puts(self):
        return [r for r in self.requests if r.method == "PUT"]

    def client(self) -> GHLClient:
        return GHLClient(base_url="https://ghl.test", transport=httpx.MockTransport(self.handler))


class TestGHLSetup:

    @pytest.mark.asyncio
    async def test_updates_all_four_values(self):
        fake = FakeGHL(ALL_CUSTOM_VALUES)
        async with fake.client() as ghl:
            result = await ghl.setup_integration(**SETUP_ARGS)

        assert set(result) == set(REQUIRED_CUSTOM_FIELDS)
        puts = {r.url.path: json.loads(r.content)["value"] for r in fake.puts()}
        assert puts == {
            "/v1/custom-values/cv-1": "asst_sales",
            "/v1/custom-values/cv-2": "Hi there",
            "/v1/custom-values/cv-3": "https://app.example.com/api/webhook",
            "/v1/custom-values/cv-4": "owner@example.com",
        }
        assert all(r.headers["Authorization"] == "Bearer ghl-key" for r in fake.requests)

    @pytest.mark.asyncio
    async def test_missing_field_issues_no_put(self):
        fake = FakeGHL([cv for cv in ALL_CUSTOM_VALUES if cv["name"] != "App Email"])
        async with fake.client() as ghl:
            with pytest.raises(GHLSetupError) as exc:
                await ghl.setup_integration(**SETUP_ARGS)

        assert exc.value.missing == ["App Email"]
        assert exc.value.status_code == 400
        assert "Missing: App Email" in exc.value.details
        assert fake.puts() == []

    @pytest.mark.asyncio
    async def test_all_fields_required(self):
        fake = FakeGHL(ALL_CUSTOM_VALUES)
        async with fake.client() as ghl:
            with pytest.raises(BadRequestError, match="All fields are required"):
                await ghl.setup_integration(**{**SETUP_ARGS, "location_id": ""})
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_list_error_surfaces_message(self):
        def handler(request):
            return httpx.Response(401, json={"message": "Api key is invalid."})

        async with GHLClient(base_url="https://ghl.test", transport=httpx.MockTransport(handler)) as ghl:
            with pytest.raises(GHLAPIError, match="GHL API Error: Api key is invalid."):
                await ghl.get_custom_values("bad-key")

    @pytest.mark.asyncio
    async def test_update_failure_raises(self):
        fake = FakeGHL(ALL_CUSTOM_VALUES, put_status=403)
        async with fake.client() as ghl:
            with pytest.raises(GHLAPIError) as exc:
                await ghl.setup_integration(**SETUP_ARGS)
        assert exc.value.status_code == 502
