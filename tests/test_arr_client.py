"""Tests for the Radarr/Sonarr HTTP client."""
import json

import httpx
import pytest

from mcp_custom_formats.errors import RemoteError
from mcp_custom_formats.remote import ArrClient, create_client
from mcp_custom_formats.schema import Instance, ServiceKind


@pytest.fixture
def instance():
    return Instance(
        id="radarr-main",
        owner="alice",
        service_kind=ServiceKind.RADARR,
        base_url="http://radarr.test:7878",
        api_key="secret",
        timeout=5,
        retries=3,
    )


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(ArrClient, "RETRY_MIN_WAIT", 0)
    monkeypatch.setattr(ArrClient, "RETRY_MAX_WAIT", 0)


def _client(instance, handler):
    return ArrClient(instance, transport=httpx.MockTransport(handler))


class TestArrClient:

    def test_factory(self, instance):
        assert isinstance(create_client(instance), ArrClient)

    @pytest.mark.asyncio
    async def test_list(self, instance):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"id": 1, "name": "DV"}])

        async with _client(instance, handler) as client:
            formats = await client.list_custom_formats()

        assert formats == [{"id": 1, "name": "DV"}]
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/api/v3/customformat"
        assert seen[0].headers["X-Api-Key"] == "secret"

    @pytest.mark.asyncio
    async def test_create_and_update(self, instance):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.append((request.method, request.url.path, body))
            return httpx.Response(201, json={**body, "id": 12})

        payload = {"name": "DV", "specifications": []}
        async with _client(instance, handler) as client:
            created = await client.create_custom_format(payload)
            updated = await client.update_custom_format(12, {**created, "name": "DV2"})

        assert created["id"] == 12
        assert updated["name"] == "DV2"
        assert seen[0][:2] == ("POST", "/api/v3/customformat")
        assert seen[1][:2] == ("PUT", "/api/v3/customformat/12")

    @pytest.mark.asyncio
    async def test_validation_error_message(self, instance):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json=[
                {"propertyName": "Name", "errorMessage": "Must be unique"},
                {"propertyName": "Specifications", "errorMessage": "Invalid regex"},
            ])

        async with _client(instance, handler) as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.create_custom_format({"name": "DV"})

        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == "HTTP 400: Must be unique; Invalid regex"
        # HTTP errors are final
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_plain_text_error(self, instance):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="Unauthorized")

        async with _client(instance, handler) as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.list_custom_formats()
        assert str(exc_info.value) == "HTTP 401: Unauthorized"

    @pytest.mark.asyncio
    async def test_transport_errors_retried(self, instance):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=[])

        async with _client(instance, handler) as client:
            assert await client.list_custom_formats() == []
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_unreachable(self, instance):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(instance, handler) as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.list_custom_formats()

        assert "radarr-main unreachable" in str(exc_info.value)
        assert exc_info.value.status_code is None
        assert len(calls) == 3
