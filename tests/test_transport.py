"""
Tests for the httpx-backed API context in onoffice_batch.transport.
"""

import json

import httpx
import pytest
import respx

from onoffice_batch.config import OnOfficeSettings
from onoffice_batch.exceptions import TransportError
from onoffice_batch.models import Credentials
from onoffice_batch.signing import create_action_request
from onoffice_batch.transport import HttpxApiContext, build_api_request, call_api
from tests.mocks.api import action_result, envelope

CREDENTIALS = Credentials(api_token="token", api_secret="secret")


@pytest.fixture
def action():
    return create_action_request(
        api_secret="secret",
        api_token="token",
        action_type="read",
        resource_type="address",
        parameters={"data": ["Name"]},
        identifier="0",
        timestamp=1700000000,
    )


def test_build_api_request(action, settings: OnOfficeSettings):
    request = build_api_request(api_token="token", actions=[action], settings=settings)

    assert request.method == "POST"
    assert request.url == settings.api_url
    assert request.headers == {
        "Content-Type": "application/json",
        "User-Agent": "onoffice-batch",
    }
    assert request.json == {"token": "token", "request": {"actions": [action.model_dump()]}}


@pytest.mark.asyncio
async def test_httpx_context_posts_actions(action, settings: OnOfficeSettings):
    context = HttpxApiContext(settings=settings, credentials_provider=lambda: CREDENTIALS)

    with respx.mock:
        route = respx.post(settings.api_url).mock(
            return_value=httpx.Response(200, json=envelope([action_result("0")]))
        )
        payload = await call_api(context, [action], settings=settings)

    assert payload["status"]["code"] == 200
    sent = route.calls.last.request
    assert sent.headers["user-agent"] == "onoffice-batch"
    body = json.loads(sent.content)
    assert body["token"] == "token"
    assert body["request"]["actions"][0]["hmac"] == action.hmac
    assert body["request"]["actions"][0]["timestamp"] == "1700000000"


@pytest.mark.asyncio
async def test_httpx_context_accepts_async_credentials_provider(action, settings):
    async def provider() -> Credentials:
        return Credentials(api_token="async-token", api_secret="secret")

    context = HttpxApiContext(settings=settings, credentials_provider=provider)

    with respx.mock:
        route = respx.post(settings.api_url).mock(
            return_value=httpx.Response(200, json=envelope([action_result("0")]))
        )
        await call_api(context, [action], settings=settings)

    assert json.loads(route.calls.last.request.content)["token"] == "async-token"


@pytest.mark.asyncio
async def test_httpx_context_reads_credentials_from_env(settings: OnOfficeSettings):
    context = HttpxApiContext(settings=settings)

    credentials = await context.get_credentials()

    assert credentials.api_token == "token"
    assert credentials.api_secret == "secret"
    assert "secret" not in repr(credentials)


@pytest.mark.asyncio
async def test_http_error_status_raises_transport_error(action, settings: OnOfficeSettings):
    context = HttpxApiContext(settings=settings, credentials_provider=lambda: CREDENTIALS)

    with respx.mock:
        respx.post(settings.api_url).mock(return_value=httpx.Response(503))
        with pytest.raises(TransportError) as exc_info:
            await call_api(context, [action], settings=settings)

    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)


@pytest.mark.asyncio
async def test_connection_error_raises_transport_error(action, settings: OnOfficeSettings):
    context = HttpxApiContext(settings=settings, credentials_provider=lambda: CREDENTIALS)

    with respx.mock:
        respx.post(settings.api_url).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(TransportError, match="refused"):
            await call_api(context, [action], settings=settings)


@pytest.mark.asyncio
async def test_invalid_json_raises_transport_error(action, settings: OnOfficeSettings):
    context = HttpxApiContext(settings=settings, credentials_provider=lambda: CREDENTIALS)

    with respx.mock:
        respx.post(settings.api_url).mock(return_value=httpx.Response(200, text="<html>"))
        with pytest.raises(TransportError):
            await call_api(context, [action], settings=settings)


@pytest.mark.asyncio
async def test_custom_client_factory(action, settings: OnOfficeSettings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=envelope([action_result("0")]))

    context = HttpxApiContext(
        settings=settings,
        credentials_provider=lambda: CREDENTIALS,
        client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    payload = await call_api(context, [action], settings=settings)

    assert payload["response"]["results"][0]["identifier"] == "0"


@pytest.mark.asyncio
async def test_client_is_reused_until_closed(action, settings: OnOfficeSettings):
    clients: list[httpx.AsyncClient] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=envelope([action_result("0")]))

    def client_factory() -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    async with HttpxApiContext(
        settings=settings,
        credentials_provider=lambda: CREDENTIALS,
        client_factory=client_factory,
    ) as context:
        await call_api(context, [action], settings=settings)
        await call_api(context, [action], settings=settings)

    assert len(clients) == 1
    assert clients[0].is_closed
