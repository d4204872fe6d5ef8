"""
Tests for the single-action path in onoffice_batch.actions.
"""

import httpx
import pytest

from onoffice_batch.actions import DirectRequester, api_action
from onoffice_batch.config import OnOfficeSettings
from onoffice_batch.exceptions import (
    AUTHORIZATION_FAILED_MESSAGE,
    ActionError,
    EmptyResponseError,
    EnvelopeError,
    TransportError,
)
from tests.mocks.api import FakeOnOfficeAPI, action_result, envelope, sent_actions


@pytest.mark.asyncio
async def test_api_action_returns_records(fake_api: FakeOnOfficeAPI, settings: OnOfficeSettings):
    records = await api_action(
        fake_api, "read", "estate", {"data": ["Id"]}, settings=settings
    )

    assert records == [{"id": "", "type": "estate", "elements": {"data": ["Id"]}}]
    actions = sent_actions(fake_api.requests[0])
    assert len(actions) == 1
    assert actions[0]["identifier"] == ""
    assert actions[0]["resourcetype"] == "estate"


@pytest.mark.asyncio
async def test_api_action_sends_resource_id(fake_api: FakeOnOfficeAPI, settings: OnOfficeSettings):
    await api_action(fake_api, "modify", "address", {"Name": "Doe"}, "17", settings=settings)

    action = sent_actions(fake_api.requests[0])[0]
    assert action["resourceid"] == "17"
    assert action["actionid"].endswith(":modify")


@pytest.mark.asyncio
async def test_api_action_authorization_failure(
    fake_api: FakeOnOfficeAPI, settings: OnOfficeSettings
):
    fake_api.handler = lambda request: envelope([], code=400, message="Invalid token")

    with pytest.raises(EnvelopeError) as exc_info:
        await api_action(fake_api, "read", "address", {}, settings=settings)

    assert exc_info.value.message == AUTHORIZATION_FAILED_MESSAGE
    assert exc_info.value.http_code == "401"
    assert exc_info.value.description == "Invalid token"


@pytest.mark.asyncio
async def test_api_action_action_failure(fake_api: FakeOnOfficeAPI, settings: OnOfficeSettings):
    fake_api.handler = lambda request: envelope(
        [action_result("", errorcode=500, message="Unknown field Foo")]
    )

    with pytest.raises(ActionError, match="Unknown field Foo"):
        await api_action(fake_api, "read", "address", {"data": ["Foo"]}, settings=settings)


@pytest.mark.asyncio
async def test_api_action_empty_response(fake_api: FakeOnOfficeAPI, settings: OnOfficeSettings):
    fake_api.handler = lambda request: envelope([])

    with pytest.raises(EmptyResponseError):
        await api_action(fake_api, "read", "address", {}, settings=settings)


@pytest.mark.asyncio
async def test_api_action_transport_failure(
    fake_api: FakeOnOfficeAPI, settings: OnOfficeSettings
):
    def timeout(request):
        raise httpx.ReadTimeout("timed out")

    fake_api.handler = timeout

    with pytest.raises(TransportError):
        await api_action(fake_api, "read", "address", {}, settings=settings)


@pytest.mark.asyncio
async def test_direct_requester_sends_one_request_per_call(
    fake_api: FakeOnOfficeAPI, settings: OnOfficeSettings
):
    requester = DirectRequester(fake_api, settings=settings)

    await requester.request("get", "actionkindtypes", {"lang": "ENG"})
    await requester.request("get", "actionkindtypes", {"lang": "DEU"})

    assert len(fake_api.requests) == 2
    assert all(len(sent_actions(request)) == 1 for request in fake_api.requests)
