"""
Single-action path: sign one action, send it on its own, validate and decode.
"""

from __future__ import annotations

import typing as t

import structlog

from onoffice_batch.config import OnOfficeSettings
from onoffice_batch.models import ActionType, Record
from onoffice_batch.signing import create_action_request
from onoffice_batch.transport import ApiContext, call_api
from onoffice_batch.validation import assert_successful_action, index_results, parse_envelope

log = structlog.get_logger(__name__)


class Requester(t.Protocol):
    """Anything that can run one logical action and return its records."""

    async def request(
        self,
        action_type: ActionType | str,
        resource_type: str,
        parameters: t.Mapping[str, t.Any],
        resource_id: str = "",
    ) -> list[Record]: ...


async def api_action(
    context: ApiContext,
    action_type: ActionType | str,
    resource_type: str,
    parameters: t.Mapping[str, t.Any],
    resource_id: str = "",
    *,
    settings: OnOfficeSettings | None = None,
) -> list[Record]:
    """
    Call the API with exactly one action.

    Parameters
    ----------
    context : ApiContext
        Host capabilities.
    action_type : ActionType | str
        API action.
    resource_type : str
        API resource.
    parameters : typing.Mapping[str, typing.Any]
        Action parameters.
    resource_id : str, optional
        Target resource id.
    settings : OnOfficeSettings | None, optional
        Endpoint settings; read from the environment when omitted.

    Returns
    -------
    list[Record]
        ``data.records`` of the action result.
    """
    settings = settings or OnOfficeSettings.from_env()
    credentials = await context.get_credentials()
    action = create_action_request(
        api_secret=credentials.api_secret,
        api_token=credentials.api_token,
        action_type=action_type,
        resource_type=resource_type,
        parameters=parameters,
        resource_id=resource_id,
    )
    payload = await call_api(context, [action], settings=settings)
    results = index_results(envelope=parse_envelope(payload=payload))
    response = assert_successful_action(response=next(iter(results.values())))
    log.debug(
        event="Action completed",
        actionid=action.actionid,
        resourcetype=resource_type,
        record_count=len(response.data.records),
    )
    return response.data.records


class DirectRequester:
    """
    :class:`Requester` that sends every action in its own HTTP call.

    Parameters
    ----------
    context : ApiContext
        Host capabilities.
    settings : OnOfficeSettings | None, optional
        Endpoint settings; read from the environment when omitted.
    """

    def __init__(self, context: ApiContext, settings: OnOfficeSettings | None = None) -> None:
        self._context = context
        self._settings = settings or OnOfficeSettings.from_env()

    async def request(
        self,
        action_type: ActionType | str,
        resource_type: str,
        parameters: t.Mapping[str, t.Any],
        resource_id: str = "",
    ) -> list[Record]:
        return await api_action(
            self._context,
            action_type,
            resource_type,
            parameters,
            resource_id,
            settings=self._settings,
        )
