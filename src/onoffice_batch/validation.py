"""
Two-tier validation of API responses: the request envelope first, then each action.
"""

from __future__ import annotations

import typing as t

import structlog
from pydantic import ValidationError

from onoffice_batch.exceptions import (
    AUTHORIZATION_FAILED_MESSAGE,
    INVALID_REQUEST_MESSAGE,
    NO_ACTION_RESPONSE_MESSAGE,
    SERVICE_FAILED_MESSAGE,
    ActionError,
    EmptyResponseError,
    EnvelopeError,
    ProtocolError,
)
from onoffice_batch.models import ActionResponse, BatchResult, EnvelopeStatus, ResponseEnvelope

log = structlog.get_logger(__name__)


def _envelope_error(*, status: EnvelopeStatus, payload: t.Any) -> EnvelopeError:
    if status.code == 400:
        message, http_code = AUTHORIZATION_FAILED_MESSAGE, "401"
    elif status.code == 500:
        message, http_code = SERVICE_FAILED_MESSAGE, "500"
    else:
        message, http_code = INVALID_REQUEST_MESSAGE, str(status.code)
    return EnvelopeError(
        message,
        description=status.message,
        http_code=http_code,
        payload=payload,
    )


def parse_envelope(payload: t.Any) -> ResponseEnvelope:
    """
    Validate the top-level status of a response body.

    Parameters
    ----------
    payload : typing.Any
        Decoded response body.

    Returns
    -------
    ResponseEnvelope
        Parsed envelope with ``status.code == 200``.

    Raises
    ------
    EnvelopeError
        If the status code is anything but 200.
    ProtocolError
        If the body is not shaped like a response envelope.
    """
    if not isinstance(payload, dict):
        raise ProtocolError(INVALID_REQUEST_MESSAGE, description="Response is not a JSON object")
    try:
        status = EnvelopeStatus.model_validate(payload.get("status"))
    except ValidationError as error:
        raise ProtocolError(INVALID_REQUEST_MESSAGE, description=str(object=error)) from error

    if status.code != 200:
        log.warning(
            event="API request rejected",
            status_code=status.code,
            status_message=status.message,
        )
        raise _envelope_error(status=status, payload=payload)

    try:
        return ResponseEnvelope.model_validate(payload)
    except ValidationError as error:
        raise ProtocolError(INVALID_REQUEST_MESSAGE, description=str(object=error)) from error


def index_results(envelope: ResponseEnvelope) -> BatchResult:
    """
    Split action results by their identifier.

    Parameters
    ----------
    envelope : ResponseEnvelope
        Successful envelope.

    Returns
    -------
    BatchResult
        Mapping from identifier to action response.

    Raises
    ------
    EmptyResponseError
        If the envelope carries no results at all.
    """
    results = envelope.response.results
    if not results:
        raise EmptyResponseError(NO_ACTION_RESPONSE_MESSAGE)
    return {result.identifier: result for result in results}


def assert_successful_action(response: ActionResponse | None) -> ActionResponse:
    """
    Check the status of a single action.

    Parameters
    ----------
    response : ActionResponse | None
        The action's result, ``None`` if the server sent none.

    Returns
    -------
    ActionResponse
        The same response, known to be successful.

    Raises
    ------
    EmptyResponseError
        If there is no response for the action.
    ActionError
        If the action reports a non-zero error code.
    """
    if response is None:
        raise EmptyResponseError(NO_ACTION_RESPONSE_MESSAGE)
    if response.status.errorcode != 0:
        raise ActionError(
            SERVICE_FAILED_MESSAGE,
            description=response.status.message,
            http_code="500",
            error_code=response.status.errorcode,
            identifier=response.identifier,
            payload=response.model_dump(),
        )
    return response
