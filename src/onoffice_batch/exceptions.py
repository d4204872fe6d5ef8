"""
OnOffice-specific runtime exceptions.
"""

from __future__ import annotations

import typing as t

AUTHORIZATION_FAILED_MESSAGE = "Authorization failed - please check your credentials"
SERVICE_FAILED_MESSAGE = "The service failed to process your request"
INVALID_REQUEST_MESSAGE = "Your request is invalid or could not be processed by the service"
NO_ACTION_RESPONSE_MESSAGE = "The server did not send a response for any action"


class OnOfficeError(RuntimeError):
    """
    Base class for every error surfaced to a caller of the OnOffice client.

    Parameters
    ----------
    message : str
        Human readable summary.
    description : str | None, optional
        Detail reported by the server, if any.
    http_code : str | None, optional
        HTTP-like status code associated with the failure.
    payload : typing.Any, optional
        Raw server payload that caused the error.
    """

    def __init__(
        self,
        message: str,
        *,
        description: str | None = None,
        http_code: str | None = None,
        payload: t.Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.description = description
        self.http_code = http_code
        self.payload = payload

    def __str__(self) -> str:
        if self.description:
            return f"{self.message}: {self.description}"
        return self.message


class TransportError(OnOfficeError):
    """The HTTP call failed before a response envelope could be read."""


class EnvelopeError(OnOfficeError):
    """The top-level response status was not 200."""


class ProtocolError(OnOfficeError):
    """The server answered with something that is not a valid response envelope."""


class EmptyResponseError(ProtocolError):
    """The server did not return a result for an action it was sent."""


class ActionError(OnOfficeError):
    """
    A single action failed while the surrounding request succeeded.

    Parameters
    ----------
    message : str
        Human readable summary.
    error_code : int
        Non-zero ``errorcode`` reported for the action.
    identifier : str
        Identifier of the failed action within its request.
    **kwargs : typing.Any
        Forwarded to :class:`OnOfficeError`.
    """

    def __init__(self, message: str, *, error_code: int, identifier: str, **kwargs: t.Any) -> None:
        super().__init__(message, **kwargs)
        self.error_code = error_code
        self.identifier = identifier


class UnsupportedOperatorError(OnOfficeError, ValueError):
    """A read filter used an operator the API does not know."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"Unsupported filter operator: {operator!r}")
        self.operator = operator
