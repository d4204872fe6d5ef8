"""
Outbound HTTP for multi-action requests.

The host runtime is represented by an :class:`ApiContext`: anything that can
hand out credentials and send one JSON request. :class:`HttpxApiContext` is the
default implementation on top of ``httpx``.
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass, field

import httpx
import structlog

from onoffice_batch.config import OnOfficeSettings, get_credentials_from_env
from onoffice_batch.exceptions import OnOfficeError, TransportError
from onoffice_batch.models import Credentials, SignedAction

log = structlog.get_logger(__name__)

CredentialsProvider = t.Callable[[], t.Awaitable[Credentials] | Credentials]


@dataclass(frozen=True)
class HttpRequest:
    """A fully built outbound request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json: dict[str, t.Any] = field(default_factory=dict)


class ApiContext(t.Protocol):
    """Capabilities the client needs from its host."""

    async def get_credentials(self) -> Credentials: ...

    async def send_http_request(self, request: HttpRequest) -> dict[str, t.Any]: ...


class HttpxApiContext:
    """
    Default :class:`ApiContext` backed by ``httpx.AsyncClient``.

    One client is created on first use and reused for every request until
    :meth:`close` is called. Use it as an async context manager to have it
    closed automatically.

    Parameters
    ----------
    settings : OnOfficeSettings | None, optional
        Client settings; read from the environment when omitted.
    credentials_provider : CredentialsProvider | None, optional
        Sync or async callable returning credentials. Called on every request.
    client_factory : typing.Callable[[], httpx.AsyncClient] | None, optional
        Factory for the HTTP client, mostly useful to inject a mock transport.
    """

    def __init__(
        self,
        settings: OnOfficeSettings | None = None,
        credentials_provider: CredentialsProvider | None = None,
        client_factory: t.Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self.settings = settings or OnOfficeSettings.from_env()
        self._credentials_provider = credentials_provider or get_credentials_from_env
        self._client_factory = client_factory or (
            lambda: httpx.AsyncClient(timeout=self.settings.timeout_seconds)
        )
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpxApiContext":
        return self

    async def __aexit__(self, *exc_info: t.Any) -> None:
        await self.close()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = self._client_factory()
            log.debug(event="Created HTTP client", api_url=self.settings.api_url)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_credentials(self) -> Credentials:
        credentials = self._credentials_provider()
        if isinstance(credentials, Credentials):
            return credentials
        return await credentials

    async def send_http_request(self, request: HttpRequest) -> dict[str, t.Any]:
        response = await self.client.request(
            method=request.method,
            url=request.url,
            headers=request.headers,
            json=request.json,
        )
        response.raise_for_status()
        return response.json()


def build_api_request(
    *,
    api_token: str,
    actions: t.Sequence[SignedAction],
    settings: OnOfficeSettings,
) -> HttpRequest:
    """
    Wrap signed actions in the request envelope.

    Parameters
    ----------
    api_token : str
        API token sent at the top level of the body.
    actions : typing.Sequence[SignedAction]
        Actions to send in one round trip.
    settings : OnOfficeSettings
        Endpoint and user agent.

    Returns
    -------
    HttpRequest
        ``POST`` request for the API endpoint.
    """
    return HttpRequest(
        method="POST",
        url=settings.api_url,
        headers={
            "Content-Type": "application/json",
            "User-Agent": settings.user_agent,
        },
        json={
            "token": api_token,
            "request": {"actions": [action.model_dump() for action in actions]},
        },
    )


async def call_api(
    context: ApiContext,
    actions: t.Sequence[SignedAction],
    *,
    settings: OnOfficeSettings,
) -> dict[str, t.Any]:
    """
    Send several actions in one HTTP call and return the raw response body.

    Parameters
    ----------
    context : ApiContext
        Host capabilities.
    actions : typing.Sequence[SignedAction]
        Signed actions.
    settings : OnOfficeSettings
        Endpoint and user agent.

    Returns
    -------
    dict[str, typing.Any]
        Decoded, not yet validated, response envelope.

    Raises
    ------
    TransportError
        If the collaborator failed to deliver a response.
    """
    credentials = await context.get_credentials()
    request = build_api_request(
        api_token=credentials.api_token,
        actions=actions,
        settings=settings,
    )
    log.debug(
        event="Sending API request",
        url=request.url,
        action_count=len(actions),
        identifiers=[action.identifier for action in actions],
    )
    try:
        return await context.send_http_request(request)
    except OnOfficeError:
        raise
    except Exception as error:
        log.error(
            event="API request failed",
            url=request.url,
            action_count=len(actions),
            error=str(object=error),
        )
        raise TransportError(str(object=error) or type(error).__name__) from error
