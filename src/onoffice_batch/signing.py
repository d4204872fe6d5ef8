"""
HMAC signing of single OnOffice actions.

The server recomputes the signature over its own JSON encoding of the
parameters, so the text hashed here has to match that encoding byte for byte:
compact separators, keys in sorted order, escaped forward slashes and
``\\uXXXX`` escapes for everything outside ASCII.
"""

from __future__ import annotations

import hashlib
import json
import re
import time
import typing as t

import structlog

from onoffice_batch.models import ActionType, SignedAction

log = structlog.get_logger(__name__)

ACTION_ID_PREFIX = "urn:onoffice-de-ns:smart:2.5:smartml:action:"
EMPTY_PARAMETERS_SENTINEL: dict[str, t.Any] = {"a": None}

_NON_ASCII = re.compile(r"[^\x00-\x7f]")


def md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _escape_character(match: re.Match[str]) -> str:
    encoded = match.group(0).encode("utf-16-be")
    return "".join(
        f"\\u{int.from_bytes(encoded[offset : offset + 2], 'big'):04x}"
        for offset in range(0, len(encoded), 2)
    )


def unicode_escape(text: str) -> str:
    """
    Replace every non-ASCII UTF-16 code unit with a ``\\uXXXX`` escape.

    Parameters
    ----------
    text : str
        Text to escape.

    Returns
    -------
    str
        ASCII-only text. Characters above U+FFFF become surrogate pairs.
    """
    return _NON_ASCII.sub(_escape_character, text)


def canonicalize_parameters(parameters: t.Mapping[str, t.Any]) -> dict[str, t.Any]:
    """
    Sort parameters by key, substituting the sentinel for an empty mapping.

    Parameters
    ----------
    parameters : typing.Mapping[str, typing.Any]
        Caller supplied parameters.

    Returns
    -------
    dict[str, typing.Any]
        New dict whose insertion order is the ordinal key order.
    """
    if not parameters:
        # the API rejects an empty parameter object
        return dict(EMPTY_PARAMETERS_SENTINEL)
    return {key: parameters[key] for key in sorted(parameters)}


def serialize_parameters(parameters: t.Mapping[str, t.Any]) -> str:
    """
    Render canonical parameters as the exact text covered by the signature.

    Parameters
    ----------
    parameters : typing.Mapping[str, typing.Any]
        Already canonicalized parameters.

    Returns
    -------
    str
        Compact, slash-escaped, ASCII-only JSON text.
    """
    text = json.dumps(parameters, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return unicode_escape(text.replace("/", "\\/"))


def build_action_id(action_type: ActionType | str) -> str:
    return f"{ACTION_ID_PREFIX}{ActionType(action_type).value}"


def create_action_request(
    api_secret: str,
    api_token: str,
    action_type: ActionType | str,
    resource_type: str,
    parameters: t.Mapping[str, t.Any],
    resource_id: str = "",
    identifier: str = "",
    timestamp: int | None = None,
) -> SignedAction:
    """
    Build one signed action.

    Parameters
    ----------
    api_secret : str
        API secret, used as HMAC key material.
    api_token : str
        API token.
    action_type : ActionType | str
        One of ``get``, ``read``, ``create``, ``modify`` or ``delete``.
    resource_type : str
        Resource name, e.g. ``address``.
    parameters : typing.Mapping[str, typing.Any]
        JSON-compatible action parameters.
    resource_id : str, optional
        Target resource id, empty when the action has none.
    identifier : str, optional
        Correlation key echoed back by the server.
    timestamp : int | None, optional
        Seconds since the epoch; defaults to the current time.

    Returns
    -------
    SignedAction
        Immutable action ready for ``request.actions``.
    """
    action_id = build_action_id(action_type=action_type)
    signed_at = str(int(time.time()) if timestamp is None else timestamp)
    sorted_parameters = canonicalize_parameters(parameters=parameters)

    hash_input = ",".join(
        (
            serialize_parameters(parameters=sorted_parameters),
            api_token,
            action_id,
            identifier,
            resource_id,
            api_secret,
            signed_at,
            resource_type,
        )
    )
    signature = md5_hex(api_secret + md5_hex(hash_input))

    log.debug(
        event="Signed action",
        actionid=action_id,
        resourcetype=resource_type,
        resourceid=resource_id,
        identifier=identifier,
        timestamp=signed_at,
        parameter_keys=list(sorted_parameters),
    )
    return SignedAction(
        actionid=action_id,
        identifier=identifier,
        resourcetype=resource_type,
        resourceid=resource_id,
        parameters=sorted_parameters,
        timestamp=signed_at,
        hmac=signature,
    )
