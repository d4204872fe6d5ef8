import asyncio
import json
import logging
import typing as t
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from onoffice_batch.actions import DirectRequester
from onoffice_batch.config import OnOfficeSettings, get_credentials_from_env
from onoffice_batch.exceptions import OnOfficeError
from onoffice_batch.models import ActionType
from onoffice_batch.resources import (
    ReadOptions,
    execute,
    get_module_description,
    read_records,
)
from onoffice_batch.signing import create_action_request
from onoffice_batch.transport import HttpxApiContext
from onoffice_batch.utils.logging import setup_logging

app = typer.Typer(no_args_is_help=True)


def parse_parameters(values: list[str] | None) -> dict[str, t.Any]:
    """Parse ``key=value`` pairs, decoding values as JSON when possible."""
    parameters: dict[str, t.Any] = {}
    for item in values or []:
        key, separator, raw_value = item.partition("=")
        if not separator or not key:
            raise typer.BadParameter(f"Expected key=value, got {item!r}")
        try:
            parameters[key] = json.loads(raw_value)
        except json.JSONDecodeError:
            parameters[key] = raw_value
    return parameters


T = t.TypeVar("T")


def _fail(error: Exception) -> t.NoReturn:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(code=1) from error


async def _with_requester(operation: t.Callable[[DirectRequester], t.Awaitable[T]]) -> T:
    settings = OnOfficeSettings.from_env()
    async with HttpxApiContext(settings=settings) as context:
        return await operation(DirectRequester(context=context, settings=settings))


def _run(operation: t.Callable[[DirectRequester], t.Awaitable[T]]) -> T:
    # missing credentials surface as ValueError
    try:
        return asyncio.run(_with_requester(operation))
    except (OnOfficeError, ValueError) as error:
        _fail(error)


def _print_records(records: list[dict[str, t.Any]], title: str) -> None:
    columns: list[str] = []
    for record in records:
        for key in record.get("elements", {}):
            if key not in columns:
                columns.append(key)
    table = Table("id", *columns, title=title)
    for record in records:
        elements = record.get("elements", {})
        table.add_row(
            str(record.get("id", "")),
            *(str(elements.get(column, "")) for column in columns),
        )
    Console().print(table)


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("-v", "--verbose", help="Print debug logs to stderr")
    ] = False,
):
    """Call the OnOffice API from the command line."""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING)


@app.command(name="sign")
def sign(
    action: Annotated[ActionType, typer.Argument(help="Action type")],
    resource: Annotated[str, typer.Argument(help="Resource type, e.g. address")],
    parameter: Annotated[
        list[str] | None,
        typer.Option("-p", "--parameter", help="Parameter as key=value, repeatable"),
    ] = None,
    resource_id: Annotated[str, typer.Option("--resource-id", help="Resource id")] = "",
    identifier: Annotated[str, typer.Option("--identifier", help="Action identifier")] = "",
):
    """Print a signed action without sending it"""
    try:
        credentials = get_credentials_from_env()
    except ValueError as error:
        _fail(error)
    signed = create_action_request(
        api_secret=credentials.api_secret,
        api_token=credentials.api_token,
        action_type=action,
        resource_type=resource,
        parameters=parse_parameters(parameter),
        resource_id=resource_id,
        identifier=identifier,
    )
    typer.echo(signed.model_dump_json(indent=2))


@app.command(name="read")
def read(
    resource: Annotated[str, typer.Argument(help="Resource to read, e.g. address or estate")],
    data: Annotated[list[str], typer.Option("-d", "--data", help="Data field, repeatable")],
    limit: Annotated[int | None, typer.Option("--limit", help="Maximum records")] = None,
    offset: Annotated[int | None, typer.Option("--offset", help="Records to skip")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print raw JSON")] = False,
):
    """Read records of a resource"""
    call = read_records(
        resource_type=resource,
        options=ReadOptions(data=data, limit=limit, offset=offset),
    )
    records = _run(lambda requester: execute(requester, call))
    if as_json:
        typer.echo(json.dumps(records, indent=2, ensure_ascii=False))
    else:
        _print_records(records, title=resource)


@app.command(name="fields")
def fields(
    module: Annotated[str, typer.Argument(help="Module name, e.g. address")],
):
    """List the fields of a module"""
    descriptions = _run(lambda requester: get_module_description(requester, module))
    table = Table("Name", "Label", "Type", title=f"{module} fields")
    for description in descriptions:
        table.add_row(
            description["name"],
            str(description.get("label", "")),
            str(description.get("type", "")),
        )
    Console().print(table)
