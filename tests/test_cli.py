import json

import httpx
import respx
from typer.testing import CliRunner

from onoffice_batch.cli.main import app
from onoffice_batch.config import DEFAULT_API_URL
from tests.mocks.api import action_result, envelope

runner = CliRunner()


def test_sign_prints_signed_action():
    result = runner.invoke(
        app,
        ["sign", "read", "address", "-p", "city=Berlin", "-p", "limit=5", "--identifier", "3"],
    )

    assert result.exit_code == 0
    signed = json.loads(result.stdout)
    assert signed["actionid"] == "urn:onoffice-de-ns:smart:2.5:smartml:action:read"
    assert signed["identifier"] == "3"
    assert signed["parameters"] == {"city": "Berlin", "limit": 5}
    assert len(signed["hmac"]) == 32


def test_sign_rejects_malformed_parameter():
    result = runner.invoke(app, ["sign", "read", "address", "-p", "city"])

    assert result.exit_code != 0


def test_read_prints_records_as_json():
    records = [{"id": 7, "type": "address", "elements": {"Name": "Doe", "tags": "|a||b|"}}]
    with respx.mock:
        route = respx.post(DEFAULT_API_URL).mock(
            return_value=httpx.Response(200, json=envelope([action_result("", records=records)]))
        )
        result = runner.invoke(app, ["read", "address", "-d", "Name", "-d", "tags", "--json"])

    assert result.exit_code == 0
    assert route.called
    body = json.loads(route.calls.last.request.content)
    assert body["token"] == "token"
    assert body["request"]["actions"][0]["parameters"] == {"data": ["Name", "tags"]}
    assert json.loads(result.stdout) == [
        {"id": 7, "type": "address", "elements": {"Name": "Doe", "tags": ["a", "b"]}}
    ]


def test_read_reports_api_errors():
    with respx.mock:
        respx.post(DEFAULT_API_URL).mock(
            return_value=httpx.Response(200, json=envelope([], code=400, message="Bad token"))
        )
        result = runner.invoke(app, ["read", "estate", "-d", "Id"])

    assert result.exit_code == 1
    assert "Authorization failed" in result.output


def test_fields_prints_module_fields():
    records = [
        {
            "id": "address",
            "type": "",
            "elements": {
                "label": "Addresses",
                "Name": {"type": "varchar", "label": "Surname"},
            },
        }
    ]
    with respx.mock:
        respx.post(DEFAULT_API_URL).mock(
            return_value=httpx.Response(200, json=envelope([action_result("", records=records)]))
        )
        result = runner.invoke(app, ["fields", "address"])

    assert result.exit_code == 0
    assert "Name" in result.stdout
    assert "Surname" in result.stdout
    assert "varchar" in result.stdout


def test_read_without_credentials_reports_error(monkeypatch):
    monkeypatch.delenv("ONOFFICE_API_SECRET")

    result = runner.invoke(app, ["read", "address", "-d", "Name"])

    assert result.exit_code == 1
    assert "ONOFFICE_API_SECRET" in result.output
    assert not isinstance(result.exception, ValueError)


def test_sign_without_credentials_reports_error(monkeypatch):
    monkeypatch.delenv("ONOFFICE_API_TOKEN")

    result = runner.invoke(app, ["sign", "read", "address"])

    assert result.exit_code == 1
    assert "ONOFFICE_API_TOKEN" in result.output
