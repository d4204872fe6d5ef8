import pydantic
import pytest

from onoffice_batch.config import (
    DEFAULT_API_URL,
    DEFAULT_USER_AGENT,
    OnOfficeSettings,
    get_credentials_from_env,
)


def test_settings_defaults():
    settings = OnOfficeSettings.from_env()

    assert settings.api_url == DEFAULT_API_URL
    assert settings.user_agent == DEFAULT_USER_AGENT
    assert settings.max_queue == 1
    assert settings.timeout_seconds == 30.0


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("ONOFFICE_API_URL", "https://example.test/api.php")
    monkeypatch.setenv("ONOFFICE_USER_AGENT", "crm-sync")
    monkeypatch.setenv("ONOFFICE_MAX_QUEUE", "25")
    monkeypatch.setenv("ONOFFICE_TIMEOUT_SECONDS", "2.5")

    settings = OnOfficeSettings.from_env()

    assert settings.api_url == "https://example.test/api.php"
    assert settings.user_agent == "crm-sync"
    assert settings.max_queue == 25
    assert settings.timeout_seconds == 2.5


def test_empty_env_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("ONOFFICE_API_URL", "")

    assert OnOfficeSettings.from_env().api_url == DEFAULT_API_URL


def test_invalid_max_queue(monkeypatch):
    monkeypatch.setenv("ONOFFICE_MAX_QUEUE", "0")

    with pytest.raises(pydantic.ValidationError):
        OnOfficeSettings.from_env()


def test_credentials_from_env():
    credentials = get_credentials_from_env()

    assert credentials.api_token == "token"
    assert credentials.api_secret == "secret"


@pytest.mark.parametrize("missing", ["ONOFFICE_API_TOKEN", "ONOFFICE_API_SECRET"])
def test_missing_credentials(monkeypatch, missing):
    monkeypatch.delenv(missing)

    with pytest.raises(ValueError, match=missing):
        get_credentials_from_env()
