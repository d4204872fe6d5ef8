import pytest

from onoffice_batch.config import OnOfficeSettings
from tests.mocks.api import FakeOnOfficeAPI


@pytest.fixture(autouse=True)
def test_set_env(monkeypatch):
    monkeypatch.setenv("ONOFFICE_API_TOKEN", "token")
    monkeypatch.setenv("ONOFFICE_API_SECRET", "secret")
    for name in (
        "ONOFFICE_API_URL",
        "ONOFFICE_USER_AGENT",
        "ONOFFICE_MAX_QUEUE",
        "ONOFFICE_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> OnOfficeSettings:
    return OnOfficeSettings()


@pytest.fixture
def fake_api() -> FakeOnOfficeAPI:
    return FakeOnOfficeAPI()
