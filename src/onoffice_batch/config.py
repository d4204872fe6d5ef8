"""
Environment-driven settings for the OnOffice client.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from onoffice_batch.models import Credentials

DEFAULT_API_URL = "https://api.onoffice.de/api/latest/api.php"
DEFAULT_USER_AGENT = "onoffice-batch"

API_URL_ENV_VAR = "ONOFFICE_API_URL"
USER_AGENT_ENV_VAR = "ONOFFICE_USER_AGENT"
MAX_QUEUE_ENV_VAR = "ONOFFICE_MAX_QUEUE"
TIMEOUT_ENV_VAR = "ONOFFICE_TIMEOUT_SECONDS"
API_TOKEN_ENV_VAR = "ONOFFICE_API_TOKEN"
API_SECRET_ENV_VAR = "ONOFFICE_API_SECRET"


class OnOfficeSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_url: str = DEFAULT_API_URL
    user_agent: str = DEFAULT_USER_AGENT
    max_queue: int = Field(default=1, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)

    @classmethod
    def from_env(cls) -> "OnOfficeSettings":
        """
        Build settings from ``ONOFFICE_*`` environment variables.

        Returns
        -------
        OnOfficeSettings
            Settings with defaults for every unset variable.
        """
        load_dotenv()
        values = {
            "api_url": os.getenv(API_URL_ENV_VAR),
            "user_agent": os.getenv(USER_AGENT_ENV_VAR),
            "max_queue": os.getenv(MAX_QUEUE_ENV_VAR),
            "timeout_seconds": os.getenv(TIMEOUT_ENV_VAR),
        }
        return cls.model_validate({key: value for key, value in values.items() if value})


def get_credentials_from_env() -> Credentials:
    """
    Read API credentials from the environment.

    Returns
    -------
    Credentials
        Token and secret.

    Raises
    ------
    ValueError
        If either variable is missing.
    """
    load_dotenv()
    api_token = os.getenv(API_TOKEN_ENV_VAR)
    api_secret = os.getenv(API_SECRET_ENV_VAR)
    if not api_token:
        raise ValueError(f"{API_TOKEN_ENV_VAR} is not set. Export it or add it to a .env file.")
    if not api_secret:
        raise ValueError(f"{API_SECRET_ENV_VAR} is not set. Export it or add it to a .env file.")
    return Credentials(api_token=api_token, api_secret=api_secret)
