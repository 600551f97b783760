"""
Application settings, read from the environment or a ``.env`` file.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    APP_NAME: str = "Campaign Playbook Tally"

    # Catalog store
    STORE_URL: str = "memory://"
    STORE_API_KEY: Optional[str] = None
    HTTP_TIMEOUT: float = 10.0

    # Shared admin credential. Placeholder trust model only.
    ADMIN_PASSWORD: str = "change-me"

    # Ballot rules
    SCORE_MIN: int = 1
    SCORE_MAX: int = 5
    ALLOW_EDIT_WHEN_LOCKED: bool = False
    REQUIRE_LOCK_IN: bool = False
    CRITERIA_SCOPED: bool = False
    RECEIPT_PREFIX: str = "CPB"

    LOG_LEVEL: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
