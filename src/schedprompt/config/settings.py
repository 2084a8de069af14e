"""Central settings, loaded from ~/.schedprompt/config.json + environment variables."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from schedprompt.config.constants import (
    CONFIG_FILE,
    DEFAULT_MIN_LEAD_SECONDS,
    SCHEDPROMPT_HOME,
    STORE_DIR_NAME,
    STORE_FILE_NAME,
)


def _default_store_path() -> str:
    return str(Path.cwd() / STORE_DIR_NAME / STORE_FILE_NAME)


class Settings(BaseSettings):
    """All schedprompt configuration in one place.

    Priority (highest → lowest):
      1. Environment variables (SCHEDPROMPT_ prefix)
      2. .env file
      3. ~/.schedprompt/config.json
      4. Defaults defined here
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDPROMPT_",
        env_file=(".env", str(SCHEDPROMPT_HOME / ".env")),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    store_path: str = Field(default_factory=_default_store_path)
    timezone: str = "UTC"
    min_lead_seconds: int = DEFAULT_MIN_LEAD_SECONDS
    auto_cleanup: bool = True  # drop disabled jobs when a session ends
    webhook_url: str = ""  # empty = print prompts to the console
    log_level: str = "INFO"

    @model_validator(mode="before")
    @classmethod
    def load_config_file(cls, values: dict) -> dict:
        """Merge config.json values as defaults (env vars still override)."""
        if CONFIG_FILE.exists():
            try:
                file_data = json.loads(CONFIG_FILE.read_text(encoding="utf-8"))
                if isinstance(file_data, dict):
                    values = {**file_data, **{k: v for k, v in values.items() if v is not None}}
            except (json.JSONDecodeError, OSError):
                pass
        return values

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("min_lead_seconds")
    @classmethod
    def validate_min_lead(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"min_lead_seconds must be >= 0, got {value}")
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def store_file(self) -> Path:
        """Resolved job store path."""
        return Path(self.store_path).expanduser()


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
