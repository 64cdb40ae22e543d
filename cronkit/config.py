"""Application settings loaded from environment variables."""

import logging
import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """cronkit configuration. All values come from environment variables."""

    # Hook namespacing
    cron_prefix: str = Field(default="plugin_cron")
    cron_separator: str = Field(default="_")

    # Scheduler
    scheduler_timezone: str = Field(default="UTC")
    drain_limit: int = Field(default=1000, gt=0)
    duplicate_window_seconds: int = Field(default=600, ge=0)

    # Database (SQLite trigger engine)
    database_path: Path = Field(default=Path("data/cronkit.db"))

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Install the root log format at the configured level."""
    name = (level or settings.log_level).upper()
    if name not in logging.getLevelNamesMapping():
        msg = f"Unknown log level: {level}"
        raise ValueError(msg)
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.getLevelNamesMapping()[name],
    )
