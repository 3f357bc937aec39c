"""Configuration management for Switchboard."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class DirectorySettings(BaseModel):
    """Credentials for the Switchboard directory API."""

    url: str = Field(description="Base URL of the API, including the trailing slash")
    username: str | None = Field(None, description="HTTP basic auth username")
    password: str | None = Field(None, description="HTTP basic auth password")


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SWITCHBOARD_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Behaviour
    qa: bool = Field(default=False, description="Turn on QA features")
    default_lang: str = Field(default="en", description="Language used when the user has none")
    reject_message: str = Field(
        default="Sorry, this service is not available for your number.",
        description="Reply sent to addresses outside valid_user_addresses",
    )
    timeout_message: str = Field(
        default=(
            "Your session has ended but you have not completed your registration."
            " Please dial *149*24# again to continue with your registration where you left off."
        ),
        description="Notification sent after the first possible timeout of an identity",
    )
    valid_user_addresses: list[str] = Field(
        default_factory=list,
        description="Allowed identity patterns (regular expressions); empty allows everyone",
    )

    # Collaborators
    swb_api: DirectorySettings | None = Field(None, description="Directory API; omit to use the stub directory")
    sms_tag: tuple[str, str] | None = Field(None, description="[pool, tag] used to send notifications")
    metric_store: str = Field(default="default", description="Name of the metric store")
    redis_url: str | None = Field(None, description="Redis URL for shared counters; omit for in-memory counters")
    profile_home: Path | None = Field(None, description="Directory for persisted profiles; omit for in-memory")
    request_timeout_seconds: float = Field(default=15.0, description="Timeout for directory API requests")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")


def load_settings(config_file: Path | None = None, **overrides: Any) -> Settings:
    """Build settings from the environment, an optional JSON file and overrides.

    Args:
        config_file: Optional JSON document holding any of the settings fields
        **overrides: Explicit values that win over everything else

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If the file cannot be read or values do not validate
    """
    values: dict[str, Any] = {}
    if config_file is not None:
        try:
            payload = json.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read config file {config_file}: {exc!s}") from exc
        if not isinstance(payload, dict):
            raise ConfigurationError(f"Config file {config_file} must contain a JSON object")
        values.update(payload)
    values.update(overrides)
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
