"""Configuration for hosts of the token cache.

Loads settings from .env, an optional YAML file, and environment variables.
The TokenManager itself never reads configuration; the host passes values in.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

ENV_PREFIX = "RENEWABLE_TOKEN_"


class ConfigError(ValueError):
    """Raised when required settings are missing or invalid."""


class Settings(BaseModel):
    """Settings for the token endpoint and the renewal cycle."""
    token_url: str = Field(description="OAuth2 token endpoint URL")
    client_id: str = Field(description="OAuth client ID (basic-auth username)")
    client_secret: str = Field(description="OAuth client secret (basic-auth password)")
    timeout: float | None = Field(default=30.0, description="HTTP timeout in seconds; None disables it")
    safety_gap: float = Field(default=300.0, gt=0, description="Renew this many seconds before expiry")
    renewal_retries: int = Field(default=0, ge=0, description="Retries for a failed background renewal")
    retry_delay: float = Field(default=1.0, ge=0, description="Base delay for renewal retry backoff")
    downstream_url: str = Field(default="", description="Base URL of the service the token is presented to")


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load settings from a YAML file with a top-level mapping."""
    if not path.exists():
        raise ConfigError(f"Config file not found at {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _env_values() -> dict[str, Any]:
    """Collect settings from environment variables, skipping unset ones.

    Supports both RENEWABLE_TOKEN_* and the bare TOKEN_URL / CLIENT_ID /
    CLIENT_SECRET names.
    """
    values = {
        "token_url": _env(f"{ENV_PREFIX}TOKEN_URL", "TOKEN_URL"),
        "client_id": _env(f"{ENV_PREFIX}CLIENT_ID", "CLIENT_ID"),
        "client_secret": _env(f"{ENV_PREFIX}CLIENT_SECRET", "CLIENT_SECRET"),
        "timeout": _env(f"{ENV_PREFIX}TIMEOUT"),
        "safety_gap": _env(f"{ENV_PREFIX}SAFETY_GAP"),
        "renewal_retries": _env(f"{ENV_PREFIX}RENEWAL_RETRIES"),
        "retry_delay": _env(f"{ENV_PREFIX}RETRY_DELAY"),
        "downstream_url": _env(f"{ENV_PREFIX}DOWNSTREAM_URL"),
    }
    if values["timeout"].lower() in ("none", "off", "0"):
        values["timeout"] = None
    return {k: v for k, v in values.items() if v != ""}


def load_settings(config_file: Path | None = None) -> Settings:
    """Build settings from an optional YAML file overlaid with environment variables.

    Args:
        config_file: YAML file to read first. Defaults to the path named by
            RENEWABLE_TOKEN_CONFIG, if set.

    Raises:
        ConfigError: If a required value is missing or a value is invalid.
    """
    if config_file is None:
        config_path = _env(f"{ENV_PREFIX}CONFIG")
        config_file = Path(config_path).expanduser() if config_path else None

    values: dict[str, Any] = {}
    if config_file is not None:
        values.update(_load_yaml(config_file))
    values.update(_env_values())

    missing = [name for name in ("token_url", "client_id", "client_secret") if not values.get(name)]
    if missing:
        names = ", ".join(f"{ENV_PREFIX}{name.upper()}" for name in missing)
        raise ConfigError(f"Missing required configuration: {names}. Check your .env file.")

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache the settings, reading .env from the working directory first."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return load_settings()
