"""Configuration management for eventboard."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL_TEMPLATE = "https://calendar.google.com/calendar/ical/{feed_id}/public/basic.ics"

# Input validation limits for event fields
MAX_EVENT_TITLE_LENGTH = 200
MAX_EVENT_LOCATION_LENGTH = 100
MAX_EVENT_DESCRIPTION_LENGTH = 500


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


class EngineSettings(BaseModel):
    """Validated runtime settings for the status engine and its collaborators."""

    calendar_id: Optional[str] = Field(default=None, description="Opaque upstream feed id")
    feed_url_template: str = Field(
        default=DEFAULT_FEED_URL_TEMPLATE, description="URL template containing {feed_id}"
    )
    cache_ttl_seconds: int = Field(default=30 * 60, description="Cache entry lifetime")
    lookahead_seconds: int = Field(default=2 * 60 * 60, description="Between-events horizon")
    request_timeout: int = Field(default=30, description="HTTP timeout in seconds")
    failure_backoff_seconds: int = Field(
        default=60, description="Wait after a failed refresh before retrying upstream"
    )
    window_months_back: int = Field(default=1, description="Months of past events to keep")
    window_months_ahead: int = Field(default=2, description="Months of future events to keep")
    state_file: Optional[str] = Field(default=None, description="JSON state file; memory if unset")
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("feed_url_template")
    @classmethod
    def _template_has_placeholder(cls, value: str) -> str:
        if "{feed_id}" not in value:
            raise ValueError("feed_url_template must contain '{feed_id}'")
        return value

    @field_validator("cache_ttl_seconds", "lookahead_seconds", "request_timeout")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive number of seconds")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    @field_validator("failure_backoff_seconds", "window_months_back", "window_months_ahead")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value


# env var -> (settings field, converter)
_ENV_FIELDS: dict[str, tuple[str, Any]] = {
    "EVENTBOARD_CALENDAR_ID": ("calendar_id", str),
    "EVENTBOARD_FEED_URL_TEMPLATE": ("feed_url_template", str),
    "EVENTBOARD_CACHE_TTL_SECONDS": ("cache_ttl_seconds", int),
    "EVENTBOARD_LOOKAHEAD_SECONDS": ("lookahead_seconds", int),
    "EVENTBOARD_REQUEST_TIMEOUT": ("request_timeout", int),
    "EVENTBOARD_FAILURE_BACKOFF_SECONDS": ("failure_backoff_seconds", int),
    "EVENTBOARD_WINDOW_MONTHS_BACK": ("window_months_back", int),
    "EVENTBOARD_WINDOW_MONTHS_AHEAD": ("window_months_ahead", int),
    "EVENTBOARD_STATE_FILE": ("state_file", str),
    "EVENTBOARD_LOG_LEVEL": ("log_level", str),
}


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        parsed = parse_env_file(self.env_file_path)

        set_keys = []
        for key, val in parsed.items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a configuration dictionary from EVENTBOARD_* environment variables.

        Values that fail conversion are logged and ignored so the default applies.
        """
        cfg: dict[str, Any] = {}

        for env_name, (field_name, convert) in _ENV_FIELDS.items():
            raw = os.environ.get(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                cfg[field_name] = convert(raw.strip())
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)

        return cfg

    def build_settings(self, **overrides: Any) -> EngineSettings:
        """Load .env defaults and build validated settings.

        Args:
            **overrides: Explicit values that win over the environment

        Raises:
            pydantic.ValidationError: If a value is out of range
        """
        self.load_env_file()
        cfg = self.build_config_from_env()
        cfg.update({k: v for k, v in overrides.items() if v is not None})
        return EngineSettings(**cfg)


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and attribute-style objects.

    Args:
        config: Configuration object (dict or object with attributes)
        key: Configuration key to retrieve
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
