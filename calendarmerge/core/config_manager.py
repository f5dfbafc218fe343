"""Configuration management for the calendarmerge server.

Two kinds of configuration exist:

- the calendar configuration, a JSON file mapping entry names to their
  sources (``{"index": {"Work": "https://...", "Home": "https://..."}}``);
- server settings (bind address, port, cache TTLs, logging), taken from CLI
  flags, then environment variables (optionally seeded from a ``.env`` file),
  then defaults.

Problems with the calendar configuration are fatal at startup and raised as
``ConfigError``.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, RootModel, ValidationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "CALMERGE_"


class ConfigError(Exception):
    """Raised when the calendar configuration cannot be loaded."""


class CalendarConfig(RootModel[dict[str, dict[str, str]]]):
    """Entry name -> (source label -> feed URL), in file order."""

    def entries(self) -> dict[str, dict[str, str]]:
        return self.root


class ServerSettings(BaseModel):
    """Runtime settings for the HTTP server and caches."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=0, le=65535)
    config_path: Optional[Path] = None
    cache_ttl: float = Field(default=3600.0, ge=0)
    failure_ttl: Optional[float] = Field(default=None, ge=0)
    request_timeout: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"
    debug: bool = False


def load_calendar_config(path: Path | str) -> CalendarConfig:
    """Load and validate the calendar configuration file.

    Raises:
        ConfigError: If the file cannot be read, is not JSON, or has the wrong shape
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Could not open {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    try:
        config = CalendarConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid calendar configuration in {path}: {e}") from e

    logger.info("Loaded %d calendar entr(ies) from %s", len(config.root), path)
    return config


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Skips blank lines, comments and lines without ``=``; strips surrounding
    quotes from values. A missing or unreadable file yields an empty dict.
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", path, exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


class ConfigManager:
    """Builds ``ServerSettings`` from the environment and a .env file."""

    def __init__(
        self,
        env_file_path: Optional[Path] = None,
        environ: Optional[MutableMapping[str, str]] = None,
    ):
        """Initialize configuration manager.

        Args:
            env_file_path: Path to .env file (defaults to .env in current directory)
            environ: Environment mapping to read (defaults to ``os.environ``)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"
        self.environ = os.environ if environ is None else environ

    def load_env_file(self) -> list[str]:
        """Load .env values into the environment without overriding existing keys.

        Returns:
            Keys that were set from the .env file
        """
        parsed = parse_env_file(self.env_file_path)
        if not parsed:
            logger.debug("No .env values loaded from %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parsed.items():
            if key not in self.environ:
                self.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def _number(self, key: str, cast: type) -> Any:
        raw = self.environ.get(ENV_PREFIX + key)
        if raw is None or raw == "":
            return None
        try:
            return cast(raw)
        except ValueError:
            logger.warning("Invalid %s%s=%r; ignoring", ENV_PREFIX, key, raw)
            return None

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a settings dict from environment variables.

        Recognizes CALMERGE_HOST, CALMERGE_PORT, CALMERGE_CONFIG,
        CALMERGE_CACHE_TTL, CALMERGE_FAILURE_TTL, CALMERGE_REQUEST_TIMEOUT,
        CALMERGE_LOG_LEVEL and CALMERGE_DEBUG. Invalid numbers are ignored.
        """
        cfg: dict[str, Any] = {}

        host = self.environ.get(ENV_PREFIX + "HOST")
        if host:
            cfg["host"] = host

        config_path = self.environ.get(ENV_PREFIX + "CONFIG")
        if config_path:
            cfg["config_path"] = Path(config_path)

        for key, field, cast in (
            ("PORT", "port", int),
            ("CACHE_TTL", "cache_ttl", float),
            ("FAILURE_TTL", "failure_ttl", float),
            ("REQUEST_TIMEOUT", "request_timeout", float),
        ):
            value = self._number(key, cast)
            if value is not None:
                cfg[field] = value

        log_level = self.environ.get(ENV_PREFIX + "LOG_LEVEL")
        if log_level:
            cfg["log_level"] = log_level.upper()

        debug = self.environ.get(ENV_PREFIX + "DEBUG", "")
        if debug.strip().lower() in ("1", "true", "yes", "on"):
            cfg["debug"] = True

        return cfg

    def load_settings(self, overrides: Optional[Mapping[str, Any]] = None) -> ServerSettings:
        """Load .env, read the environment and apply explicit overrides.

        Args:
            overrides: Values that take precedence (e.g. CLI flags); None values are skipped

        Raises:
            ConfigError: If the combined values are invalid
        """
        self.load_env_file()
        cfg = self.build_config_from_env()
        if overrides:
            cfg.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return ServerSettings(**cfg)
        except ValidationError as e:
            raise ConfigError(f"Invalid server settings: {e}") from e
