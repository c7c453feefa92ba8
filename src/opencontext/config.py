"""Runtime configuration for the open-context server."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from opencontext.metrics.observability import get_logger

APP_HOME = Path.home() / ".open-context"
CONFIG_FILENAME = "config.yaml"
DEFAULT_CACHE_TTL = "7d"

_UNIT_SECONDS = {"w": 7 * 86400, "d": 86400, "h": 3600, "m": 60, "s": 1}
_SIMPLE_DURATION = re.compile(r"^(\d+)([dhmsw])$")
_COMPOUND_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_COMPOUND_SCALE = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

DEFAULT_CONFIG_TEMPLATE = """\
# Open Context configuration file
# Generated automatically on first run

# How long cached records are kept before they are fetched again.
# Supported formats:
#   - "0" or empty: never expire
#   - "7d": 7 days (default)
#   - "1w": 1 week
#   - "24h": 24 hours
#   - "30m": 30 minutes
#   - "1h30m": compound durations
cache_ttl: 7d

# Seconds to wait for an upstream source before giving up.
# http_timeout_seconds: 30

# Optional token for api.github.com (raises the anonymous rate limit).
# github_token: ""
"""


class ConfigurationError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


def parse_duration(value: str) -> float:
    """Parse a TTL expression into seconds; ``0`` means no expiration.

    Accepts ``""``/``"0"``, a single ``<n><unit>`` with units w/d/h/m/s, or a
    compound form such as ``1h30m`` or ``1.5h``.
    """

    text = value.strip()
    if text in ("", "0"):
        return 0.0
    simple = _SIMPLE_DURATION.match(text)
    if simple:
        return float(int(simple.group(1)) * _UNIT_SECONDS[simple.group(2)])

    body = text[1:] if text[:1] == "+" else text
    if body.startswith("-"):
        raise ConfigurationError(f"negative duration not allowed: {value!r}")
    position = 0
    total = 0.0
    while position < len(body):
        part = _COMPOUND_PART.match(body, position)
        if part is None:
            raise ConfigurationError(f"invalid duration format: {value!r}")
        total += float(part.group(1)) * _COMPOUND_SCALE[part.group(2)]
        position = part.end()
    if position == 0:
        raise ConfigurationError(f"invalid duration format: {value!r}")
    return total


def config_file_path(cwd: Path | None = None) -> Path:
    """Return ``config.yaml`` in the working directory if present, else the per-user file."""

    local = (cwd or Path.cwd()) / CONFIG_FILENAME
    if local.is_file():
        return local
    return APP_HOME / CONFIG_FILENAME


def ensure_default_config(path: Path | None = None) -> Path:
    """Write the commented default config file unless one already exists."""

    target = path or APP_HOME / CONFIG_FILENAME
    if target.exists():
        return target
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    get_logger("config").info("config.default_created", path=str(target))
    return target


class Settings(BaseSettings):
    """Environment and YAML backed configuration model."""

    model_config = SettingsConfigDict(
        env_prefix="opencontext_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["dev", "test", "prod"] = "dev"

    # Storage
    cache_dir: Path = APP_HOME / "cache"
    corpus_dir: Path | None = None  # defaults to cache_dir
    cache_ttl: str = DEFAULT_CACHE_TTL

    # Upstream sources
    http_timeout_seconds: float = 30.0
    user_agent: str = "open-context-mcp-server"
    github_token: str | None = None
    max_major_version: int = 10

    # Transport
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "localhost"
    port: int = 9011

    # CORS
    cors_allow_origins: tuple[str, ...] = ()  # e.g., ("*",) to allow all
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=config_file_path()),
            file_secret_settings,
        )

    @field_validator("cache_ttl", mode="before")
    @classmethod
    def _coerce_ttl(cls, value: object) -> object:
        # YAML turns ``cache_ttl: 0`` into an int
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def corpus_root(self) -> Path:
        return self.corpus_dir or self.cache_dir

    @property
    def cache_ttl_seconds(self) -> float:
        try:
            return parse_duration(self.cache_ttl)
        except ConfigurationError as exc:
            get_logger("config").warning(
                "config.invalid_cache_ttl",
                value=self.cache_ttl,
                detail=str(exc),
                fallback=DEFAULT_CACHE_TTL,
            )
            return parse_duration(DEFAULT_CACHE_TTL)


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()


__all__ = [
    "ConfigurationError",
    "Settings",
    "config_file_path",
    "ensure_default_config",
    "get_settings",
    "parse_duration",
]
