"""Configuration management for the user directory client."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_API_URL = "https://jsonplaceholder.typicode.com/users"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CONFIG_FILENAME = "userdir.yaml"

_ENV_API_URL = "USERDIR_API_URL"
_ENV_TIMEOUT = "USERDIR_TIMEOUT"
_ENV_LOG_LEVEL = "USERDIR_LOG_LEVEL"
_ENV_CONFIG = "USERDIR_CONFIG"


class ConfigurationError(ValueError):
    """Raised when the client settings are invalid."""


def _normalise_api_url(value: object) -> str:
    cleaned = str(value or "").strip()
    if not cleaned:
        raise ConfigurationError("API URL must not be empty")
    if not cleaned.lower().startswith(("http://", "https://")):
        raise ConfigurationError(f"API URL must use http or https: {cleaned}")
    return cleaned.rstrip("/")


def _normalise_timeout(value: object) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"", "none", "null", "off"}:
            return None
        value = lowered
    try:
        timeout = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Timeout must be a number of seconds, got {value!r}") from exc
    if timeout <= 0:
        raise ConfigurationError("Timeout must be greater than zero")
    return timeout


def _normalise_log_level(value: object) -> str:
    cleaned = str(value or DEFAULT_LOG_LEVEL).strip().upper()
    if cleaned not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError(f"Unknown log level: {cleaned}")
    return cleaned


@dataclass(frozen=True)
class Settings:
    """Connection and logging settings for a directory session.

    ``timeout`` of ``None`` leaves requests without a deadline.
    """

    api_url: str = DEFAULT_API_URL
    timeout: Optional[float] = None
    log_level: str = DEFAULT_LOG_LEVEL

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""
        unknown = set(data.keys()) - {"api_url", "timeout", "log_level"}
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        return Settings(
            api_url=_normalise_api_url(data.get("api_url", DEFAULT_API_URL)),
            timeout=_normalise_timeout(data.get("timeout")),
            log_level=_normalise_log_level(data.get("log_level", DEFAULT_LOG_LEVEL)),
        )

    def with_overrides(self, *, api_url: Optional[str] = None) -> "Settings":
        if api_url is None:
            return self
        return replace(self, api_url=_normalise_api_url(api_url))


def _apply_environment(raw: Dict[str, object], environ: Mapping[str, str]) -> Dict[str, object]:
    merged = dict(raw)
    if environ.get(_ENV_API_URL):
        merged["api_url"] = environ[_ENV_API_URL]
    if _ENV_TIMEOUT in environ:
        merged["timeout"] = environ[_ENV_TIMEOUT]
    if environ.get(_ENV_LOG_LEVEL):
        merged["log_level"] = environ[_ENV_LOG_LEVEL]
    return merged


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file and the environment.

    Environment variables take precedence over values from the file. A missing
    file is not an error; the defaults apply.
    """
    env = os.environ if environ is None else environ
    raw: Dict[str, object] = {}

    if config_path is not None and config_path.is_file():
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ConfigurationError("Configuration file must contain a mapping")
        raw = {str(key): value for key, value in loaded.items()}

    return Settings.from_dict(_apply_environment(raw, env))


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path.cwd() / DEFAULT_CONFIG_FILENAME).resolve(strict=False)


def config_path_from_env() -> Path:
    return resolve_config_path(os.getenv(_ENV_CONFIG))


__all__ = [
    "ConfigurationError",
    "DEFAULT_API_URL",
    "Settings",
    "config_path_from_env",
    "load_settings",
    "resolve_config_path",
]
