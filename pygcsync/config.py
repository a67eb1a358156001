"""Configuration management for pygcsync."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://storage.googleapis.com"
DEFAULT_CONCURRENCY = 8
DEFAULT_SIGNED_URL_TTL = 60


class Config:
    """Settings loaded from the environment and ~/.config/pygcsync/config.json.

    Environment variables take precedence over the config file.
    """

    ENV_CREDENTIALS = "GOOGLE_APPLICATION_CREDENTIALS"
    ENV_API_URL = "PYGCSYNC_API_URL"
    ENV_CONCURRENCY = "PYGCSYNC_CONCURRENCY"
    ENV_SIGNED_URL_TTL = "PYGCSYNC_SIGNED_URL_TTL"

    def __init__(self, config_dir: Path | None = None):
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pygcsync"
        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            self._data = {}
            if self.config_file.exists():
                try:
                    self._data = json.loads(self.config_file.read_text())
                except (OSError, ValueError) as e:
                    raise ConfigError(
                        f"Cannot read config file {self.config_file}: {e}"
                    ) from e
        return self._data

    def _get(self, env_name: str, key: str) -> Any:
        value = os.environ.get(env_name)
        if value is not None:
            return value
        return self._load().get(key)

    def _get_int(self, env_name: str, key: str, default: int) -> int:
        value = self._get(env_name, key)
        if value is None or value == "":
            return default
        try:
            result = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from e
        if result < 1:
            raise ConfigError(f"{key} must be >= 1, got {result}")
        return result

    @property
    def credentials_path(self) -> Path | None:
        """Service account JSON file, if configured."""
        value = self._get(self.ENV_CREDENTIALS, "credentials_path")
        return Path(value).expanduser() if value else None

    @property
    def api_url(self) -> str:
        return (self._get(self.ENV_API_URL, "api_url") or DEFAULT_API_URL).rstrip("/")

    @property
    def concurrency(self) -> int:
        return self._get_int(self.ENV_CONCURRENCY, "concurrency", DEFAULT_CONCURRENCY)

    @property
    def signed_url_ttl(self) -> int:
        return self._get_int(
            self.ENV_SIGNED_URL_TTL, "signed_url_ttl", DEFAULT_SIGNED_URL_TTL
        )

    def as_dict(self) -> dict[str, Any]:
        """Effective settings, for display."""
        credentials = self.credentials_path
        return {
            "config_file": str(self.config_file),
            "credentials_path": str(credentials) if credentials else None,
            "api_url": self.api_url,
            "concurrency": self.concurrency,
            "signed_url_ttl": self.signed_url_ttl,
        }

    def save(self, **values: Any) -> None:
        """Merge values into the config file and write it."""
        data = dict(self._load())
        data.update({k: v for k, v in values.items() if v is not None})
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(data, indent=2))
        self._data = data
        logger.debug("Saved config to %s", self.config_file)


config = Config()
