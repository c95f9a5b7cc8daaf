"""Configuration for pycloudflow.

Values are resolved in this order (later wins): built-in defaults, the
``~/.config/pycloudflow/config`` dotenv file, environment variables.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from .exceptions import CloudflowConfigError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:9090"
DEFAULT_LOGIN = "admin"
DEFAULT_PASSWORD = "admin"

# Number of files transferred in parallel
DEFAULT_MAX_WORKERS = 20

ENV_VARIABLES = {
    "host": "CLOUDFLOW_HOST",
    "login": "CLOUDFLOW_LOGIN",
    "password": "CLOUDFLOW_PASSWORD",
    "session": "CLOUDFLOW_SESSION",
    "workers": "PYCLOUDFLOW_WORKERS",
}


class Config:
    """Connection defaults shared by all commands."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = config_path
        self._file_values: Optional[dict[str, str]] = None

    def get_config_path(self) -> Path:
        """Return the path of the configuration file."""
        if self._config_path is not None:
            return self._config_path
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(base) / "pycloudflow" / "config"

    def _read_file(self) -> dict[str, str]:
        if self._file_values is not None:
            return self._file_values

        values: dict[str, str] = {}
        path = self.get_config_path()
        if path.is_file():
            for key, value in dotenv_values(path).items():
                if value is not None:
                    values[key.lower()] = value
            logger.debug("Loaded %d value(s) from %s", len(values), path)
        self._file_values = values
        return values

    def get(self, key: str) -> Optional[str]:
        """Return a configured value, environment first, then the config file."""
        env_name = ENV_VARIABLES.get(key)
        if env_name and os.environ.get(env_name):
            return os.environ[env_name]
        return self._read_file().get(key)

    @property
    def host(self) -> str:
        return self.get("host") or DEFAULT_HOST

    @property
    def login(self) -> str:
        return self.get("login") or DEFAULT_LOGIN

    @property
    def password(self) -> str:
        return self.get("password") or DEFAULT_PASSWORD

    @property
    def session(self) -> Optional[str]:
        return self.get("session")

    @property
    def max_workers(self) -> int:
        value = self.get("workers")
        if value is None:
            return DEFAULT_MAX_WORKERS
        try:
            workers = int(value)
        except ValueError as e:
            raise CloudflowConfigError(
                f"workers must be an integer, got '{value}'"
            ) from e
        if workers < 1:
            raise CloudflowConfigError(f"workers must be at least 1, got {workers}")
        return workers

    def reload(self) -> None:
        """Forget the cached config file contents."""
        self._file_values = None


config = Config()
