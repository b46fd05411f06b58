"""Configuration management for bunnysync.

Settings are resolved in this order, later sources winning:

1. built-in defaults
2. ``~/.config/bunnysync/config.toml``
3. ``.bunnysync`` in the current directory
4. environment variables (``BUNNYSYNC_API_KEY``, ``BUNNYSYNC_REGION``)

Command line options are applied on top by the CLI.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigError
from .utils import (
    CONFIG_FILE_NAME,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
)

logger = logging.getLogger(__name__)

API_KEY_ENV = "BUNNYSYNC_API_KEY"
REGION_ENV = "BUNNYSYNC_REGION"

DEFAULT_REGION = "de"

REGION_HOSTS: dict[str, str] = {
    "": "storage.bunnycdn.com",
    "de": "storage.bunnycdn.com",
    "uk": "uk.storage.bunnycdn.com",
    "us_ny": "ny.storage.bunnycdn.com",
    "ny": "ny.storage.bunnycdn.com",
    "us_la": "la.storage.bunnycdn.com",
    "la": "la.storage.bunnycdn.com",
    "sg": "sg.storage.bunnycdn.com",
    "se": "se.storage.bunnycdn.com",
    "br": "br.storage.bunnycdn.com",
    "sa": "ja.storage.bunnycdn.com",
    "au": "syd.storage.bunnycdn.com",
    "au_syd": "syd.storage.bunnycdn.com",
    "syd": "syd.storage.bunnycdn.com",
}

REGION_CHOICES = [name for name in REGION_HOSTS if name]


def base_url_for_region(region: Optional[str]) -> str:
    """Return the storage API base URL for a region.

    Args:
        region: Region name (e.g. "de", "uk", "ny"); None or "" means Falkenstein

    Returns:
        HTTPS base URL without trailing slash

    Raises:
        ConfigError: If the region is unknown

    Examples:
        >>> base_url_for_region("uk")
        'https://uk.storage.bunnycdn.com'
        >>> base_url_for_region(None)
        'https://storage.bunnycdn.com'
    """
    host = REGION_HOSTS.get((region or "").lower())
    if host is None:
        raise ConfigError(f"Unknown storage region: {region}")
    return f"https://{host}"


class Config:
    """Resolved bunnysync settings."""

    def __init__(
        self,
        user_config_path: Optional[Path] = None,
        local_config_path: Optional[Path] = None,
    ):
        """Initialize configuration.

        Args:
            user_config_path: User-wide config file
                (defaults to ~/.config/bunnysync/config.toml)
            local_config_path: Per-directory config file
                (defaults to ./.bunnysync)
        """
        self.user_config_path = (
            user_config_path or Path.home() / ".config" / "bunnysync" / "config.toml"
        )
        self.local_config_path = local_config_path or Path(CONFIG_FILE_NAME)

        self.api_key: Optional[str] = None
        self.region: str = DEFAULT_REGION
        self.exclude: list[str] = []
        self.exclude_dot_files: bool = False
        self.workers: int = DEFAULT_WORKERS
        self.max_retries: int = DEFAULT_MAX_RETRIES
        self.retry_delay: float = DEFAULT_RETRY_DELAY
        self.timeout: float = DEFAULT_TIMEOUT

        self.loaded_files: list[Path] = []

    def load(self) -> "Config":
        """Load config files and environment variables.

        Returns:
            self, for chaining

        Raises:
            ConfigError: If a config file cannot be parsed
        """
        for path in (self.user_config_path, self.local_config_path):
            if path.is_file():
                self._apply(self._read_file(path), source=path)
                self.loaded_files.append(path)

        env_api_key = os.environ.get(API_KEY_ENV)
        if env_api_key:
            self.api_key = env_api_key
        env_region = os.environ.get(REGION_ENV)
        if env_region:
            self.region = env_region

        return self

    def _read_file(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        logger.debug(f"Loaded config file {path}")
        return data

    def _apply(self, data: dict[str, Any], source: Path) -> None:
        """Apply values from a parsed config file."""
        try:
            if data.get("api_key"):
                self.api_key = str(data["api_key"])
            if "region" in data:
                self.region = str(data["region"])
            if "exclude" in data:
                exclude = data["exclude"]
                if isinstance(exclude, str):
                    exclude = [exclude]
                self.exclude = [str(pattern) for pattern in exclude]
            if "exclude_dot_files" in data:
                self.exclude_dot_files = bool(data["exclude_dot_files"])
            if "workers" in data:
                self.workers = int(data["workers"])
            if "max_retries" in data:
                self.max_retries = int(data["max_retries"])
            if "retry_delay" in data:
                self.retry_delay = float(data["retry_delay"])
            if "timeout" in data:
                self.timeout = float(data["timeout"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value in config file {source}: {e}") from e

    @property
    def base_url(self) -> str:
        """Storage API base URL for the configured region."""
        return base_url_for_region(self.region)

    def is_configured(self) -> bool:
        """Check whether an API key is available."""
        return bool(self.api_key)

    def __repr__(self) -> str:
        # Never expose the access key
        return (
            f"Config(region={self.region!r}, api_key={'***' if self.api_key else None}, "
            f"workers={self.workers}, max_retries={self.max_retries})"
        )


config = Config()
