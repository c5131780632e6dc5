"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from imgcache.exceptions import ConfigurationError
from imgcache.models.config import CacheConfig

log = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Returns the platform's per-user configuration directory for imgcache."""
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "imgcache"


DEFAULT_CONFIG_FILE = get_config_dir() / "config.ini"


class ConfigManager:
    """Handles all operations related to the library's INI config file."""

    def __init__(self, config_file_path: Path = DEFAULT_CONFIG_FILE):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, overrides: dict[str, Any] | None = None) -> CacheConfig:
        """
        Loads configuration from the INI file, applies overrides, and validates it.

        A missing file is not an error: the defaults are used instead.

        Args:
            overrides: Settings that take precedence over the file, such as
                options given on the command line.

        Returns:
            A validated CacheConfig object.

        Raises:
            ConfigurationError: If the config file cannot be parsed or validation
            fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Error parsing configuration file: {e}"
                ) from e
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(
                f"No configuration file at '{self.config_file_path}', using defaults."
            )

        if overrides:
            config_from_file.update(
                {key: value for key, value in overrides.items() if value is not None}
            )

        try:
            return CacheConfig(**config_from_file)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> CacheConfig:
        """
        Creates and saves a new configuration file.

        Args:
            settings: Settings to save. Keys that are missing get their defaults.

        Returns:
            The validated configuration that was written.
        """
        try:
            config = CacheConfig(
                **{key: value for key, value in settings.items() if value is not None}
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        parser = configparser.ConfigParser(interpolation=None)
        parser["DEFAULT"] = {
            key: str(value) for key, value in config.model_dump().items()
        }

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                parser.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e
        return config

    def _get_config_as_dict(self) -> dict[str, Any]:
        """
        Reads the 'DEFAULT' section of the INI file into a dictionary. Unknown
        keys are ignored; values are left as strings for pydantic to coerce.
        """
        section = self._parser["DEFAULT"]
        known_keys = CacheConfig.get_ini_keys()
        data = {}
        for key, value in section.items():
            if key in known_keys:
                data[key] = value
            else:
                log.warning(f"[yellow]Ignoring unknown config key '{key}'.[/yellow]")
        return data
