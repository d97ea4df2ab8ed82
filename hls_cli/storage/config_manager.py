"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from hls_cli.exceptions import ConfigurationError
from hls_cli.models.config import DownloadConfig

log = logging.getLogger(__name__)


def get_default_workspace() -> Path:
    """The directory where task folders live unless configured otherwise."""
    return Path("~/Downloads/hls-cli").expanduser()


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser()

    def load_config(self, cli_options: dict[str, Any] | None = None) -> DownloadConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: defaults are used instead.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated DownloadConfig object.

        Raises:
            ConfigurationError: If the config file is invalid or validation fails.
        """
        config_from_file: dict[str, Any] = {"workspace": str(get_default_workspace())}

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path)
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            try:
                config_from_file = self._get_config_as_dict()
            except ValueError as e:
                raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return DownloadConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save.
        """
        config = configparser.ConfigParser()
        config["DEFAULT"] = {}

        defaults = self._defaults()
        for key in sorted(DownloadConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            config["DEFAULT"][key] = self._to_ini(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def get_config_as_dict(self) -> dict[str, Any]:
        """Reads the config file (if any) and returns its settings."""
        if self.config_file_path.is_file():
            self._parser.read(self.config_file_path)
        return self._get_config_as_dict()

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        retry_limit = section.get("segment_retry_limit", "").strip()
        return {
            "workspace": os.path.expanduser(
                section.get("workspace", str(get_default_workspace()))
            ),
            "segment_suffix": section.get("segment_suffix", ".ts"),
            "output_extension": section.get("output_extension", "ts"),
            "progress_interval": section.getfloat("progress_interval", 1.0),
            "probe_concurrency": section.getint("probe_concurrency", 8),
            "segment_retry_limit": int(retry_limit) if retry_limit else None,
            "segment_retry_delay": section.getfloat("segment_retry_delay", 0.0),
            "chunk_size": section.getint("chunk_size", 131072),
            "request_timeout": section.getfloat("request_timeout", 90.0),
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = self._defaults()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(DownloadConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = self._to_ini(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

    @staticmethod
    def _defaults() -> DownloadConfig:
        return DownloadConfig.model_construct(workspace=str(get_default_workspace()))

    @staticmethod
    def _to_ini(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        # configparser uses % for interpolation, so we must escape it
        return str(value).replace("%", "%%")
