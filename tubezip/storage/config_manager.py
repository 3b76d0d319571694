"""
Loads the server configuration from an INI file, the environment and CLI overrides.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from tubezip.exceptions import ConfigurationError
from tubezip.models.config import ServerConfig

log = logging.getLogger(__name__)

# Environment variable -> config key
ENV_KEYS = {
    "HOST": "host",
    "PORT": "port",
    "YT_API_KEY": "yt_api_key",
    "YTDLP_PATH": "ytdlp_binary",
    "TUBEZIP_TEMP_ROOT": "temp_root",
    "TUBEZIP_JOB_TTL": "job_ttl_seconds",
    "TUBEZIP_LOG_DIR": "log_dir",
}


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "tubezip"


class ConfigManager:
    """
    Builds a ServerConfig from, in increasing precedence: model defaults, the
    INI file, environment variables (after loading `.env`), and CLI options.
    """

    def __init__(self, config_file_path: Path, load_env_file: bool = True):
        self.config_file_path = config_file_path
        self.load_env_file = load_env_file
        self._parser = configparser.ConfigParser()

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ServerConfig:
        """
        Loads and validates the configuration.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated ServerConfig object.

        Raises:
            ConfigurationError: If the INI file cannot be parsed or validation fails.
        """
        settings = self._get_config_as_dict()
        settings.update(self._get_env_overrides())

        if cli_options:
            settings.update({k: v for k, v in cli_options.items() if v is not None})

        try:
            return ServerConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        if not self.config_file_path.is_file():
            log.debug(f"No config file at '{self.config_file_path}', using defaults.")
            return {}

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        section = self._parser["DEFAULT"]
        known_keys = ServerConfig.get_ini_keys()
        unknown = [key for key in section if key not in known_keys]
        if unknown:
            log.warning(
                f"[yellow]Ignoring unknown config keys:[/] {', '.join(sorted(unknown))}"
            )
        return {key: section[key] for key in section if key in known_keys}

    def _get_env_overrides(self) -> dict[str, Any]:
        """Collects settings from environment variables."""
        if self.load_env_file:
            load_dotenv()
        return {
            key: os.environ[env_name]
            for env_name, key in ENV_KEYS.items()
            if os.environ.get(env_name)
        }
