"""Loading of querycore YAML configuration files.

String values may reference environment variables: ``${NAME}`` must be set,
``${NAME:-fallback}`` uses the fallback when ``NAME`` is unset.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import ValidationError

from querycore.config.models import EnvironmentSettings, QueryCoreConfig
from querycore.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_REFERENCE = re.compile(r'\$\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*(?::-([^}]*))?\}')

CONFIG_SEARCH_PATHS = (
    Path('querycore.yaml'),
    Path('querycore.yml'),
    Path('config') / 'querycore.yaml',
)


def expand_env(value: Any) -> Any:
    """Resolve environment references in every string of a parsed YAML tree."""
    if isinstance(value, str):
        return ENV_REFERENCE.sub(_resolve_reference, value)
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def _resolve_reference(match: re.Match) -> str:
    name, fallback = match.group(1), match.group(2)
    resolved = os.environ.get(name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback.strip()
    raise ConfigurationError(
        f"Required environment variable '{name}' is not set",
        {"variable": name},
    )


class ConfigParser:
    """Reads, interpolates and validates querycore configuration."""

    def __init__(self, env_settings: Optional[EnvironmentSettings] = None) -> None:
        self.env_settings = env_settings or EnvironmentSettings()

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> QueryCoreConfig:
        """Load and validate configuration from a YAML file.

        Args:
            config_path: Path to the file. If None, ``QUERYCORE_CONFIG_FILE``
                and then the default locations are tried.

        Returns:
            Validated QueryCoreConfig instance.

        Raises:
            ConfigurationError: If no file is found, or it is empty, malformed
                or invalid.
        """
        path = self.locate(config_path)
        logger.debug(f"Loading configuration from {path}")

        try:
            document = path.read_text(encoding='utf-8')
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file '{path}' not found") from e

        try:
            raw_config = yaml.safe_load(document)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in '{path}': {e}") from e

        if raw_config is None:
            raise ConfigurationError(f"Configuration file '{path}' is empty")

        return self.load_mapping(raw_config)

    def load_mapping(self, raw_config: Any) -> QueryCoreConfig:
        """Validate an already-parsed configuration mapping.

        Raises:
            ConfigurationError: If the mapping fails validation.
        """
        if not isinstance(raw_config, dict):
            raise ConfigurationError("Configuration must be a mapping")

        try:
            return QueryCoreConfig.model_validate(expand_env(raw_config))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

    def locate(self, config_path: Optional[Union[str, Path]] = None) -> Path:
        """Return the configuration file to load.

        Raises:
            ConfigurationError: If an explicit path is missing or nothing is found.
        """
        if config_path:
            path = Path(config_path)
            if not path.is_file():
                raise ConfigurationError(f"Configuration file '{config_path}' not found")
            return path

        candidates: List[Path] = []
        if self.env_settings.config_file:
            candidates.append(Path(self.env_settings.config_file))
        candidates.extend(Path.cwd() / relative for relative in CONFIG_SEARCH_PATHS)

        for candidate in candidates:
            if candidate.is_file():
                return candidate

        raise ConfigurationError(
            f"No configuration file found; searched {[str(c) for c in candidates]}"
        )


def load_config(config_path: Optional[Union[str, Path]] = None) -> QueryCoreConfig:
    """Load configuration from a YAML file."""
    return ConfigParser().load_config(config_path)
