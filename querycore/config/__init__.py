"""Configuration management for querycore."""

from querycore.config.models import (
    ConnectionConfig,
    EnvironmentSettings,
    QueryCoreConfig,
)
from querycore.config.parser import ConfigParser, expand_env, load_config

__all__ = [
    # Models
    "ConnectionConfig",
    "QueryCoreConfig",
    "EnvironmentSettings",
    # Parser
    "ConfigParser",
    "load_config",
    "expand_env",
]
