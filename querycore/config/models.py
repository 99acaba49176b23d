"""Pydantic models for querycore configuration."""

import re
from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from querycore.exceptions import ConfigurationError
from querycore.log import sanitize_dsn

CHARSET_PATTERN = re.compile(r'^[A-Za-z0-9_]+$')


class ConnectionConfig(BaseModel):
    """Immutable settings for one named connection."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dsn: str
    username: str = Field(default='', validation_alias=AliasChoices('username', 'user'))
    password: str = Field(default='', validation_alias=AliasChoices('password', 'pass'), repr=False)
    charset: str = 'utf8mb4'
    timeout_seconds: int = Field(default=5, validation_alias=AliasChoices('timeout_seconds', 'timeout'))
    persistent: bool = False
    driver_options: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices('driver_options', 'options'),
    )
    statement_cache_size: int = Field(default=128, ge=0, description="Prepared statements kept per connection")

    @field_validator('dsn')
    def validate_dsn(cls, v):
        """Reject blank DSNs."""
        if not v or not v.strip():
            raise ValueError('Connection config requires "dsn"')
        return v.strip()

    @field_validator('timeout_seconds')
    def floor_timeout(cls, v):
        """Negative timeouts mean no timeout."""
        return max(0, v)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ConnectionConfig":
        """Build a config from a plain dict.

        Raises:
            ConfigurationError: If the mapping is not a valid connection config.
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid connection config: {e}") from e

    def charset_is_safe(self) -> bool:
        return bool(CHARSET_PATTERN.fullmatch(self.charset))

    def safe_for_logs(self) -> Dict[str, Any]:
        """Return the config with credentials removed."""
        return {
            'dsn': sanitize_dsn(self.dsn),
            'username': self.username,
            'charset': self.charset,
            'timeout_seconds': self.timeout_seconds,
            'persistent': self.persistent,
        }


class QueryCoreConfig(BaseModel):
    """Main configuration model for querycore."""
    connections: Dict[str, ConnectionConfig]
    default_connection: Optional[str] = None
    debug: bool = False
    debug_max_log: int = Field(default=200, ge=0)
    error_mode: str = Field(default='exception', pattern='^(exception|safe)$')

    @field_validator('connections')
    def validate_connection_names(cls, v):
        """Connection names must be non-blank."""
        for name in v:
            if not name.strip():
                raise ValueError('Connection name cannot be empty')
        return v

    @model_validator(mode='after')
    def set_default_connection(self):
        """Default to the first connection; an explicit default must exist."""
        if self.default_connection and self.default_connection not in self.connections:
            raise ValueError(f"default_connection '{self.default_connection}' not found in connections")
        if not self.default_connection and self.connections:
            self.default_connection = next(iter(self.connections))
        return self


class EnvironmentSettings(BaseSettings):
    """Environment-specific settings."""

    model_config = SettingsConfigDict(env_prefix='QUERYCORE_', case_sensitive=False)

    log_level: str = Field(default='WARNING')
    config_file: Optional[str] = Field(default=None)
