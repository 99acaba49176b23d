"""Named connection management and adapter factory."""

import logging
from typing import Any, Dict, Mapping, Optional, Type, Union

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError as URLArgumentError

from querycore.config.models import ConnectionConfig, QueryCoreConfig
from querycore.db.adapters.mysql import MySQLAdapter
from querycore.db.adapters.postgresql import PostgreSQLAdapter
from querycore.db.adapters.sqlite import SQLiteAdapter
from querycore.db.base import BaseAdapter, DriverConnection, PreparedStatement, SQLAlchemyAdapter
from querycore.db.identifiers import IdentifierQuoter
from querycore.db.statement_cache import StatementCache
from querycore.exceptions import ConfigurationError, ExecutionError
from querycore.hooks import DbHooks, frozen_context

logger = logging.getLogger(__name__)

CHARSET_DIALECTS = frozenset({'mysql', 'mariadb'})


class AdapterFactory:
    """Factory for creating database adapters from a connection config.

    The adapter is chosen by the backend name of the DSN; backends without a
    registered adapter use the generic :class:`SQLAlchemyAdapter`.
    """

    def __init__(self) -> None:
        self._adapters: Dict[str, Type[BaseAdapter]] = {
            'sqlite': SQLiteAdapter,
            'mysql': MySQLAdapter,
            'mariadb': MySQLAdapter,
            'postgresql': PostgreSQLAdapter,
        }

    def create_adapter(self, config: ConnectionConfig) -> BaseAdapter:
        """Create a database adapter based on configuration.

        Raises:
            ConfigurationError: If the DSN cannot be parsed.
        """
        try:
            backend = make_url(config.dsn).get_backend_name()
        except URLArgumentError as e:
            raise ConfigurationError(
                f"Invalid DSN: {e}",
                {"config": config.safe_for_logs()},
            ) from e

        adapter_class = self._adapters.get(backend, SQLAlchemyAdapter)
        return adapter_class(config)

    def register_adapter(self, backend: str, adapter_class: Type[BaseAdapter]) -> None:
        """Register a custom database adapter.

        Args:
            backend: DSN backend name (e.g. ``"mssql"``).
            adapter_class: Adapter class to register.
        """
        self._adapters[backend] = adapter_class

    def get_supported_backends(self) -> list:
        return sorted(self._adapters)


class ConnectionManager:
    """Owns every named connection and its per-connection state.

    Connections are opened lazily on first use. Each open connection has
    one identifier quoter, one statement cache and one transaction depth
    counter; no other component writes them.
    """

    def __init__(
        self,
        hooks: Optional[DbHooks] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ) -> None:
        """Initialize connection manager.

        Args:
            hooks: Optional hooks; ``on_connect`` fires after a connection opens.
            adapter_factory: Factory used to create adapters from configs.
        """
        self.hooks = hooks
        self._factory = adapter_factory or AdapterFactory()
        self._configs: Dict[str, ConnectionConfig] = {}
        self._connections: Dict[str, DriverConnection] = {}
        self._quoters: Dict[str, IdentifierQuoter] = {}
        self._statement_caches: Dict[str, StatementCache] = {}
        self._tx_depth: Dict[str, int] = {}

    def add(self, name: str, config: Union[ConnectionConfig, Mapping[str, Any]]) -> None:
        """Register a named connection config.

        Raises:
            ConfigurationError: If the name is blank or the config invalid.
        """
        name = name.strip()
        if not name:
            raise ConfigurationError("Connection name cannot be empty")
        if not isinstance(config, ConnectionConfig):
            config = ConnectionConfig.from_mapping(dict(config))
        self._configs[name] = config

    @classmethod
    def from_mapping(
        cls,
        connections: Mapping[str, Union[ConnectionConfig, Mapping[str, Any]]],
        hooks: Optional[DbHooks] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ) -> "ConnectionManager":
        manager = cls(hooks, adapter_factory)
        for name, config in connections.items():
            manager.add(str(name), config)
        return manager

    @classmethod
    def from_config(
        cls,
        config: QueryCoreConfig,
        hooks: Optional[DbHooks] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ) -> "ConnectionManager":
        return cls.from_mapping(config.connections, hooks, adapter_factory)

    def get_config(self, name: str) -> ConnectionConfig:
        if name not in self._configs:
            raise ConfigurationError(
                f"Unknown connection: {name}",
                {"connection": name, "available": list(self._configs)},
            )
        return self._configs[name]

    def connection(self, name: str) -> DriverConnection:
        """Get the driver connection for ``name``, opening it on first use.

        Raises:
            ConfigurationError: If the connection name is not configured.
            ExecutionError: If the driver fails to connect.
        """
        if name in self._connections:
            return self._connections[name]

        config = self.get_config(name)
        adapter = self._factory.create_adapter(config)
        try:
            connection = adapter.connect()
        except Exception as e:
            logger.error(f"Failed to connect '{name}': {e}")
            raise ExecutionError(
                f"Failed to connect to '{name}': {e}",
                {
                    "connection": name,
                    "config": config.safe_for_logs(),
                    "error": str(e),
                    "exception": type(e).__name__,
                },
            ) from e

        quoter = IdentifierQuoter(connection.driver_name())
        self._apply_session_settings(name, connection, quoter.driver, config)

        self._connections[name] = connection
        self._quoters[name] = quoter
        self._statement_caches[name] = StatementCache(config.statement_cache_size)
        self._tx_depth[name] = 0

        logger.info(f"Opened connection '{name}' ({quoter.driver}): {config.safe_for_logs()}")

        if self.hooks is not None and self.hooks.on_connect is not None:
            self.hooks.on_connect(frozen_context({
                'connection': name,
                'config': config.safe_for_logs(),
                'driver': quoter.driver,
            }))

        return connection

    def quoter(self, name: str) -> IdentifierQuoter:
        self.connection(name)
        return self._quoters[name]

    def statement(self, name: str, sql: str) -> PreparedStatement:
        connection = self.connection(name)
        return self._statement_caches[name].get(connection, sql)

    def statement_cache(self, name: str) -> StatementCache:
        self.connection(name)
        return self._statement_caches[name]

    def transaction_depth(self, name: str) -> int:
        self.connection(name)
        return self._tx_depth.get(name, 0)

    def set_transaction_depth(self, name: str, depth: int) -> None:
        self._tx_depth[name] = max(0, depth)

    def is_connected(self, name: str) -> bool:
        return name in self._connections

    def _apply_session_settings(
        self,
        name: str,
        connection: DriverConnection,
        driver: str,
        config: ConnectionConfig,
    ) -> None:
        if driver not in CHARSET_DIALECTS or not config.charset:
            return
        if not config.charset_is_safe():
            connection.close()
            raise ConfigurationError(
                f"Unsafe charset: {config.charset}",
                {"charset": config.charset},
            )
        try:
            connection.exec(f"SET NAMES {config.charset}")
        except Exception as e:
            connection.close()
            logger.error(f"Failed to set charset on '{name}': {e}")
            raise ExecutionError(
                f"Failed to set charset on '{name}': {e}",
                {
                    "connection": name,
                    "config": config.safe_for_logs(),
                    "error": str(e),
                    "exception": type(e).__name__,
                },
            ) from e

    def close_connection(self, name: str) -> None:
        """Close a specific connection; it reopens lazily on next use."""
        connection = self._connections.pop(name, None)
        self._quoters.pop(name, None)
        self._statement_caches.pop(name, None)
        self._tx_depth.pop(name, None)
        if connection is not None:
            try:
                connection.close()
            except Exception as e:
                logger.warning(f"Error closing connection '{name}': {e}")

    def close_all_connections(self) -> None:
        """Close all open connections."""
        for name in list(self._connections):
            self.close_connection(name)

    def get_connection_status(self) -> Dict[str, Any]:
        """Get status of all configured connections."""
        status: Dict[str, Any] = {
            'total_configured': len(self._configs),
            'total_active': len(self._connections),
            'connections': {},
        }

        for name, config in self._configs.items():
            active = name in self._connections
            status['connections'][name] = {
                'active': active,
                'driver': self._quoters[name].driver if active else None,
                'transaction_depth': self._tx_depth.get(name, 0),
                'cached_statements': len(self._statement_caches[name]) if active else 0,
                'config': config.safe_for_logs(),
            }

        return status
