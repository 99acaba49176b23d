"""MySQL / MariaDB database adapter."""

from typing import Any, Dict

from querycore.db.base import SQLAlchemyAdapter


class MySQLAdapter(SQLAlchemyAdapter):
    """MySQL database adapter.

    The session charset is applied with ``SET NAMES`` by the connection
    manager once the connection is open.
    """

    def _get_engine_options(self) -> Dict[str, Any]:
        """Get MySQL-specific engine options."""
        connect_args: Dict[str, Any] = {}
        if self.config.timeout_seconds > 0:
            connect_args['connect_timeout'] = self.config.timeout_seconds
        return {'connect_args': connect_args}
