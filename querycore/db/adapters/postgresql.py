"""PostgreSQL database adapter."""

from typing import Any, Dict

from querycore.db.base import SQLAlchemyAdapter


class PostgreSQLAdapter(SQLAlchemyAdapter):
    """PostgreSQL database adapter."""

    def _get_engine_options(self) -> Dict[str, Any]:
        """Get PostgreSQL-specific engine options."""
        connect_args: Dict[str, Any] = {}
        if self.config.timeout_seconds > 0:
            connect_args['connect_timeout'] = self.config.timeout_seconds
        return {'connect_args': connect_args}
