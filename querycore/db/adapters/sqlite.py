"""SQLite database adapter."""

from typing import Any, Dict

from sqlalchemy import event
from sqlalchemy.engine import Engine

from querycore.db.base import SQLAlchemyAdapter


class SQLiteAdapter(SQLAlchemyAdapter):
    """SQLite database adapter."""

    def _get_engine_options(self) -> Dict[str, Any]:
        """Get SQLite-specific engine options."""
        connect_args: Dict[str, Any] = {
            'check_same_thread': False,
        }
        if self.config.timeout_seconds > 0:
            connect_args['timeout'] = self.config.timeout_seconds
        return {'connect_args': connect_args}

    def configure_engine(self, engine: Engine) -> None:
        """Let SQLAlchemy, not pysqlite, decide when transactions begin.

        pysqlite defers BEGIN until the first DML statement, which breaks
        SAVEPOINT. The driver is switched to autocommit and BEGIN is emitted
        explicitly whenever SQLAlchemy starts a transaction.
        """
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")
