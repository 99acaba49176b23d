"""Driver abstractions and the SQLAlchemy-backed implementation."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.engine.url import URL
from sqlalchemy.exc import ArgumentError as URLArgumentError
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.types import Boolean, Integer, NullType, String

from querycore.config.models import ConnectionConfig
from querycore.db.values import BoundValue, ParamType
from querycore.exceptions import ArgumentError, ConfigurationError

logger = logging.getLogger(__name__)

SQLALCHEMY_TYPES = {
    ParamType.NULL: NullType,
    ParamType.BOOL: Boolean,
    ParamType.INT: Integer,
    ParamType.TEXT: String,
}


@dataclass
class StatementResult:
    """Outcome of one statement execution."""
    rows: Optional[List[Dict[str, Any]]] = None
    row_count: int = 0
    last_insert_id: Optional[Any] = None

    @property
    def returns_rows(self) -> bool:
        return self.rows is not None


class PreparedStatement(ABC):
    """A SQL template with positional ``?`` placeholders, reusable across executions."""

    sql: str

    @abstractmethod
    def reset(self) -> None:
        """Drop bindings left over from a previous execution."""

    @abstractmethod
    def bind_value(self, position: int, value: BoundValue) -> None:
        """Bind a value to the 1-based placeholder ``position``."""

    @abstractmethod
    def execute(self) -> StatementResult:
        """Execute with the current bindings."""


class DriverConnection(ABC):
    """One open database handle."""

    @abstractmethod
    def prepare(self, sql: str) -> PreparedStatement:
        pass

    @abstractmethod
    def begin_transaction(self) -> None:
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass

    @abstractmethod
    def exec(self, raw_sql: str) -> None:
        """Execute a statement without parameters or results."""

    @abstractmethod
    def driver_name(self) -> str:
        pass

    @abstractmethod
    def last_insert_id(self) -> Optional[Any]:
        pass

    def close(self) -> None:
        pass


class BaseAdapter(ABC):
    """Base class for database adapters."""

    def __init__(self, config: ConnectionConfig) -> None:
        """Initialize database adapter.

        Args:
            config: Connection configuration.
        """
        self.config = config

    @abstractmethod
    def connect(self) -> DriverConnection:
        """Open a new driver connection.

        Raises:
            Exception: Whatever the underlying driver raises on failure.
        """


def convert_placeholders(sql: str) -> Tuple[str, int]:
    """Rewrite ``?`` placeholders as ``:p1 .. :pN`` binds for ``text()``.

    Question marks inside quoted literals or quoted identifiers are left
    alone. Colons that ``text()`` would read as bind markers are escaped.

    Returns:
        The rewritten SQL and the number of placeholders found.
    """
    out = []
    count = 0
    quote = None
    prev = ''
    length = len(sql)

    for i, ch in enumerate(sql):
        nxt = sql[i + 1] if i + 1 < length else ''
        if ch == ':' and (nxt.isalnum() or nxt == '_') and not (prev == ':' or prev.isalnum() or prev in ('_', '\\')):
            out.append('\\:')
        elif quote is not None:
            out.append(ch)
            if ch == quote:
                quote = None
        elif ch in ("'", '"', '`'):
            quote = ch
            out.append(ch)
        elif ch == '?':
            count += 1
            out.append(f":p{count}")
        else:
            out.append(ch)
        prev = ch

    return ''.join(out), count


class SQLAlchemyStatement(PreparedStatement):
    """Prepared statement backed by a SQLAlchemy ``text()`` clause."""

    def __init__(self, connection: "SQLAlchemyConnection", sql: str) -> None:
        self.sql = sql
        text_sql, self.placeholder_count = convert_placeholders(sql)
        self._clause: TextClause = text(text_sql)
        self._connection = connection
        self._bound: Dict[int, BoundValue] = {}

    def reset(self) -> None:
        self._bound = {}

    def bind_value(self, position: int, value: BoundValue) -> None:
        self._bound[position] = value

    def execute(self) -> StatementResult:
        if sorted(self._bound) != list(range(1, self.placeholder_count + 1)):
            raise ArgumentError(
                f"Statement expects {self.placeholder_count} parameters, got {len(self._bound)}",
                {"sql": self.sql, "expected": self.placeholder_count, "bound": len(self._bound)},
            )
        binds = []
        params: Dict[str, Any] = {}
        for position in sorted(self._bound):
            bound = self._bound[position]
            name = f"p{position}"
            binds.append(bindparam(name, type_=SQLALCHEMY_TYPES[bound.type]()))
            params[name] = bound.value

        clause = self._clause.bindparams(*binds) if binds else self._clause
        return self._connection.run(clause, params)


class SQLAlchemyConnection(DriverConnection):
    """Driver connection holding one long-lived SQLAlchemy ``Connection``.

    Outside an explicit transaction each statement is committed as soon as
    it has run.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._conn: Connection = engine.connect()
        self._transaction = None
        self._last_insert_id: Optional[Any] = None

    def prepare(self, sql: str) -> PreparedStatement:
        return SQLAlchemyStatement(self, sql)

    def run(self, clause: TextClause, params: Dict[str, Any]) -> StatementResult:
        try:
            result = self._conn.execute(clause, params)
            if result.returns_rows:
                rows = [dict(row) for row in result.mappings()]
                outcome = StatementResult(rows=rows, row_count=len(rows))
            else:
                lastrowid = getattr(result, 'lastrowid', None)
                outcome = StatementResult(
                    row_count=max(result.rowcount, 0),
                    last_insert_id=lastrowid,
                )
                if lastrowid is not None:
                    self._last_insert_id = lastrowid
        except Exception:
            self._rollback_implicit()
            raise

        self._commit_implicit()
        return outcome

    def begin_transaction(self) -> None:
        if self._conn.in_transaction():
            self._conn.commit()
        self._transaction = self._conn.begin()

    def commit(self) -> None:
        transaction, self._transaction = self._transaction, None
        if transaction is not None:
            transaction.commit()

    def rollback(self) -> None:
        transaction, self._transaction = self._transaction, None
        if transaction is not None:
            transaction.rollback()

    def exec(self, raw_sql: str) -> None:
        try:
            self._conn.exec_driver_sql(raw_sql)
        except Exception:
            self._rollback_implicit()
            raise
        self._commit_implicit()

    def driver_name(self) -> str:
        return self._engine.dialect.name

    def last_insert_id(self) -> Optional[Any]:
        return self._last_insert_id

    def close(self) -> None:
        try:
            if self._transaction is not None:
                self._transaction.rollback()
                self._transaction = None
            self._conn.close()
        finally:
            self._engine.dispose()

    def _commit_implicit(self) -> None:
        if self._transaction is None and self._conn.in_transaction():
            self._conn.commit()

    def _rollback_implicit(self) -> None:
        if self._transaction is None and self._conn.in_transaction():
            self._conn.rollback()


class SQLAlchemyAdapter(BaseAdapter):
    """Adapter creating connections through a SQLAlchemy engine.

    Subclasses contribute dialect-specific engine options.
    """

    def __init__(self, config: ConnectionConfig) -> None:
        super().__init__(config)
        self._engine: Optional[Engine] = None

    def build_connection_string(self) -> URL:
        """Build the SQLAlchemy URL, injecting configured credentials.

        Raises:
            ConfigurationError: If the DSN is not a valid SQLAlchemy URL.
        """
        try:
            url = make_url(self.config.dsn)
        except URLArgumentError as e:
            raise ConfigurationError(f"Invalid DSN: {e}") from e

        if self.config.username:
            url = url.set(username=self.config.username, password=self.config.password or None)
        return url

    def get_engine(self) -> Engine:
        """Get or create the SQLAlchemy engine."""
        if self._engine is None:
            engine_args: Dict[str, Any] = {}
            if self.config.persistent:
                engine_args['pool_pre_ping'] = True
                engine_args['pool_recycle'] = 3600

            options = self._get_engine_options()
            connect_args = dict(options.pop('connect_args', {}))
            connect_args.update(self.config.driver_options)
            if connect_args:
                engine_args['connect_args'] = connect_args
            engine_args.update(options)

            engine = create_engine(self.build_connection_string(), **engine_args)
            self.configure_engine(engine)
            self._engine = engine

        return self._engine

    def _get_engine_options(self) -> Dict[str, Any]:
        """Get database-specific engine options."""
        return {}

    def configure_engine(self, engine: Engine) -> None:
        """Hook for installing engine event listeners."""

    def connect(self) -> DriverConnection:
        return SQLAlchemyConnection(self.get_engine())
