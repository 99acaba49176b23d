"""
Pytest configuration and fixtures for querycore tests.

Most tests run against a scriptable in-memory driver registered under the
``fake://`` DSN backend; integration tests use SQLite in memory through
SQLAlchemy.
"""
from typing import Any, Dict, List, Optional, Tuple

import pytest

from querycore.db.base import BaseAdapter, DriverConnection, PreparedStatement, StatementResult
from querycore.db.connection import AdapterFactory, ConnectionManager
from querycore.db.values import BoundValue
from querycore.query.builder import QueryBuilder


class FakeStatement(PreparedStatement):
    """Records bindings and replays scripted results or failures."""

    def __init__(self, connection: "FakeConnection", sql: str) -> None:
        self.connection = connection
        self.sql = sql
        self.bound: Dict[int, BoundValue] = {}

    def reset(self) -> None:
        self.bound = {}

    def bind_value(self, position: int, value: BoundValue) -> None:
        self.bound[position] = value

    def execute(self) -> StatementResult:
        params = [self.bound[position] for position in sorted(self.bound)]
        self.connection.executed.append((self.sql, params))
        if self.connection.failures:
            raise self.connection.failures.pop(0)
        return self.connection.respond(self.sql)


class FakeConnection(DriverConnection):
    """In-memory driver connection.

    ``responses`` maps SQL text to the result it returns; ``failures`` is a
    queue of exceptions raised by the next executions. Transaction calls and
    raw SQL are recorded in ``events``.
    """

    def __init__(self, driver: str = 'sqlite') -> None:
        self.driver = driver
        self.prepared: List[str] = []
        self.executed: List[Tuple[str, List[BoundValue]]] = []
        self.events: List[str] = []
        self.failures: List[Exception] = []
        self.responses: Dict[str, StatementResult] = {}
        self.insert_id: Optional[Any] = None
        self.closed = False

    def prepare(self, sql: str) -> PreparedStatement:
        self.prepared.append(sql)
        return FakeStatement(self, sql)

    def respond(self, sql: str) -> StatementResult:
        result = self.responses.get(sql, StatementResult(rows=[], row_count=0))
        if result.last_insert_id is not None:
            self.insert_id = result.last_insert_id
        return result

    def begin_transaction(self) -> None:
        self.events.append('BEGIN')

    def commit(self) -> None:
        self.events.append('COMMIT')

    def rollback(self) -> None:
        self.events.append('ROLLBACK')

    def exec(self, raw_sql: str) -> None:
        self.events.append(raw_sql)

    def driver_name(self) -> str:
        return self.driver

    def last_insert_id(self) -> Optional[Any]:
        return self.insert_id

    def close(self) -> None:
        self.closed = True

    def sql_log(self) -> List[str]:
        """SQL text of every execution, in order."""
        return [sql for sql, _ in self.executed]

    def params(self, index: int = -1) -> List[Any]:
        """Raw bound values of one execution."""
        return [bound.value for bound in self.executed[index][1]]


class FakeAdapter(BaseAdapter):
    """Opens :class:`FakeConnection`s; ``options`` pick the dialect or force a failure."""

    def connect(self) -> DriverConnection:
        if self.config.driver_options.get('fail_connect'):
            raise RuntimeError('connection refused')
        return FakeConnection(self.config.driver_options.get('driver', 'sqlite'))


@pytest.fixture
def adapter_factory() -> AdapterFactory:
    """Adapter factory that also knows the ``fake://`` backend."""
    factory = AdapterFactory()
    factory.register_adapter('fake', FakeAdapter)
    return factory


@pytest.fixture
def manager(adapter_factory: AdapterFactory) -> ConnectionManager:
    manager = ConnectionManager(adapter_factory=adapter_factory)
    manager.add('default', {'dsn': 'fake://'})
    return manager


@pytest.fixture
def fake_db(adapter_factory: AdapterFactory) -> QueryBuilder:
    """Builder on a fake sqlite-dialect connection (double-quoted identifiers)."""
    return QueryBuilder.create({'default': {'dsn': 'fake://'}}, adapter_factory=adapter_factory)


@pytest.fixture
def fake_conn(fake_db: QueryBuilder) -> FakeConnection:
    return fake_db.connections.connection('default')


@pytest.fixture
def sqlite_db() -> QueryBuilder:
    """Builder on an in-memory SQLite database with a ``users`` table."""
    db = QueryBuilder.create({'default': {'dsn': 'sqlite://'}})
    db.raw_query(
        "CREATE TABLE users ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "name TEXT NOT NULL, "
        "age INTEGER, "
        "active BOOLEAN DEFAULT 1)"
    )
    try:
        yield db
    finally:
        db.connections.close_all_connections()

