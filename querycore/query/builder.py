"""Fluent query builder and execution facade.

Usage::

    db = QueryBuilder.create({"default": {"dsn": "sqlite:///app.db"}})
    users = db.where("active", 1).order_by("created_at", "DESC").limit(10).get("users")
    db.where("id", 7).update("users", {"active": 0})

Clauses accumulate on the builder until a terminal call (``get``,
``insert``, ``update``, ``delete``, ``raw_query`` ...) runs them. Every
terminal call clears the accumulated clauses, including when it raises.
"""

import copy
import logging
import math
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from querycore.config.models import ConnectionConfig, QueryCoreConfig
from querycore.db.connection import AdapterFactory, ConnectionManager
from querycore.db.operators import parse_join_expr
from querycore.db.transaction_manager import TransactionManager
from querycore.exceptions import ArgumentError
from querycore.hooks import DbHooks, frozen_context
from querycore.query.compiler import Columns, CompiledQuery, QueryCompiler
from querycore.query.executor import QueryExecutor
from querycore.query.results import (
    DEFAULT_JSON_OPTIONS,
    FetchMode,
    Record,
    Rows,
    first_row,
    first_value,
    shape_rows,
)
from querycore.query.state import Condition, Join, OrderTerm, QueryState

logger = logging.getLogger(__name__)

JOIN_TYPES = ('INNER', 'LEFT', 'RIGHT')
ORDER_DIRECTIONS = ('ASC', 'DESC')


class QueryBuilder:
    """Builds and runs parameterized queries on one named connection."""

    def __init__(
        self,
        connections: ConnectionManager,
        connection: str = 'default',
        hooks: Optional[DbHooks] = None,
    ) -> None:
        """Initialize the builder.

        Args:
            connections: Shared connection manager.
            connection: Name of the connection this builder runs on.
            hooks: Optional hooks for query execution and health checks.
        """
        self.connections = connections
        self.connection_name = connection
        self.hooks = hooks
        self._state = QueryState()
        self._executor = QueryExecutor(connections, connection, hooks)
        self._transactions = TransactionManager(connections)
        self._fetch_mode = FetchMode.ARRAY
        self._json_options: Dict[str, Any] = dict(DEFAULT_JSON_OPTIONS)

    @classmethod
    def create(
        cls,
        connections: Mapping[str, Union[ConnectionConfig, Mapping[str, Any]]],
        default: str = 'default',
        hooks: Optional[DbHooks] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ) -> "QueryBuilder":
        """Build a connection manager from configs and return a builder on ``default``."""
        manager = ConnectionManager.from_mapping(connections, hooks, adapter_factory)
        return cls(manager, default, hooks)

    @classmethod
    def from_config(
        cls,
        config: QueryCoreConfig,
        hooks: Optional[DbHooks] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ) -> "QueryBuilder":
        """Build a builder from a loaded :class:`QueryCoreConfig`."""
        manager = ConnectionManager.from_config(config, hooks, adapter_factory)
        builder = cls(manager, config.default_connection, hooks)
        builder.debug(config.debug, config.debug_max_log)
        builder.error_mode(config.error_mode)
        return builder

    def with_connection(self, name: str) -> "QueryBuilder":
        """Return an independent builder bound to connection ``name``.

        The connection manager is shared; clauses, modes and the debug log
        are copied.
        """
        clone = QueryBuilder(self.connections, name, self.hooks)
        clone._state = copy.deepcopy(self._state)
        clone._executor = self._executor.clone_for(name)
        clone._fetch_mode = self._fetch_mode
        clone._json_options = dict(self._json_options)
        return clone

    # ------------------------------------------------------------------
    # Modes and introspection
    # ------------------------------------------------------------------

    def debug(self, enabled: bool = True, max_log_size: int = 200) -> "QueryBuilder":
        self._executor.set_debug(enabled, max_log_size)
        return self

    def error_mode(self, mode: str) -> "QueryBuilder":
        self._executor.set_error_mode(mode)
        return self

    def as_array(self) -> "QueryBuilder":
        self._fetch_mode = FetchMode.ARRAY
        return self

    def as_object(self) -> "QueryBuilder":
        self._fetch_mode = FetchMode.OBJECT
        return self

    def as_json(self, **dumps_options: Any) -> "QueryBuilder":
        """Return rows as one JSON document; options are passed to ``json.dumps``."""
        self._fetch_mode = FetchMode.JSON
        if dumps_options:
            self._json_options = dumps_options
        return self

    @property
    def fetch_mode(self) -> FetchMode:
        return self._fetch_mode

    @property
    def state(self) -> QueryState:
        return self._state

    def query_log(self) -> List[Dict[str, Any]]:
        return self._executor.query_log

    def last_error(self) -> Optional[Dict[str, Any]]:
        return self._executor.last_error

    def last_query(self) -> Optional[Dict[str, Any]]:
        return self._executor.last_query

    def transaction_depth(self) -> int:
        return self.connections.transaction_depth(self.connection_name)

    # ------------------------------------------------------------------
    # Clauses
    # ------------------------------------------------------------------

    def where(self, column: str, value: Any, operator: str = '=') -> "QueryBuilder":
        self._state.where.append(Condition('AND', column, operator, value))
        return self

    def or_where(self, column: str, value: Any, operator: str = '=') -> "QueryBuilder":
        self._state.where.append(Condition('OR', column, operator, value))
        return self

    def having(self, column: str, value: Any, operator: str = '=') -> "QueryBuilder":
        self._state.having.append(Condition('AND', column, operator, value))
        return self

    def or_having(self, column: str, value: Any, operator: str = '=') -> "QueryBuilder":
        self._state.having.append(Condition('OR', column, operator, value))
        return self

    def join(self, table: str, on: str, type: str = 'LEFT', alias: Optional[str] = None) -> "QueryBuilder":
        """Add a join on a ``left op right`` column comparison.

        Raises:
            ArgumentError: If ``type`` is not INNER, LEFT or RIGHT.
            UnsafeJoinExpressionError: If ``on`` is not a plain column comparison.
        """
        join_type = type.strip().upper()
        if join_type not in JOIN_TYPES:
            raise ArgumentError(f"Unsupported join type: {join_type}", {"type": join_type})

        left, op, right = parse_join_expr(on)
        self._state.joins.append(Join(join_type, table, alias, left, op, right))
        return self

    def group_by(self, columns: Union[str, Sequence[str]]) -> "QueryBuilder":
        cols = [columns] if isinstance(columns, str) else list(columns)
        for column in cols:
            column = str(column).strip()
            if column:
                self._state.group_by.append(column)
        return self

    def order_by(self, column: str, direction: str = 'ASC') -> "QueryBuilder":
        """Add an ORDER BY term.

        Raises:
            ArgumentError: If ``direction`` is not ASC or DESC.
        """
        normalized = direction.strip().upper()
        if normalized not in ORDER_DIRECTIONS:
            raise ArgumentError(f"Invalid order direction: {direction}", {"direction": direction})
        self._state.order_by.append(OrderTerm(column, normalized))
        return self

    def limit(self, limit: int) -> "QueryBuilder":
        self._state.limit = max(0, int(limit))
        return self

    def offset(self, offset: int) -> "QueryBuilder":
        self._state.offset = max(0, int(offset))
        return self

    # ------------------------------------------------------------------
    # Terminal calls
    # ------------------------------------------------------------------

    def get(self, table: str, limit: Optional[int] = None, columns: Columns = '*') -> Rows:
        """Run a SELECT and return rows in the current fetch mode."""
        try:
            if limit is not None:
                self.limit(limit)
            compiled = self._compiler().compile_select(self._state, table, columns)
            return self._fetch(compiled)
        finally:
            self._state.reset()

    def get_one(self, table: str, columns: Columns = '*') -> Optional[Any]:
        """Return the first row, or None.

        In JSON mode the row is returned as a decoded dict.
        """
        rows = self.get(table, 1, columns)
        return first_row(rows, self._fetch_mode)

    def get_value(self, table: str, column: str) -> Optional[Any]:
        return first_value(self.get_one(table, [column]))

    def paginate(self, table: str, page: int, per_page: int, columns: Columns = '*') -> Dict[str, Any]:
        """Return one page of rows plus pagination metadata.

        The total comes from a COUNT query over the same joins and filters.
        The requested page is clamped into ``1..pages``.
        """
        try:
            page = max(1, int(page))
            per_page = max(1, int(per_page))
            compiler = self._compiler()

            count = compiler.compile_count(self._state, table)
            count_rows = self._executor.run(count.sql, count.params, fetch_rows=True)
            total = int(first_value(count_rows[0]) or 0) if count_rows else 0

            pages = max(1, math.ceil(total / per_page))
            page = min(page, pages)
            self._state.limit = per_page
            self._state.offset = (page - 1) * per_page

            data = self._fetch(compiler.compile_select(self._state, table, columns))
        finally:
            self._state.reset()

        return {
            'data': data,
            'pagination': {
                'total': total,
                'page': page,
                'per_page': per_page,
                'pages': pages,
                'has_prev': page > 1,
                'has_next': page < pages,
            },
        }

    def insert(self, table: str, data: Mapping[str, Any]) -> Optional[Any]:
        """Insert one row and return the driver's last insert id.

        Returns None when the insert failed under ``"safe"`` error mode.
        """
        try:
            compiled = self._compiler().compile_insert(table, data)
            self._executor.run(compiled.sql, compiled.params, fetch_rows=False)
        finally:
            self._state.reset()

        if self._executor.last_error is not None:
            return None
        return self.connections.connection(self.connection_name).last_insert_id()

    def insert_multi(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert rows sharing the same keys in one statement; returns the affected count."""
        try:
            compiled = self._compiler().compile_insert_multi(table, rows)
            return self._execute(compiled)
        finally:
            self._state.reset()

    def update(self, table: str, data: Mapping[str, Any]) -> int:
        """Update rows matching the WHERE predicates; at least one is required."""
        try:
            compiled = self._compiler().compile_update(self._state, table, data)
            return self._execute(compiled)
        finally:
            self._state.reset()

    def delete(self, table: str, limit: Optional[int] = None) -> int:
        """Delete rows matching the WHERE predicates; at least one is required."""
        try:
            if limit is not None:
                self.limit(limit)
            compiled = self._compiler().compile_delete(self._state, table)
            return self._execute(compiled)
        finally:
            self._state.reset()

    def raw_query(self, sql: str, params: Sequence[Any] = ()) -> Rows:
        """Run caller-written SQL with ``?`` placeholders; rows follow the fetch mode."""
        try:
            return self._fetch(CompiledQuery(sql, tuple(params)))
        finally:
            self._state.reset()

    def raw_query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """Return the first row of a raw query, or None.

        Rows are plain dicts, or :class:`Record` in object mode.
        """
        try:
            rows = self._executor.run(sql, params, fetch_rows=True)
        finally:
            self._state.reset()

        if not rows:
            return None
        if self._fetch_mode == FetchMode.OBJECT:
            return Record(rows[0])
        return rows[0]

    def raw_query_value(self, sql: str, params: Sequence[Any] = ()) -> Optional[Any]:
        return first_value(self.raw_query_one(sql, params))

    # ------------------------------------------------------------------
    # Transactions and health
    # ------------------------------------------------------------------

    def start_transaction(self) -> None:
        """Begin a transaction, or a savepoint if one is already open."""
        self._transactions.begin(self.connection_name)

    def commit(self) -> None:
        self._transactions.commit(self.connection_name)

    def rollback(self) -> None:
        self._transactions.rollback(self.connection_name)

    @contextmanager
    def transaction(self) -> Iterator["QueryBuilder"]:
        """Run a block inside a (possibly nested) transaction.

        Commits when the block finishes and rolls back if it raises.
        """
        self.start_transaction()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()

    def health_check(self) -> bool:
        """Ask the health-check hook, or run ``SELECT 1`` on the connection."""
        if self.hooks is not None and self.hooks.health_check is not None:
            return bool(self.hooks.health_check(frozen_context({'connection': self.connection_name})))

        try:
            statement = self.connections.connection(self.connection_name).prepare('SELECT 1')
            statement.execute()
            return True
        except Exception as e:
            logger.warning(f"Health check failed for '{self.connection_name}': {e}")
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _compiler(self) -> QueryCompiler:
        return QueryCompiler(self.connections.quoter(self.connection_name))

    def _fetch(self, compiled: CompiledQuery) -> Rows:
        rows = self._executor.run(compiled.sql, compiled.params, fetch_rows=True)
        return shape_rows(rows, self._fetch_mode, self._json_options)

    def _execute(self, compiled: CompiledQuery) -> int:
        return int(self._executor.run(compiled.sql, compiled.params, fetch_rows=False))


def create(
    connections: Mapping[str, Union[ConnectionConfig, Mapping[str, Any]]],
    default: str = 'default',
    hooks: Optional[DbHooks] = None,
) -> QueryBuilder:
    """Convenience factory for :meth:`QueryBuilder.create`."""
    return QueryBuilder.create(connections, default, hooks)
