"""Compilation of query state into parameterized SQL.

Every compile function is pure: it reads the state and arguments and
returns a :class:`CompiledQuery`. Identifiers go through the connection's
:class:`~querycore.db.identifiers.IdentifierQuoter`; values only ever appear
as ``?`` placeholders. LIMIT and OFFSET are the one exception, emitted as
integer literals because the builder has already floored them to
non-negative ints.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Sequence, Tuple, Union

from querycore.db.identifiers import IdentifierQuoter
from querycore.db.operators import normalize_operator
from querycore.exceptions import ArgumentError, PolicyError
from querycore.query.state import Condition, QueryState

Columns = Union[str, Sequence[str]]

SEQUENCE_TYPES = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class CompiledQuery:
    """The output of a successful compilation.

    Attributes:
        sql: SQL text with positional ``?`` placeholders.
        params: Values for the placeholders, in order.
    """

    sql: str
    params: Tuple[Any, ...] = ()


class QueryCompiler:
    """Turns :class:`QueryState` plus table/column/data arguments into SQL."""

    def __init__(self, quoter: IdentifierQuoter) -> None:
        self.quoter = quoter

    def compile_select(self, state: QueryState, table: str, columns: Columns = '*') -> CompiledQuery:
        sql, params = self._select_body(state, table, self._column_list(columns))

        if state.order_by:
            terms = [f"{self.quoter.column_or_star(o.column)} {o.direction}" for o in state.order_by]
            sql += ' ORDER BY ' + ', '.join(terms)
        if state.limit is not None:
            sql += f" LIMIT {int(state.limit)}"
        if state.offset is not None:
            sql += f" OFFSET {int(state.offset)}"

        return CompiledQuery(sql, tuple(params))

    def compile_count(self, state: QueryState, table: str) -> CompiledQuery:
        """Compile ``SELECT COUNT(*)`` over the same joins and filters.

        ORDER BY, LIMIT and OFFSET are left out.
        """
        sql, params = self._select_body(state, table, f"COUNT(*) AS {self.quoter.identifier('cnt')}")
        return CompiledQuery(sql, tuple(params))

    def compile_insert(self, table: str, data: Mapping[str, Any]) -> CompiledQuery:
        """Compile a single-row INSERT.

        Raises:
            ArgumentError: If ``data`` is empty.
        """
        if not data:
            raise ArgumentError("insert() requires non-empty data")

        columns = [self.quoter.identifier(str(key)) for key in data]
        placeholders = ', '.join('?' for _ in columns)
        sql = (
            f"INSERT INTO {self.quoter.table(table)} ({', '.join(columns)}) "
            f"VALUES ({placeholders})"
        )
        return CompiledQuery(sql, tuple(data.values()))

    def compile_insert_multi(self, table: str, rows: Sequence[Mapping[str, Any]]) -> CompiledQuery:
        """Compile one INSERT with a VALUES tuple per row.

        Raises:
            ArgumentError: If there are no rows, a row is empty or not a
                mapping, or the rows do not share the same keys in the same order.
        """
        if not rows:
            raise ArgumentError("insert_multi() requires non-empty rows")

        first = rows[0]
        if not isinstance(first, Mapping) or not first:
            raise ArgumentError("insert_multi() rows must be non-empty mappings")

        keys = list(first.keys())
        for index, row in enumerate(rows):
            if not isinstance(row, Mapping) or list(row.keys()) != keys:
                raise ArgumentError(
                    "insert_multi() requires rows with identical keys",
                    {"row": index, "expected_keys": keys},
                )

        columns = [self.quoter.identifier(str(key)) for key in keys]
        one_row = '(' + ', '.join('?' for _ in keys) + ')'
        params: List[Any] = []
        for row in rows:
            params.extend(row[key] for key in keys)

        sql = (
            f"INSERT INTO {self.quoter.table(table)} ({', '.join(columns)}) "
            f"VALUES {', '.join(one_row for _ in rows)}"
        )
        return CompiledQuery(sql, tuple(params))

    def compile_update(self, state: QueryState, table: str, data: Mapping[str, Any]) -> CompiledQuery:
        """Compile an UPDATE restricted by the WHERE predicates.

        Raises:
            ArgumentError: If ``data`` is empty.
            PolicyError: If there is no WHERE predicate.
        """
        if not data:
            raise ArgumentError("update() requires non-empty data")
        if not state.where:
            raise PolicyError("update() requires at least one where() condition", {"table": table})

        assignments = [f"{self.quoter.identifier(str(key))} = ?" for key in data]
        params: List[Any] = list(data.values())

        sql = f"UPDATE {self.quoter.table(table)} SET {', '.join(assignments)}"
        where_sql, where_params = self.compile_conditions(state.where, 'WHERE')
        sql += where_sql
        params.extend(where_params)

        if state.limit is not None:
            sql += f" LIMIT {int(state.limit)}"

        return CompiledQuery(sql, tuple(params))

    def compile_delete(self, state: QueryState, table: str) -> CompiledQuery:
        """Compile a DELETE restricted by the WHERE predicates.

        Raises:
            PolicyError: If there is no WHERE predicate.
        """
        if not state.where:
            raise PolicyError("delete() requires at least one where() condition", {"table": table})

        sql = f"DELETE FROM {self.quoter.table(table)}"
        where_sql, where_params = self.compile_conditions(state.where, 'WHERE')
        sql += where_sql

        if state.limit is not None:
            sql += f" LIMIT {int(state.limit)}"

        return CompiledQuery(sql, tuple(where_params))

    def compile_conditions(self, conditions: Sequence[Condition], prefix: str) -> Tuple[str, List[Any]]:
        """Compile WHERE or HAVING predicates.

        Returns:
            ``(" PREFIX ...", params)``, or ``("", [])`` for no predicates.

        Raises:
            UnsupportedOperatorError: For operators outside the allowed set.
            ArgumentError: For IN/NOT IN without a sequence, or IS/IS NOT
                with anything but None or a bool.
        """
        if not conditions:
            return '', []

        parts = []
        params: List[Any] = []

        for index, condition in enumerate(conditions):
            connective = '' if index == 0 else f" {condition.connective} "
            column = self.quoter.column_or_star(condition.column)
            op = normalize_operator(condition.operator)
            value = condition.value

            if op in ('IN', 'NOT IN'):
                if not isinstance(value, SEQUENCE_TYPES):
                    raise ArgumentError(f"{op} requires a sequence value", {"column": condition.column})
                values = list(value)
                if not values:
                    # empty IN matches nothing, empty NOT IN matches everything
                    parts.append(connective + ('0=1' if op == 'IN' else '1=1'))
                    continue
                placeholders = ', '.join('?' for _ in values)
                parts.append(f"{connective}{column} {op} ({placeholders})")
                params.extend(values)
                continue

            if op in ('IS', 'IS NOT'):
                if value is not None and not isinstance(value, bool):
                    raise ArgumentError(f"{op} requires None or a bool", {"column": condition.column})
                if value is None:
                    literal = 'NULL'
                else:
                    literal = 'TRUE' if value else 'FALSE'
                parts.append(f"{connective}{column} {op} {literal}")
                continue

            parts.append(f"{connective}{column} {op} ?")
            params.append(value)

        return f" {prefix} " + ''.join(parts), params

    def _column_list(self, columns: Columns) -> str:
        cols = [columns] if isinstance(columns, str) else list(columns)
        quoted = [self.quoter.column_or_star(str(c)) for c in cols if str(c).strip()]
        return ', '.join(quoted) if quoted else '*'

    def _select_body(self, state: QueryState, table: str, select_list: str) -> Tuple[str, List[Any]]:
        """SELECT .. FROM .. JOIN .. WHERE .. GROUP BY .. HAVING, shared by select and count."""
        sql = f"SELECT {select_list} FROM {self.quoter.table(table)}"
        params: List[Any] = []

        for join in state.joins:
            sql += (
                f" {join.type} JOIN {self.quoter.table(join.table, join.alias)} ON "
                f"{self.quoter.column_or_star(join.left)} {join.operator} "
                f"{self.quoter.column_or_star(join.right)}"
            )

        where_sql, where_params = self.compile_conditions(state.where, 'WHERE')
        sql += where_sql
        params.extend(where_params)

        if state.group_by:
            sql += ' GROUP BY ' + ', '.join(self.quoter.column_or_star(c) for c in state.group_by)

        having_sql, having_params = self.compile_conditions(state.having, 'HAVING')
        sql += having_sql
        params.extend(having_params)

        return sql, params
