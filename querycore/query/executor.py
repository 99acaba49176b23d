"""Hook-driven statement execution with retry and error-mode policy."""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from querycore.db.base import StatementResult
from querycore.db.connection import ConnectionManager
from querycore.db.values import BoundValue, bind_values
from querycore.exceptions import ArgumentError, ExecutionError
from querycore.hooks import DbHooks, frozen_context
from querycore.log import sanitize_params

logger = logging.getLogger(__name__)

ERROR_MODES = ('exception', 'safe')


class _FailedAttempt(Exception):
    """One failed execution attempt and its recorded error context."""

    def __init__(self, error: Exception, context: Dict[str, Any]) -> None:
        super().__init__(str(error))
        self.error = error
        self.context = context


class QueryExecutor:
    """Runs compiled SQL on one named connection.

    For each statement the executor clears the previous error, calls the
    before-hook, binds and executes through the statement cache, then
    records the outcome (last query, debug log, after/error hooks). A
    failure may be retried if the retry decider asks for it; after that
    the error mode decides between raising :class:`ExecutionError` and
    returning an empty result.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        connection_name: str = 'default',
        hooks: Optional[DbHooks] = None,
    ) -> None:
        self.connection_manager = connection_manager
        self.connection_name = connection_name
        self.hooks = hooks
        self.debug_enabled = False
        self.debug_max_log = 200
        self.error_mode = 'exception'
        self._query_log: List[Dict[str, Any]] = []
        self.last_error: Optional[Dict[str, Any]] = None
        self.last_query: Optional[Dict[str, Any]] = None

    def clone_for(self, connection_name: str) -> "QueryExecutor":
        """Copy settings and log into an executor bound to another connection."""
        clone = QueryExecutor(self.connection_manager, connection_name, self.hooks)
        clone.debug_enabled = self.debug_enabled
        clone.debug_max_log = self.debug_max_log
        clone.error_mode = self.error_mode
        clone._query_log = [dict(entry) for entry in self._query_log]
        return clone

    def set_debug(self, enabled: bool = True, max_log: int = 200) -> None:
        self.debug_enabled = enabled
        self.debug_max_log = max(0, max_log)
        self._trim_log()

    def set_error_mode(self, mode: str) -> None:
        """Select ``"exception"`` or ``"safe"``.

        Raises:
            ArgumentError: For any other mode.
        """
        mode = mode.strip().lower()
        if mode not in ERROR_MODES:
            raise ArgumentError('error_mode must be "exception" or "safe"', {"mode": mode})
        self.error_mode = mode

    @property
    def query_log(self) -> List[Dict[str, Any]]:
        return [dict(entry) for entry in self._query_log]

    def run(self, sql: str, params: Sequence[Any], fetch_rows: bool) -> Union[List[Dict[str, Any]], int]:
        """Execute ``sql`` and return its rows or affected-row count.

        Args:
            sql: SQL with positional ``?`` placeholders.
            params: Placeholder values.
            fetch_rows: Return rows (True) or the affected-row count (False).

        Returns:
            A list of mapping rows, or an int. Under ``"safe"`` error mode a
            failed statement yields ``[]`` or ``0``.

        Raises:
            ArgumentError: If a parameter has an unsupported type.
            ExecutionError: If execution fails under ``"exception"`` error mode.
        """
        self.last_error = None
        self.last_query = None

        params = list(params)
        bound = bind_values(params)
        self.connection_manager.get_config(self.connection_name)

        try:
            return self._attempt(sql, params, bound, fetch_rows)
        except _FailedAttempt as failed:
            outcome = self._retry(sql, params, bound, fetch_rows, failed)
            if outcome is not None:
                return outcome[0]
            return self._apply_error_mode(fetch_rows, "Database query failed", failed)

    def _attempt(
        self,
        sql: str,
        params: List[Any],
        bound: List[BoundValue],
        fetch_rows: bool,
        returns_rows: Optional[bool] = None,
    ) -> Union[List[Dict[str, Any]], int]:
        """Execute once. The after-hook runs inside the failure guard.

        ``fetch_rows`` decides whether rows are read from the driver,
        ``returns_rows`` (defaults to ``fetch_rows``) the shape handed back.
        """
        if returns_rows is None:
            returns_rows = fetch_rows
        start = time.perf_counter()
        self._call_hook('before_query', {
            'connection': self.connection_name,
            'sql': sql,
            'params': sanitize_params(params),
        })

        try:
            statement = self.connection_manager.statement(self.connection_name, sql)
            statement.reset()
            for position, value in enumerate(bound, start=1):
                statement.bind_value(position, value)
            result = statement.execute()
            duration_ms = (time.perf_counter() - start) * 1000
            rows = self._record_success(sql, params, duration_ms, result, fetch_rows)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            raise _FailedAttempt(e, self._record_failure(sql, params, e, duration_ms)) from e

        if returns_rows:
            return rows if rows is not None else []
        return result.row_count

    def _retry(
        self,
        sql: str,
        params: List[Any],
        bound: List[BoundValue],
        fetch_rows: bool,
        failed: _FailedAttempt,
    ) -> Optional[Tuple[Union[List[Dict[str, Any]], int]]]:
        """Run the attempts requested by the retry decider.

        Returns:
            A one-tuple holding the successful result, or None when no retry
            was requested.

        Raises:
            ExecutionError: When every retry failed under ``"exception"`` mode.
        """
        decision = self._retry_decision(sql, params, failed)
        if decision is None:
            return None

        retries, delay_ms, retry_fetch_rows = decision
        if retry_fetch_rows is None:
            retry_fetch_rows = fetch_rows

        last = failed
        for attempt in range(1, retries + 1):
            if delay_ms > 0:
                time.sleep(delay_ms / 1000)
            logger.info(f"Retrying query on '{self.connection_name}' (attempt {attempt}/{retries})")
            try:
                return (self._attempt(sql, params, bound, retry_fetch_rows, fetch_rows),)
            except _FailedAttempt as again:
                last = again

        return (self._apply_error_mode(fetch_rows, "Database query failed after retries", last),)

    def _retry_decision(
        self,
        sql: str,
        params: List[Any],
        failed: _FailedAttempt,
    ) -> Optional[Tuple[int, int, Optional[bool]]]:
        if self.hooks is None or self.hooks.retry_decider is None:
            return None

        decision = self.hooks.retry_decider(frozen_context({
            'connection': self.connection_name,
            'sql': sql,
            'params': sanitize_params(params),
            'exception': failed.error,
            'context': frozen_context(failed.context),
        }))
        if not isinstance(decision, Mapping):
            return None

        retries = int(decision.get('retries') or 0)
        if retries <= 0:
            return None

        delay_ms = max(0, int(decision.get('delay_ms') or 0))
        fetch_rows = decision.get('fetch_rows')
        return retries, delay_ms, None if fetch_rows is None else bool(fetch_rows)

    def _apply_error_mode(self, fetch_rows: bool, message: str, failed: _FailedAttempt) -> Union[List[Any], int]:
        if self.error_mode == 'safe':
            logger.warning(f"{message} on '{self.connection_name}' (safe mode): {failed.error}")
            return [] if fetch_rows else 0
        raise ExecutionError(message, dict(failed.context)) from failed.error

    def _record_success(
        self,
        sql: str,
        params: List[Any],
        duration_ms: float,
        result: StatementResult,
        fetch_rows: bool,
    ) -> Optional[List[Dict[str, Any]]]:
        rows = (result.rows or []) if fetch_rows else None
        context = {
            'connection': self.connection_name,
            'sql': sql,
            'params': sanitize_params(params),
            'duration_ms': duration_ms,
            'row_count': result.row_count,
        }
        self.last_error = None
        self.last_query = context
        self._push_log({'ok': True, **context})
        logger.debug(f"Query on '{self.connection_name}' took {duration_ms:.2f}ms: {sql[:100]}")
        self._call_hook('after_query', {**context, 'rows': rows})
        return rows

    def _record_failure(self, sql: str, params: List[Any], error: Exception, duration_ms: float) -> Dict[str, Any]:
        sanitized = sanitize_params(params)
        context = {
            'connection': self.connection_name,
            'sql': sql,
            'params': sanitized,
            'duration_ms': duration_ms,
            'error': str(error),
            'exception': type(error).__name__,
        }
        self.last_error = context
        self.last_query = {
            'sql': sql,
            'params': sanitized,
            'duration_ms': duration_ms,
        }
        self._push_log({'ok': False, **context})
        logger.error(f"Query on '{self.connection_name}' failed after {duration_ms:.2f}ms: {error}")
        self._call_hook('on_error', context)
        return context

    def _push_log(self, entry: Dict[str, Any]) -> None:
        if not self.debug_enabled or self.debug_max_log <= 0:
            return
        self._query_log.append(entry)
        self._trim_log()

    def _trim_log(self) -> None:
        overflow = len(self._query_log) - self.debug_max_log
        if overflow > 0:
            del self._query_log[:overflow]

    def _call_hook(self, hook_name: str, context: Dict[str, Any]) -> None:
        if self.hooks is None:
            return
        hook = getattr(self.hooks, hook_name)
        if hook is not None:
            hook(frozen_context(context))
