"""Optional observability and resilience callbacks.

Each hook receives a read-only mapping. All hooks are optional and are
supplied explicitly by the caller; there is no global registry.

``before_query``  ``{connection, sql, params}``
``after_query``   ``{connection, sql, params, duration_ms, row_count, rows}``
``on_error``      ``{connection, sql, params, duration_ms, error, exception}``
``on_connect``    ``{connection, config, driver}``
``retry_decider`` ``{connection, sql, params, exception, context}`` returning
                  ``{retries, delay_ms, fetch_rows}`` or None
``health_check``  ``{connection}`` returning a bool
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

HookContext = Mapping[str, Any]


@dataclass
class DbHooks:
    """Callbacks invoked by the connection manager and query executor."""
    before_query: Optional[Callable[[HookContext], None]] = None
    after_query: Optional[Callable[[HookContext], None]] = None
    on_error: Optional[Callable[[HookContext], None]] = None
    on_connect: Optional[Callable[[HookContext], None]] = None
    retry_decider: Optional[Callable[[HookContext], Optional[Mapping[str, Any]]]] = None
    health_check: Optional[Callable[[HookContext], bool]] = None


def frozen_context(context: Dict[str, Any]) -> HookContext:
    """Wrap a context dict so hooks cannot mutate it."""
    return MappingProxyType(dict(context))
