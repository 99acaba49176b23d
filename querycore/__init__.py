"""querycore: a safe, parameterized SQL query builder.

querycore provides:
- Identifier validation and dialect-aware quoting
- A fluent builder compiling to parameterized SQL
- Lazily opened named connections with prepared statement caching
- Nested transactions through savepoints
- Query hooks, retry and debug logging
- YAML-based configuration
"""

__version__ = "0.1.0"

# Core exports
from querycore.exceptions import (
    ArgumentError,
    ConfigurationError,
    ExecutionError,
    IdentifierError,
    PolicyError,
    QueryCoreError,
    TransactionError,
    UnsafeJoinExpressionError,
    UnsupportedOperatorError,
)
from querycore.hooks import DbHooks
from querycore.query.builder import QueryBuilder, create
from querycore.query.results import FetchMode, Record

__all__ = [
    "__version__",
    # Builder
    "QueryBuilder",
    "create",
    "DbHooks",
    "FetchMode",
    "Record",
    # Errors
    "QueryCoreError",
    "ConfigurationError",
    "IdentifierError",
    "UnsupportedOperatorError",
    "UnsafeJoinExpressionError",
    "ArgumentError",
    "PolicyError",
    "TransactionError",
    "ExecutionError",
]
