"""Database connectivity and statement execution."""

from querycore.db.base import (
    BaseAdapter,
    DriverConnection,
    PreparedStatement,
    SQLAlchemyAdapter,
    StatementResult,
)
from querycore.db.connection import AdapterFactory, ConnectionManager
from querycore.db.identifiers import IdentifierQuoter
from querycore.db.statement_cache import StatementCache
from querycore.db.transaction_manager import TransactionManager
from querycore.db.adapters import (
    PostgreSQLAdapter,
    MySQLAdapter,
    SQLiteAdapter,
)

__all__ = [
    # Base classes
    "BaseAdapter",
    "DriverConnection",
    "PreparedStatement",
    "SQLAlchemyAdapter",
    "StatementResult",
    # Connection management
    "ConnectionManager",
    "AdapterFactory",
    "IdentifierQuoter",
    "StatementCache",
    "TransactionManager",
    # Database adapters
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "SQLiteAdapter",
]
