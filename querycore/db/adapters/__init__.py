"""Database adapters for different database types."""

from querycore.db.adapters.postgresql import PostgreSQLAdapter
from querycore.db.adapters.mysql import MySQLAdapter
from querycore.db.adapters.sqlite import SQLiteAdapter

__all__ = [
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "SQLiteAdapter",
]
