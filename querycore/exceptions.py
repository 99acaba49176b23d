"""Core exceptions for querycore."""

from typing import Any, Dict, Optional


class QueryCoreError(Exception):
    """Base exception for all querycore errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(QueryCoreError):
    """Raised when a connection configuration is missing or invalid."""
    pass


class IdentifierError(QueryCoreError):
    """Raised when a table, column or alias name is not a safe identifier."""

    def __init__(
        self,
        message: str,
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.identifier = identifier


class UnsupportedOperatorError(QueryCoreError):
    """Raised when a comparison operator is outside the allowed set."""

    def __init__(self, operator: str, allowed: Optional[list] = None):
        super().__init__(
            f"Unsupported operator: {operator}",
            {"operator": operator, "allowed": list(allowed or [])},
        )
        self.operator = operator


class UnsafeJoinExpressionError(QueryCoreError):
    """Raised when a join condition is not a plain ``left op right`` comparison."""

    def __init__(self, expression: str):
        super().__init__(
            "Unsafe/unsupported join expression",
            {"expression": expression},
        )
        self.expression = expression


class ArgumentError(QueryCoreError):
    """Raised when builder arguments or row data are empty, mismatched or of the wrong type."""
    pass


class PolicyError(QueryCoreError):
    """Raised when a statement would touch a whole table without a filter."""
    pass


class TransactionError(QueryCoreError):
    """Raised when a nested transaction operation needs SAVEPOINT support the dialect lacks."""

    def __init__(
        self,
        message: str,
        connection: Optional[str] = None,
        driver: Optional[str] = None,
    ):
        super().__init__(message, {"connection": connection, "driver": driver})
        self.connection = connection
        self.driver = driver


class ExecutionError(QueryCoreError):
    """Raised when the driver fails to prepare or execute a statement.

    ``details`` holds the error context: connection, sql, sanitized params,
    duration_ms, error and exception.
    """

    @property
    def sql(self) -> Optional[str]:
        return self.details.get("sql")

    @property
    def connection(self) -> Optional[str]:
        return self.details.get("connection")
