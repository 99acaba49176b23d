"""Nested transaction management with positional savepoints.

Transaction depth per connection:

- 0: no transaction
- 1: one real transaction
- N > 1: the real transaction plus N - 1 savepoints named ``sp_2`` .. ``sp_N``
"""

import logging

from querycore.db.connection import ConnectionManager
from querycore.exceptions import TransactionError

logger = logging.getLogger(__name__)


def savepoint_name(depth: int) -> str:
    return f"sp_{depth}"


class TransactionManager:
    """Drives the per-connection transaction depth state machine."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self.connection_manager = connection_manager

    def begin(self, name: str) -> int:
        """Start a transaction, or a savepoint when one is already active.

        Returns:
            The new depth.

        Raises:
            TransactionError: If nesting is requested on a dialect without savepoints.
        """
        connection = self.connection_manager.connection(name)
        depth = self.connection_manager.transaction_depth(name)

        if depth == 0:
            connection.begin_transaction()
            self.connection_manager.set_transaction_depth(name, 1)
            logger.debug(f"Began transaction on '{name}'")
            return 1

        self._require_savepoints(name, "Nested transactions require SAVEPOINT support")
        new_depth = depth + 1
        connection.exec(f"SAVEPOINT {savepoint_name(new_depth)}")
        self.connection_manager.set_transaction_depth(name, new_depth)
        logger.debug(f"Created savepoint {savepoint_name(new_depth)} on '{name}'")
        return new_depth

    def commit(self, name: str) -> int:
        """Commit the innermost level; a no-op at depth 0.

        Returns:
            The new depth.
        """
        connection = self.connection_manager.connection(name)
        depth = self.connection_manager.transaction_depth(name)

        if depth <= 0:
            return 0

        if depth == 1:
            connection.commit()
            self.connection_manager.set_transaction_depth(name, 0)
            logger.debug(f"Committed transaction on '{name}'")
            return 0

        self._require_savepoints(name, "SAVEPOINT not supported for nested commit")
        connection.exec(f"RELEASE SAVEPOINT {savepoint_name(depth)}")
        self.connection_manager.set_transaction_depth(name, depth - 1)
        return depth - 1

    def rollback(self, name: str) -> int:
        """Roll back the innermost level; a no-op at depth 0.

        Returns:
            The new depth.
        """
        connection = self.connection_manager.connection(name)
        depth = self.connection_manager.transaction_depth(name)

        if depth <= 0:
            return 0

        if depth == 1:
            connection.rollback()
            self.connection_manager.set_transaction_depth(name, 0)
            logger.debug(f"Rolled back transaction on '{name}'")
            return 0

        self._require_savepoints(name, "SAVEPOINT not supported for nested rollback")
        connection.exec(f"ROLLBACK TO SAVEPOINT {savepoint_name(depth)}")
        self.connection_manager.set_transaction_depth(name, depth - 1)
        return depth - 1

    def _require_savepoints(self, name: str, message: str) -> None:
        quoter = self.connection_manager.quoter(name)
        if not quoter.supports_savepoints():
            raise TransactionError(message, connection=name, driver=quoter.driver)
