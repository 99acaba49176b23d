"""Per-connection prepared statement cache with FIFO eviction."""

import logging
from collections import OrderedDict
from dataclasses import dataclass

from querycore.db.base import DriverConnection, PreparedStatement

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Statement cache counters."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class StatementCache:
    """Maps SQL text to prepared statements for one connection.

    Entries are evicted oldest-inserted first once the cache holds more
    than ``max_entries``. A ``max_entries`` of 0 disables caching: every
    lookup prepares a fresh statement.
    """

    def __init__(self, max_entries: int = 128) -> None:
        self.max_entries = max(0, max_entries)
        self._cache: "OrderedDict[str, PreparedStatement]" = OrderedDict()
        self.stats = CacheStats()

    def get(self, connection: DriverConnection, sql: str) -> PreparedStatement:
        """Return the cached statement for ``sql``, preparing it on a miss.

        A cached statement still carries its previous bindings; callers
        must ``reset()`` it before binding.
        """
        if self.max_entries == 0:
            return connection.prepare(sql)

        statement = self._cache.get(sql)
        if statement is not None:
            self.stats.hits += 1
            return statement

        self.stats.misses += 1
        statement = connection.prepare(sql)
        self._cache[sql] = statement

        if len(self._cache) > self.max_entries:
            evicted, _ = self._cache.popitem(last=False)
            self.stats.evictions += 1
            logger.debug(f"Evicted prepared statement: {evicted[:50]}...")

        return statement

    def __contains__(self, sql: str) -> bool:
        return sql in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()
