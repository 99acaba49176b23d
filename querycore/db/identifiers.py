"""Identifier validation and dialect-specific quoting.

This is the only place table, column and alias names enter SQL text. Values
never do: they are always bound as parameters.
"""

import re
from typing import Optional

from querycore.exceptions import IdentifierError

SAFE_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

BACKTICK_DIALECTS = frozenset({'mysql', 'mariadb'})
SAVEPOINT_DIALECTS = frozenset({'mysql', 'mariadb', 'postgresql', 'sqlite'})


class IdentifierQuoter:
    """Validates and quotes identifiers for one driver dialect."""

    def __init__(self, driver_name: str) -> None:
        self._driver = driver_name.strip().lower()
        if self._driver in BACKTICK_DIALECTS:
            self._open = self._close = '`'
        else:
            self._open = self._close = '"'

    @property
    def driver(self) -> str:
        return self._driver

    def supports_savepoints(self) -> bool:
        return self._driver in SAVEPOINT_DIALECTS

    def identifier(self, name: str) -> str:
        """Quote a simple identifier (no dots).

        Raises:
            IdentifierError: If the name is empty or not a safe identifier.
        """
        name = name.strip()
        if not SAFE_IDENTIFIER.fullmatch(name):
            raise IdentifierError(f"Unsafe identifier: {name}", identifier=name)
        return f"{self._open}{name}{self._close}"

    def identifier_with_dots(self, name: str) -> str:
        """Quote a possibly qualified name such as ``schema.table`` segment by segment."""
        name = name.strip()
        if not name:
            raise IdentifierError("Empty identifier", identifier=name)

        quoted = []
        for segment in name.split('.'):
            segment = segment.strip()
            if not SAFE_IDENTIFIER.fullmatch(segment):
                raise IdentifierError(f"Unsafe identifier segment: {segment}", identifier=name)
            quoted.append(f"{self._open}{segment}{self._close}")
        return '.'.join(quoted)

    def column_or_star(self, name: str) -> str:
        """Quote a column reference, allowing ``*`` and ``table.*``."""
        name = name.strip()
        if name == '*':
            return '*'
        if name.endswith('.*'):
            return self.identifier_with_dots(name[:-2]) + '.*'
        return self.identifier_with_dots(name)

    def table(self, name: str, alias: Optional[str] = None) -> str:
        quoted = self.identifier_with_dots(name)
        if not alias:
            return quoted
        return f"{quoted} AS {self.identifier(alias)}"
