"""Output shapes for row-returning calls."""

import json
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union


class FetchMode(str, Enum):
    """How rows are returned to the caller."""
    ARRAY = "array"
    OBJECT = "object"
    JSON = "json"


class Record(Mapping[str, Any]):
    """An ordered, read-only row with attribute access.

    ``record.name`` and ``record["name"]`` are equivalent.
    """

    __slots__ = ('_fields',)

    def __init__(self, fields: Mapping[str, Any]) -> None:
        object.__setattr__(self, '_fields', dict(fields))

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __getattr__(self, name: str) -> Any:
        if name == '_fields':
            raise AttributeError(name)
        try:
            return self._fields[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Record is read-only")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Record):
            return self._fields == other._fields
        if isinstance(other, Mapping):
            return self._fields == dict(other)
        return NotImplemented

    def __reduce__(self):
        return (Record, (self._fields,))

    def __repr__(self) -> str:
        return f"Record({self._fields!r})"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._fields)


DEFAULT_JSON_OPTIONS: Dict[str, Any] = {'ensure_ascii': False}

Rows = Union[List[Dict[str, Any]], List[Record], str]


def shape_rows(
    rows: List[Dict[str, Any]],
    mode: FetchMode,
    json_options: Optional[Mapping[str, Any]] = None,
) -> Rows:
    """Convert mapping rows into the requested fetch mode."""
    if mode == FetchMode.JSON:
        options = dict(json_options if json_options is not None else DEFAULT_JSON_OPTIONS)
        options.setdefault('default', str)
        return json.dumps(rows, **options)
    if mode == FetchMode.OBJECT:
        return [Record(row) for row in rows]
    return rows


def first_row(shaped: Rows, mode: FetchMode) -> Optional[Any]:
    """Return the first row of a shaped result, or None.

    In JSON mode the document is decoded and the first row dict returned.
    """
    if mode == FetchMode.JSON:
        decoded = json.loads(shaped) if shaped else []
        if not isinstance(decoded, list) or not decoded:
            return None
        return decoded[0]
    return shaped[0] if shaped else None


def first_value(row: Optional[Mapping[str, Any]]) -> Optional[Any]:
    if not row:
        return None
    return next(iter(row.values()))
