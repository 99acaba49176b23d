"""Typed scalar parameter values.

Every parameter bound to a prepared statement is first converted into a
:class:`BoundValue`, whose :class:`ParamType` decides how the driver binds it.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Sequence, Union
from uuid import UUID

from querycore.exceptions import ArgumentError


class ParamType(str, Enum):
    """Binding types understood by the drivers."""
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    TEXT = "text"


@dataclass(frozen=True)
class BoundValue:
    """A parameter value tagged with its binding type."""
    type: ParamType
    value: Optional[Union[bool, int, str]]


def bind_value(value: Any) -> BoundValue:
    """Convert a Python value into a :class:`BoundValue`.

    ``bool`` is checked before ``int`` since it is an ``int`` subclass.
    Floats, decimals, temporal values and UUIDs are bound as text.

    Raises:
        ArgumentError: If the value has no binding rule.
    """
    if value is None:
        return BoundValue(ParamType.NULL, None)
    if isinstance(value, bool):
        return BoundValue(ParamType.BOOL, value)
    if isinstance(value, int):
        return BoundValue(ParamType.INT, value)
    if isinstance(value, str):
        return BoundValue(ParamType.TEXT, value)
    if isinstance(value, (float, Decimal, UUID)):
        return BoundValue(ParamType.TEXT, str(value))
    if isinstance(value, (datetime, date, time)):
        return BoundValue(ParamType.TEXT, value.isoformat())
    raise ArgumentError(
        f"Unsupported parameter type: {type(value).__name__}",
        {"type": type(value).__name__},
    )


def bind_values(values: Sequence[Any]) -> List[BoundValue]:
    return [bind_value(v) for v in values]
