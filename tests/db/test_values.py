"""Tests for typed parameter values."""

import uuid
from datetime import date, datetime, time
from decimal import Decimal

import pytest

from querycore.db.values import BoundValue, ParamType, bind_value, bind_values
from querycore.exceptions import ArgumentError


class TestBindValue:
    """Test conversion of Python values to bound values."""

    def test_none(self):
        assert bind_value(None) == BoundValue(ParamType.NULL, None)

    def test_bool_before_int(self):
        assert bind_value(True) == BoundValue(ParamType.BOOL, True)
        assert bind_value(False).type == ParamType.BOOL

    def test_int(self):
        assert bind_value(42) == BoundValue(ParamType.INT, 42)

    def test_str(self):
        assert bind_value("abc") == BoundValue(ParamType.TEXT, "abc")

    def test_float_and_decimal_as_text(self):
        assert bind_value(1.5) == BoundValue(ParamType.TEXT, "1.5")
        assert bind_value(Decimal("10.25")) == BoundValue(ParamType.TEXT, "10.25")

    def test_temporal_values_as_isoformat(self):
        assert bind_value(date(2024, 1, 31)).value == "2024-01-31"
        assert bind_value(datetime(2024, 1, 31, 12, 30)).value == "2024-01-31T12:30:00"
        assert bind_value(time(8, 15)).value == "08:15:00"

    def test_uuid_as_text(self):
        value = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert bind_value(value) == BoundValue(ParamType.TEXT, str(value))

    @pytest.mark.parametrize("value", [b"bytes", {"a": 1}, [1, 2], object()])
    def test_unsupported_types_rejected(self, value):
        with pytest.raises(ArgumentError) as exc_info:
            bind_value(value)
        assert exc_info.value.details["type"] == type(value).__name__

    def test_bind_values_keeps_order(self):
        assert [b.type for b in bind_values([1, "a", None, True])] == [
            ParamType.INT, ParamType.TEXT, ParamType.NULL, ParamType.BOOL,
        ]
