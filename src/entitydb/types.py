"""
Type handling between Python record fields and database values.

This module provides:
- SUPPORTED_TYPES: field types that map to a column
- TypeConverter: Convert outbound Python values to driver-compatible values
- to_python: Convert a scanned driver value to a field's declared type
"""
import datetime
import decimal
import logging
import math
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd

from entitydb.exceptions import TypeConversionError

logger = logging.getLogger(__name__)

SUPPORTED_TYPES: tuple[type, ...] = (
    bool, int, float, str, bytes, decimal.Decimal,
    datetime.datetime, datetime.date, datetime.time,
)

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


def _convert_numpy_value(val: Any) -> float | int | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64) and np.isnat(val):
        return None

    if isinstance(val, np.bool_):
        return bool(val)

    if isinstance(val, (np.floating, np.integer | np.unsignedinteger)):
        return val.item()

    if isinstance(val, np.datetime64):
        return pd.Timestamp(val).to_pydatetime()

    return val


class TypeConverter:
    """Universal type conversion for outbound parameters.

    Handles NumPy and Pandas scalars so records populated from data frames
    can be saved directly.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        return value


def _to_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        return dateutil.parser.isoparse(value)
    if isinstance(value, int | float):
        return datetime.datetime.fromtimestamp(value)
    raise TypeError(f'cannot interpret {type(value).__name__} as datetime')


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return _to_datetime(value).date()


def _to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.time):
        return value
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        return datetime.time.fromisoformat(value)
    if isinstance(value, datetime.timedelta):
        return (datetime.datetime.min + value).time()
    raise TypeError(f'cannot interpret {type(value).__name__} as time')


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {'1', 't', 'true', 'y', 'yes'}:
            return True
        if lowered in {'0', 'f', 'false', 'n', 'no'}:
            return False
        raise ValueError(f'invalid boolean literal {value!r}')
    return bool(value)


def _to_int(value: Any) -> int:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f'{value!r} is not integral')
    if isinstance(value, bytes):
        value = value.decode()
    return int(value)


def _to_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, memoryview):
        return value.tobytes()
    if isinstance(value, str):
        return value.encode()
    return bytes(value)


def _to_decimal(value: Any) -> decimal.Decimal:
    if isinstance(value, float):
        return decimal.Decimal(repr(value))
    return decimal.Decimal(value)


_CONVERTERS = {
    bool: _to_bool,
    int: _to_int,
    float: float,
    str: _to_str,
    bytes: _to_bytes,
    decimal.Decimal: _to_decimal,
    datetime.datetime: _to_datetime,
    datetime.date: _to_date,
    datetime.time: _to_time,
}


def to_python(value: Any, python_type: type | None) -> Any:
    """Convert a scanned driver value to `python_type`.

    Values already of the target type are returned unchanged. `None`
    passes through.

    Raises
        TypeConversionError: If the value cannot be represented
    """
    if value is None or python_type is None:
        return value
    if type(value) is python_type:
        return value
    converter = _CONVERTERS.get(python_type)
    if converter is None:
        return value
    try:
        return converter(value)
    except (TypeError, ValueError, ArithmeticError, OverflowError) as err:
        raise TypeConversionError(
            f'cannot convert {value!r} to {python_type.__name__}: {err}') from err
