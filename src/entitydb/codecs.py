"""
Value codecs between native Python types and their column representation.

A codec knows three things about one Python type:

1. How to bind a value into an outbound statement slot (`encode`)
2. How to read a value back out of a result row (`decode`)
3. Which SQL column type and width to declare for it (`column_type`)

Codecs are looked up by the exact declared type of a field (or the exact
runtime type of a bound value). There is no fallback to a base class: a
`bool` never resolves to the `int` codec and a `pandas.Timestamp` never
resolves to the `datetime` codec. A missing codec is not an error, callers
skip the field instead.

Usage:
    codecs = default_codecs()
    codec = codecs.lookup(str)
    codec.column_type(32)       # 'VARCHAR(32)'
"""
import datetime
import decimal
import logging
import uuid
from typing import Any, Protocol

import dateutil.parser
import numpy as np
import pandas as pd

from entitydb.exceptions import ConfigurationError, DecodeError

logger = logging.getLogger(__name__)

__all__ = [
    'Codec',
    'CodecRegistry',
    'default_codecs',
    'StringCodec',
    'IntegerCodec',
    'BooleanCodec',
    'FloatCodec',
    'DecimalCodec',
    'DatetimeCodec',
    'DateCodec',
    'BytesCodec',
    'UUIDCodec',
    'NumpyScalarCodec',
    'TimestampCodec',
]


class Bindable(Protocol):
    """Anything holding positional parameter slots, e.g. `engine.Statement`.
    """

    def bind(self, index: int, value: Any) -> None: ...


class Codec:
    """Base codec. Subclasses override `dump`/`load` and the SQL type attributes.
    """

    python_type: type = object
    sql_type: str = ''
    min_length: int = 0
    max_width: int | None = None
    sized: bool = True

    def dump(self, value: Any) -> Any:
        """Convert a native value to what the driver expects.
        """
        return value

    def load(self, value: Any) -> Any:
        """Convert a driver value to the native type.
        """
        return value

    def encode(self, statement: Bindable, index: int, value: Any) -> None:
        """Bind `value` into slot `index` (1-based) of `statement`.
        """
        statement.bind(index, None if value is None else self.dump(value))

    def decode(self, row: Any, target_type: type, column: str) -> Any:
        """Extract `column` from `row` as a native value.

        Raises
            DecodeError: If the column value cannot be converted
        """
        value = row[column]
        if value is None:
            return None
        try:
            return self.load(value)
        except (TypeError, ValueError, ArithmeticError, OverflowError) as err:
            raise DecodeError(
                f'Cannot decode column {column!r} of {target_type.__name__} '
                f'as {self.python_type.__name__}: {err}', column=column) from err

    def max_length(self, declared: int | None = 0) -> int:
        """Column width for DDL, `min_length` when nothing positive was declared.
        """
        length = declared if declared and declared > 0 else self.min_length
        if self.max_width is not None:
            length = min(length, self.max_width)
        return length

    def column_type(self, declared: int | None = 0) -> str:
        """Column type as written in CREATE TABLE, e.g. `VARCHAR(32)`.
        """
        if not self.sized:
            return self.sql_type
        return f'{self.sql_type}({self.max_length(declared)})'

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.python_type.__name__} -> {self.sql_type})'


class StringCodec(Codec):
    python_type = str
    sql_type = 'VARCHAR'
    min_length = 255
    max_width = 65535

    def load(self, value):
        if isinstance(value, bytes | bytearray):
            return bytes(value).decode('utf-8')
        return str(value)


class IntegerCodec(Codec):
    python_type = int
    sql_type = 'INT'
    min_length = 11
    max_width = 255

    def load(self, value):
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f'{value!r} is not integral')
        return int(value)


class BooleanCodec(Codec):
    python_type = bool
    sql_type = 'TINYINT'
    min_length = 1
    max_width = 1

    def dump(self, value):
        return int(value)

    def load(self, value):
        if isinstance(value, bytes | bytearray):
            return int.from_bytes(value, 'big') != 0
        if isinstance(value, str):
            value = value.strip().lower()
            if value in {'1', 'true', 't', 'yes', 'y'}:
                return True
            if value in {'0', 'false', 'f', 'no', 'n'}:
                return False
            raise ValueError(f'Unrecognized boolean {value!r}')
        return bool(value)


class FloatCodec(Codec):
    python_type = float
    sql_type = 'FLOAT'
    min_length = 53
    max_width = 53

    def load(self, value):
        return float(value)


class DecimalCodec(Codec):
    """Fixed-point numbers. The declared max length is the precision.
    """
    python_type = decimal.Decimal
    sql_type = 'DECIMAL'
    min_length = 18
    max_width = 65

    def __init__(self, scale: int = 4) -> None:
        self.scale = scale

    def load(self, value):
        if isinstance(value, decimal.Decimal):
            return value
        return decimal.Decimal(str(value))

    def column_type(self, declared=0):
        return f'{self.sql_type}({self.max_length(declared)},{self.scale})'


class DatetimeCodec(Codec):
    """Declared max length is the fractional seconds precision (0-6).
    """
    python_type = datetime.datetime
    sql_type = 'DATETIME'
    min_length = 0
    max_width = 6

    def load(self, value):
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time())
        if isinstance(value, bytes | bytearray):
            value = bytes(value).decode('ascii')
        if isinstance(value, str):
            return dateutil.parser.parse(value)
        raise TypeError(f'Cannot convert {type(value).__name__} to datetime')


class DateCodec(Codec):
    python_type = datetime.date
    sql_type = 'DATE'
    sized = False

    def load(self, value):
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        if isinstance(value, bytes | bytearray):
            value = bytes(value).decode('ascii')
        if isinstance(value, str):
            return dateutil.parser.parse(value).date()
        raise TypeError(f'Cannot convert {type(value).__name__} to date')


class BytesCodec(Codec):
    python_type = bytes
    sql_type = 'VARBINARY'
    min_length = 255
    max_width = 65535

    def load(self, value):
        if isinstance(value, str):
            return value.encode('utf-8')
        return bytes(value)


class UUIDCodec(Codec):
    """UUIDs stored in their canonical 36 character text form.
    """
    python_type = uuid.UUID
    sql_type = 'CHAR'
    min_length = 36

    def max_length(self, declared=0):
        return self.min_length

    def dump(self, value):
        return str(value)

    def load(self, value):
        if isinstance(value, uuid.UUID):
            return value
        if isinstance(value, bytes | bytearray) and len(value) == 16:
            return uuid.UUID(bytes=bytes(value))
        if isinstance(value, bytes | bytearray):
            value = bytes(value).decode('ascii')
        return uuid.UUID(str(value))


class NumpyScalarCodec(Codec):
    """Wraps a builtin codec for a NumPy scalar type.

    Values are unwrapped with `.item()` before binding and rewrapped into the
    NumPy type after loading, the column type is the builtin codec's.
    """

    def __init__(self, numpy_type: type, base: Codec) -> None:
        self.python_type = numpy_type
        self.base = base
        self.sql_type = base.sql_type
        self.min_length = base.min_length
        self.max_width = base.max_width
        self.sized = base.sized

    def dump(self, value):
        return self.base.dump(value.item())

    def load(self, value):
        return self.python_type(self.base.load(value))

    def column_type(self, declared=0):
        return self.base.column_type(declared)


class TimestampCodec(DatetimeCodec):
    python_type = pd.Timestamp

    def dump(self, value):
        return value.to_pydatetime()

    def load(self, value):
        return pd.Timestamp(super().load(value))


class CodecRegistry:
    """Registry of codecs keyed by exact Python type.

    Populated at startup, then frozen. Reads are safe from any thread once
    frozen because the mapping never changes again.
    """

    def __init__(self) -> None:
        self._codecs: dict[type, Codec] = {}
        self._frozen = False

    def register(self, python_type: type, codec: Codec) -> Codec:
        """Register `codec` for `python_type`, replacing any earlier codec.

        Raises
            ConfigurationError: If the registry has been frozen
        """
        if self._frozen:
            raise ConfigurationError(
                f'Cannot register a codec for {python_type!r}: registry is frozen')
        self._codecs[python_type] = codec
        logger.debug(f'Registered codec {codec!r} for {python_type!r}')
        return codec

    def lookup(self, python_type: type) -> Codec | None:
        """Return the codec registered for exactly `python_type`, or None.
        """
        return self._codecs.get(python_type)

    def freeze(self) -> 'CodecRegistry':
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def types(self) -> list[type]:
        return list(self._codecs)

    def __contains__(self, python_type: type) -> bool:
        return python_type in self._codecs

    def __len__(self) -> int:
        return len(self._codecs)


def default_codecs(freeze: bool = True) -> CodecRegistry:
    """Build a registry holding the built-in codecs.

    Parameters
        freeze: Freeze the registry before returning it. Pass False to
                register application codecs first, then call `freeze()`.
    """
    registry = CodecRegistry()
    integer, floating, boolean = IntegerCodec(), FloatCodec(), BooleanCodec()
    for codec in (StringCodec(), integer, boolean, floating, DecimalCodec(),
                  DatetimeCodec(), DateCodec(), BytesCodec(), UUIDCodec(),
                  TimestampCodec()):
        registry.register(codec.python_type, codec)
    registry.register(np.int64, NumpyScalarCodec(np.int64, integer))
    registry.register(np.int32, NumpyScalarCodec(np.int32, integer))
    registry.register(np.float64, NumpyScalarCodec(np.float64, floating))
    registry.register(np.bool_, NumpyScalarCodec(np.bool_, boolean))
    if freeze:
        registry.freeze()
    return registry
