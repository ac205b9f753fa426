"""The closed set of database-portable values.

Every parameter and every result column is represented as exactly one
``DbValue`` case. Conversions between cases are never implicit: a native
Python object maps to one case through :func:`from_native`, and a case is
read back through :func:`convert`, which fails with ``TypeMismatchError``
when the active case is not the requested one.
"""

from __future__ import annotations

import datetime
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar

from typed_query.core.exceptions import TypeMismatchError
from typed_query.core.result import Err, Ok, Result


class DbKind(Enum):
    """Semantic kind of a DbValue."""

    NULL = "null"
    BOOL = "bool"
    SHORT = "short"
    INT = "int"
    LONG = "long"
    DOUBLE = "double"
    DECIMAL = "decimal"
    TEXT = "text"
    BYTEA = "bytea"
    UUID = "uuid"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    TIMESTAMPTZ = "timestamptz"
    TEXT_ARRAY = "text_array"
    INT_ARRAY = "int_array"
    JSONB = "jsonb"
    HSTORE = "hstore"


_INTEGER_BOUNDS: dict[DbKind, tuple[int, int]] = {
    DbKind.SHORT: (-(2**15), 2**15 - 1),
    DbKind.INT: (-(2**31), 2**31 - 1),
    DbKind.LONG: (-(2**63), 2**63 - 1),
}


def _describe(obj: Any) -> str:
    return type(obj).__name__


def _check_integer(kind: DbKind, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeMismatchError(f"int for {kind.value}", _describe(value))
    low, high = _INTEGER_BOUNDS[kind]
    if not low <= value <= high:
        raise TypeMismatchError(f"{kind.value} in [{low}, {high}]", str(value))


@dataclass(frozen=True)
class DbValue:
    """Base class of all value cases."""

    kind: ClassVar[DbKind]

    def to_native(self) -> Any:
        return getattr(self, "value", None)


@dataclass(frozen=True)
class NullValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.NULL


@dataclass(frozen=True)
class BoolValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.BOOL
    value: bool

    def __post_init__(self) -> None:
        if not isinstance(self.value, bool):
            raise TypeMismatchError("bool", _describe(self.value))


@dataclass(frozen=True)
class BitValue(BoolValue):
    """A boolean bound as a single ``bit`` rather than ``boolean``.

    Reads back as Bool: a ``bit(1)`` column decodes to BoolValue.
    """


@dataclass(frozen=True)
class ShortValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.SHORT
    value: int

    def __post_init__(self) -> None:
        _check_integer(self.kind, self.value)


@dataclass(frozen=True)
class IntValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.INT
    value: int

    def __post_init__(self) -> None:
        _check_integer(self.kind, self.value)


@dataclass(frozen=True)
class LongValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.LONG
    value: int

    def __post_init__(self) -> None:
        _check_integer(self.kind, self.value)


@dataclass(frozen=True)
class DoubleValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.DOUBLE
    value: float

    def __post_init__(self) -> None:
        if not isinstance(self.value, float):
            raise TypeMismatchError("float", _describe(self.value))


@dataclass(frozen=True)
class DecimalValue(DbValue):
    """Fixed-point value, used for numeric and money columns.

    Accepts ``Decimal`` or ``int``; ``float`` is rejected so binary
    floating point never leaks into currency amounts.
    """

    kind: ClassVar[DbKind] = DbKind.DECIMAL
    value: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.value, int) and not isinstance(self.value, bool):
            object.__setattr__(self, "value", Decimal(self.value))
        elif not isinstance(self.value, Decimal):
            raise TypeMismatchError("Decimal", _describe(self.value))


@dataclass(frozen=True)
class TextValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.TEXT
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeMismatchError("str", _describe(self.value))


@dataclass(frozen=True)
class ByteaValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.BYTEA
    value: bytes

    def __post_init__(self) -> None:
        if isinstance(self.value, (bytearray, memoryview)):
            object.__setattr__(self, "value", bytes(self.value))
        elif not isinstance(self.value, bytes):
            raise TypeMismatchError("bytes", _describe(self.value))


@dataclass(frozen=True)
class UuidValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.UUID
    value: uuid.UUID

    def __post_init__(self) -> None:
        if not isinstance(self.value, uuid.UUID):
            raise TypeMismatchError("UUID", _describe(self.value))


@dataclass(frozen=True)
class DateValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.DATE
    value: datetime.date

    def __post_init__(self) -> None:
        if not isinstance(self.value, datetime.date) or isinstance(
            self.value, datetime.datetime
        ):
            raise TypeMismatchError("date", _describe(self.value))


@dataclass(frozen=True)
class TimeValue(DbValue):
    """Time of day without a date component or time zone."""

    kind: ClassVar[DbKind] = DbKind.TIME
    value: datetime.time

    def __post_init__(self) -> None:
        if not isinstance(self.value, datetime.time):
            raise TypeMismatchError("time", _describe(self.value))
        if self.value.tzinfo is not None:
            raise TypeMismatchError("time without time zone", "time with time zone")


@dataclass(frozen=True)
class TimestampValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.TIMESTAMP
    value: datetime.datetime

    def __post_init__(self) -> None:
        if not isinstance(self.value, datetime.datetime):
            raise TypeMismatchError("datetime", _describe(self.value))
        if self.value.tzinfo is not None:
            raise TypeMismatchError("naive datetime", "aware datetime")


@dataclass(frozen=True)
class TimestampTzValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.TIMESTAMPTZ
    value: datetime.datetime

    def __post_init__(self) -> None:
        if not isinstance(self.value, datetime.datetime):
            raise TypeMismatchError("datetime", _describe(self.value))
        if self.value.tzinfo is None:
            raise TypeMismatchError("aware datetime", "naive datetime")


def _as_tuple(value: Any, element: type, label: str) -> tuple[Any, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise TypeMismatchError(f"sequence of {label}", _describe(value))
    items = tuple(value)
    for item in items:
        if not isinstance(item, element) or isinstance(item, bool):
            raise TypeMismatchError(f"sequence of {label}", f"element {item!r}")
    return items


@dataclass(frozen=True)
class TextArrayValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.TEXT_ARRAY
    value: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _as_tuple(self.value, str, "str"))

    def to_native(self) -> list[str]:
        return list(self.value)


@dataclass(frozen=True)
class IntArrayValue(DbValue):
    kind: ClassVar[DbKind] = DbKind.INT_ARRAY
    value: tuple[int, ...]

    def __post_init__(self) -> None:
        items = _as_tuple(self.value, int, "int")
        for item in items:
            _check_integer(DbKind.LONG, item)
        object.__setattr__(self, "value", items)

    def to_native(self) -> list[int]:
        return list(self.value)


@dataclass(frozen=True)
class JsonbValue(DbValue):
    """Raw text of a JSON document; it is never parsed client-side."""

    kind: ClassVar[DbKind] = DbKind.JSONB
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeMismatchError("JSON text", _describe(self.value))


@dataclass(frozen=True)
class HStoreValue(DbValue):
    """Text to text mapping; hstore values (not keys) may be null."""

    kind: ClassVar[DbKind] = DbKind.HSTORE
    value: Mapping[str, str | None]

    def __post_init__(self) -> None:
        if not isinstance(self.value, Mapping):
            raise TypeMismatchError("mapping of str to str", _describe(self.value))
        for key, item in self.value.items():
            if not isinstance(key, str) or not (item is None or isinstance(item, str)):
                raise TypeMismatchError("mapping of str to str", f"entry {key!r}: {item!r}")
        object.__setattr__(self, "value", MappingProxyType(dict(self.value)))

    def to_native(self) -> dict[str, str | None]:
        return dict(self.value)


VALUE_TYPES: dict[DbKind, type[DbValue]] = {
    cls.kind: cls
    for cls in (
        NullValue,
        BoolValue,
        ShortValue,
        IntValue,
        LongValue,
        DoubleValue,
        DecimalValue,
        TextValue,
        ByteaValue,
        UuidValue,
        DateValue,
        TimeValue,
        TimestampValue,
        TimestampTzValue,
        TextArrayValue,
        IntArrayValue,
        JsonbValue,
        HStoreValue,
    )
}

NULL = NullValue()


def or_null(value_type: type[DbValue], value: Any) -> DbValue:
    """Build ``value_type(value)``, or Null when ``value`` is None."""
    if value is None:
        return NULL
    return value_type(value)  # type: ignore[call-arg]


def from_native(obj: Any) -> DbValue:
    """Map a native Python value to exactly one DbValue case.

    Raises:
        TypeMismatchError: If the object has no corresponding case, or is a
            heterogeneous list / mapping.
    """
    if isinstance(obj, DbValue):
        return obj
    if obj is None:
        return NULL
    if isinstance(obj, bool):
        return BoolValue(obj)
    if isinstance(obj, int):
        low, high = _INTEGER_BOUNDS[DbKind.INT]
        return IntValue(obj) if low <= obj <= high else LongValue(obj)
    if isinstance(obj, float):
        return DoubleValue(obj)
    if isinstance(obj, Decimal):
        return DecimalValue(obj)
    if isinstance(obj, str):
        return TextValue(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return ByteaValue(obj)
    if isinstance(obj, uuid.UUID):
        return UuidValue(obj)
    if isinstance(obj, datetime.datetime):
        if obj.tzinfo is None:
            return TimestampValue(obj)
        return TimestampTzValue(obj)
    if isinstance(obj, datetime.date):
        return DateValue(obj)
    if isinstance(obj, datetime.time):
        return TimeValue(obj)
    if isinstance(obj, (list, tuple)):
        if all(isinstance(item, str) for item in obj):
            return TextArrayValue(obj)
        if all(isinstance(item, int) and not isinstance(item, bool) for item in obj):
            return IntArrayValue(obj)
        raise TypeMismatchError("homogeneous list of str or int", f"{obj!r}")
    if isinstance(obj, Mapping):
        return HStoreValue(obj)
    raise TypeMismatchError("a supported native type", _describe(obj))


def to_native(value: DbValue) -> Any:
    """Return the native payload of any case (None for Null)."""
    return value.to_native()


def convert(
    value: DbValue,
    kind: DbKind,
    *,
    nullable: bool = False,
    column: str | None = None,
) -> Result[Any, TypeMismatchError]:
    """Read ``value`` as ``kind``.

    The integer kinds share the native type ``int``: reading one through
    another succeeds when the value fits the requested width.
    """
    if isinstance(value, NullValue):
        if nullable or kind is DbKind.NULL:
            return Ok(None)
        return Err(TypeMismatchError(kind.value, "null", column))
    if value.kind is kind:
        return Ok(value.to_native())
    if kind in _INTEGER_BOUNDS and value.kind in _INTEGER_BOUNDS:
        low, high = _INTEGER_BOUNDS[kind]
        native = value.to_native()
        if low <= native <= high:
            return Ok(native)
        return Err(TypeMismatchError(kind.value, f"{value.kind.value} {native}", column))
    return Err(TypeMismatchError(kind.value, value.kind.value, column))
