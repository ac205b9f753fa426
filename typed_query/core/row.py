"""Rows and the typed row reader.

A ``Row`` is one fetched record: ordered ``(column, DbValue)`` pairs.
``RowReader`` wraps a row with narrow accessors that return ``Result``
values instead of raising, so mapping functions can chain them with
``apply``/``collect`` and stop at the first failure.
"""

from __future__ import annotations

import builtins
import datetime
from collections.abc import Callable, Iterable, Iterator
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from typed_query.core.exceptions import (
    ColumnNotFoundError,
    TypedQueryError,
    ValueMappingError,
)
from typed_query.core.result import Err, Ok, Result, is_result
from typed_query.core.values import DbKind, DbValue, convert

T = TypeVar("T")

RowMapper = Callable[["RowReader"], Any]


class Row:
    """An immutable, name-indexed record.

    Column lookup is case-sensitive and returns the first column with the
    given name, as the driver reported it.
    """

    __slots__ = ("_pairs", "_index")

    def __init__(self, pairs: Iterable[tuple[str, DbValue]]) -> None:
        self._pairs: tuple[tuple[str, DbValue], ...] = tuple(pairs)
        index: dict[str, int] = {}
        for position, (name, _) in enumerate(self._pairs):
            index.setdefault(name, position)
        self._index = index

    @property
    def columns(self) -> list[str]:
        return [name for name, _ in self._pairs]

    @property
    def values(self) -> list[DbValue]:
        return [value for _, value in self._pairs]

    def has(self, column: str) -> bool:
        return column in self._index

    def get(self, column: str) -> Result[DbValue, ColumnNotFoundError]:
        """Look up a column without raising."""
        position = self._index.get(column)
        if position is None:
            return Err(ColumnNotFoundError(column, self.columns))
        return Ok(self._pairs[position][1])

    def value_at(self, position: int) -> DbValue:
        return self._pairs[position][1]

    def as_dict(self) -> dict[str, DbValue]:
        return {name: self._pairs[position][1] for name, position in self._index.items()}

    def __getitem__(self, column: str) -> DbValue:
        return self.get(column).unwrap()

    def __iter__(self) -> Iterator[tuple[str, DbValue]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._pairs == other._pairs

    def __hash__(self) -> int:
        return hash(tuple(self.columns))

    def __repr__(self) -> str:
        body = ", ".join(f"{name}={value!r}" for name, value in self._pairs)
        return f"Row({body})"


class RowReader:
    """Typed, fallible accessors over one Row.

    Every accessor takes a column name and returns ``Ok(value)`` or
    ``Err(error)`` where the error is a ``ColumnNotFoundError`` or a
    ``TypeMismatchError``. The ``*_or_null`` variants return ``Ok(None)``
    for a Null column instead of failing.
    """

    __slots__ = ("row",)

    def __init__(self, row: Row) -> None:
        self.row = row

    def read(self, column: str, kind: DbKind) -> Result[Any, TypedQueryError]:
        return self.row.get(column).and_then(
            lambda value: convert(value, kind, column=column)
        )

    def read_or_null(self, column: str, kind: DbKind) -> Result[Any, TypedQueryError]:
        return self.row.get(column).and_then(
            lambda value: convert(value, kind, nullable=True, column=column)
        )

    def value(self, column: str) -> Result[DbValue, TypedQueryError]:
        return self.row.get(column)

    def bool(self, column: str) -> Result[builtins.bool, TypedQueryError]:
        return self.read(column, DbKind.BOOL)

    def bool_or_null(self, column: str) -> Result[builtins.bool | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.BOOL)

    def short(self, column: str) -> Result[builtins.int, TypedQueryError]:
        return self.read(column, DbKind.SHORT)

    def short_or_null(self, column: str) -> Result[builtins.int | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.SHORT)

    def int(self, column: str) -> Result[builtins.int, TypedQueryError]:
        return self.read(column, DbKind.INT)

    def int_or_null(self, column: str) -> Result[builtins.int | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.INT)

    def long(self, column: str) -> Result[builtins.int, TypedQueryError]:
        return self.read(column, DbKind.LONG)

    def long_or_null(self, column: str) -> Result[builtins.int | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.LONG)

    def double(self, column: str) -> Result[float, TypedQueryError]:
        return self.read(column, DbKind.DOUBLE)

    def double_or_null(self, column: str) -> Result[float | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.DOUBLE)

    def decimal(self, column: str) -> Result[Decimal, TypedQueryError]:
        return self.read(column, DbKind.DECIMAL)

    def decimal_or_null(self, column: str) -> Result[Decimal | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.DECIMAL)

    def text(self, column: str) -> Result[str, TypedQueryError]:
        return self.read(column, DbKind.TEXT)

    def text_or_null(self, column: str) -> Result[str | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.TEXT)

    string = text
    string_or_null = text_or_null

    def bytea(self, column: str) -> Result[bytes, TypedQueryError]:
        return self.read(column, DbKind.BYTEA)

    def bytea_or_null(self, column: str) -> Result[bytes | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.BYTEA)

    def uuid(self, column: str) -> Result[UUID, TypedQueryError]:
        return self.read(column, DbKind.UUID)

    def uuid_or_null(self, column: str) -> Result[UUID | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.UUID)

    def date(self, column: str) -> Result[datetime.date, TypedQueryError]:
        return self.read(column, DbKind.DATE)

    def date_or_null(self, column: str) -> Result[datetime.date | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.DATE)

    def time(self, column: str) -> Result[datetime.time, TypedQueryError]:
        return self.read(column, DbKind.TIME)

    def time_or_null(self, column: str) -> Result[datetime.time | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.TIME)

    def timestamp(self, column: str) -> Result[datetime.datetime, TypedQueryError]:
        return self.read(column, DbKind.TIMESTAMP)

    def timestamp_or_null(
        self, column: str
    ) -> Result[datetime.datetime | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.TIMESTAMP)

    def timestamptz(self, column: str) -> Result[datetime.datetime, TypedQueryError]:
        return self.read(column, DbKind.TIMESTAMPTZ)

    def timestamptz_or_null(
        self, column: str
    ) -> Result[datetime.datetime | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.TIMESTAMPTZ)

    def text_array(self, column: str) -> Result[list[str], TypedQueryError]:
        return self.read(column, DbKind.TEXT_ARRAY)

    def text_array_or_null(self, column: str) -> Result[list[str] | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.TEXT_ARRAY)

    string_array = text_array
    string_array_or_null = text_array_or_null

    def int_array(self, column: str) -> Result[list[builtins.int], TypedQueryError]:
        return self.read(column, DbKind.INT_ARRAY)

    def int_array_or_null(
        self, column: str
    ) -> Result[list[builtins.int] | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.INT_ARRAY)

    def jsonb(self, column: str) -> Result[str, TypedQueryError]:
        return self.read(column, DbKind.JSONB)

    def jsonb_or_null(self, column: str) -> Result[str | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.JSONB)

    def hstore(self, column: str) -> Result[dict[str, str | None], TypedQueryError]:
        return self.read(column, DbKind.HSTORE)

    def hstore_or_null(
        self, column: str
    ) -> Result[dict[str, str | None] | None, TypedQueryError]:
        return self.read_or_null(column, DbKind.HSTORE)


def map_row(row: Row, mapper: RowMapper, row_index: int) -> Result[Any, TypedQueryError]:
    """Apply ``mapper`` to one row and attribute any failure to ``row_index``.

    A mapper may return a ``Result`` or a plain value (treated as success).
    Taxonomy errors raised inside the mapper (e.g. from ``unwrap()``) are
    captured as failures of the row.
    """
    try:
        outcome = mapper(RowReader(row))
    except TypedQueryError as e:
        outcome = Err(e)
    if not is_result(outcome):
        return Ok(outcome)
    if isinstance(outcome, Err) and isinstance(outcome.error, ValueMappingError):
        outcome.error.row_index = row_index
    return outcome


def map_each_row(rows: Iterable[Row], mapper: RowMapper) -> Result[list[Any], TypedQueryError]:
    """Map every row in order; the first failure aborts the whole read."""
    mapped: list[Any] = []
    for row_index, row in enumerate(rows):
        outcome = map_row(row, mapper, row_index)
        if isinstance(outcome, Err):
            return outcome
        mapped.append(outcome.value)
    return Ok(mapped)
