"""Record mapper protocol.

All record mappers implement this interface. The engine only needs the
call form; ``map_one`` and ``map_many`` decode already-buffered rows.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol, TypeVar, runtime_checkable

from typed_query.core.row import Row, RowReader

T = TypeVar("T", covariant=True)


@runtime_checkable
class RecordMapper(Protocol[T]):
    """Base record mapper protocol."""

    def __call__(self, read: RowReader) -> Any:
        """Map one row, returning a Result or a plain value."""
        ...

    def map_one(self, row: Row) -> T:
        """Map a single row to a target object."""
        ...

    def map_many(self, rows: Iterable[Row]) -> list[T]:
        """Map multiple rows to a list of target objects."""
        ...
