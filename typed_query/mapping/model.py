"""Plan-driven record decoder.

Supports dataclasses, Pydantic models, and plain classes.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from typed_query.core.exceptions import ConversionError, TypedQueryError
from typed_query.core.result import Err, Ok, Result, collect
from typed_query.core.row import Row, RowReader, map_each_row
from typed_query.mapping.plan import DecoderPlan

T = TypeVar("T")


def _is_pydantic_model(cls: type) -> bool:
    """Check if a class is a Pydantic BaseModel."""
    from pydantic import BaseModel

    return isinstance(cls, type) and issubclass(cls, BaseModel)


class RecordDecoder(Generic[T]):
    """Builds ``target_class`` instances from rows following a DecoderPlan.

    A RecordDecoder is itself a row mapper and can be passed anywhere the
    engine accepts one.

    Construction:
    1. Pydantic BaseModel -> model_validate(values)
    2. dataclass or plain class -> target_class(**values)
    """

    def __init__(self, plan: DecoderPlan) -> None:
        self.plan = plan
        self._target_class: type[T] = plan.target_class
        self._is_pydantic = _is_pydantic_model(plan.target_class)

    @property
    def target_class(self) -> type[T]:
        return self._target_class

    def __call__(self, read: RowReader) -> Result[T, TypedQueryError]:
        values = collect(
            read.read_or_null(f.column, f.kind) if f.nullable else read.read(f.column, f.kind)
            for f in self.plan.fields
        )
        if isinstance(values, Err):
            return values
        kwargs = {f.attribute: value for f, value in zip(self.plan.fields, values.value)}
        return self._construct(kwargs)

    def _construct(self, kwargs: dict[str, Any]) -> Result[T, TypedQueryError]:
        name = self._target_class.__name__
        try:
            if self._is_pydantic:
                return Ok(self._target_class.model_validate(kwargs))  # type: ignore[attr-defined]
            return Ok(self._target_class(**kwargs))
        # pydantic.ValidationError is a ValueError
        except (TypeError, ValueError) as e:
            return Err(ConversionError(f"cannot build {name}: {e}"))

    def map_one(self, row: Row) -> T:
        """Decode a single row, raising on failure."""
        return self(RowReader(row)).unwrap()

    def map_many(self, rows: Iterable[Row]) -> list[T]:
        """Decode all rows; the first failure is raised with its row_index."""
        return map_each_row(rows, self).unwrap()

    def __repr__(self) -> str:
        return f"RecordDecoder({self._target_class.__name__}, columns={self.plan.columns})"
