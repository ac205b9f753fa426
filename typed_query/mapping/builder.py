"""Record decoding DSL builder.

Provides a fluent builder that declares, per attribute, which column to
read and which value kind to read it as.
"""

from __future__ import annotations

import dataclasses
import datetime
import inspect
import types
import typing
import uuid
from decimal import Decimal
from typing import Any, Union

from typed_query.core.exceptions import PlanCompilationError
from typed_query.core.values import DbKind
from typed_query.mapping.model import RecordDecoder
from typed_query.mapping.plan import DecoderPlan, FieldPlan

# Native annotation → kind used by auto_fields(). int reads as LONG so any
# integer column width fits.
_KIND_BY_ANNOTATION: dict[Any, DbKind] = {
    bool: DbKind.BOOL,
    int: DbKind.LONG,
    float: DbKind.DOUBLE,
    Decimal: DbKind.DECIMAL,
    str: DbKind.TEXT,
    bytes: DbKind.BYTEA,
    uuid.UUID: DbKind.UUID,
    datetime.datetime: DbKind.TIMESTAMP,
    datetime.date: DbKind.DATE,
    datetime.time: DbKind.TIME,
    list[str]: DbKind.TEXT_ARRAY,
    list[int]: DbKind.INT_ARRAY,
    dict[str, str]: DbKind.HSTORE,
    dict[str, Union[str, None]]: DbKind.HSTORE,
    dict[str, str | None]: DbKind.HSTORE,
}


def _get_field_types(cls: type) -> dict[str, Any]:
    """Extract field annotations from a class (dataclass, Pydantic, or plain)."""
    # Pydantic model
    if hasattr(cls, "model_fields"):
        return {
            name: typing.Annotated[(info.annotation, *info.metadata)]
            if info.metadata
            else info.annotation
            for name, info in cls.model_fields.items()
        }

    # Dataclass
    if dataclasses.is_dataclass(cls):
        hints = typing.get_type_hints(cls, include_extras=True)
        return {f.name: hints.get(f.name, Any) for f in dataclasses.fields(cls)}

    # Plain class - use __init__ parameters
    try:
        hints = typing.get_type_hints(cls.__init__, include_extras=True)  # type: ignore[misc]
        sig = inspect.signature(cls.__init__)  # type: ignore[misc]
    except (ValueError, TypeError, NameError):
        return {}
    return {
        name: hints.get(name, Any)
        for name, param in sig.parameters.items()
        if name != "self" and param.kind is not inspect.Parameter.VAR_KEYWORD
    }


def _unwrap(annotation: Any) -> tuple[Any, DbKind | None]:
    """Split ``Annotated[T, DbKind.X]`` into ``(T, DbKind.X)``."""
    if typing.get_origin(annotation) is typing.Annotated:
        base, *metadata = typing.get_args(annotation)
        kinds = [item for item in metadata if isinstance(item, DbKind)]
        return base, kinds[-1] if kinds else None
    return annotation, None


def _kind_for(annotation: Any) -> tuple[DbKind, bool] | None:
    """Return ``(kind, nullable)`` for an annotation, or None if unsupported."""
    annotation, explicit = _unwrap(annotation)
    nullable = False
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) != 1:
            return None
        nullable = True
        annotation, inner = _unwrap(args[0])
        explicit = explicit or inner
    kind = explicit or _KIND_BY_ANNOTATION.get(annotation)
    if kind is None:
        return None
    return kind, nullable


def decoder(target_class: type) -> DecoderBuilder:
    """Entry point for the record decoding DSL.

    Example::

        user_decoder = (
            decoder(User)
            .field("id", DbKind.INT)
            .field("name", DbKind.TEXT, column="user_name")
            .field("email", DbKind.TEXT, nullable=True)
            .build()
        )
        users = engine.execute(engine.query("SELECT ..."), user_decoder)

    ``auto_fields()`` infers kinds from annotations. A plain ``datetime``
    reads as TIMESTAMP; annotate ``Annotated[datetime, DbKind.TIMESTAMPTZ]``
    (or any other kind) to read a different one.
    """
    return DecoderBuilder(target_class)


class DecoderBuilder:
    """Fluent builder for record decoder definitions."""

    def __init__(self, target_class: type) -> None:
        self._target_class = target_class
        self._fields: list[FieldPlan] = []
        self._auto_fields_enabled = False

    def field(
        self,
        attr_name: str,
        kind: DbKind,
        column: str | None = None,
        nullable: bool = False,
    ) -> DecoderBuilder:
        """Explicitly map a single attribute."""
        self._fields.append(FieldPlan(attr_name, column or attr_name, kind, nullable))
        return self

    def auto_fields(self) -> DecoderBuilder:
        """Map every remaining attribute by name, inferring kinds from annotations."""
        self._auto_fields_enabled = True
        return self

    def build(self) -> RecordDecoder:
        """Compile and validate the declarations into a RecordDecoder."""
        known = _get_field_types(self._target_class)
        fields = list(self._fields)

        seen: set[str] = set()
        for plan in fields:
            if plan.attribute in seen:
                raise PlanCompilationError(f"Attribute '{plan.attribute}' is mapped twice")
            seen.add(plan.attribute)
            if known and plan.attribute not in known:
                raise PlanCompilationError(
                    f"{self._target_class.__name__} has no attribute '{plan.attribute}'"
                )

        if self._auto_fields_enabled:
            for name, annotation in known.items():
                if name in seen:
                    continue
                inferred = _kind_for(annotation)
                if inferred is None:
                    raise PlanCompilationError(
                        f"Cannot infer a value kind for {self._target_class.__name__}.{name} "
                        f"({annotation!r}); map it with .field()"
                    )
                kind, nullable = inferred
                fields.append(FieldPlan(name, name, kind, nullable))

        if not fields:
            raise PlanCompilationError(
                f"Decoder for {self._target_class.__name__} maps no attributes"
            )

        return RecordDecoder(DecoderPlan(target_class=self._target_class, fields=tuple(fields)))
