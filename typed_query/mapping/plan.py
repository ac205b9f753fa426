"""Record decoding plan data classes.

Frozen dataclasses representing compiled, validated decoding plans.
Used by RecordDecoder at execution time.
"""

from __future__ import annotations

from dataclasses import dataclass

from typed_query.core.values import DbKind


@dataclass(frozen=True)
class FieldPlan:
    """How one attribute is read from a row."""

    attribute: str
    column: str
    kind: DbKind
    nullable: bool = False


@dataclass(frozen=True)
class DecoderPlan:
    """Compiled, validated decoding plan for one record type."""

    target_class: type
    fields: tuple[FieldPlan, ...]

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]
