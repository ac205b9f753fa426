"""Decoder registry - one record decoder per target type.

Register decoders once at startup, then look them up by type wherever
rows need decoding.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TypeVar

from typed_query.core.exceptions import DecoderNotFoundError, DuplicateDecoderError, TypedQueryError
from typed_query.core.result import Result
from typed_query.core.row import Row, map_each_row
from typed_query.mapping.model import RecordDecoder

T = TypeVar("T")


class DecoderRegistry:
    """Maps target types to their RecordDecoder.

    Raises:
        DuplicateDecoderError: If a second decoder is registered for a type.
    """

    def __init__(self, decoders: Iterable[RecordDecoder[Any]] = ()) -> None:
        self._decoders: dict[type, RecordDecoder[Any]] = {}
        for item in decoders:
            self.register(item)

    def register(self, decoder: RecordDecoder[Any]) -> RecordDecoder[Any]:
        target = decoder.target_class
        if target in self._decoders:
            raise DuplicateDecoderError(target.__name__)
        self._decoders[target] = decoder
        return decoder

    def get(self, target_class: type[T]) -> RecordDecoder[T]:
        """Look up the decoder registered for ``target_class``.

        Raises:
            DecoderNotFoundError: If no decoder is registered for the type.
        """
        try:
            return self._decoders[target_class]
        except KeyError:
            raise DecoderNotFoundError(target_class.__name__) from None

    def has(self, target_class: type) -> bool:
        """Check if a decoder is registered for a type."""
        return target_class in self._decoders

    def parse_each_row(
        self, target_class: type[T], rows: Iterable[Row]
    ) -> Result[list[T], TypedQueryError]:
        """Decode buffered rows with the registered decoder.

        The lookup failure is raised; decoding failures are returned.
        """
        return map_each_row(rows, self.get(target_class))

    @property
    def types(self) -> list[type]:
        """Registered target types, in registration order."""
        return list(self._decoders)

    def __len__(self) -> int:
        """Number of registered decoders."""
        return len(self._decoders)
