"""Unit tests for DecoderRegistry."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from typed_query.core.exceptions import DecoderNotFoundError, DuplicateDecoderError
from typed_query.core.result import Err, Ok
from typed_query.mapping.builder import decoder
from typed_query.mapping.registry import DecoderRegistry


@dataclass
class User:
    id: int
    name: str


@dataclass
class Tag:
    label: str


class TestDecoderRegistry:
    def test_register_and_get(self) -> None:
        users = decoder(User).auto_fields().build()
        registry = DecoderRegistry()
        registry.register(users)
        assert registry.get(User) is users
        assert registry.has(User)
        assert not registry.has(Tag)

    def test_constructor_registers_in_order(self) -> None:
        registry = DecoderRegistry(
            [decoder(Tag).auto_fields().build(), decoder(User).auto_fields().build()]
        )
        assert registry.types == [Tag, User]
        assert len(registry) == 2

    def test_duplicate_registration(self) -> None:
        registry = DecoderRegistry([decoder(User).auto_fields().build()])
        with pytest.raises(DuplicateDecoderError):
            registry.register(decoder(User).auto_fields().build())

    def test_missing_decoder(self) -> None:
        with pytest.raises(DecoderNotFoundError, match="Tag"):
            DecoderRegistry().get(Tag)

    def test_parse_each_row(self, make_row) -> None:
        registry = DecoderRegistry([decoder(User).auto_fields().build()])
        rows = [make_row(id=1, name="Alice"), make_row(id=2, name="Bob")]
        assert registry.parse_each_row(User, rows) == Ok([User(1, "Alice"), User(2, "Bob")])

    def test_parse_each_row_returns_failures(self, make_row) -> None:
        registry = DecoderRegistry([decoder(User).auto_fields().build()])
        result = registry.parse_each_row(User, [make_row(id="x", name="Alice")])
        assert isinstance(result, Err)
        assert result.error.row_index == 0

    def test_parse_each_row_unknown_type_raises(self) -> None:
        with pytest.raises(DecoderNotFoundError):
            DecoderRegistry().parse_each_row(User, [])
