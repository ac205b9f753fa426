"""Unit tests for Row and RowReader."""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

import pytest

from typed_query.core.exceptions import ColumnNotFoundError, TypeMismatchError
from typed_query.core.result import Err, Ok, apply
from typed_query.core.row import Row, RowReader, map_each_row, map_row
from typed_query.core.values import (
    NULL,
    DbKind,
    HStoreValue,
    IntValue,
    JsonbValue,
    LongValue,
    ShortValue,
    TextValue,
)


class TestRow:
    def test_columns_and_values_keep_order(self, make_row) -> None:
        row = make_row(b=1, a="x")
        assert row.columns == ["b", "a"]
        assert row.values == [IntValue(1), TextValue("x")]

    def test_get_missing_column(self, make_row) -> None:
        result = make_row(a=1).get("missing")
        assert isinstance(result, Err)
        assert isinstance(result.error, ColumnNotFoundError)
        assert result.error.available == ["a"]

    def test_getitem_raises(self, make_row) -> None:
        with pytest.raises(ColumnNotFoundError):
            make_row(a=1)["b"]

    def test_first_duplicate_column_wins(self) -> None:
        row = Row([("id", IntValue(1)), ("id", IntValue(2))])
        assert row["id"] == IntValue(1)
        assert len(row) == 2

    def test_equality(self, make_row) -> None:
        assert make_row(a=1) == make_row(a=1)
        assert make_row(a=1) != make_row(a=2)


class TestRowReader:
    def test_typed_accessors(self, make_row) -> None:
        user_id = uuid.uuid4()
        row = make_row(
            id=5,
            name="Alice",
            active=True,
            score=1.5,
            salary=Decimal("12.50"),
            avatar=b"\x89PNG",
            uid=user_id,
            born=datetime.date(1990, 5, 1),
            tags=["a", "b"],
            ints=[1, 2],
        )
        read = RowReader(row)
        assert read.int("id") == Ok(5)
        assert read.text("name") == Ok("Alice")
        assert read.string("name") == Ok("Alice")
        assert read.bool("active") == Ok(True)
        assert read.double("score") == Ok(1.5)
        assert read.decimal("salary") == Ok(Decimal("12.50"))
        assert read.bytea("avatar") == Ok(b"\x89PNG")
        assert read.uuid("uid") == Ok(user_id)
        assert read.date("born") == Ok(datetime.date(1990, 5, 1))
        assert read.text_array("tags") == Ok(["a", "b"])
        assert read.string_array("tags") == Ok(["a", "b"])
        assert read.int_array("ints") == Ok([1, 2])

    def test_jsonb_and_hstore(self) -> None:
        row = Row([("doc", JsonbValue('{"a": 1}')), ("attrs", HStoreValue({"k": None}))])
        read = RowReader(row)
        assert read.jsonb("doc") == Ok('{"a": 1}')
        assert read.hstore("attrs") == Ok({"k": None})

    def test_mismatch_names_the_column(self, make_row) -> None:
        result = RowReader(make_row(name="Alice")).int("name")
        assert isinstance(result, Err)
        assert isinstance(result.error, TypeMismatchError)
        assert result.error.column == "name"

    def test_null_fails_non_nullable_accessor(self, make_row) -> None:
        result = RowReader(make_row(email=None)).text("email")
        assert isinstance(result, Err)
        assert isinstance(result.error, TypeMismatchError)

    def test_or_null_accessor(self, make_row) -> None:
        read = RowReader(make_row(email=None, name="Bob"))
        assert read.text_or_null("email") == Ok(None)
        assert read.text_or_null("name") == Ok("Bob")

    def test_or_null_still_checks_kind(self, make_row) -> None:
        assert isinstance(RowReader(make_row(name="Bob")).int_or_null("name"), Err)

    def test_missing_column(self, make_row) -> None:
        result = RowReader(make_row(a=1)).int_or_null("b")
        assert isinstance(result.error, ColumnNotFoundError)

    def test_integer_widths(self) -> None:
        read = RowReader(Row([("small", ShortValue(3)), ("big", LongValue(2**40))]))
        assert read.long("small") == Ok(3)
        assert read.short("small") == Ok(3)
        assert isinstance(read.int("big"), Err)

    def test_generic_read(self, make_row) -> None:
        read = RowReader(make_row(n=1))
        assert read.read("n", DbKind.INT) == Ok(1)
        assert read.value("n") == Ok(IntValue(1))

    def test_null_value_accessor(self, make_row) -> None:
        assert RowReader(make_row(x=None)).value("x") == Ok(NULL)


class TestMapping:
    def test_map_row_accepts_plain_return(self, make_row) -> None:
        assert map_row(make_row(id=1), lambda read: "plain", 0) == Ok("plain")

    def test_map_row_accepts_result_return(self, make_row) -> None:
        def mapper(read: RowReader):
            return apply(lambda i, n: (i, n), read.int("id"), read.text("name"))

        assert map_row(make_row(id=1, name="A"), mapper, 0) == Ok((1, "A"))

    def test_map_row_captures_raised_errors(self, make_row) -> None:
        outcome = map_row(make_row(id=1), lambda read: read.text("id").unwrap(), 3)
        assert isinstance(outcome, Err)
        assert outcome.error.row_index == 3

    def test_map_each_row_short_circuits(self, make_row) -> None:
        rows = [make_row(id=1), make_row(id="bad"), make_row(id="worse")]
        calls: list[int] = []

        def mapper(read: RowReader):
            calls.append(1)
            return read.int("id")

        outcome = map_each_row(rows, mapper)
        assert isinstance(outcome, Err)
        assert outcome.error.row_index == 1
        assert len(calls) == 2

    def test_map_each_row_success(self, make_row) -> None:
        rows = [make_row(id=1), make_row(id=2)]
        assert map_each_row(rows, lambda r: r.int("id")) == Ok([1, 2])
