"""Unit tests for the DbValue model."""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

import pytest

from typed_query.core.exceptions import TypeMismatchError
from typed_query.core.result import Err, Ok
from typed_query.core.values import (
    NULL,
    VALUE_TYPES,
    BitValue,
    BoolValue,
    ByteaValue,
    DateValue,
    DbKind,
    DecimalValue,
    DoubleValue,
    HStoreValue,
    IntArrayValue,
    IntValue,
    LongValue,
    ShortValue,
    TextArrayValue,
    TextValue,
    TimestampTzValue,
    TimestampValue,
    TimeValue,
    UuidValue,
    convert,
    from_native,
    or_null,
    to_native,
)


class TestValueCases:
    def test_every_kind_has_one_case(self) -> None:
        assert set(VALUE_TYPES) == set(DbKind)

    def test_short_range(self) -> None:
        assert ShortValue(32767).value == 32767
        with pytest.raises(TypeMismatchError):
            ShortValue(32768)

    def test_int_range(self) -> None:
        with pytest.raises(TypeMismatchError):
            IntValue(2**31)

    def test_long_range(self) -> None:
        assert LongValue(2**63 - 1).value == 2**63 - 1
        with pytest.raises(TypeMismatchError):
            LongValue(2**63)

    def test_bool_is_not_an_integer(self) -> None:
        with pytest.raises(TypeMismatchError):
            IntValue(True)

    def test_bit_reads_as_bool(self) -> None:
        assert BitValue(True).kind is DbKind.BOOL
        assert convert(BitValue(True), DbKind.BOOL) == Ok(True)
        assert BitValue(True) != BoolValue(True)
        with pytest.raises(TypeMismatchError):
            BitValue(1)  # type: ignore[arg-type]

    def test_double_rejects_int(self) -> None:
        with pytest.raises(TypeMismatchError):
            DoubleValue(1)

    def test_decimal_accepts_int_rejects_float(self) -> None:
        assert DecimalValue(12).value == Decimal(12)
        with pytest.raises(TypeMismatchError):
            DecimalValue(12.5)

    def test_bytea_normalizes_buffers(self) -> None:
        value = ByteaValue(bytearray(b"\x00\x01"))
        assert value.value == b"\x00\x01"
        assert isinstance(value.value, bytes)

    def test_date_rejects_datetime(self) -> None:
        with pytest.raises(TypeMismatchError):
            DateValue(datetime.datetime(2024, 1, 1))

    def test_timestamp_requires_naive(self) -> None:
        aware = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        with pytest.raises(TypeMismatchError):
            TimestampValue(aware)
        assert TimestampTzValue(aware).value == aware

    def test_timestamptz_requires_aware(self) -> None:
        with pytest.raises(TypeMismatchError):
            TimestampTzValue(datetime.datetime(2024, 1, 1))

    def test_time_rejects_tz(self) -> None:
        with pytest.raises(TypeMismatchError):
            TimeValue(datetime.time(12, 0, tzinfo=datetime.timezone.utc))

    def test_arrays_are_immutable_tuples(self) -> None:
        value = TextArrayValue(["a", "b"])
        assert value.value == ("a", "b")
        assert value.to_native() == ["a", "b"]

    def test_int_array_rejects_mixed(self) -> None:
        with pytest.raises(TypeMismatchError):
            IntArrayValue([1, "2"])

    def test_hstore_allows_null_values(self) -> None:
        value = HStoreValue({"a": "1", "b": None})
        assert value.to_native() == {"a": "1", "b": None}

    def test_hstore_rejects_non_text(self) -> None:
        with pytest.raises(TypeMismatchError):
            HStoreValue({"a": 1})

    def test_values_are_hashable_and_comparable(self) -> None:
        assert TextValue("x") == TextValue("x")
        assert TextValue("x") != IntValue(1)
        assert len({IntValue(1), IntValue(1)}) == 1

    def test_or_null(self) -> None:
        assert or_null(TextValue, None) is NULL
        assert or_null(TextValue, "x") == TextValue("x")


class TestFromNative:
    @pytest.mark.parametrize(
        ("native", "expected"),
        [
            (None, NULL),
            (True, BoolValue(True)),
            (42, IntValue(42)),
            (2**40, LongValue(2**40)),
            (1.5, DoubleValue(1.5)),
            (Decimal("12.50"), DecimalValue(Decimal("12.50"))),
            ("text", TextValue("text")),
            (b"\x01", ByteaValue(b"\x01")),
            (datetime.date(2024, 2, 29), DateValue(datetime.date(2024, 2, 29))),
            (datetime.time(8, 30), TimeValue(datetime.time(8, 30))),
            (["a"], TextArrayValue(["a"])),
            ([1, 2], IntArrayValue([1, 2])),
            ({"k": "v"}, HStoreValue({"k": "v"})),
        ],
    )
    def test_maps_to_one_case(self, native: object, expected: object) -> None:
        assert from_native(native) == expected

    def test_uuid(self) -> None:
        value = uuid.uuid4()
        assert from_native(value) == UuidValue(value)

    def test_datetime_by_awareness(self) -> None:
        naive = datetime.datetime(2024, 1, 1, 12)
        aware = naive.replace(tzinfo=datetime.timezone.utc)
        assert isinstance(from_native(naive), TimestampValue)
        assert isinstance(from_native(aware), TimestampTzValue)

    def test_empty_list_is_text_array(self) -> None:
        assert from_native([]) == TextArrayValue([])

    def test_db_value_passes_through(self) -> None:
        value = ShortValue(1)
        assert from_native(value) is value

    def test_heterogeneous_list_rejected(self) -> None:
        with pytest.raises(TypeMismatchError):
            from_native([1, "a"])

    def test_unsupported_type_rejected(self) -> None:
        with pytest.raises(TypeMismatchError):
            from_native(object())

    def test_to_native(self) -> None:
        assert to_native(NULL) is None
        assert to_native(IntArrayValue([1])) == [1]


class TestConvert:
    def test_matching_kind(self) -> None:
        assert convert(TextValue("x"), DbKind.TEXT) == Ok("x")

    def test_mismatch(self) -> None:
        result = convert(TextValue("x"), DbKind.INT, column="name")
        assert isinstance(result, Err)
        assert isinstance(result.error, TypeMismatchError)
        assert result.error.column == "name"

    def test_null_is_a_mismatch_unless_nullable(self) -> None:
        assert isinstance(convert(NULL, DbKind.TEXT), Err)
        assert convert(NULL, DbKind.TEXT, nullable=True) == Ok(None)

    def test_integer_family_widening(self) -> None:
        assert convert(ShortValue(7), DbKind.LONG) == Ok(7)
        assert convert(LongValue(7), DbKind.INT) == Ok(7)

    def test_integer_family_narrowing_overflow(self) -> None:
        assert isinstance(convert(LongValue(2**40), DbKind.INT), Err)

    def test_no_implicit_cross_kind_conversion(self) -> None:
        assert isinstance(convert(DoubleValue(1.0), DbKind.DECIMAL), Err)
        assert isinstance(convert(LongValue(1), DbKind.BOOL), Err)
