"""Unit tests for PostgreSQL value conversion that need no server."""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

import psycopg
import pytest
from psycopg.adapt import AdaptersMap
from psycopg.types.numeric import Int2, Int4, Int8

from typed_query.adapters.postgresql import (
    InfinityDateLoader,
    InfinityTimestampLoader,
    InfinityTimestamptzLoader,
    MoneyLoader,
    PostgresqlAsyncAdapter,
    PostgresqlSyncAdapter,
    _money_loader,
)
from typed_query.core.connection import ConnectionConfig
from typed_query.core.exceptions import (
    ConnectionError,
    ConversionError,
    ParameterError,
    QueryCancelledError,
    StatementError,
)
from typed_query.core.params import bind_parameters, render
from typed_query.core.values import (
    NULL,
    BitValue,
    BoolValue,
    DecimalValue,
    HStoreValue,
    IntArrayValue,
    IntValue,
    JsonbValue,
    LongValue,
    ShortValue,
    TextArrayValue,
    TextValue,
    UuidValue,
)


@pytest.fixture
def codec() -> PostgresqlSyncAdapter:
    return PostgresqlSyncAdapter()


class TestBinding:
    def test_casts(self, codec: PostgresqlSyncAdapter) -> None:
        assert codec.cast_for(TextArrayValue(["a"])) == "text[]"
        assert codec.cast_for(IntArrayValue([1, 2])) == "int4[]"
        assert codec.cast_for(IntArrayValue([2**40])) == "int8[]"
        assert codec.cast_for(JsonbValue("{}")) == "jsonb"
        assert codec.cast_for(HStoreValue({})) == "hstore"
        assert codec.cast_for(TextValue("x")) is None

    def test_bit_binds_as_single_bit(self, codec: PostgresqlSyncAdapter) -> None:
        assert codec.cast_for(BitValue(True)) == "bit(1)"
        assert codec.cast_for(BoolValue(True)) is None
        bound = codec.to_driver(BitValue(False))
        assert isinstance(bound, Int4)
        assert bound == 0

    def test_bit_parameter_rendering(self, codec: PostgresqlSyncAdapter) -> None:
        sql, params = render(
            "INSERT INTO users (active) VALUES (@active)",
            bind_parameters({"active": BitValue(True)}),
            codec,
        )
        assert sql == "INSERT INTO users (active) VALUES (%(active)s::bit(1))"
        assert params == {"active": 1}

    def test_integer_widths(self, codec: PostgresqlSyncAdapter) -> None:
        assert isinstance(codec.to_driver(ShortValue(1)), Int2)
        assert isinstance(codec.to_driver(IntValue(1)), Int4)
        assert isinstance(codec.to_driver(LongValue(1)), Int8)

    def test_hstore_requires_extension(self, codec: PostgresqlSyncAdapter) -> None:
        with pytest.raises(ParameterError):
            codec.to_driver(HStoreValue({"a": "1"}))

    def test_native_values_pass_through(self, codec: PostgresqlSyncAdapter) -> None:
        assert codec.to_driver(TextArrayValue(["a"])) == ["a"]
        assert codec.to_driver(NULL) is None


class TestDecoding:
    @pytest.mark.parametrize(
        ("raw", "oid", "expected"),
        [
            (True, 16, BoolValue(True)),
            (7, 21, ShortValue(7)),
            (7, 23, IntValue(7)),
            (7, 20, LongValue(7)),
            (Decimal("12.50"), 790, DecimalValue(Decimal("12.50"))),
            ("x", 1043, TextValue("x")),
            ('{"a":1}', 3802, JsonbValue('{"a":1}')),
            (["a", "b"], 1009, TextArrayValue(["a", "b"])),
            ([1, 2], 1007, IntArrayValue([1, 2])),
        ],
    )
    def test_by_oid(
        self, codec: PostgresqlSyncAdapter, raw: object, oid: int, expected: object
    ) -> None:
        assert codec.to_db_value(raw, oid, "col") == expected

    def test_null(self, codec: PostgresqlSyncAdapter) -> None:
        assert codec.to_db_value(None, 23, "col") is NULL

    def test_uuid(self, codec: PostgresqlSyncAdapter) -> None:
        value = uuid.uuid4()
        assert codec.to_db_value(value, 2950, "id") == UuidValue(value)

    def test_single_bit_reads_as_bool(self, codec: PostgresqlSyncAdapter) -> None:
        assert codec.to_db_value("1", 1560, "flag") == BoolValue(True)
        assert codec.to_db_value("0", 1560, "flag") == BoolValue(False)

    def test_multi_bit_string_rejected(self, codec: PostgresqlSyncAdapter) -> None:
        with pytest.raises(ConversionError):
            codec.to_db_value("101", 1560, "flags")

    def test_unknown_oid(self, codec: PostgresqlSyncAdapter) -> None:
        with pytest.raises(ConversionError, match="oid 600"):
            codec.to_db_value("(1,2)", 600, "point")

    def test_null_array_element_rejected(self, codec: PostgresqlSyncAdapter) -> None:
        with pytest.raises(ConversionError):
            codec.to_db_value(["a", None], 1009, "tags")

    def test_out_of_range_becomes_conversion_error(self, codec: PostgresqlSyncAdapter) -> None:
        with pytest.raises(ConversionError) as exc_info:
            codec.to_db_value(2**20, 21, "small")
        assert exc_info.value.column == "small"


class TestLoaders:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            (b"$12.50", Decimal("12.50")),
            (b"$1,234.56", Decimal("1234.56")),
            (b"-$3.00", Decimal("-3.00")),
            (b"($3.00)", Decimal("-3.00")),
            (b"12,50 \xe2\x82\xac", Decimal("12.50")),
            (b"1.234,56 \xe2\x82\xac", Decimal("1234.56")),
            (b"-1.234,56 \xe2\x82\xac", Decimal("-1234.56")),
            ("\u00a51,234".encode(), Decimal("1234")),
        ],
    )
    def test_money(self, text: bytes, expected: Decimal) -> None:
        assert MoneyLoader(790).load(text) == expected

    def test_money_garbage(self) -> None:
        with pytest.raises(psycopg.DataError):
            MoneyLoader(790).load(b"n/a")

    def test_money_uses_connection_decimal_mark(self) -> None:
        comma = _money_loader("1,25 \u20ac")
        assert comma.decimal_mark == ","
        assert comma(790).load("1.234,567 KD".encode()) == Decimal("1234.567")
        assert _money_loader("$1.25")(790).load(b"$1,234.56") == Decimal("1234.56")

    def test_money_without_fraction_digits(self) -> None:
        yen = _money_loader("\u00a51")
        assert yen.decimal_mark == ""
        assert yen(790).load("\u00a51,234".encode()) == Decimal("1234")

    def test_infinity_date(self) -> None:
        loader = InfinityDateLoader(1082)
        assert loader.load(b"infinity") == datetime.date.max
        assert loader.load(b"-infinity") == datetime.date.min
        assert loader.load(b"2024-02-29") == datetime.date(2024, 2, 29)

    def test_infinity_timestamp(self) -> None:
        loader = InfinityTimestampLoader(1114)
        assert loader.load(b"infinity") == datetime.datetime.max
        assert loader.load(b"-infinity") == datetime.datetime.min

    def test_infinity_timestamptz_is_aware(self) -> None:
        value = InfinityTimestamptzLoader(1184).load(b"infinity")
        assert value.tzinfo is not None
        assert value.replace(tzinfo=None) == datetime.datetime.max


class TestErrorTranslation:
    def test_query_cancelled(self, codec: PostgresqlSyncAdapter) -> None:
        error = codec.translate_error(psycopg.errors.QueryCanceled("canceling statement"))
        assert isinstance(error, QueryCancelledError)

    def test_server_error_keeps_sqlstate(self, codec: PostgresqlSyncAdapter) -> None:
        error = codec.translate_error(psycopg.errors.UniqueViolation("duplicate key"))
        assert isinstance(error, StatementError)
        assert error.sqlstate == "23505"

    def test_client_side_data_error(self, codec: PostgresqlSyncAdapter) -> None:
        assert isinstance(codec.translate_error(psycopg.DataError("bad money")), ConversionError)

    def test_connection_lost(self, codec: PostgresqlSyncAdapter) -> None:
        error = codec.translate_error(psycopg.OperationalError("server closed the connection"))
        assert isinstance(error, ConnectionError)

    def test_foreign_exception_is_not_translated(self, codec: PostgresqlSyncAdapter) -> None:
        assert codec.translate_error(ValueError("nope")) is None


class _SetupConnection:
    """Stands in for a freshly opened psycopg connection."""

    def __init__(self, fail_on_execute: bool) -> None:
        self.fail_on_execute = fail_on_execute
        self.adapters = AdaptersMap(psycopg.adapters)
        self.closed = False

    def execute(self, sql: str) -> _SampleCursor:
        if self.fail_on_execute:
            raise psycopg.errors.InsufficientPrivilege("permission denied")
        return _SampleCursor()

    def close(self) -> None:
        self.closed = True


class _SampleCursor:
    def fetchone(self) -> tuple[str]:
        return ("$1.25",)


class _AsyncSetupConnection(_SetupConnection):
    async def execute(self, sql: str) -> _AsyncSampleCursor:  # type: ignore[override]
        if self.fail_on_execute:
            raise psycopg.errors.InsufficientPrivilege("permission denied")
        return _AsyncSampleCursor()

    async def close(self) -> None:  # type: ignore[override]
        self.closed = True


class _AsyncSampleCursor:
    async def fetchone(self) -> tuple[str]:
        return ("$1.25",)


class TestConnectSetup:
    @pytest.fixture
    def config(self) -> ConnectionConfig:
        return ConnectionConfig(host="localhost", database="app")

    def test_setup_query_failure_closes_connection(
        self, config: ConnectionConfig, monkeypatch
    ) -> None:
        raw = _SetupConnection(fail_on_execute=True)
        monkeypatch.setattr(psycopg, "connect", lambda *args, **kwargs: raw)
        with pytest.raises(ConnectionError, match="permission denied") as exc_info:
            PostgresqlSyncAdapter().connect(config)
        assert raw.closed
        assert isinstance(exc_info.value.__cause__, psycopg.Error)

    def test_type_lookup_failure_closes_connection(
        self, config: ConnectionConfig, monkeypatch
    ) -> None:
        def lookup_fails(conn, name):
            raise psycopg.OperationalError("server closed the connection")

        raw = _SetupConnection(fail_on_execute=False)
        monkeypatch.setattr(psycopg, "connect", lambda *args, **kwargs: raw)
        monkeypatch.setattr(
            "typed_query.adapters.postgresql.TypeInfo.fetch", staticmethod(lookup_fails)
        )
        with pytest.raises(ConnectionError):
            PostgresqlSyncAdapter().connect(config)
        assert raw.closed

    async def test_async_setup_failure_closes_connection(
        self, config: ConnectionConfig, monkeypatch
    ) -> None:
        raw = _AsyncSetupConnection(fail_on_execute=True)

        async def connect(*args, **kwargs):
            return raw

        monkeypatch.setattr(psycopg.AsyncConnection, "connect", staticmethod(connect))
        with pytest.raises(ConnectionError):
            await PostgresqlAsyncAdapter().connect_async(config)
        assert raw.closed
