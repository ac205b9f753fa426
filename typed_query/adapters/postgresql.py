"""PostgreSQL adapter - sync and async using psycopg (v3+).

Connections run in autocommit mode; transactions are opened explicitly
with BEGIN by the transaction coordinator. Columns are decoded by type
OID, with loaders registered per connection for json/jsonb (raw text),
money (Decimal, read with the server's lc_monetary decimal mark) and,
when enabled, ±infinity dates and timestamps.
"""

from __future__ import annotations

import datetime
import logging
import re
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from decimal import Decimal, InvalidOperation
from typing import Any

import psycopg
from psycopg.adapt import Loader
from psycopg.types import TypeInfo
from psycopg.types.datetime import DateLoader, TimestampLoader, TimestamptzLoader
from psycopg.types.hstore import register_hstore
from psycopg.types.numeric import Int2, Int4, Int8
from psycopg.types.string import TextLoader

from typed_query.core.connection import ConnectionConfig
from typed_query.core.exceptions import (
    ConnectionError,
    ConversionError,
    ParameterError,
    QueryCancelledError,
    StatementError,
    TypedQueryError,
    TypeMismatchError,
)
from typed_query.core.values import (
    NULL,
    BitValue,
    BoolValue,
    ByteaValue,
    DateValue,
    DbValue,
    DecimalValue,
    DoubleValue,
    HStoreValue,
    IntArrayValue,
    IntValue,
    JsonbValue,
    LongValue,
    ShortValue,
    TextArrayValue,
    TextValue,
    TimestampTzValue,
    TimestampValue,
    TimeValue,
    UuidValue,
)

logger = logging.getLogger(__name__)

_BIT_OID = 1560

# Built-in type OIDs → value case
_VALUE_BY_OID: dict[int, Any] = {
    16: BoolValue,
    21: ShortValue,
    23: IntValue,
    20: LongValue,
    700: DoubleValue,
    701: DoubleValue,
    1700: DecimalValue,
    790: DecimalValue,  # money
    25: TextValue,
    1043: TextValue,  # varchar
    1042: TextValue,  # bpchar
    19: TextValue,  # name
    705: TextValue,  # unknown
    114: JsonbValue,  # json
    3802: JsonbValue,
    17: ByteaValue,
    2950: UuidValue,
    1082: DateValue,
    1083: TimeValue,
    1114: TimestampValue,
    1184: TimestampTzValue,
    1009: TextArrayValue,  # text[]
    1015: TextArrayValue,  # varchar[]
    1005: IntArrayValue,  # int2[]
    1007: IntArrayValue,  # int4[]
    1016: IntArrayValue,  # int8[]
}

_INT4_MIN, _INT4_MAX = -(2**31), 2**31 - 1

_NON_DIGIT = re.compile(r"[^0-9]")
_LEADING_DIGITS = re.compile(r"[0-9]*")

# Rendered by the server once per connection to learn its decimal mark
_MONEY_SAMPLE_SQL = "SELECT 1.25::numeric::money::text"
_MONEY_SAMPLE_MARK = re.compile(r"1([^0-9]+)25")

_DATETIME_MAX_UTC = datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)
_DATETIME_MIN_UTC = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _text(data: Any) -> str:
    if isinstance(data, memoryview):
        data = bytes(data)
    return data.decode()


class MoneyLoader(Loader):
    """Load ``money`` as Decimal, ignoring currency symbols and grouping.

    ``decimal_mark`` is the server's lc_monetary decimal point; connections
    register a subclass with it set (``""`` when the currency has no
    fraction digits). Left as ``None`` it is guessed from each value.
    """

    decimal_mark: str | None = None

    def load(self, data: Any) -> Decimal:
        text = _text(data).strip()
        mark = self.decimal_mark if self.decimal_mark is not None else _guess_decimal_mark(text)
        whole, fraction = text, ""
        if mark and mark in text:
            whole, _, fraction = text.rpartition(mark)
        digits = _NON_DIGIT.sub("", whole)
        if fraction:
            digits = f"{digits}.{_NON_DIGIT.sub('', fraction)}"
        negative = "-" in text or (text.startswith("(") and text.endswith(")"))
        try:
            amount = Decimal(digits)
        except InvalidOperation as e:
            raise psycopg.DataError(f"invalid money value: {text!r}") from e
        return -amount if negative else amount


def _guess_decimal_mark(text: str) -> str:
    last = max(text.rfind("."), text.rfind(","))
    if last < 0:
        return ""
    mark = text[last]
    if ("," if mark == "." else ".") in text:
        return mark
    if text.count(mark) > 1:
        return ""
    # a lone separator before three digits groups thousands
    return "" if len(_LEADING_DIGITS.match(text, last + 1).group()) == 3 else mark


def _money_loader(sample: str) -> type[MoneyLoader]:
    """Bind MoneyLoader to the decimal mark in the server's rendering of 1.25."""
    found = _MONEY_SAMPLE_MARK.search(sample)
    return type("MoneyLoader", (MoneyLoader,), {"decimal_mark": found.group(1) if found else ""})


class InfinityDateLoader(DateLoader):
    def load(self, data: Any) -> datetime.date:
        text = _text(data)
        if text == "infinity":
            return datetime.date.max
        if text == "-infinity":
            return datetime.date.min
        return super().load(data)


class InfinityTimestampLoader(TimestampLoader):
    def load(self, data: Any) -> datetime.datetime:
        text = _text(data)
        if text == "infinity":
            return datetime.datetime.max
        if text == "-infinity":
            return datetime.datetime.min
        return super().load(data)


class InfinityTimestamptzLoader(TimestamptzLoader):
    def load(self, data: Any) -> datetime.datetime:
        text = _text(data)
        if text == "infinity":
            return _DATETIME_MAX_UTC
        if text == "-infinity":
            return _DATETIME_MIN_UTC
        return super().load(data)


def _timeout_setting(seconds: float) -> str:
    return f"{max(1, int(seconds * 1000))}ms"


class _PostgresqlCodec:
    """Value conversion and error translation shared by both adapters."""

    def __init__(self) -> None:
        self._hstore_oid: int | None = None

    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def _register_loaders(
        self, connection: Any, config: ConnectionConfig, money_sample: str
    ) -> None:
        adapters = connection.adapters
        adapters.register_loader("json", TextLoader)
        adapters.register_loader("jsonb", TextLoader)
        adapters.register_loader("money", _money_loader(money_sample))
        if config.convert_infinity_datetime:
            adapters.register_loader("date", InfinityDateLoader)
            adapters.register_loader("timestamp", InfinityTimestampLoader)
            adapters.register_loader("timestamptz", InfinityTimestamptzLoader)

    def _register_hstore(self, connection: Any, info: TypeInfo | None) -> None:
        if info is None:
            logger.debug("hstore extension not installed, hstore values disabled")
            return
        register_hstore(info, connection)
        self._hstore_oid = info.oid

    def cast_for(self, value: DbValue) -> str | None:
        if isinstance(value, BitValue):
            return "bit(1)"
        if isinstance(value, TextArrayValue):
            return "text[]"
        if isinstance(value, IntArrayValue):
            fits = all(_INT4_MIN <= item <= _INT4_MAX for item in value.value)
            return "int4[]" if fits else "int8[]"
        if isinstance(value, JsonbValue):
            return "jsonb"
        if isinstance(value, HStoreValue):
            return "hstore"
        return None

    def to_driver(self, value: DbValue) -> Any:
        if isinstance(value, BitValue):
            # int4 to bit(1) keeps the lowest bit
            return Int4(int(value.value))
        if isinstance(value, ShortValue):
            return Int2(value.value)
        if isinstance(value, IntValue):
            return Int4(value.value)
        if isinstance(value, LongValue):
            return Int8(value.value)
        if isinstance(value, HStoreValue) and self._hstore_oid is None:
            raise ParameterError("hstore parameters need the hstore extension installed")
        return value.to_native()

    def to_db_value(self, raw: Any, type_code: Any, column: str) -> DbValue:
        if raw is None:
            return NULL
        if type_code == _BIT_OID:
            if raw in ("0", "1"):
                return BoolValue(raw == "1")
            raise ConversionError(f"bit string {raw!r} is not a single bit", column)
        if self._hstore_oid is not None and type_code == self._hstore_oid:
            factory: Any = HStoreValue
        else:
            factory = _VALUE_BY_OID.get(type_code)
        if factory is None:
            raise ConversionError(f"unsupported PostgreSQL type oid {type_code}", column)
        try:
            return factory(raw)
        except TypeMismatchError as e:
            raise ConversionError(str(e), column) from e

    def translate_error(self, exc: BaseException) -> TypedQueryError | None:
        if isinstance(exc, psycopg.errors.QueryCanceled):
            return QueryCancelledError(str(exc))
        if not isinstance(exc, psycopg.Error):
            return None
        # client-side failures carry no SQLSTATE
        if exc.sqlstate is None and isinstance(exc, psycopg.DataError):
            return ConversionError(str(exc))
        if exc.sqlstate is None and isinstance(exc, psycopg.OperationalError):
            return ConnectionError(str(exc))
        return StatementError(str(exc), sqlstate=exc.sqlstate)


class PostgresqlSyncAdapter(_PostgresqlCodec):
    """Synchronous PostgreSQL adapter using psycopg (v3+)."""

    def connect(self, config: ConnectionConfig) -> psycopg.Connection[Any]:
        try:
            conn = psycopg.connect(config.to_conninfo(), autocommit=True)
        except psycopg.Error as e:
            raise ConnectionError(f"Cannot connect to PostgreSQL: {e}") from e
        try:
            money_sample = conn.execute(_MONEY_SAMPLE_SQL).fetchone()[0]
            self._register_loaders(conn, config, money_sample)
            self._register_hstore(conn, TypeInfo.fetch(conn, "hstore"))
        except psycopg.Error as e:
            conn.close()
            raise ConnectionError(f"Cannot set up PostgreSQL connection: {e}") from e
        return conn

    def close(self, connection: psycopg.Connection[Any]) -> None:
        connection.close()

    def execute(
        self,
        connection: psycopg.Connection[Any],
        sql: str,
        params: dict[str, Any],
        *,
        prepared: bool = False,
    ) -> psycopg.Cursor[Any]:
        cursor = connection.cursor()
        cursor.execute(sql, params, prepare=True if prepared else None)
        return cursor

    def stream(
        self,
        connection: psycopg.Connection[Any],
        sql: str,
        params: dict[str, Any],
    ) -> Iterator[tuple[Any, Any]]:
        with connection.cursor() as cursor:
            for raw in cursor.stream(sql, params):
                yield cursor.description, raw

    def begin(self, connection: psycopg.Connection[Any]) -> None:
        connection.execute("BEGIN")

    def commit(self, connection: psycopg.Connection[Any]) -> None:
        connection.execute("COMMIT")

    def rollback(self, connection: psycopg.Connection[Any]) -> None:
        connection.execute("ROLLBACK")

    @contextmanager
    def statement_timeout(
        self, connection: psycopg.Connection[Any], seconds: float | None
    ) -> Iterator[None]:
        if seconds is None:
            yield
            return
        previous = connection.execute("SHOW statement_timeout").fetchone()[0]
        connection.execute(
            "SELECT set_config('statement_timeout', %s, false)", (_timeout_setting(seconds),)
        )
        try:
            yield
        finally:
            connection.execute("SELECT set_config('statement_timeout', %s, false)", (previous,))


class PostgresqlAsyncAdapter(_PostgresqlCodec):
    """Asynchronous PostgreSQL adapter using psycopg (v3+) async support."""

    async def connect_async(self, config: ConnectionConfig) -> psycopg.AsyncConnection[Any]:
        try:
            conn = await psycopg.AsyncConnection.connect(config.to_conninfo(), autocommit=True)
        except psycopg.Error as e:
            raise ConnectionError(f"Cannot connect to PostgreSQL: {e}") from e
        try:
            cursor = await conn.execute(_MONEY_SAMPLE_SQL)
            money_sample = (await cursor.fetchone())[0]
            self._register_loaders(conn, config, money_sample)
            self._register_hstore(conn, await TypeInfo.fetch(conn, "hstore"))
        except psycopg.Error as e:
            await conn.close()
            raise ConnectionError(f"Cannot set up PostgreSQL connection: {e}") from e
        return conn

    async def close_async(self, connection: psycopg.AsyncConnection[Any]) -> None:
        await connection.close()

    async def execute_async(
        self,
        connection: psycopg.AsyncConnection[Any],
        sql: str,
        params: dict[str, Any],
        *,
        prepared: bool = False,
    ) -> psycopg.AsyncCursor[Any]:
        cursor = connection.cursor()
        await cursor.execute(sql, params, prepare=True if prepared else None)
        return cursor

    async def stream_async(
        self,
        connection: psycopg.AsyncConnection[Any],
        sql: str,
        params: dict[str, Any],
    ) -> AsyncIterator[tuple[Any, Any]]:
        async with connection.cursor() as cursor:
            async for raw in cursor.stream(sql, params):
                yield cursor.description, raw

    async def begin_async(self, connection: psycopg.AsyncConnection[Any]) -> None:
        await connection.execute("BEGIN")

    async def commit_async(self, connection: psycopg.AsyncConnection[Any]) -> None:
        await connection.execute("COMMIT")

    async def rollback_async(self, connection: psycopg.AsyncConnection[Any]) -> None:
        await connection.execute("ROLLBACK")

    @asynccontextmanager
    async def statement_timeout_async(
        self, connection: psycopg.AsyncConnection[Any], seconds: float | None
    ) -> AsyncIterator[None]:
        if seconds is None:
            yield
            return
        cursor = await connection.execute("SHOW statement_timeout")
        previous = (await cursor.fetchone())[0]
        await connection.execute(
            "SELECT set_config('statement_timeout', %s, false)", (_timeout_setting(seconds),)
        )
        try:
            yield
        finally:
            await connection.execute(
                "SELECT set_config('statement_timeout', %s, false)", (previous,)
            )
