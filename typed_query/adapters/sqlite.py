"""SQLite adapter - sync (sqlite3 stdlib) and async (aiosqlite).

SQLite has no column types to decode by, so fetched values map by storage
class: INTEGER → Long, REAL → Double, TEXT → Text, BLOB → Bytea.
"""

from __future__ import annotations

import sqlite3
import time
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

from typed_query.core.connection import ConnectionConfig
from typed_query.core.exceptions import (
    ConnectionError,
    ConversionError,
    ParameterError,
    QueryCancelledError,
    StatementError,
    TypedQueryError,
)
from typed_query.core.values import (
    NULL,
    BoolValue,
    ByteaValue,
    DateValue,
    DbValue,
    DecimalValue,
    DoubleValue,
    HStoreValue,
    IntArrayValue,
    LongValue,
    TextArrayValue,
    TextValue,
    TimestampTzValue,
    TimestampValue,
    TimeValue,
    UuidValue,
)

# Number of VM instructions between deadline checks
_PROGRESS_STEPS = 1000


def _deadline_handler(seconds: float) -> Callable[[], int]:
    deadline = time.monotonic() + seconds

    def handler() -> int:
        return 1 if time.monotonic() >= deadline else 0

    return handler


class _SqliteCodec:
    """Value conversion and error translation shared by both adapters."""

    @property
    def paramstyle(self) -> str:
        return "named"

    def cast_for(self, value: DbValue) -> str | None:
        return None

    def to_driver(self, value: DbValue) -> Any:
        if isinstance(value, (TextArrayValue, IntArrayValue, HStoreValue)):
            raise ParameterError(f"SQLite cannot bind {value.kind.value} values")
        if isinstance(value, BoolValue):
            return int(value.value)
        if isinstance(value, (DecimalValue, UuidValue)):
            return str(value.value)
        if isinstance(value, (DateValue, TimeValue, TimestampValue, TimestampTzValue)):
            return value.value.isoformat()
        return value.to_native()

    def to_db_value(self, raw: Any, type_code: Any, column: str) -> DbValue:
        if raw is None:
            return NULL
        if isinstance(raw, int):
            return LongValue(raw)
        if isinstance(raw, float):
            return DoubleValue(raw)
        if isinstance(raw, str):
            return TextValue(raw)
        if isinstance(raw, bytes):
            return ByteaValue(raw)
        raise ConversionError(f"unexpected SQLite value of type {type(raw).__name__}", column)

    def translate_error(self, exc: BaseException) -> TypedQueryError | None:
        if not isinstance(exc, sqlite3.Error):
            return None
        if isinstance(exc, sqlite3.OperationalError) and "interrupted" in str(exc):
            return QueryCancelledError(str(exc))
        return StatementError(str(exc), sqlstate=getattr(exc, "sqlite_errorname", None))


class SqliteSyncAdapter(_SqliteCodec):
    """Synchronous SQLite adapter using stdlib sqlite3."""

    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        try:
            # isolation_level=None: no implicit BEGIN, transactions are explicit
            conn = sqlite3.connect(
                config.database, isolation_level=None, check_same_thread=False
            )
        except sqlite3.Error as e:
            raise ConnectionError(f"Cannot open SQLite database {config.database!r}: {e}") from e
        if config.database != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def close(self, connection: sqlite3.Connection) -> None:
        connection.close()

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any],
        *,
        prepared: bool = False,
    ) -> sqlite3.Cursor:
        """Execute SQL and return a cursor.

        sqlite3 caches compiled statements per connection, so ``prepared``
        has nothing left to do here.
        """
        return connection.execute(sql, params)

    def stream(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any],
    ) -> Iterator[tuple[Any, Any]]:
        cursor = connection.execute(sql, params)
        try:
            for raw in iter(cursor.fetchone, None):
                yield cursor.description, raw
        finally:
            cursor.close()

    def begin(self, connection: sqlite3.Connection) -> None:
        connection.execute("BEGIN")

    def commit(self, connection: sqlite3.Connection) -> None:
        connection.execute("COMMIT")

    def rollback(self, connection: sqlite3.Connection) -> None:
        connection.execute("ROLLBACK")

    @contextmanager
    def statement_timeout(
        self, connection: sqlite3.Connection, seconds: float | None
    ) -> Iterator[None]:
        if seconds is None:
            yield
            return
        connection.set_progress_handler(_deadline_handler(seconds), _PROGRESS_STEPS)
        try:
            yield
        finally:
            connection.set_progress_handler(None, 0)


class SqliteAsyncAdapter(_SqliteCodec):
    """Asynchronous SQLite adapter using aiosqlite."""

    async def connect_async(self, config: ConnectionConfig) -> Any:
        import aiosqlite

        try:
            conn = await aiosqlite.connect(config.database, isolation_level=None)
        except sqlite3.Error as e:
            raise ConnectionError(f"Cannot open SQLite database {config.database!r}: {e}") from e
        if config.database != ":memory:":
            await conn.execute("PRAGMA journal_mode=WAL")
        return conn

    async def close_async(self, connection: Any) -> None:
        await connection.close()

    async def execute_async(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
        *,
        prepared: bool = False,
    ) -> Any:
        return await connection.execute(sql, params)

    async def stream_async(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
    ) -> AsyncIterator[tuple[Any, Any]]:
        cursor = await connection.execute(sql, params)
        try:
            async for raw in cursor:
                yield cursor.description, raw
        finally:
            await cursor.close()

    async def begin_async(self, connection: Any) -> None:
        await connection.execute("BEGIN")

    async def commit_async(self, connection: Any) -> None:
        await connection.execute("COMMIT")

    async def rollback_async(self, connection: Any) -> None:
        await connection.execute("ROLLBACK")

    @asynccontextmanager
    async def statement_timeout_async(
        self, connection: Any, seconds: float | None
    ) -> AsyncIterator[None]:
        if seconds is None:
            yield
            return
        await connection.set_progress_handler(_deadline_handler(seconds), _PROGRESS_STEPS)
        try:
            yield
        finally:
            await connection.set_progress_handler(None, 0)
