"""Statement execution engine.

The Engine renders a Statement for its adapter, executes it on the
connection handle it owns, decodes fetched columns into DbValues and
optionally applies a row mapper. Every operation has a ``_safe``
counterpart that returns a Result instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Iterator, Sequence
from contextlib import aclosing, asynccontextmanager, closing, contextmanager
from typing import Any, TypeVar

from typed_query.core.connection import AsyncConnection, Connection, ConnectionConfig
from typed_query.core.exceptions import (
    NoResultsError,
    StatementError,
    TypedQueryError,
    ValueMappingError,
    driver_errors,
)
from typed_query.core.params import render
from typed_query.core.result import Err, Ok, Result
from typed_query.core.row import Row, RowMapper, map_each_row, map_row
from typed_query.core.statement import Statement, StatementBatch
from typed_query.core.transaction import (
    AsyncTransactionCoordinator,
    TransactionCoordinator,
    TransactionGroup,
)
from typed_query.core.values import DbValue

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _capture(fn: Callable[..., T], *args: Any) -> Result[T, TypedQueryError]:
    try:
        return Ok(fn(*args))
    except TypedQueryError as e:
        return Err(e)


async def _capture_async(awaitable: Awaitable[T]) -> Result[T, TypedQueryError]:
    try:
        return Ok(await awaitable)
    except TypedQueryError as e:
        return Err(e)


class _EngineBase:
    """Statement rendering and row decoding shared by both engines."""

    def __init__(self, connection: Any) -> None:
        self.connection = connection

    @property
    def adapter(self) -> Any:
        return self.connection.adapter

    def query(self, text: str) -> Statement:
        """Start a statement bound to this engine's connection."""
        return Statement(self.connection, text)

    def query_many(self, texts: Iterable[str]) -> StatementBatch:
        """Start a batch of independent statements for ``execute_many``."""
        return StatementBatch(self.connection, tuple(texts))

    def _check_owner(self, owner: Any) -> None:
        if owner is not self.connection:
            raise StatementError("Statement was created for a different connection")

    def _render(self, statement: Statement) -> tuple[str, dict[str, Any]]:
        self._check_owner(statement.connection)
        return render(statement.text, statement.params, self.adapter)

    def _decode_column(self, column: Any, raw: Any) -> DbValue:
        return self.adapter.to_db_value(raw, column[1], column[0])

    def _decode_row(self, description: Sequence[Any], raw: Sequence[Any]) -> Row:
        return Row(
            (column[0], self._decode_column(column, value))
            for column, value in zip(description, raw, strict=True)
        )

    def _decode_rows(self, description: Sequence[Any], raws: Iterable[Sequence[Any]]) -> list[Row]:
        rows: list[Row] = []
        for row_index, raw in enumerate(raws):
            try:
                rows.append(self._decode_row(description, raw))
            except ValueMappingError as e:
                e.row_index = row_index
                raise
        return rows

    def _map_raw(
        self,
        description: Sequence[Any],
        raw: Sequence[Any],
        mapper: RowMapper,
        row_index: int,
    ) -> Any:
        try:
            row = self._decode_row(description, raw)
        except ValueMappingError as e:
            e.row_index = row_index
            raise
        return map_row(row, mapper, row_index).unwrap()

    def _batch(self, batch: StatementBatch) -> list[Statement]:
        self._check_owner(batch.connection)
        return [Statement(self.connection, text) for text in batch.texts]


class Engine(_EngineBase):
    """Synchronous statement execution engine."""

    connection: Connection

    def __init__(self, connection: Connection) -> None:
        super().__init__(connection)

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> Engine:
        """Create an Engine from a ConnectionConfig.

        The connection is opened on first use.
        """
        return cls(Connection(config))

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> Engine:
        self.connection.open()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @contextmanager
    def _cursor(self, conn: Any, statement: Statement) -> Iterator[Any]:
        sql, params = self._render(statement)
        with driver_errors(self.adapter), self.adapter.statement_timeout(conn, statement.timeout):
            logger.debug("Executing statement: %s", statement.text)
            cursor = self.adapter.execute(conn, sql, params, prepared=statement.prepared)
            try:
                yield cursor
            finally:
                cursor.close()

    @contextmanager
    def _run(self, statement: Statement) -> Iterator[Any]:
        with self.connection.exclusive() as conn, self._cursor(conn, statement) as cursor:
            yield cursor

    def _table(self, cursor: Any) -> list[Row]:
        if cursor.description is None:
            return []
        return self._decode_rows(cursor.description, cursor.fetchall())

    # --- raising operations ---

    def execute_non_query(self, statement: Statement) -> int:
        """Run the statement and return the affected-row count."""
        with self._run(statement) as cursor:
            return int(cursor.rowcount)

    def execute_scalar(self, statement: Statement) -> DbValue:
        """Return column 0 of row 0.

        Raises:
            NoResultsError: If the statement produced no row.
        """
        with self._run(statement) as cursor:
            raw = cursor.fetchone() if cursor.description else None
            if raw is None:
                raise NoResultsError(statement.text)
            return self._decode_column(cursor.description[0], raw[0])

    def execute_table(self, statement: Statement) -> list[Row]:
        with self._run(statement) as cursor:
            return self._table(cursor)

    def execute(self, statement: Statement, mapper: RowMapper) -> list[Any]:
        """Fetch every row, then map them in fetch order."""
        return map_each_row(self.execute_table(statement), mapper).unwrap()

    def execute_reader(self, statement: Statement, mapper: RowMapper) -> list[Any]:
        """Map rows one at a time as they are read from the live cursor."""
        mapped: list[Any] = []
        with self._run(statement) as cursor:
            if cursor.description is None:
                return mapped
            for row_index, raw in enumerate(iter(cursor.fetchone, None)):
                mapped.append(self._map_raw(cursor.description, raw, mapper, row_index))
        return mapped

    def stream(self, statement: Statement, mapper: RowMapper) -> Iterator[Any]:
        """Yield mapped rows while the result is still being received.

        The connection stays busy until the generator is exhausted or closed.
        """
        with self.connection.exclusive() as conn, driver_errors(self.adapter):
            sql, params = self._render(statement)
            with self.adapter.statement_timeout(conn, statement.timeout):
                logger.debug("Streaming statement: %s", statement.text)
                with closing(self.adapter.stream(conn, sql, params)) as rows:
                    for row_index, (description, raw) in enumerate(rows):
                        yield self._map_raw(description, raw, mapper, row_index)

    def execute_single_row(self, statement: Statement, mapper: RowMapper) -> Any:
        """Map the first row only.

        Raises:
            NoResultsError: If the statement produced no row.
        """
        with self._run(statement) as cursor:
            raw = cursor.fetchone() if cursor.description else None
            if raw is None:
                raise NoResultsError(statement.text)
            return self._map_raw(cursor.description, raw, mapper, 0)

    def execute_many(self, batch: StatementBatch) -> list[list[Row]]:
        """Run independent statements in order, one table per statement.

        No transaction wraps the batch: statements that completed before a
        failure keep their effects. The raised error carries
        ``statement_index``.
        """
        tables: list[list[Row]] = []
        with self.connection.exclusive() as conn:
            for index, statement in enumerate(self._batch(batch)):
                try:
                    with self._cursor(conn, statement) as cursor:
                        tables.append(self._table(cursor))
                except TypedQueryError as e:
                    e.statement_index = index
                    raise
        return tables

    def execute_transaction(self, groups: Sequence[TransactionGroup]) -> list[int]:
        """Run statement groups atomically; see TransactionCoordinator."""
        return TransactionCoordinator(self.connection).run(groups)

    # --- safe operations ---

    def execute_non_query_safe(self, statement: Statement) -> Result[int, TypedQueryError]:
        return _capture(self.execute_non_query, statement)

    def execute_scalar_safe(self, statement: Statement) -> Result[DbValue, TypedQueryError]:
        return _capture(self.execute_scalar, statement)

    def execute_table_safe(self, statement: Statement) -> Result[list[Row], TypedQueryError]:
        return _capture(self.execute_table, statement)

    def execute_safe(
        self, statement: Statement, mapper: RowMapper
    ) -> Result[list[Any], TypedQueryError]:
        return _capture(self.execute, statement, mapper)

    def execute_reader_safe(
        self, statement: Statement, mapper: RowMapper
    ) -> Result[list[Any], TypedQueryError]:
        return _capture(self.execute_reader, statement, mapper)

    def execute_single_row_safe(
        self, statement: Statement, mapper: RowMapper
    ) -> Result[Any, TypedQueryError]:
        return _capture(self.execute_single_row, statement, mapper)

    def execute_many_safe(self, batch: StatementBatch) -> Result[list[list[Row]], TypedQueryError]:
        return _capture(self.execute_many, batch)

    def execute_transaction_safe(
        self, groups: Sequence[TransactionGroup]
    ) -> Result[list[int], TypedQueryError]:
        return _capture(self.execute_transaction, groups)


class AsyncEngine(_EngineBase):
    """Asynchronous statement execution engine."""

    connection: AsyncConnection

    def __init__(self, connection: AsyncConnection) -> None:
        super().__init__(connection)

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> AsyncEngine:
        """Create an AsyncEngine from a ConnectionConfig.

        The connection is opened on first use.
        """
        return cls(AsyncConnection(config))

    async def close(self) -> None:
        await self.connection.close()

    async def __aenter__(self) -> AsyncEngine:
        await self.connection.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @asynccontextmanager
    async def _cursor(self, conn: Any, statement: Statement) -> AsyncIterator[Any]:
        sql, params = self._render(statement)
        with driver_errors(self.adapter):
            async with self.adapter.statement_timeout_async(conn, statement.timeout):
                logger.debug("Executing statement: %s", statement.text)
                cursor = await self.adapter.execute_async(
                    conn, sql, params, prepared=statement.prepared
                )
                try:
                    yield cursor
                finally:
                    await cursor.close()

    @asynccontextmanager
    async def _run(self, statement: Statement) -> AsyncIterator[Any]:
        async with self.connection.exclusive() as conn, self._cursor(conn, statement) as cursor:
            yield cursor

    async def _table(self, cursor: Any) -> list[Row]:
        if cursor.description is None:
            return []
        return self._decode_rows(cursor.description, await cursor.fetchall())

    # --- raising operations ---

    async def execute_non_query(self, statement: Statement) -> int:
        async with self._run(statement) as cursor:
            return int(cursor.rowcount)

    async def execute_scalar(self, statement: Statement) -> DbValue:
        async with self._run(statement) as cursor:
            raw = await cursor.fetchone() if cursor.description else None
            if raw is None:
                raise NoResultsError(statement.text)
            return self._decode_column(cursor.description[0], raw[0])

    async def execute_table(self, statement: Statement) -> list[Row]:
        async with self._run(statement) as cursor:
            return await self._table(cursor)

    async def execute(self, statement: Statement, mapper: RowMapper) -> list[Any]:
        return map_each_row(await self.execute_table(statement), mapper).unwrap()

    async def execute_reader(self, statement: Statement, mapper: RowMapper) -> list[Any]:
        mapped: list[Any] = []
        async with self._run(statement) as cursor:
            if cursor.description is None:
                return mapped
            row_index = 0
            while True:
                raw = await cursor.fetchone()
                if raw is None:
                    break
                mapped.append(self._map_raw(cursor.description, raw, mapper, row_index))
                row_index += 1
        return mapped

    async def stream(self, statement: Statement, mapper: RowMapper) -> AsyncIterator[Any]:
        async with self.connection.exclusive() as conn:
            sql, params = self._render(statement)
            with driver_errors(self.adapter):
                async with self.adapter.statement_timeout_async(conn, statement.timeout):
                    logger.debug("Streaming statement: %s", statement.text)
                    async with aclosing(self.adapter.stream_async(conn, sql, params)) as rows:
                        row_index = 0
                        async for description, raw in rows:
                            yield self._map_raw(description, raw, mapper, row_index)
                            row_index += 1

    async def execute_single_row(self, statement: Statement, mapper: RowMapper) -> Any:
        async with self._run(statement) as cursor:
            raw = await cursor.fetchone() if cursor.description else None
            if raw is None:
                raise NoResultsError(statement.text)
            return self._map_raw(cursor.description, raw, mapper, 0)

    async def execute_many(self, batch: StatementBatch) -> list[list[Row]]:
        tables: list[list[Row]] = []
        async with self.connection.exclusive() as conn:
            for index, statement in enumerate(self._batch(batch)):
                try:
                    async with self._cursor(conn, statement) as cursor:
                        tables.append(await self._table(cursor))
                except TypedQueryError as e:
                    e.statement_index = index
                    raise
        return tables

    async def execute_transaction(self, groups: Sequence[TransactionGroup]) -> list[int]:
        return await AsyncTransactionCoordinator(self.connection).run(groups)

    # --- safe operations ---

    async def execute_non_query_safe(self, statement: Statement) -> Result[int, TypedQueryError]:
        return await _capture_async(self.execute_non_query(statement))

    async def execute_scalar_safe(self, statement: Statement) -> Result[DbValue, TypedQueryError]:
        return await _capture_async(self.execute_scalar(statement))

    async def execute_table_safe(
        self, statement: Statement
    ) -> Result[list[Row], TypedQueryError]:
        return await _capture_async(self.execute_table(statement))

    async def execute_safe(
        self, statement: Statement, mapper: RowMapper
    ) -> Result[list[Any], TypedQueryError]:
        return await _capture_async(self.execute(statement, mapper))

    async def execute_reader_safe(
        self, statement: Statement, mapper: RowMapper
    ) -> Result[list[Any], TypedQueryError]:
        return await _capture_async(self.execute_reader(statement, mapper))

    async def execute_single_row_safe(
        self, statement: Statement, mapper: RowMapper
    ) -> Result[Any, TypedQueryError]:
        return await _capture_async(self.execute_single_row(statement, mapper))

    async def execute_many_safe(
        self, batch: StatementBatch
    ) -> Result[list[list[Row]], TypedQueryError]:
        return await _capture_async(self.execute_many(batch))

    async def execute_transaction_safe(
        self, groups: Sequence[TransactionGroup]
    ) -> Result[list[int], TypedQueryError]:
        return await _capture_async(self.execute_transaction(groups))
