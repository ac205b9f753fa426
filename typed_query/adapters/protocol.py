"""Database adapter protocols.

Every adapter module MUST implement these protocols. The engine never
touches a driver directly: parameters go through ``to_driver``, fetched
columns come back through ``to_db_value`` and driver exceptions through
``translate_error``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from contextlib import AbstractAsyncContextManager, AbstractContextManager
from typing import Any, Protocol, runtime_checkable

from typed_query.core.connection import ConnectionConfig
from typed_query.core.exceptions import TypedQueryError
from typed_query.core.values import DbValue


@runtime_checkable
class SyncAdapter(Protocol):
    """Synchronous database adapter protocol."""

    @property
    def paramstyle(self) -> str:
        """Parameter binding style: 'named' (:name) or 'pyformat' (%(name)s)."""
        ...

    def connect(self, config: ConnectionConfig) -> Any:
        """Open a driver connection in autocommit mode."""
        ...

    def close(self, connection: Any) -> None:
        """Close a driver connection."""
        ...

    def cast_for(self, value: DbValue) -> str | None:
        """Type a placeholder must be cast to, or None."""
        ...

    def to_driver(self, value: DbValue) -> Any:
        """Convert a DbValue to the object handed to the driver."""
        ...

    def to_db_value(self, raw: Any, type_code: Any, column: str) -> DbValue:
        """Convert one fetched column to a DbValue."""
        ...

    def translate_error(self, exc: BaseException) -> TypedQueryError | None:
        """Map a driver exception to the TypedQuery taxonomy, or None."""
        ...

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
        *,
        prepared: bool = False,
    ) -> Any:
        """Execute SQL and return a cursor-like object."""
        ...

    def stream(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
    ) -> Iterator[tuple[Any, Any]]:
        """Yield ``(description, raw_row)`` pairs straight from the driver."""
        ...

    def begin(self, connection: Any) -> None: ...

    def commit(self, connection: Any) -> None: ...

    def rollback(self, connection: Any) -> None: ...

    def statement_timeout(
        self, connection: Any, seconds: float | None
    ) -> AbstractContextManager[None]:
        """Cancel statements that run longer than ``seconds`` inside the block."""
        ...


@runtime_checkable
class AsyncAdapter(Protocol):
    """Asynchronous database adapter protocol."""

    @property
    def paramstyle(self) -> str:
        """Parameter binding style: 'named' (:name) or 'pyformat' (%(name)s)."""
        ...

    async def connect_async(self, config: ConnectionConfig) -> Any:
        """Open an async driver connection in autocommit mode."""
        ...

    async def close_async(self, connection: Any) -> None:
        """Close an async driver connection."""
        ...

    def cast_for(self, value: DbValue) -> str | None: ...

    def to_driver(self, value: DbValue) -> Any: ...

    def to_db_value(self, raw: Any, type_code: Any, column: str) -> DbValue: ...

    def translate_error(self, exc: BaseException) -> TypedQueryError | None: ...

    async def execute_async(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
        *,
        prepared: bool = False,
    ) -> Any:
        """Execute SQL asynchronously and return a cursor-like object."""
        ...

    def stream_async(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
    ) -> AsyncIterator[tuple[Any, Any]]:
        """Yield ``(description, raw_row)`` pairs straight from the driver."""
        ...

    async def begin_async(self, connection: Any) -> None: ...

    async def commit_async(self, connection: Any) -> None: ...

    async def rollback_async(self, connection: Any) -> None: ...

    def statement_timeout_async(
        self, connection: Any, seconds: float | None
    ) -> AbstractAsyncContextManager[None]:
        """Cancel statements that run longer than ``seconds`` inside the block."""
        ...
