"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest

from typed_query.core.connection import ConnectionConfig
from typed_query.core.engine import AsyncEngine, Engine
from typed_query.core.row import Row
from typed_query.core.values import from_native


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config."""
    return ConnectionConfig(driver="sqlite", database=":memory:")


@pytest.fixture
def engine(sqlite_config: ConnectionConfig) -> Iterator[Engine]:
    """Engine on an in-memory SQLite database with a seeded ``users`` table."""
    eng = Engine.from_config(sqlite_config)
    eng.execute_non_query(
        eng.query("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT)")
    )
    eng.execute_transaction(
        [
            (
                "INSERT INTO users (id, name, email) VALUES (@id, @name, @email)",
                [
                    {"id": 1, "name": "Alice", "email": "alice@example.com"},
                    {"id": 2, "name": "Bob", "email": None},
                ],
            )
        ]
    )
    yield eng
    eng.close()


@pytest.fixture
async def async_engine(sqlite_config: ConnectionConfig) -> AsyncIterator[AsyncEngine]:
    """AsyncEngine on an in-memory SQLite database with a seeded ``users`` table."""
    eng = AsyncEngine.from_config(sqlite_config)
    await eng.execute_non_query(
        eng.query("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT)")
    )
    await eng.execute_transaction(
        [
            (
                "INSERT INTO users (id, name, email) VALUES (@id, @name, @email)",
                [
                    {"id": 1, "name": "Alice", "email": "alice@example.com"},
                    {"id": 2, "name": "Bob", "email": None},
                ],
            )
        ]
    )
    yield eng
    await eng.close()


@pytest.fixture
def make_row():
    """Helper to build a Row from native values.

    Usage:
        make_row(id=1, name="Alice")
    """

    def _make(**columns: object) -> Row:
        return Row((name, from_native(value)) for name, value in columns.items())

    return _make
