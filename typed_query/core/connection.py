"""Connection configuration and connection handles.

ConnectionConfig is a frozen Pydantic model; each ``with_*`` step returns a
copy with one field changed and ``to_conninfo`` finalises the libpq
connection string. Connection and AsyncConnection wrap one driver
connection and serialise every operation issued on it.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import os
import threading
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import asynccontextmanager, contextmanager
from typing import Any

from pydantic import BaseModel, ConfigDict

from typed_query.core.enums import DatabaseBackend, SslMode
from typed_query.core.exceptions import AdapterError, ConnectionBusyError

logger = logging.getLogger(__name__)


def _quote_conninfo(value: str) -> str:
    if value and not any(c in value for c in " '\\="):
        return value
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class ConnectionConfig(BaseModel):
    """Configuration for database connections."""

    model_config = ConfigDict(frozen=True)

    driver: str = "postgresql"
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str
    ssl_mode: SslMode | None = None
    trust_server_certificate: bool = False
    convert_infinity_datetime: bool = False
    connect_timeout: int | None = None
    extra: dict[str, Any] = {}

    def _with(self, **changes: Any) -> ConnectionConfig:
        return self.model_copy(update=changes)

    def with_host(self, host: str) -> ConnectionConfig:
        return self._with(host=host)

    def with_port(self, port: int) -> ConnectionConfig:
        return self._with(port=port)

    def with_user(self, user: str) -> ConnectionConfig:
        return self._with(user=user)

    def with_password(self, password: str) -> ConnectionConfig:
        return self._with(password=password)

    def with_database(self, database: str) -> ConnectionConfig:
        return self._with(database=database)

    def with_ssl_mode(self, ssl_mode: SslMode) -> ConnectionConfig:
        return self._with(ssl_mode=ssl_mode)

    def with_trust_server_certificate(self, trust: bool = True) -> ConnectionConfig:
        return self._with(trust_server_certificate=trust)

    def with_infinity_conversion(self, enabled: bool = True) -> ConnectionConfig:
        """Map ±infinity dates and timestamps to the native max/min values."""
        return self._with(convert_infinity_datetime=enabled)

    def to_conninfo(self) -> str:
        """Build a libpq connection string from config fields.

        ``trust_server_certificate`` turns the verifying SSL modes into
        ``require``, which encrypts without validating the certificate.
        """
        ssl_mode = self.ssl_mode
        if self.trust_server_certificate and ssl_mode in (SslMode.VERIFY_CA, SslMode.VERIFY_FULL):
            ssl_mode = SslMode.REQUIRE

        fields: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "dbname": self.database,
            "sslmode": ssl_mode.value if ssl_mode is not None else None,
            "connect_timeout": self.connect_timeout,
        }
        fields.update(self.extra)
        return " ".join(
            f"{key}={_quote_conninfo(str(value))}"
            for key, value in fields.items()
            if value is not None
        )

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> ConnectionConfig:
        """Read the standard libpq PG* environment variables."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            "host": env.get("PGHOST"),
            "port": int(env["PGPORT"]) if env.get("PGPORT") else None,
            "user": env.get("PGUSER"),
            "password": env.get("PGPASSWORD"),
            "database": env.get("PGDATABASE", "postgres"),
        }
        if env.get("PGSSLMODE"):
            values["ssl_mode"] = SslMode(env["PGSSLMODE"])
        values.update(overrides)
        return cls(**values)


# Adapter module mapping: driver name → (module_path, sync_class, async_class)
_ADAPTER_MAP: dict[DatabaseBackend, tuple[str, str, str]] = {
    DatabaseBackend.SQLITE: (
        "typed_query.adapters.sqlite",
        "SqliteSyncAdapter",
        "SqliteAsyncAdapter",
    ),
    DatabaseBackend.POSTGRESQL: (
        "typed_query.adapters.postgresql",
        "PostgresqlSyncAdapter",
        "PostgresqlAsyncAdapter",
    ),
}


def _load_adapter(driver: str, kind: str) -> Any:
    """Load a sync or async adapter by driver name."""
    try:
        backend = DatabaseBackend(driver.lower())
    except ValueError:
        raise AdapterError(f"Unsupported database driver: {driver}") from None

    module_path, sync_cls_name, async_cls_name = _ADAPTER_MAP[backend]
    cls_name = sync_cls_name if kind == "sync" else async_cls_name

    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load {kind} adapter for '{driver}': {e}") from e


class Connection:
    """Synchronous connection handle using the SyncAdapter protocol.

    The driver connection is opened lazily on first use. Operations hold
    the handle's lock, so two threads sharing a handle run one after the
    other; re-entering from the thread that holds it raises
    ConnectionBusyError.
    """

    def __init__(self, config: ConnectionConfig) -> None:
        self.config = config
        self._adapter = _load_adapter(config.driver, "sync")
        self._raw: Any = None
        self._lock = threading.Lock()
        self._owner: int | None = None

    @property
    def adapter(self) -> Any:
        return self._adapter

    @property
    def is_open(self) -> bool:
        return self._raw is not None

    def open(self) -> Connection:
        if self._raw is None:
            logger.debug("Opening %s connection to %s", self.config.driver, self.config.database)
            self._raw = self._adapter.connect(self.config)
        return self

    def close(self) -> None:
        if self._raw is not None:
            logger.debug("Closing %s connection", self.config.driver)
            self._adapter.close(self._raw)
            self._raw = None

    @contextmanager
    def exclusive(self) -> Iterator[Any]:
        """Hold the handle for one operation and yield the driver connection."""
        if self._owner == threading.get_ident():
            raise ConnectionBusyError()
        with self._lock:
            self._owner = threading.get_ident()
            try:
                self.open()
                yield self._raw
            finally:
                self._owner = None

    def __enter__(self) -> Connection:
        return self.open()

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class AsyncConnection:
    """Asynchronous connection handle using the AsyncAdapter protocol."""

    def __init__(self, config: ConnectionConfig) -> None:
        self.config = config
        self._adapter = _load_adapter(config.driver, "async")
        self._raw: Any = None
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None

    @property
    def adapter(self) -> Any:
        return self._adapter

    @property
    def is_open(self) -> bool:
        return self._raw is not None

    async def open(self) -> AsyncConnection:
        if self._raw is None:
            logger.debug("Opening async %s connection to %s", self.config.driver, self.config.database)
            self._raw = await self._adapter.connect_async(self.config)
        return self

    async def close(self) -> None:
        if self._raw is not None:
            logger.debug("Closing async %s connection", self.config.driver)
            await self._adapter.close_async(self._raw)
            self._raw = None

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[Any]:
        """Hold the handle for one operation and yield the driver connection."""
        task = asyncio.current_task()
        if task is not None and self._owner is task:
            raise ConnectionBusyError()
        async with self._lock:
            self._owner = task
            try:
                await self.open()
                yield self._raw
            finally:
                self._owner = None

    async def __aenter__(self) -> AsyncConnection:
        return await self.open()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
