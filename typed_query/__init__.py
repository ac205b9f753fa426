"""TypedQuery - typed statement execution and value mapping."""

from __future__ import annotations

from typed_query.core.connection import AsyncConnection, Connection, ConnectionConfig
from typed_query.core.engine import AsyncEngine, Engine
from typed_query.core.enums import DatabaseBackend, SslMode
from typed_query.core.exceptions import (
    AdapterError,
    ColumnNotFoundError,
    ConnectionBusyError,
    ConnectionError,  # noqa: A004
    ConversionError,
    DecoderNotFoundError,
    DuplicateDecoderError,
    DuplicateParameterError,
    ExecutionError,
    MappingError,
    NoResultsError,
    ParameterError,
    PlanCompilationError,
    QueryCancelledError,
    StatementError,
    TransactionAbortedError,
    TransactionError,
    TransactionStateError,
    TypedQueryError,
    TypeMismatchError,
    ValueMappingError,
)
from typed_query.core.result import Err, Ok, Result, apply, collect
from typed_query.core.row import Row, RowReader, map_each_row
from typed_query.core.statement import Statement, StatementBatch, multiline
from typed_query.core.transaction import AsyncTransactionCoordinator, TransactionCoordinator
from typed_query.core.values import (
    NULL,
    BitValue,
    BoolValue,
    ByteaValue,
    DateValue,
    DbKind,
    DbValue,
    DecimalValue,
    DoubleValue,
    HStoreValue,
    IntArrayValue,
    IntValue,
    JsonbValue,
    LongValue,
    NullValue,
    ShortValue,
    TextArrayValue,
    TextValue,
    TimestampTzValue,
    TimestampValue,
    TimeValue,
    UuidValue,
    from_native,
    or_null,
)
from typed_query.mapping import DecoderRegistry, RecordDecoder, decoder

__all__ = [
    # Connection
    "ConnectionConfig",
    "Connection",
    "AsyncConnection",
    # Engine
    "Engine",
    "AsyncEngine",
    # Statements
    "Statement",
    "StatementBatch",
    "multiline",
    # Transaction
    "TransactionCoordinator",
    "AsyncTransactionCoordinator",
    # Values
    "DbKind",
    "DbValue",
    "NULL",
    "NullValue",
    "BoolValue",
    "BitValue",
    "ShortValue",
    "IntValue",
    "LongValue",
    "DoubleValue",
    "DecimalValue",
    "TextValue",
    "ByteaValue",
    "UuidValue",
    "DateValue",
    "TimeValue",
    "TimestampValue",
    "TimestampTzValue",
    "TextArrayValue",
    "IntArrayValue",
    "JsonbValue",
    "HStoreValue",
    "from_native",
    "or_null",
    # Rows and results
    "Row",
    "RowReader",
    "map_each_row",
    "Ok",
    "Err",
    "Result",
    "collect",
    "apply",
    # Mapping
    "RecordDecoder",
    "DecoderRegistry",
    "decoder",
    # Enums
    "DatabaseBackend",
    "SslMode",
    # Exceptions
    "TypedQueryError",
    "ValueMappingError",
    "TypeMismatchError",
    "ColumnNotFoundError",
    "ConversionError",
    "ExecutionError",
    "StatementError",
    "NoResultsError",
    "QueryCancelledError",
    "ParameterError",
    "DuplicateParameterError",
    "MappingError",
    "DecoderNotFoundError",
    "DuplicateDecoderError",
    "PlanCompilationError",
    "TransactionError",
    "TransactionAbortedError",
    "TransactionStateError",
    "AdapterError",
    "ConnectionError",
    "ConnectionBusyError",
]
