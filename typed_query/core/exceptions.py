"""TypedQuery exception hierarchy.

All exceptions are TypedQuery-specific. Raw driver exceptions are never
exposed to callers: adapters translate them and chain the original.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


class TypedQueryError(Exception):
    """Base exception for all TypedQuery errors.

    ``statement_index`` is set when the failing statement was part of a
    multi-statement batch.
    """

    statement_index: int | None = None


# --- Value mapping ---


class ValueMappingError(TypedQueryError):
    """Base for errors raised while reading or converting values.

    ``row_index`` is set by the engine when the failure happened while
    mapping a fetched row.
    """

    row_index: int | None = None


class TypeMismatchError(ValueMappingError):
    """Raised when a value's active kind does not match the requested type."""

    def __init__(self, expected: str, actual: str, column: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.column = column
        where = f" in column '{column}'" if column is not None else ""
        super().__init__(f"Expected {expected} but found {actual}{where}")


class ColumnNotFoundError(ValueMappingError):
    """Raised when a named accessor targets a column absent from the row."""

    def __init__(self, column: str, available: list[str]) -> None:
        self.column = column
        self.available = available
        super().__init__(f"Column '{column}' not found, available columns: {available}")


class ConversionError(ValueMappingError):
    """Raised when a raw driver value cannot be represented as a DbValue."""

    def __init__(self, detail: str, column: str | None = None) -> None:
        self.column = column
        where = f" for column '{column}'" if column is not None else ""
        super().__init__(f"Cannot convert value{where}: {detail}")


# --- Execution ---


class ExecutionError(TypedQueryError):
    """Base for statement execution errors."""


class StatementError(ExecutionError):
    """Raised when the server rejects a statement (syntax, constraints, ...)."""

    def __init__(self, detail: str, sqlstate: str | None = None) -> None:
        self.sqlstate = sqlstate
        super().__init__(detail)


class NoResultsError(ExecutionError):
    """Raised when a scalar or single-row read finds no rows."""

    def __init__(self, sql: str) -> None:
        self.sql = sql
        super().__init__(f"Statement returned no rows: {sql[:80]}")


class QueryCancelledError(ExecutionError):
    """Raised when a statement timed out or was cancelled."""


class ParameterError(ExecutionError):
    """Raised on parameter binding failures."""


class DuplicateParameterError(ParameterError):
    """Raised when the same parameter name is bound twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Parameter '{name}' is already bound")


# --- Mapping ---


class MappingError(TypedQueryError):
    """Base for record decoding errors."""


class DecoderNotFoundError(MappingError):
    """Raised when no decoder is registered for a target type."""

    def __init__(self, target_class: str) -> None:
        self.target_class = target_class
        super().__init__(f"No decoder registered for '{target_class}'")


class DuplicateDecoderError(MappingError):
    """Raised when a second decoder is registered for the same type."""

    def __init__(self, target_class: str) -> None:
        self.target_class = target_class
        super().__init__(f"A decoder for '{target_class}' is already registered")


class PlanCompilationError(MappingError):
    """Raised when a DecoderPlan fails validation during build()."""


# --- Transaction ---


class TransactionError(TypedQueryError):
    """Base for transaction errors."""


class TransactionAbortedError(TransactionError):
    """Raised when one execution of a transactional batch failed.

    The transaction was rolled back; ``group_index`` and ``set_index``
    identify the failing execution (both ``None`` when COMMIT failed).
    """

    def __init__(
        self,
        group_index: int | None,
        set_index: int | None,
        cause: BaseException,
    ) -> None:
        self.group_index = group_index
        self.set_index = set_index
        self.cause = cause
        if group_index is None:
            where = "commit"
        else:
            where = f"statement {group_index}, parameter set {set_index}"
        super().__init__(f"Transaction rolled back, {where} failed: {cause}")


class TransactionStateError(TransactionError):
    """Raised on invalid transaction state transitions."""

    def __init__(self, current_state: str, attempted_action: str) -> None:
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} transaction in state '{current_state}'")


# --- Adapter ---


class AdapterError(TypedQueryError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised when the database cannot be reached or authentication fails."""


class ConnectionBusyError(AdapterError):
    """Raised when a connection is re-entered while an operation is in flight."""

    def __init__(self) -> None:
        super().__init__(
            "Connection already has an operation in flight; "
            "use a separate connection for overlapping work"
        )


@contextmanager
def driver_errors(adapter: Any) -> Iterator[None]:
    """Re-raise driver exceptions as TypedQuery errors, chaining the original.

    Exceptions the adapter does not recognise propagate unchanged.
    """
    try:
        yield
    except TypedQueryError:
        raise
    except Exception as e:
        translated = adapter.translate_error(e)
        if translated is None:
            raise
        raise translated from e
