"""Transaction coordination.

Runs an ordered list of ``(statement_text, parameter_sets)`` groups as one
atomic unit: every parameter set is bound before BEGIN, each execution
runs in order, and any failure rolls the whole batch back.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any

from typed_query.core.exceptions import (
    TransactionAbortedError,
    TransactionStateError,
    TypedQueryError,
    driver_errors,
)
from typed_query.core.params import ParameterSet, bind_parameters, render

logger = logging.getLogger(__name__)

TransactionGroup = tuple[str, Sequence[ParameterSet]]


class _TxState(Enum):
    IDLE = "idle"
    STARTED = "started"
    EXECUTING = "executing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class _CoordinatorBase:
    def __init__(self, connection: Any) -> None:
        self._connection = connection
        self._adapter = connection.adapter
        self._state = _TxState.IDLE
        self._position: tuple[int, int] | None = None

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def position(self) -> tuple[int, int] | None:
        """``(group_index, set_index)`` of the last execution started."""
        return self._position

    def _check_idle(self) -> None:
        if self._state is not _TxState.IDLE:
            raise TransactionStateError(self._state.value, "run")

    def _compile(self, groups: Sequence[TransactionGroup]) -> list[list[tuple[str, dict[str, Any]]]]:
        """Bind every parameter set before BEGIN so bad input never opens a transaction.

        Called with the connection open: hstore binding needs the server's
        type OID. A group with no parameter sets runs once without
        parameters.
        """
        compiled: list[list[tuple[str, dict[str, Any]]]] = []
        for group_index, (text, parameter_sets) in enumerate(groups):
            runs: list[tuple[str, dict[str, Any]]] = []
            for set_index, params in enumerate(parameter_sets or [None]):
                try:
                    runs.append(render(text, bind_parameters(params), self._adapter))
                except TypedQueryError as e:
                    self._state = _TxState.ROLLED_BACK
                    raise TransactionAbortedError(group_index, set_index, e) from e
            compiled.append(runs)
        return compiled

    def _enter_execution(self, group_index: int, set_index: int) -> None:
        self._state = _TxState.EXECUTING
        self._position = (group_index, set_index)


class TransactionCoordinator(_CoordinatorBase):
    """Synchronous transaction coordinator.

    A coordinator runs one batch; a second ``run`` raises
    TransactionStateError.
    """

    def run(self, groups: Sequence[TransactionGroup]) -> list[int]:
        """Execute all groups atomically.

        Returns:
            One affected-row count per execution, in execution order.

        Raises:
            TransactionAbortedError: An execution (or COMMIT) failed and the
                transaction was rolled back.
        """
        self._check_idle()

        with self._connection.exclusive() as conn:
            compiled = self._compile(groups)
            with driver_errors(self._adapter):
                self._adapter.begin(conn)
            self._state = _TxState.STARTED
            logger.debug("Transaction started with %d statement group(s)", len(compiled))

            counts: list[int] = []
            for group_index, runs in enumerate(compiled):
                for set_index, (sql, params) in enumerate(runs):
                    self._enter_execution(group_index, set_index)
                    try:
                        with driver_errors(self._adapter):
                            cursor = self._adapter.execute(conn, sql, params)
                            counts.append(int(cursor.rowcount))
                            cursor.close()
                    except TypedQueryError as e:
                        self._rollback(conn)
                        raise TransactionAbortedError(group_index, set_index, e) from e
                    except BaseException:
                        self._rollback(conn)
                        raise

            try:
                with driver_errors(self._adapter):
                    self._adapter.commit(conn)
            except TypedQueryError as e:
                self._rollback(conn)
                raise TransactionAbortedError(None, None, e) from e

        self._state = _TxState.COMMITTED
        logger.info("Transaction committed after %d execution(s)", len(counts))
        return counts

    def _rollback(self, conn: Any) -> None:
        self._state = _TxState.ROLLED_BACK
        try:
            with driver_errors(self._adapter):
                self._adapter.rollback(conn)
        except TypedQueryError:
            logger.warning("Rollback failed at execution %s", self._position, exc_info=True)
        else:
            logger.warning("Transaction rolled back at execution %s", self._position)


class AsyncTransactionCoordinator(_CoordinatorBase):
    """Asynchronous transaction coordinator."""

    async def run(self, groups: Sequence[TransactionGroup]) -> list[int]:
        """Execute all groups atomically; see TransactionCoordinator.run."""
        self._check_idle()

        async with self._connection.exclusive() as conn:
            compiled = self._compile(groups)
            with driver_errors(self._adapter):
                await self._adapter.begin_async(conn)
            self._state = _TxState.STARTED
            logger.debug("Transaction started with %d statement group(s)", len(compiled))

            counts: list[int] = []
            for group_index, runs in enumerate(compiled):
                for set_index, (sql, params) in enumerate(runs):
                    self._enter_execution(group_index, set_index)
                    try:
                        with driver_errors(self._adapter):
                            cursor = await self._adapter.execute_async(conn, sql, params)
                            counts.append(int(cursor.rowcount))
                            await cursor.close()
                    except TypedQueryError as e:
                        await self._rollback(conn)
                        raise TransactionAbortedError(group_index, set_index, e) from e
                    except BaseException:
                        await self._rollback(conn)
                        raise

            try:
                with driver_errors(self._adapter):
                    await self._adapter.commit_async(conn)
            except TypedQueryError as e:
                await self._rollback(conn)
                raise TransactionAbortedError(None, None, e) from e

        self._state = _TxState.COMMITTED
        logger.info("Transaction committed after %d execution(s)", len(counts))
        return counts

    async def _rollback(self, conn: Any) -> None:
        self._state = _TxState.ROLLED_BACK
        try:
            with driver_errors(self._adapter):
                await self._adapter.rollback_async(conn)
        except TypedQueryError:
            logger.warning("Rollback failed at execution %s", self._position, exc_info=True)
        else:
            logger.warning("Transaction rolled back at execution %s", self._position)
