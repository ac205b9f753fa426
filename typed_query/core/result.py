"""Explicit success/failure values.

Accessors and safe execution variants return ``Ok`` or ``Err`` instead of
raising. ``collect`` and ``apply`` chain several results and stop at the
first failure.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, NoReturn, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound=BaseException)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[T], Result[U, Any]]) -> Result[U, Any]:
        return fn(self.value)

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: Any) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """A failed result carrying the error that would have been raised."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def map(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self

    def and_then(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self

    def unwrap(self) -> NoReturn:
        raise self.error

    def unwrap_or(self, default: U) -> U:
        return default


Result = Union[Ok[T], Err[E]]


def is_result(obj: Any) -> bool:
    return isinstance(obj, (Ok, Err))


def collect(results: Iterable[Result[T, E]]) -> Result[list[T], E]:
    """Turn an iterable of results into a result of a list.

    Consumption stops at the first ``Err``, which is returned as-is.
    """
    values: list[T] = []
    for result in results:
        if isinstance(result, Err):
            return result
        values.append(result.value)
    return Ok(values)


def apply(fn: Callable[..., U], *results: Result[Any, E]) -> Result[U, E]:
    """Call ``fn`` with the unwrapped values, or return the first ``Err``.

    Example::

        apply(User, read.int("id"), read.text("name"))
    """
    args = []
    for result in results:
        if isinstance(result, Err):
            return result
        args.append(result.value)
    return Ok(fn(*args))
