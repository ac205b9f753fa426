"""Statement descriptors.

Frozen values assembled with builder steps; each step returns a new
descriptor with one field changed. Building never touches the network.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from typed_query.core.exceptions import DuplicateParameterError, ParameterError
from typed_query.core.params import ParameterSet, bind_parameters, normalize_name
from typed_query.core.values import DbValue, from_native


def multiline(lines: Iterable[str]) -> str:
    """Join statement lines with newlines."""
    return "\n".join(lines)


@dataclass(frozen=True)
class Statement:
    """Statement text, bound parameters and execution options.

    Attributes:
        connection: Handle the statement will run on (owned by the caller).
        text: SQL text with ``@name`` placeholders.
        params: Ordered ``(name, DbValue)`` bindings; names carry no sigil.
        prepared: Ask the driver to prepare the statement server-side.
        timeout: Seconds before the statement is cancelled, or None.
    """

    connection: Any
    text: str = ""
    params: tuple[tuple[str, DbValue], ...] = ()
    prepared: bool = False
    timeout: float | None = None

    def query(self, text: str) -> Statement:
        return dataclasses.replace(self, text=text)

    def parameters(self, params: ParameterSet) -> Statement:
        """Bind a set of parameters, in addition to those already bound."""
        added = bind_parameters(params)
        bound = {name for name, _ in self.params}
        for name, _ in added:
            if name in bound:
                raise DuplicateParameterError(name)
        return dataclasses.replace(self, params=self.params + added)

    def bind(self, name: str, value: Any) -> Statement:
        key = normalize_name(name)
        if any(bound == key for bound, _ in self.params):
            raise DuplicateParameterError(key)
        return dataclasses.replace(self, params=self.params + ((key, from_native(value)),))

    def prepare(self, enabled: bool = True) -> Statement:
        return dataclasses.replace(self, prepared=enabled)

    def with_timeout(self, seconds: float | None) -> Statement:
        if seconds is not None and seconds <= 0:
            raise ParameterError(f"Timeout must be positive, got {seconds}")
        return dataclasses.replace(self, timeout=seconds)

    @property
    def param_dict(self) -> dict[str, DbValue]:
        return dict(self.params)


@dataclass(frozen=True)
class StatementBatch:
    """Independent statements run one after another without a transaction."""

    connection: Any
    texts: tuple[str, ...] = ()

    def query_many(self, texts: Iterable[str]) -> StatementBatch:
        return dataclasses.replace(self, texts=tuple(texts))
