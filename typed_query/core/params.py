"""SQL parameter normalization and binding.

Statements use ``@name`` placeholders. They are converted to the driver's
parameter style, optionally with a per-parameter cast, while leaving
quoted literals and identifiers untouched.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from functools import lru_cache
from typing import Any, Union

from typed_query.core.exceptions import DuplicateParameterError, ParameterError
from typed_query.core.values import DbValue, from_native

# Matches @name but not @@name and not inside words (e.g. e-mail addresses)
_PARAM_PATTERN = re.compile(r"(?<![@\w])@([a-zA-Z_]\w*)")

# Matches single-quoted string literals (with escaped and doubled quotes handled)
# and double-quoted identifiers
_QUOTED_PATTERN = re.compile(r"'(?:[^'\\]|\\.|'')*'|\"(?:[^\"]|\"\")*\"")

_SIGILS = "@:"

ParameterSet = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


def normalize_name(name: str) -> str:
    """Strip a leading sigil so ``@x`` and ``x`` name the same placeholder."""
    stripped = name[1:] if name[:1] in _SIGILS else name
    if not stripped:
        raise ParameterError(f"Invalid parameter name: {name!r}")
    return stripped


def bind_parameters(params: ParameterSet | None) -> tuple[tuple[str, DbValue], ...]:
    """Normalize names and values of one parameter set.

    Native values are converted with ``from_native``.

    Raises:
        DuplicateParameterError: If two entries resolve to the same name.
    """
    if params is None:
        return ()
    items = params.items() if isinstance(params, Mapping) else params
    bound: dict[str, DbValue] = {}
    for name, value in items:
        key = normalize_name(name)
        if key in bound:
            raise DuplicateParameterError(key)
        bound[key] = from_native(value)
    return tuple(bound.items())


def normalize_params(
    sql: str,
    paramstyle: str,
    casts: tuple[tuple[str, str], ...] = (),
) -> str:
    """Convert @name parameters to the target param style.

    Args:
        sql: SQL string with @name parameters.
        paramstyle: Target style - 'named' (:name) or 'pyformat' (%(name)s).
        casts: Optional ``(name, type)`` pairs appended as ``::type``.

    Returns:
        SQL with parameters converted to the target style.
    """
    if paramstyle not in ("named", "pyformat"):
        raise ParameterError(f"Unsupported paramstyle: {paramstyle}")
    return _convert(sql, paramstyle, casts)


@lru_cache(maxsize=256)
def _convert(sql: str, paramstyle: str, casts: tuple[tuple[str, str], ...]) -> str:
    cast_map = dict(casts)
    pyformat = paramstyle == "pyformat"

    def placeholder(match: re.Match[str]) -> str:
        name = match.group(1)
        rendered = f"%({name})s" if pyformat else f":{name}"
        if name in cast_map:
            rendered += f"::{cast_map[name]}"
        return rendered

    def segment(text: str, literal: bool) -> str:
        # pyformat drivers interpolate '%' everywhere, literals included
        if pyformat:
            text = text.replace("%", "%%")
        return text if literal else _PARAM_PATTERN.sub(placeholder, text)

    parts: list[str] = []
    last_end = 0

    for match in _QUOTED_PATTERN.finditer(sql):
        start, end = match.span()
        if start > last_end:
            parts.append(segment(sql[last_end:start], literal=False))
        parts.append(segment(match.group(), literal=True))
        last_end = end

    if last_end < len(sql):
        parts.append(segment(sql[last_end:], literal=False))

    return "".join(parts)


def placeholder_names(sql: str) -> list[str]:
    """Return the distinct @name placeholders of *sql* in order of appearance."""
    names: list[str] = []
    stripped = _QUOTED_PATTERN.sub("''", sql)
    for match in _PARAM_PATTERN.finditer(stripped):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def render(
    sql: str,
    params: Iterable[tuple[str, DbValue]],
    adapter: Any,
) -> tuple[str, dict[str, Any]]:
    """Prepare statement text and bound values for an adapter.

    Returns:
        The driver-style SQL and the driver parameter mapping.

    Raises:
        ParameterError: If a placeholder has no bound value, or the adapter
            cannot bind one of the values.
    """
    bound = dict(params)
    missing = [name for name in placeholder_names(sql) if name not in bound]
    if missing:
        raise ParameterError(
            "No value bound for parameter(s): " + ", ".join(f"@{name}" for name in missing)
        )

    casts: list[tuple[str, str]] = []
    driver_params: dict[str, Any] = {}
    for name, value in bound.items():
        cast = adapter.cast_for(value)
        if cast is not None:
            casts.append((name, cast))
        driver_params[name] = adapter.to_driver(value)
    return normalize_params(sql, adapter.paramstyle, tuple(casts)), driver_params
