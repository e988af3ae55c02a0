"""Escaping helpers for predicates passed to LanceDB as strings.

LanceDB filters are SQL strings without parameter binding, so every
literal built from an id, file path or directory prefix must pass
through one of these functions before interpolation.
"""

from typing import Iterable


def escape_sql_string(value: str) -> str:
    """Escape a string literal for use inside single quotes."""
    return value.replace("'", "''")


def escape_sql_like_pattern(pattern: str) -> str:
    """Escape a string for use as a literal prefix in a LIKE pattern.

    Quotes are doubled first, then backslashes, then the ``%`` and ``_``
    wildcards are escaped with a backslash. Changing the order would let
    one step corrupt the output of another.
    """
    escaped = escape_sql_string(pattern)
    escaped = escaped.replace("\\", "\\\\")
    escaped = escaped.replace("%", "\\%").replace("_", "\\_")
    return escaped


def sql_in_list(values: Iterable[str]) -> str:
    """Render ``'a', 'b'`` for an ``IN (...)`` predicate."""
    return ", ".join(f"'{escape_sql_string(value)}'" for value in values)
