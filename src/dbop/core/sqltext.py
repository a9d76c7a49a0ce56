"""Helpers for the hand-assembled SQL text the builder emits.

Statements use ``?`` placeholders throughout; anything inside a quoted
literal or a backtick identifier is never treated as a placeholder.
"""

from __future__ import annotations

import re

# Quoted literal, backtick identifier, or a bare placeholder
_TOKEN_RE = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"|`[^`]*`|\?")


def count_placeholders(sql: str) -> int:
    """Count ``?`` placeholders outside quoted text."""
    return sum(1 for m in _TOKEN_RE.finditer(sql) if m.group(0) == "?")


def to_paramstyle(sql: str, paramstyle: str) -> str:
    """Rewrite ``?`` placeholders for a driver's DB-API paramstyle.

    ``format``/``pyformat`` drivers interpolate the whole string with ``%``,
    so literal percent signs are doubled first.
    """
    if paramstyle == "qmark":
        return sql

    if paramstyle in ("format", "pyformat"):
        sql = sql.replace("%", "%%")
        return _TOKEN_RE.sub(lambda m: "%s" if m.group(0) == "?" else m.group(0), sql)

    if paramstyle == "numeric":
        counter = 0

        def _number(m: re.Match[str]) -> str:
            nonlocal counter
            if m.group(0) != "?":
                return m.group(0)
            counter += 1
            return f":{counter}"

        return _TOKEN_RE.sub(_number, sql)

    raise ValueError(f"Unsupported paramstyle '{paramstyle}'")


def quote_identifier(name: str) -> str:
    """Backtick-quote an identifier (understood by MySQL and SQLite)."""
    return "`" + name.replace("`", "``") + "`"
