"""WHERE clause accumulation with placeholder bookkeeping."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from dbop.core.sqltext import count_placeholders
from dbop.exceptions import PlaceholderMismatchError


def as_values(values: Any) -> list[Any]:
    """Normalize a ``values`` argument to a flat list.

    ``None`` means no values; a scalar (including a string) is a single value.
    """
    if values is None:
        return []
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return [values]
    return list(values)


class WhereClause:
    """Text of a WHERE clause plus the values bound to its placeholders.

    The first fragment opens the clause; each later fragment is joined with
    its own operator and nothing is parenthesized, so mixing AND and OR reads
    exactly as written.
    """

    def __init__(self) -> None:
        self._base_text = ""
        self._text = ""
        self._values: list[Any] = []

    @property
    def text(self) -> str:
        return self._text

    @property
    def values(self) -> list[Any]:
        return list(self._values)

    def __bool__(self) -> bool:
        return bool(self._text)

    def append(self, operator: str, expr: str, values: Any = None) -> None:
        if self._text:
            self._text += f" {operator} {expr}"
        else:
            self._text = f"WHERE {expr}"
        self._values.extend(as_values(values))

    def seal_base(self) -> None:
        """Remember the current text (join conditions) as the reset point."""
        self._base_text = self._text

    def reset(self) -> None:
        self._text = self._base_text
        self._values = []

    def check(self) -> None:
        """Raise unless every placeholder has exactly one bound value."""
        placeholders = count_placeholders(self._text)
        if placeholders != len(self._values):
            raise PlaceholderMismatchError(placeholders, len(self._values), self._text)
