"""Custom exceptions for dbop.

Every error carries a human-readable message plus a JSON-serializable
context dict so callers (HTTP handlers, the CLI) can report it verbatim.
"""

from __future__ import annotations

from typing import Any


class DbOpError(Exception):
    """Base exception for all dbop errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(DbOpError):
    """Failed to connect to the database."""

    pass


class SchemaIntrospectionError(DbOpError):
    """Describing a table failed (unknown table, lost connection, ...)."""

    def __init__(self, table_name: str, reason: str) -> None:
        message = f"Cannot describe table '{table_name}': {reason}"
        super().__init__(message, {"table_name": table_name, "reason": reason})
        self.table_name = table_name
        self.reason = reason


class ValidationError(DbOpError):
    """Field data failed validation against the table schema."""

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        reason: str | None = None,
    ) -> None:
        field_errors = {field_name: reason or message} if field_name else {}
        super().__init__(message, {"field_errors": field_errors})
        self.field_name = field_name
        self.reason = reason
        self.field_errors = field_errors

    @classmethod
    def for_field(cls, field_name: str, reason: str) -> ValidationError:
        """Build the error for a single offending field."""
        return cls(f"Field '{field_name}': {reason}", field_name=field_name, reason=reason)


class MissingPrimaryKeyError(DbOpError):
    """A primary-key column needed to target a single row was not supplied."""

    def __init__(self, table_name: str, column: str | None = None) -> None:
        if column:
            message = f"Missing primary key '{column}' for table '{table_name}'."
        else:
            message = f"Table '{table_name}' has no primary key; cannot target a single row."
        super().__init__(message, {"table_name": table_name, "column": column})
        self.table_name = table_name
        self.column = column


class QueryError(DbOpError):
    """The query builder was configured with something it cannot render."""

    pass


class PlaceholderMismatchError(QueryError):
    """Number of ``?`` placeholders differs from the number of bound values."""

    def __init__(self, placeholders: int, values: int, sql: str) -> None:
        message = (
            f"WHERE clause has {placeholders} placeholder(s) but {values} bound value(s). "
            "Pass one value per '?' to where()/where_or()."
        )
        super().__init__(
            message, {"placeholders": placeholders, "values": values, "sql": sql}
        )
        self.placeholders = placeholders
        self.values = values
        self.sql = sql


class DriverExecutionError(DbOpError):
    """The database driver rejected or failed a statement."""

    def __init__(self, sql: str, original: BaseException) -> None:
        message = f"Statement failed: {original}"
        super().__init__(message, {"sql": sql, "driver_error": type(original).__name__})
        self.sql = sql
        self.original = original
