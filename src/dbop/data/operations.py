"""Single-table insert, update and primary-key lookups.

Every write validates the supplied data in place before any SQL is built.
Table names may be qualified as ``"alias.table"``; the keys of ``data`` are
then expected as ``"alias.column"``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from dbop.core.config import DEFAULT_CONTROL_FIELDS
from dbop.core.sqltext import quote_identifier
from dbop.core.types import ExecutionResult, TableDescriptor
from dbop.data.validation import ValidationEngine, is_now_sentinel
from dbop.exceptions import MissingPrimaryKeyError, ValidationError

if TYPE_CHECKING:
    from dbop.core.connection import Connection
    from dbop.schema.catalog import SchemaCatalog

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")


def split_table_name(table: str) -> tuple[str, str]:
    """``"u.users"`` -> ``("users", "u.")``; ``"users"`` -> ``("users", "")``."""
    if "." in table:
        alias, name = table.split(".", 1)
        return name, f"{alias}."
    return table, ""


class TableOperations:
    """Validated INSERT/UPDATE plus single-row SELECT by primary key."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        validator: ValidationEngine | None = None,
        control_fields: Iterable[str] | None = None,
    ) -> None:
        """Initialize table operations.

        Args:
            catalog: Shared schema cache
            validator: Validation engine (a default one is created if omitted)
            control_fields: Columns the database maintains itself; never written
        """
        self._catalog = catalog
        self._validator = validator or ValidationEngine()
        self.control_fields = frozenset(
            control_fields if control_fields is not None else DEFAULT_CONTROL_FIELDS
        )
        self.last_result: ExecutionResult | None = None

    def _writable_columns(
        self, table: TableDescriptor, prefix: str, data: dict[str, Any]
    ) -> list[tuple[str, str]]:
        """(key, column) pairs of ``data`` that may be written."""
        pairs = []
        for key in data:
            if prefix and not key.startswith(prefix):
                continue
            column = table.get(key[len(prefix) :])
            if column is None or column.is_auto_generated or column.name in self.control_fields:
                continue
            pairs.append((key, column.name))
        return pairs

    def _require_keys(self, table: TableDescriptor, prefix: str, data: dict[str, Any]) -> None:
        if not table.primary_keys:
            raise MissingPrimaryKeyError(table.name)
        for pk in table.primary_keys:
            if f"{prefix}{pk}" not in data:
                raise MissingPrimaryKeyError(table.name, f"{prefix}{pk}")

    async def insert(
        self,
        connection: Connection,
        table: str,
        data: dict[str, Any],
        ignore: bool = False,
    ) -> int | bool:
        """Validate ``data`` and insert it as one row.

        Returns:
            The generated id when the driver reports one, otherwise True

        Raises:
            ValidationError: If the data fails validation
            DriverExecutionError: If the INSERT fails
        """
        table_name, prefix = split_table_name(table)
        descriptor = await self._catalog.describe(connection, table_name)
        self._validator.validate_data(descriptor, prefix, data)

        names: list[str] = []
        placeholders: list[str] = []
        values: list[Any] = []
        for key, column in self._writable_columns(descriptor, prefix, data):
            names.append(quote_identifier(column))
            if descriptor.columns[column].base_type.is_temporal and is_now_sentinel(data[key]):
                placeholders.append("CURRENT_TIMESTAMP")
            else:
                placeholders.append("?")
                values.append(data[key])

        if not names:
            raise ValidationError(f"No writable columns supplied for table '{table_name}'")

        verb = "INSERT"
        if ignore:
            verb = "INSERT OR IGNORE" if connection.dialect == "sqlite" else "INSERT IGNORE"
        sql = (
            f"{verb} INTO {quote_identifier(table_name)} ({','.join(names)}) "
            f"VALUES ({','.join(placeholders)})"
        )

        self.last_result = await connection.execute(sql, values)
        logger.debug(f"Inserted into '{table_name}': id={self.last_result.last_insert_id}")
        if self.last_result.last_insert_id is not None:
            return self.last_result.last_insert_id
        return True

    async def update(self, connection: Connection, table: str, data: dict[str, Any]) -> int:
        """Validate ``data`` and update the row its primary key identifies.

        Returns:
            Number of rows the database reports as affected

        Raises:
            MissingPrimaryKeyError: If any primary-key column is absent from ``data``
            ValidationError: If the data fails validation
        """
        table_name, prefix = split_table_name(table)
        descriptor = await self._catalog.describe(connection, table_name)
        self._require_keys(descriptor, prefix, data)
        self._validator.validate_data(descriptor, prefix, data)

        assignments: list[str] = []
        values: list[Any] = []
        for key, column in self._writable_columns(descriptor, prefix, data):
            if column in descriptor.primary_keys:
                continue
            if descriptor.columns[column].base_type.is_temporal and is_now_sentinel(data[key]):
                assignments.append(f"{quote_identifier(column)}=CURRENT_TIMESTAMP")
            else:
                assignments.append(f"{quote_identifier(column)}=?")
                values.append(data[key])

        if not assignments:
            raise ValidationError(f"No updatable columns supplied for table '{table_name}'")

        conditions = []
        for pk in descriptor.primary_keys:
            conditions.append(f"{quote_identifier(pk)}=?")
            values.append(data[f"{prefix}{pk}"])

        sql = (
            f"UPDATE {quote_identifier(table_name)} SET {','.join(assignments)} "
            f"WHERE {' AND '.join(conditions)}"
        )
        self.last_result = await connection.execute(sql, values)
        return self.last_result.affected_rows

    async def select_one(
        self,
        connection: Connection,
        table: str,
        data: dict[str, Any],
        columns: Iterable[str] | None = None,
    ) -> dict[str, Any] | None:
        """Fetch the row identified by the primary-key values in ``data``.

        Args:
            connection: Connection to query
            table: Table name, optionally ``"alias.table"``
            data: Must contain every primary-key column
            columns: Only return these columns (default: all)

        Returns:
            The row when exactly one matched, otherwise None
        """
        table_name, prefix = split_table_name(table)
        descriptor = await self._catalog.describe(connection, table_name)
        self._require_keys(descriptor, prefix, data)

        wanted = set(columns) if columns else None
        names = [
            quote_identifier(c)
            for c in descriptor.column_names()
            if wanted is None or c in wanted
        ]
        if not names:
            raise ValidationError(f"None of the requested columns exist on '{table_name}'")

        conditions = [f"{quote_identifier(pk)}=?" for pk in descriptor.primary_keys]
        values = [data[f"{prefix}{pk}"] for pk in descriptor.primary_keys]
        sql = (
            f"SELECT {','.join(names)} FROM {quote_identifier(table_name)} "
            f"WHERE {' AND '.join(conditions)}"
        )
        rows = await connection.query(sql, values)
        return rows[0] if len(rows) == 1 else None

    # ------------------------------------------------------------------
    # Field helpers (chainable)
    # ------------------------------------------------------------------

    def sanitize_fields_az09(self, data: dict[str, Any], fields: Iterable[str]) -> TableOperations:
        """Trim the fields and replace anything outside ``[a-zA-Z0-9]`` with ``-``."""
        for field in fields:
            if field in data and isinstance(data[field], str):
                data[field] = _NON_ALNUM_RE.sub("-", data[field].strip())
        return self

    def check_for_empty_fields(self, data: dict[str, Any], fields: Iterable[str]) -> TableOperations:
        """Raise if any of the fields is present but None or empty."""
        for field in fields:
            if field in data and (data[field] is None or data[field] == ""):
                raise ValidationError.for_field(field, "was empty")
        return self

    def check_for_missing_fields(
        self, data: dict[str, Any], fields: Iterable[str]
    ) -> TableOperations:
        """Raise if any of the fields is absent."""
        for field in fields:
            if field not in data:
                raise ValidationError.for_field(field, "was missing")
        return self
