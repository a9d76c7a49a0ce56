"""Schema catalog: introspects tables once and caches their descriptors."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from dbop.core.types import BaseType, ColumnDescriptor, TableDescriptor
from dbop.exceptions import SchemaIntrospectionError

if TYPE_CHECKING:
    from dbop.core.connection import Connection

logger = logging.getLogger(__name__)

_LENGTH_TYPES = (BaseType.INT, BaseType.TINYINT, BaseType.SMALLINT, BaseType.VARCHAR)
_ENUM_MEMBER_RE = re.compile(r"'((?:[^']|'')*)'")


def parse_column_type(
    type_str: str,
) -> tuple[BaseType, int | None, tuple[str, ...] | None]:
    """Split a reported column type into base type, length and enum members.

    ``varchar(255)`` -> (VARCHAR, 255, None)
    ``enum('a','b')`` -> (ENUM, None, ("a", "b"))
    ``int unsigned`` -> (INT, None, None)
    """
    type_str = type_str.strip()
    paren = type_str.find("(")
    head = type_str[:paren] if paren > 0 else type_str
    words = head.split()
    name = words[0].lower() if words else ""

    try:
        base_type = BaseType(name)
    except ValueError:
        base_type = BaseType.OTHER

    if paren <= 0:
        return base_type, None, None

    inner = type_str[paren + 1 : type_str.rfind(")")].strip()

    if base_type == BaseType.ENUM:
        members = tuple(m.replace("''", "'") for m in _ENUM_MEMBER_RE.findall(inner))
        if not members and inner:
            members = tuple(v.strip() for v in inner.split(","))
        return base_type, None, members

    if base_type in _LENGTH_TYPES and inner.isdigit():
        return base_type, int(inner), None

    return base_type, None, None


def column_from_row(row: Mapping[str, Any]) -> ColumnDescriptor:
    """Build a ColumnDescriptor from one describe-table row."""
    raw_type = row["Type"]
    if isinstance(raw_type, bytes):
        raw_type = raw_type.decode()
    raw_type = str(raw_type)
    base_type, max_length, enum_values = parse_column_type(raw_type)
    key = (row.get("Key") or "").upper()
    extra = (row.get("Extra") or "").lower()

    return ColumnDescriptor(
        name=row["Field"],
        base_type=base_type,
        raw_type=raw_type,
        max_length=max_length,
        enum_values=enum_values,
        key_type=key if key in ("PRI", "MUL") else None,
        is_primary_key=key == "PRI",
        is_auto_generated="auto_increment" in extra,
        allows_null=str(row.get("Null", "YES")).upper() == "YES",
    )


class SchemaCatalog:
    """Process-wide cache of TableDescriptors keyed by table name.

    Entries are only ever added whole; ``clear_cache`` is the only way to drop
    them. Concurrent first lookups of the same table share one introspection.
    """

    def __init__(self) -> None:
        self._cache: dict[str, TableDescriptor] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, table_name: object) -> bool:
        return table_name in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def cached_tables(self) -> list[str]:
        return sorted(self._cache)

    async def describe(self, connection: Connection, table_name: str) -> TableDescriptor:
        """Return the descriptor for ``table_name``, introspecting on first use.

        Raises:
            SchemaIntrospectionError: If the table cannot be described
        """
        cached = self._cache.get(table_name)
        if cached is not None:
            return cached

        # clear_cache swaps in a new dict; a lookup started before it publishes
        # into the discarded one
        cache = self._cache
        lock = self._locks.setdefault(table_name, asyncio.Lock())
        async with lock:
            # A peer may have published while we waited
            cached = cache.get(table_name)
            if cached is not None:
                return cached

            descriptor = await self._introspect(connection, table_name)
            cache[table_name] = descriptor
            return descriptor

    async def _introspect(self, connection: Connection, table_name: str) -> TableDescriptor:
        logger.debug(f"Describing table '{table_name}'")
        try:
            rows = await connection.describe_table(table_name)
        except Exception as e:
            logger.error(f"Introspection of '{table_name}' failed: {e}")
            raise SchemaIntrospectionError(table_name, str(e)) from e

        if not rows:
            raise SchemaIntrospectionError(table_name, "table does not exist or has no columns")

        columns: dict[str, ColumnDescriptor] = {}
        for row in rows:
            column = column_from_row(row)
            columns[column.name] = column

        return TableDescriptor(
            name=table_name,
            columns=columns,
            primary_keys=tuple(c.name for c in columns.values() if c.is_primary_key),
        )

    def clear_cache(self) -> SchemaCatalog:
        """Discard every cached descriptor."""
        self._cache = {}
        self._locks = {}
        return self
