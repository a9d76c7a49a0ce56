"""DataTables server-side request handling.

Turns the search/sort/page request a DataTables grid sends into builder
calls. See https://datatables.net/manual/server-side for the protocol.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from dbop.core.sqltext import quote_identifier
from dbop.core.types import DataTableRequest, DataTableResult

if TYPE_CHECKING:
    from dbop.query.builder import QueryBuilder

logger = logging.getLogger(__name__)

# Shorter search terms match too much to be useful
MIN_SEARCH_LENGTH = 3

# Request keys that belong to the protocol itself, never column filters
_PROTOCOL_KEYS = frozenset(
    {"draw", "search", "columns", "order", "start", "length", "selectcolumns", "fields", "_"}
)


def transform_column(name: str) -> str:
    """Logical column name -> SQL name, dropping separator escapes (``a\\.b`` -> ``a.b``)."""
    return name.replace("\\", "")


class FilterRequestAdapter:
    """Applies a DataTables request to a QueryBuilder."""

    def __init__(self, builder: QueryBuilder, json_columns: Mapping[str, str] | None = None) -> None:
        """Initialize the adapter.

        Args:
            builder: Initialized builder the request is applied to
            json_columns: ``prefix -> json column`` map; defaults to the builder's
        """
        self._builder = builder
        self._json_columns = dict(json_columns) if json_columns is not None else builder.json_columns
        self._draw: int | None = None

    def json_path(self, name: str) -> str | None:
        """Rewrite ``alias.prefix.subkey`` to a JSON extraction, if ``prefix`` is mapped."""
        parts = name.split(".", 2)
        if len(parts) != 3 or parts[1] not in self._json_columns:
            return None
        alias, prefix, subkey = parts
        return f"{alias}.{self._json_columns[prefix]}->>'$.{subkey}'"

    def apply_filter_order(self, request: DataTableRequest | Mapping[str, Any]) -> QueryBuilder:
        """Apply filters, search, sort, paging and column selection.

        Args:
            request: Parsed query/body of the DataTables request

        Returns:
            The builder, for chaining
        """
        if not isinstance(request, DataTableRequest):
            request = DataTableRequest.model_validate(dict(request))
        self._draw = request.draw

        consumed = self._apply_exact_matches(request)
        self._apply_search(request, consumed)

        builder = self._builder
        if request.selectcolumns:
            builder.select(request.selectcolumns)
        elif request.select_fields:
            builder.select(request.select_fields)

        if request.order and request.columns:
            order = request.order[0]
            data = request.columns[order.column].data if 0 <= order.column < len(request.columns) else None
            # Unbound columns (data: null) cannot be sorted on
            if data is not None and data != "":
                column = transform_column(str(data))
                direction = "asc" if order.dir == "asc" else "desc"
                builder.orderby(f"{column} {direction}")

        # length -1 is the protocol's "show all"
        if request.start is not None and request.length is not None and request.length >= 0:
            builder.limit_offset(request.start, request.length)

        return builder

    def _apply_exact_matches(self, request: DataTableRequest) -> set[str]:
        builder = self._builder
        filters = request.filter_values()
        consumed: set[str] = set()

        for table in builder.tables:
            for column in table.descriptor.column_names():
                qualified = f"{table.alias}.{column}"
                if qualified in filters:
                    value = filters[qualified]
                elif column in filters and column not in _PROTOCOL_KEYS:
                    value = filters[column]
                else:
                    continue
                if value is None or value == "":
                    continue
                builder.where(f"{table.alias}.{quote_identifier(column)}=?", [value])
                consumed.add(qualified)

        if self._json_columns:
            aliases = {table.alias for table in builder.tables}
            for key, value in filters.items():
                if value is None or value == "" or key.split(".", 1)[0] not in aliases:
                    continue
                expr = self.json_path(key)
                if expr is not None:
                    builder.where(f"{expr}=?", [value])
                    consumed.add(key)

        return consumed

    def _is_consumed(self, name: str, consumed: set[str]) -> bool:
        """Whether ``name`` (qualified or bare) already has an exact match."""
        if name in consumed:
            return True
        if "." in name:
            return False
        return any(
            f"{table.alias}.{name}" in consumed
            for table in self._builder.tables
            if name in table.descriptor.columns
        )

    def _apply_search(self, request: DataTableRequest, consumed: set[str]) -> None:
        if request.search is None or len(request.search.value) < MIN_SEARCH_LENGTH:
            return

        term = f"%{request.search.value}%"
        conditions = []
        for col in request.columns:
            if not col.searchable or col.data is None:
                continue
            name = transform_column(str(col.data))
            if not name or self._is_consumed(name, consumed):
                continue
            conditions.append(f"{self.json_path(name) or name} LIKE ?")

        if conditions:
            self._builder.where(f"({' OR '.join(conditions)})", [term] * len(conditions))

    async def data_table_execute(self) -> dict[str, Any]:
        """Run the query and count it, shaped as a DataTables response.

        ``recordsFiltered`` is reported equal to ``recordsTotal``.
        """
        data = await self._builder.run()
        total = await self._builder.count()
        logger.debug(f"DataTables page: {len(data)} row(s) of {total}")
        result = DataTableResult(
            draw=self._draw, data=data, records_total=total, records_filtered=total
        )
        return result.to_response()
