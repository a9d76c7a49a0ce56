"""Chainable, schema-aware SELECT builder.

A builder is bound to a join specification once (``init``) and then
configured with chained calls. WHERE fragments accumulate; SELECT, GROUP BY,
ORDER BY and LIMIT are replaced by each call. Executing never consumes the
builder, so it can be reconfigured and run again.

Join specification::

    {"users.u.id": "orders.o.user_id"}          # FROM `users` u, `orders` o WHERE u.id=o.user_id
    "users.u"                                   # single table

Left joins hang off an already-declared alias::

    {"users.u.id": {"join": "profiles.p.user_id", "columns": ["bio"]}}
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dbop.core.sqltext import quote_identifier
from dbop.core.types import PostProcessOptions, TableDescriptor
from dbop.exceptions import QueryError
from dbop.query.clauses import WhereClause
from dbop.query.postprocess import RowPostProcessor

if TYPE_CHECKING:
    from dbop.core.connection import Connection
    from dbop.query.datatable import FilterRequestAdapter
    from dbop.schema.catalog import SchemaCatalog

logger = logging.getLogger(__name__)

JoinSpec = str | Mapping[str, str | None]
LeftJoinSpec = Mapping[str, str | Mapping[str, Any]]


@dataclass(frozen=True)
class TableRef:
    """A parsed ``table.alias[.column]`` reference."""

    table: str
    alias: str
    column: str | None = None

    @classmethod
    def parse(cls, spec: str, require_column: bool = False) -> TableRef:
        parts = spec.strip().split(".")
        if len(parts) not in (2, 3) or not all(parts):
            raise QueryError(
                f"Invalid table reference '{spec}'. Expected 'table.alias' or 'table.alias.column'.",
                {"reference": spec},
            )
        if require_column and len(parts) != 3:
            raise QueryError(
                f"Join reference '{spec}' needs a column: 'table.alias.column'.",
                {"reference": spec},
            )
        return cls(parts[0], parts[1], parts[2] if len(parts) == 3 else None)


@dataclass
class JoinedTable:
    """A table taking part in the query under one alias."""

    descriptor: TableDescriptor
    alias: str
    columns: list[str] | None = None
    left_join: bool = False

    @property
    def name(self) -> str:
        return self.descriptor.name

    def select_columns(self) -> list[str]:
        return self.columns if self.columns is not None else self.descriptor.column_names()


@dataclass
class FromEntry:
    """One comma-separated FROM item and the LEFT JOINs attached to it."""

    alias: str
    rendered: str
    joins: list[str] = field(default_factory=list)

    def render(self) -> str:
        return " ".join([self.rendered, *self.joins])


class QueryBuilder:
    """Accumulates SELECT clauses over a join graph and executes them."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        options: PostProcessOptions | None = None,
        log_sql: bool = False,
        json_columns: Mapping[str, str] | None = None,
    ) -> None:
        self._catalog = catalog
        self._connection: Connection | None = None
        self.options = options.model_copy() if options else PostProcessOptions()
        self.json_columns: dict[str, str] = dict(json_columns or {})
        self._console = log_sql

        self._tables: dict[str, JoinedTable] = {}
        self._left_tables: list[JoinedTable] = []
        self._aliases: dict[str, JoinedTable] = {}
        self._from_entries: list[FromEntry] = []
        self._join_hosts: dict[str, FromEntry] = {}
        self._adapter: FilterRequestAdapter | None = None

        self._select = ""
        self._nested = False
        self._where = WhereClause()
        self._group_by = ""
        self._order_by = ""
        self._limit = ""

    # ------------------------------------------------------------------
    # Join graph
    # ------------------------------------------------------------------

    async def init(
        self,
        connection: Connection,
        join_spec: JoinSpec,
        left_join_spec: LeftJoinSpec | None = None,
    ) -> QueryBuilder:
        """Bind the builder to a connection and resolve the join graph.

        Raises:
            QueryError: On malformed references, alias clashes or unknown anchors
            SchemaIntrospectionError: If a referenced table cannot be described
        """
        if self._connection is not None:
            raise QueryError("Builder already initialized; create a new builder per join graph.")
        self._connection = connection

        if isinstance(join_spec, str):
            join_spec = {join_spec: None}

        conditions: list[str] = []
        for left_spec, right_spec in join_spec.items():
            left = TableRef.parse(left_spec, require_column=right_spec is not None)
            await self._register(left)
            if right_spec is None:
                continue

            right = TableRef.parse(right_spec, require_column=True)
            await self._register(right)
            conditions.append(f"{left.alias}.{left.column}={right.alias}.{right.column}")

        if conditions:
            self._where.append("AND", " AND ".join(conditions))
        self._where.seal_base()

        for anchor_spec, target in (left_join_spec or {}).items():
            await self._left_join(anchor_spec, target)

        return self

    async def _describe(self, table: str) -> TableDescriptor:
        assert self._connection is not None
        return await self._catalog.describe(self._connection, table)

    def _claim_alias(self, alias: str, table: str) -> None:
        existing = self._aliases.get(alias)
        if existing is not None and existing.name != table:
            raise QueryError(
                f"Alias '{alias}' is already used for table '{existing.name}'.",
                {"alias": alias, "table": table, "existing_table": existing.name},
            )

    async def _register(self, ref: TableRef) -> JoinedTable:
        existing = self._tables.get(ref.table)
        if existing is not None:
            if existing.alias != ref.alias:
                raise QueryError(
                    f"Table '{ref.table}' is already joined as '{existing.alias}'; "
                    f"cannot also alias it '{ref.alias}'.",
                    {"table": ref.table, "alias": ref.alias, "existing_alias": existing.alias},
                )
            return existing

        self._claim_alias(ref.alias, ref.table)
        entry = JoinedTable(descriptor=await self._describe(ref.table), alias=ref.alias)
        self._tables[ref.table] = entry
        self._aliases[ref.alias] = entry
        self._from_entries.append(
            FromEntry(alias=ref.alias, rendered=f"{quote_identifier(ref.table)} {ref.alias}")
        )
        return entry

    def _from_entry_for(self, alias: str) -> FromEntry | None:
        for entry in self._from_entries:
            if entry.alias == alias:
                return entry
        # Chained left joins attach to whichever entry hosts their anchor
        return self._join_hosts.get(alias)

    async def _left_join(self, anchor_spec: str, target: str | Mapping[str, Any]) -> None:
        anchor = TableRef.parse(anchor_spec, require_column=True)
        if isinstance(target, str):
            target = {"join": target}
        if "join" not in target:
            raise QueryError(
                f"Left join on '{anchor_spec}' needs a 'join' reference.", {"anchor": anchor_spec}
            )
        joined = TableRef.parse(target["join"], require_column=True)

        host = self._from_entry_for(anchor.alias)
        if host is None:
            raise QueryError(
                f"Left join anchor alias '{anchor.alias}' is not part of the query.",
                {"anchor": anchor_spec, "aliases": sorted(self._aliases)},
            )
        if joined.alias in self._aliases:
            raise QueryError(
                f"Alias '{joined.alias}' is already used in this query.",
                {"alias": joined.alias},
            )

        descriptor = await self._describe(joined.table)
        columns = target.get("columns")
        if columns is not None:
            columns = list(columns)
            unknown = [c for c in columns if c not in descriptor.columns]
            if unknown:
                raise QueryError(
                    f"Unknown column(s) {', '.join(unknown)} on '{joined.table}'.",
                    {"table": joined.table, "available_columns": descriptor.column_names()},
                )

        entry = JoinedTable(descriptor=descriptor, alias=joined.alias, columns=columns, left_join=True)
        self._left_tables.append(entry)
        self._aliases[joined.alias] = entry
        self._join_hosts[joined.alias] = host
        host.joins.append(
            f"LEFT JOIN {quote_identifier(joined.table)} {joined.alias} "
            f"ON {anchor.alias}.{anchor.column}={joined.alias}.{joined.column}"
        )

    @property
    def tables(self) -> list[JoinedTable]:
        """Inner-joined tables followed by left-joined ones."""
        return [*self._tables.values(), *self._left_tables]

    @property
    def connection(self) -> Connection:
        self._require_init()
        assert self._connection is not None
        return self._connection

    def _require_init(self) -> None:
        if self._connection is None:
            raise QueryError("Builder is not initialized; await init() first.")

    # ------------------------------------------------------------------
    # Clause configuration
    # ------------------------------------------------------------------

    def select_all(self) -> QueryBuilder:
        """Select every column of every table, labelled ``alias.column``."""
        self._require_init()
        parts = []
        for table in self.tables:
            for column in table.select_columns():
                label = quote_identifier(f"{table.alias}{self.options.separator}{column}")
                parts.append(f"{table.alias}.{quote_identifier(column)} AS {label}")
        self._select = ", ".join(parts)
        self._nested = True
        return self

    def select(self, expr: str) -> QueryBuilder:
        self._select = expr
        self._nested = False
        return self

    def where(self, expr: str, values: Any = None) -> QueryBuilder:
        """AND a condition onto the WHERE clause.

        ``expr`` is raw SQL using table aliases and ``?`` placeholders;
        ``values`` are bound to those placeholders in order.
        """
        self._where.append("AND", expr, values)
        return self

    def where_or(self, expr: str, values: Any = None) -> QueryBuilder:
        """OR a condition onto the WHERE clause (no parentheses are added)."""
        self._where.append("OR", expr, values)
        return self

    def groupby(self, expr: str) -> QueryBuilder:
        self._group_by = f"GROUP BY {expr}"
        return self

    def orderby(self, expr: str) -> QueryBuilder:
        self._order_by = f"ORDER BY {expr}"
        return self

    def limit(self, page: int, page_size: int) -> QueryBuilder:
        """Page through results; ``page`` is zero-based."""
        return self.limit_offset(int(page) * int(page_size), page_size)

    def limit_offset(self, offset: int, count: int) -> QueryBuilder:
        self._limit = f"LIMIT {int(offset)},{int(count)}"
        return self

    def where_reset(self) -> QueryBuilder:
        """Drop added conditions and their values; join conditions stay."""
        self._where.reset()
        return self

    def orderby_reset(self) -> QueryBuilder:
        self._order_by = ""
        return self

    def groupby_reset(self) -> QueryBuilder:
        self._group_by = ""
        return self

    def limit_reset(self) -> QueryBuilder:
        self._limit = ""
        return self

    def set_console(self, flag: bool = True) -> QueryBuilder:
        """Log rendered SQL at INFO instead of DEBUG."""
        self._console = flag
        return self

    def set_timezone(self, timezone: str | None) -> QueryBuilder:
        self.options = self.options.model_copy(update={"timezone": timezone})
        return self

    def set_strip_prefix(self, flag: bool = True) -> QueryBuilder:
        self.options = self.options.model_copy(update={"strip_prefix": flag})
        return self

    def set_drop_nulls(self, flag: bool = True) -> QueryBuilder:
        self.options = self.options.model_copy(update={"drop_nulls": flag})
        return self

    def set_json_columns(self, mapping: Mapping[str, str]) -> QueryBuilder:
        """Map logical prefixes to JSON columns for the filter adapter."""
        self.json_columns = dict(mapping)
        return self

    # ------------------------------------------------------------------
    # Rendering and execution
    # ------------------------------------------------------------------

    @property
    def select_sql(self) -> str:
        return self._select

    @property
    def where_sql(self) -> str:
        return self._where.text

    @property
    def values(self) -> list[Any]:
        return self._where.values

    def from_sql(self) -> str:
        return "FROM " + ", ".join(entry.render() for entry in self._from_entries)

    def get_sql(self) -> str:
        """Render the full SELECT statement."""
        self._require_init()
        if not self._select:
            self.select_all()
        parts = [
            f"SELECT {self._select}",
            self.from_sql(),
            self._where.text,
            self._group_by,
            self._order_by,
            self._limit,
        ]
        return " ".join(p for p in parts if p)

    def _log(self, sql: str, values: Sequence[Any]) -> None:
        level = logging.INFO if self._console else logging.DEBUG
        logger.log(level, f"{sql} values={list(values)}")

    async def run(self) -> list[dict[str, Any]]:
        """Execute the SELECT and return post-processed rows.

        Raises:
            PlaceholderMismatchError: If placeholders and bound values disagree
            DriverExecutionError: If the statement fails
        """
        sql = self.get_sql()
        self._where.check()
        values = self._where.values
        self._log(sql, values)

        nest = self.options.separator if self._nested else None
        rows = await self.connection.query(sql, values, nest_tables=nest)
        return RowPostProcessor(self.options).process(rows)

    async def run_first_row(self) -> dict[str, Any] | None:
        """Return the row when exactly one matched, otherwise None."""
        rows = await self.run()
        return rows[0] if len(rows) == 1 else None

    async def count(self) -> int:
        """Count matching rows, ignoring GROUP BY, ORDER BY and LIMIT."""
        self._require_init()
        self._where.check()
        distinct = "DISTINCT " if self._select.lstrip().upper().startswith("DISTINCT") else ""
        sql = " ".join(
            p for p in [f"SELECT {distinct}count(*) AS t", self.from_sql(), self._where.text] if p
        )
        values = self._where.values
        self._log(sql, values)

        rows = await self.connection.query(sql, values)
        if not rows:
            return 0
        row = rows[0]
        total = row["t"] if "t" in row else next(iter(row.values()), 0)
        return int(total or 0)

    # ------------------------------------------------------------------
    # DataTables convenience
    # ------------------------------------------------------------------

    def apply_filter_order(self, request: Any) -> QueryBuilder:
        """Apply a DataTables request (see FilterRequestAdapter)."""
        from dbop.query.datatable import FilterRequestAdapter

        self._adapter = FilterRequestAdapter(self)
        self._adapter.apply_filter_order(request)
        return self

    async def data_table_execute(self) -> dict[str, Any]:
        """Run and count, shaped as a DataTables response."""
        from dbop.query.datatable import FilterRequestAdapter

        adapter = self._adapter or FilterRequestAdapter(self)
        return await adapter.data_table_execute()
