"""Main dbop facade.

Ties one connection, the shared schema catalog, the validation engine and
table operations together, and hands out query builders.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dbop.core.config import DbOpConfig
from dbop.core.connection import Connection, DatabaseConnection
from dbop.core.types import ExecutionResult, PostProcessOptions, TableDescriptor
from dbop.data.operations import TableOperations
from dbop.data.validation import ValidationEngine
from dbop.query.builder import JoinSpec, LeftJoinSpec, QueryBuilder
from dbop.runner import SQLFileRunner
from dbop.schema.catalog import SchemaCatalog

if TYPE_CHECKING:
    from sqlalchemy.engine.url import URL

logger = logging.getLogger(__name__)


class DbOp:
    """Schema-aware query building and validated writes over one database.

    Example:
        async with DbOp("sqlite:///app.db") as db:
            qb = await db.sql_builder({"users.u.id": "orders.o.user_id"})
            rows = await qb.where("u.status=?", ["active"]).limit(0, 20).run()
            await db.insert("u.users", {"u.name": "Ada", "u.status": "active"})
    """

    def __init__(
        self,
        database: str | URL | Connection | None = None,
        config: DbOpConfig | None = None,
        catalog: SchemaCatalog | None = None,
        echo: bool = False,
    ) -> None:
        """Initialize dbop.

        Args:
            database: URL, or an object implementing the Connection protocol;
                defaults to ``config.database_url``
            config: Settings (defaults to ``DbOpConfig.from_env()``)
            catalog: Schema cache to share with other instances
            echo: Echo SQL through SQLAlchemy
        """
        self.config = config or DbOpConfig.from_env()
        if database is None:
            database = self.config.database_url

        if hasattr(database, "describe_table"):
            self._connection: Connection = database  # type: ignore[assignment]
            self._owns_connection = False
        else:
            self._connection = DatabaseConnection(
                database, echo=echo or self.config.echo  # type: ignore[arg-type]
            )
            self._owns_connection = True

        self.catalog = catalog if catalog is not None else SchemaCatalog()
        self.validator = ValidationEngine()
        self.operations = TableOperations(
            self.catalog, self.validator, control_fields=self.config.control_fields
        )

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def last_result(self) -> ExecutionResult | None:
        """Result of the most recent insert/update."""
        return self.operations.last_result

    async def describe(self, table: str) -> TableDescriptor:
        """Get (and cache) a table's schema descriptor."""
        return await self.catalog.describe(self._connection, table)

    def clear_cache(self) -> DbOp:
        self.catalog.clear_cache()
        return self

    async def sql_builder(
        self,
        join_spec: JoinSpec,
        left_join_spec: LeftJoinSpec | None = None,
        json_columns: Mapping[str, str] | None = None,
    ) -> QueryBuilder:
        """Create a builder bound to a join specification.

        Args:
            join_spec: ``{"table.alias.col": "table.alias.col" | None}`` or ``"table.alias"``
            left_join_spec: ``{"table.alias.col": {"join": "table.alias.col", "columns": [...]}}``
            json_columns: ``prefix -> json column`` map for the DataTables adapter
        """
        builder = QueryBuilder(
            self.catalog,
            options=PostProcessOptions(timezone=self.config.timezone),
            log_sql=self.config.log_sql,
            json_columns=json_columns,
        )
        return await builder.init(self._connection, join_spec, left_join_spec)

    async def select_one(
        self, table: str, data: dict[str, Any], columns: Iterable[str] | None = None
    ) -> dict[str, Any] | None:
        return await self.operations.select_one(self._connection, table, data, columns)

    async def insert(self, table: str, data: dict[str, Any], ignore: bool = False) -> int | bool:
        return await self.operations.insert(self._connection, table, data, ignore=ignore)

    async def update(self, table: str, data: dict[str, Any]) -> int:
        return await self.operations.update(self._connection, table, data)

    async def run_file(
        self,
        path: str | Path,
        delimiter: str = "",
        variables: Mapping[str, Any] | None = None,
    ) -> int:
        """Execute a SQL script file statement by statement."""
        runner = SQLFileRunner(self._connection, delimiter=delimiter, variables=variables)
        return await runner.run_file(path)

    async def close(self) -> None:
        """Close the connection if this instance created it."""
        if self._owns_connection and isinstance(self._connection, DatabaseConnection):
            await self._connection.close()

    async def __aenter__(self) -> DbOp:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()
