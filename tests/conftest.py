"""Shared test fixtures for dbop."""

import asyncio
from collections.abc import Sequence
from typing import Any

import pytest

from dbop.core.connection import nest_row
from dbop.core.types import ExecutionResult
from dbop.exceptions import DriverExecutionError
from dbop.query.builder import QueryBuilder
from dbop.schema.catalog import SchemaCatalog


def _col(field: str, type_: str, null: str = "YES", key: str = "", extra: str = "") -> dict:
    return {"Field": field, "Type": type_, "Null": null, "Key": key, "Default": None, "Extra": extra}


# DESCRIBE output, as MySQL reports it
SCHEMAS: dict[str, list[dict[str, Any]]] = {
    "users": [
        _col("id", "int(11)", "NO", "PRI", "auto_increment"),
        _col("name", "varchar(50)", "NO"),
        _col("email", "varchar(100)"),
        _col("status", "enum('active','disabled')", "NO"),
        _col("age", "tinyint(3)"),
        _col("bio", "text"),
        _col("birthday", "date"),
        _col("created", "datetime"),
        _col("meta", "json"),
        _col("dtCreate", "datetime"),
    ],
    "orders": [
        _col("id", "int(11)", "NO", "PRI", "auto_increment"),
        _col("user_id", "int(11)", "NO", "MUL"),
        _col("total", "int(11)"),
        _col("placed", "datetime"),
    ],
    "profiles": [
        _col("user_id", "int(11)", "NO", "PRI"),
        _col("bio", "text"),
        _col("avatar", "varchar(255)"),
    ],
    "codes": [
        _col("code", "varchar(5)", "NO", "PRI"),
        _col("region", "varchar(2)", "NO", "PRI"),
        _col("label", "varchar(20)"),
    ],
    "logs": [
        _col("message", "text"),
    ],
}


class FakeConnection:
    """In-memory Connection that records every call.

    ``results`` is a queue of row lists returned by successive ``query`` calls.
    """

    def __init__(self, dialect: str = "mysql", fail_on: str | None = None) -> None:
        self.dialect = dialect
        self.fail_on = fail_on
        self.results: list[list[dict[str, Any]]] = []
        self.queries: list[tuple[str, list[Any], str | None]] = []
        self.executed: list[tuple[str, list[Any]]] = []
        self.describe_calls: list[str] = []
        self.next_insert_id: int | None = 42
        self.affected_rows = 1

    async def query(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        nest_tables: str | None = None,
    ) -> list[dict[str, Any]]:
        self.queries.append((sql, list(params or []), nest_tables))
        rows = self.results.pop(0) if self.results else []
        if nest_tables:
            rows = [nest_row(row, nest_tables) for row in rows]
        return rows

    async def execute(self, sql: str, params: Sequence[Any] | None = None) -> ExecutionResult:
        if self.fail_on and self.fail_on in sql:
            raise DriverExecutionError(sql, RuntimeError("boom"))
        self.executed.append((sql, list(params or [])))
        return ExecutionResult(last_insert_id=self.next_insert_id, affected_rows=self.affected_rows)

    async def describe_table(self, table: str) -> list[dict[str, Any]]:
        self.describe_calls.append(table)
        # Let concurrent callers interleave
        await asyncio.sleep(0)
        if table not in SCHEMAS:
            raise RuntimeError(f"Table '{table}' doesn't exist")
        return SCHEMAS[table]

    @property
    def last_sql(self) -> str:
        return self.queries[-1][0]

    @property
    def last_params(self) -> list[Any]:
        return self.queries[-1][1]


@pytest.fixture
def fake_conn() -> FakeConnection:
    """Fake MySQL-flavoured connection."""
    return FakeConnection()


@pytest.fixture
def catalog() -> SchemaCatalog:
    """Fresh schema catalog per test."""
    return SchemaCatalog()


@pytest.fixture
def make_builder(fake_conn: FakeConnection, catalog: SchemaCatalog):
    """Factory for builders initialized against the fake connection."""

    async def _make(join_spec: Any, left_join_spec: Any = None, **kwargs: Any) -> QueryBuilder:
        builder = QueryBuilder(catalog, **kwargs)
        return await builder.init(fake_conn, join_spec, left_join_spec)

    return _make


@pytest.fixture
def sqlite_conn() -> FakeConnection:
    """Fake connection reporting the SQLite dialect."""
    return FakeConnection(dialect="sqlite")
