"""Core types for dbop.

Schema descriptors are immutable once built; request/response models mirror
the DataTables server-side protocol field for field.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BaseType(StrEnum):
    """Column base types the validation engine understands."""

    TEXT = "text"
    VARCHAR = "varchar"
    ENUM = "enum"
    INT = "int"
    TINYINT = "tinyint"
    SMALLINT = "smallint"
    DATE = "date"
    DATETIME = "datetime"
    OTHER = "other"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid base type values."""
        return [t.value for t in cls]

    @property
    def is_integer(self) -> bool:
        return self in (BaseType.INT, BaseType.TINYINT, BaseType.SMALLINT)

    @property
    def is_temporal(self) -> bool:
        return self in (BaseType.DATE, BaseType.DATETIME)


class ColumnDescriptor(BaseModel):
    """Metadata for one column, derived from a single describe-table row."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Column name")
    base_type: BaseType = Field(..., description="Type with any parenthesized suffix removed")
    raw_type: str = Field(default="", description="Type string as reported by the database")
    max_length: int | None = Field(default=None, description="Declared length for int/varchar")
    enum_values: tuple[str, ...] | None = Field(default=None, description="Allowed enum members")
    key_type: str | None = Field(default=None, description="PRI or MUL when the column is keyed")
    is_primary_key: bool = False
    is_auto_generated: bool = False
    allows_null: bool = True


class TableDescriptor(BaseModel):
    """Cached schema metadata for one table."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: dict[str, ColumnDescriptor] = Field(default_factory=dict)
    primary_keys: tuple[str, ...] = ()

    def column_names(self) -> list[str]:
        """Column names in declaration order."""
        return list(self.columns)

    def get(self, column: str) -> ColumnDescriptor | None:
        return self.columns.get(column)


class ExecutionResult(BaseModel):
    """Outcome of a statement that does not return rows."""

    last_insert_id: int | None = None
    affected_rows: int = 0


class PostProcessOptions(BaseModel):
    """Per-builder switches for row post-processing."""

    timezone: str | None = Field(
        default=None, description="IANA zone temporal values are converted to (tz dropped)"
    )
    strip_prefix: bool = Field(
        default=False, description="Remove the leading separator from unaliased columns"
    )
    drop_nulls: bool = Field(default=False, description="Delete keys whose value is None")
    separator: str = "."

    @property
    def is_noop(self) -> bool:
        return self.timezone is None and not self.strip_prefix and not self.drop_nulls


# === DataTables server-side protocol ===


class SearchSpec(BaseModel):
    """Global search box value."""

    value: str = ""
    regex: bool = False


class ColumnSpec(BaseModel):
    """One entry of the request's ``columns`` array."""

    data: str | int | None = ""
    name: str = ""
    searchable: bool = True
    orderable: bool = True


class OrderSpec(BaseModel):
    """One entry of the request's ``order`` array."""

    column: int = 0
    dir: str = "asc"


class DataTableRequest(BaseModel):
    """Incoming filter/sort/page request.

    Unknown keys are kept: they carry the exact-match column filters
    (``"u.status": "active"``) the adapter applies.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    draw: int | None = None
    search: SearchSpec | None = None
    columns: list[ColumnSpec] = Field(default_factory=list)
    order: list[OrderSpec] = Field(default_factory=list)
    start: int | None = None
    length: int | None = None
    selectcolumns: str | None = None
    select_fields: str | None = Field(default=None, alias="fields")

    def filter_values(self) -> dict[str, Any]:
        """Keys outside the protocol, i.e. the exact-match filters."""
        return dict(self.model_extra or {})


class DataTableResult(BaseModel):
    """Response body for a DataTables server-side request."""

    model_config = ConfigDict(populate_by_name=True)

    draw: int | None = None
    data: list[dict[str, Any]] = Field(default_factory=list)
    records_total: int = Field(default=0, alias="recordsTotal")
    records_filtered: int = Field(default=0, alias="recordsFiltered")

    def to_response(self) -> dict[str, Any]:
        """Dump using the protocol's camelCase keys."""
        response: dict[str, Any] = {
            "data": self.data,
            "recordsTotal": self.records_total,
            "recordsFiltered": self.records_filtered,
        }
        if self.draw is not None:
            response["draw"] = self.draw
        return response
