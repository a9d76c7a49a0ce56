"""Core components for dbop."""

from dbop.core.config import DbOpConfig
from dbop.core.connection import Connection, DatabaseConnection
from dbop.core.types import (
    BaseType,
    ColumnDescriptor,
    DataTableRequest,
    DataTableResult,
    ExecutionResult,
    PostProcessOptions,
    TableDescriptor,
)

__all__ = [
    "Connection",
    "DatabaseConnection",
    "DbOpConfig",
    "BaseType",
    "ColumnDescriptor",
    "TableDescriptor",
    "ExecutionResult",
    "PostProcessOptions",
    "DataTableRequest",
    "DataTableResult",
]
