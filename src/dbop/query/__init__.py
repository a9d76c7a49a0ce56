"""Query building, DataTables filtering and row post-processing."""

from dbop.query.builder import QueryBuilder, TableRef
from dbop.query.clauses import WhereClause
from dbop.query.datatable import FilterRequestAdapter
from dbop.query.postprocess import RowPostProcessor

__all__ = [
    "QueryBuilder",
    "TableRef",
    "WhereClause",
    "FilterRequestAdapter",
    "RowPostProcessor",
]
