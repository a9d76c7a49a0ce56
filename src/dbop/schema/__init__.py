"""Schema introspection and caching."""

from dbop.schema.catalog import SchemaCatalog, column_from_row, parse_column_type

__all__ = ["SchemaCatalog", "column_from_row", "parse_column_type"]
