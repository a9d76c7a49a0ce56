"""Tests for schema introspection and caching."""

import asyncio

import pytest

from dbop.core.types import BaseType
from dbop.exceptions import SchemaIntrospectionError
from dbop.schema.catalog import SchemaCatalog, column_from_row, parse_column_type


class TestParseColumnType:
    """Tests for splitting reported column types."""

    def test_varchar_length(self):
        """Test that varchar length is parsed."""
        assert parse_column_type("varchar(255)") == (BaseType.VARCHAR, 255, None)

    def test_int_display_width_with_modifier(self):
        """Integer width is parsed past trailing modifiers."""
        assert parse_column_type("int(11) unsigned") == (BaseType.INT, 11, None)

    def test_int_without_width(self):
        """Test that integers without a width have no length."""
        assert parse_column_type("int unsigned") == (BaseType.INT, None, None)

    def test_enum_members(self):
        """Test that enum members are listed in order."""
        base, length, values = parse_column_type("enum('active','disabled')")
        assert base == BaseType.ENUM
        assert length is None
        assert values == ("active", "disabled")

    def test_enum_member_with_comma_and_quote(self):
        """Enum members may contain commas and doubled quotes."""
        _, _, values = parse_column_type("enum('a,b','it''s')")
        assert values == ("a,b", "it's")

    def test_unknown_type_is_other(self):
        """Unrecognized types fall back to the other kind."""
        assert parse_column_type("decimal(10,2)") == (BaseType.OTHER, None, None)
        assert parse_column_type("json") == (BaseType.OTHER, None, None)

    def test_text_and_dates(self):
        """Test that text and date types are recognized."""
        assert parse_column_type("text")[0] == BaseType.TEXT
        assert parse_column_type("date")[0] == BaseType.DATE
        assert parse_column_type("datetime")[0] == BaseType.DATETIME


class TestColumnFromRow:
    """Tests for building descriptors from describe rows."""

    def test_auto_increment_primary_key(self):
        """An auto-increment primary key row is flagged as such."""
        column = column_from_row(
            {"Field": "id", "Type": "int(11)", "Null": "NO", "Key": "PRI", "Extra": "auto_increment"}
        )
        assert column.is_primary_key is True
        assert column.is_auto_generated is True
        assert column.allows_null is False
        assert column.key_type == "PRI"
        assert column.max_length == 11

    def test_indexed_nullable_column(self):
        """Indexed nullable columns keep their key type."""
        column = column_from_row(
            {"Field": "user_id", "Type": "int(11)", "Null": "YES", "Key": "MUL", "Extra": ""}
        )
        assert column.is_primary_key is False
        assert column.key_type == "MUL"
        assert column.allows_null is True

    def test_bytes_type_is_decoded(self):
        """Test that byte-string type values are decoded."""
        column = column_from_row({"Field": "name", "Type": b"varchar(20)", "Null": "YES"})
        assert column.base_type == BaseType.VARCHAR
        assert column.max_length == 20


class TestSchemaCatalog:
    """Tests for SchemaCatalog caching."""

    async def test_describe_builds_descriptor(self, catalog, fake_conn):
        """Describe returns a descriptor built from the driver rows."""
        users = await catalog.describe(fake_conn, "users")
        assert users.name == "users"
        assert users.primary_keys == ("id",)
        assert users.columns["status"].enum_values == ("active", "disabled")
        assert users.column_names()[:3] == ["id", "name", "email"]

    async def test_composite_primary_key_order(self, catalog, fake_conn):
        """Composite primary keys keep declaration order."""
        codes = await catalog.describe(fake_conn, "codes")
        assert codes.primary_keys == ("code", "region")

    async def test_second_describe_hits_cache(self, catalog, fake_conn):
        """Test that a second describe does not reintrospect."""
        first = await catalog.describe(fake_conn, "users")
        second = await catalog.describe(fake_conn, "users")
        assert first is second
        assert fake_conn.describe_calls == ["users"]
        assert "users" in catalog

    async def test_clear_cache_forces_introspection(self, catalog, fake_conn):
        """Test that clearing the cache forces a new introspection."""
        await catalog.describe(fake_conn, "users")
        catalog.clear_cache()
        assert len(catalog) == 0
        await catalog.describe(fake_conn, "users")
        assert fake_conn.describe_calls == ["users", "users"]

    async def test_concurrent_first_lookups_share_introspection(self, catalog, fake_conn):
        """Concurrent first lookups share one introspection."""
        results = await asyncio.gather(
            *(catalog.describe(fake_conn, "orders") for _ in range(5))
        )
        assert fake_conn.describe_calls == ["orders"]
        assert all(r is results[0] for r in results)

    async def test_unknown_table_raises(self, catalog, fake_conn):
        """Test that unknown tables raise SchemaIntrospectionError."""
        with pytest.raises(SchemaIntrospectionError) as exc_info:
            await catalog.describe(fake_conn, "missing")
        assert exc_info.value.table_name == "missing"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "missing" not in catalog

    async def test_clear_during_introspection_discards_result(self, catalog, fake_conn):
        """A lookup in flight when the cache is cleared does not repopulate it."""
        task = asyncio.create_task(catalog.describe(fake_conn, "users"))
        # Let the lookup reach the describe call
        await asyncio.sleep(0)
        catalog.clear_cache()

        descriptor = await task

        assert descriptor.name == "users"
        assert "users" not in catalog
        await catalog.describe(fake_conn, "users")
        assert fake_conn.describe_calls == ["users", "users"]

    async def test_failure_is_not_retried(self, catalog, fake_conn):
        """A failed lookup introspects once and caches nothing."""
        with pytest.raises(SchemaIntrospectionError):
            await catalog.describe(fake_conn, "missing")
        assert fake_conn.describe_calls == ["missing"]

    async def test_empty_description_raises(self, catalog, fake_conn):
        """Test that a table with no columns raises."""
        async def _empty(table):
            return []

        fake_conn.describe_table = _empty
        with pytest.raises(SchemaIntrospectionError):
            await catalog.describe(fake_conn, "ghost")

    def test_catalogs_are_independent(self):
        """Separate catalogs keep separate caches."""
        assert SchemaCatalog().cached_tables() == []
