"""Tests for validated single-table operations."""

import pytest

from dbop.data.operations import TableOperations, split_table_name
from dbop.exceptions import MissingPrimaryKeyError, ValidationError


@pytest.fixture
def ops(catalog) -> TableOperations:
    return TableOperations(catalog)


class TestSplitTableName:
    """Tests for split_table_name."""

    def test_with_alias(self):
        """Test splitting an "alias.table" name."""
        assert split_table_name("u.users") == ("users", "u.")

    def test_without_alias(self):
        """Test that a bare table name has no alias."""
        assert split_table_name("users") == ("users", "")


class TestInsert:
    """Tests for TableOperations.insert."""

    async def test_insert_returns_generated_id(self, ops, fake_conn):
        """Test that insert returns the generated id."""
        new_id = await ops.insert(fake_conn, "users", {"name": "Ada", "status": "active"})
        assert new_id == 42
        sql, params = fake_conn.executed[-1]
        assert sql == "INSERT INTO `users` (`name`,`status`) VALUES (?,?)"
        assert params == ["Ada", "active"]
        assert ops.last_result.last_insert_id == 42

    async def test_insert_without_generated_id_returns_true(self, ops, fake_conn):
        """Inserts without a generated id return True."""
        fake_conn.next_insert_id = None
        assert await ops.insert(fake_conn, "logs", {"message": "hi"}) is True

    async def test_insert_with_alias_prefix(self, ops, fake_conn):
        """Aliased inserts read "alias.column" keys."""
        await ops.insert(fake_conn, "u.users", {"u.name": "Ada", "u.status": "active", "o.x": 1})
        sql, params = fake_conn.executed[-1]
        assert sql == "INSERT INTO `users` (`name`,`status`) VALUES (?,?)"
        assert params == ["Ada", "active"]

    async def test_skips_auto_and_control_columns(self, ops, fake_conn):
        """Auto-increment and control columns are never written."""
        await ops.insert(
            fake_conn, "users", {"id": 5, "name": "Ada", "status": "active", "dtCreate": "now()"}
        )
        sql, _ = fake_conn.executed[-1]
        assert "`id`" not in sql
        assert "dtCreate" not in sql

    async def test_now_sentinel_is_server_side(self, ops, fake_conn):
        """The now() sentinel becomes a server-side timestamp."""
        await ops.insert(fake_conn, "orders", {"user_id": 1, "placed": "now()"})
        sql, params = fake_conn.executed[-1]
        assert sql == "INSERT INTO `orders` (`user_id`,`placed`) VALUES (?,CURRENT_TIMESTAMP)"
        assert params == [1]

    async def test_validation_failure_sends_nothing(self, ops, fake_conn):
        """Test that invalid data never reaches the driver."""
        with pytest.raises(ValidationError):
            await ops.insert(fake_conn, "users", {"name": "Ada", "status": "unknown"})
        assert fake_conn.executed == []

    async def test_coerced_values_are_written(self, ops, fake_conn):
        """Test that validated values are written coerced."""
        data = {"user_id": "7", "total": "12"}
        await ops.insert(fake_conn, "orders", data)
        assert fake_conn.executed[-1][1] == [7, 12]
        assert data == {"user_id": 7, "total": 12}

    async def test_insert_ignore_mysql(self, ops, fake_conn):
        """Test INSERT IGNORE on MySQL."""
        await ops.insert(fake_conn, "logs", {"message": "hi"}, ignore=True)
        assert fake_conn.executed[-1][0].startswith("INSERT IGNORE INTO `logs`")

    async def test_insert_ignore_sqlite(self, ops, sqlite_conn):
        """Test INSERT OR IGNORE on SQLite."""
        conn = sqlite_conn
        await ops.insert(conn, "logs", {"message": "hi"}, ignore=True)
        assert conn.executed[-1][0].startswith("INSERT OR IGNORE INTO `logs`")

    async def test_only_auto_columns_rejected(self, ops, fake_conn):
        """Test that an insert with nothing to write is rejected."""
        with pytest.raises(ValidationError):
            await ops.insert(fake_conn, "users", {"id": 1})


class TestUpdate:
    """Tests for TableOperations.update."""

    async def test_update_by_primary_key(self, ops, fake_conn):
        """Test that update sets fields keyed by primary key."""
        fake_conn.affected_rows = 1
        affected = await ops.update(fake_conn, "users", {"id": 3, "name": "Grace"})
        assert affected == 1
        sql, params = fake_conn.executed[-1]
        assert sql == "UPDATE `users` SET `name`=? WHERE `id`=?"
        assert params == ["Grace", 3]

    async def test_composite_key(self, ops, fake_conn):
        """Test update with a composite primary key."""
        await ops.update(fake_conn, "codes", {"code": "AB", "region": "EU", "label": "x"})
        sql, params = fake_conn.executed[-1]
        assert sql == "UPDATE `codes` SET `label`=? WHERE `code`=? AND `region`=?"
        assert params == ["x", "AB", "EU"]

    async def test_missing_primary_key(self, ops, fake_conn):
        """Test that update requires every key value."""
        with pytest.raises(MissingPrimaryKeyError) as exc_info:
            await ops.update(fake_conn, "u.users", {"u.name": "Grace"})
        assert exc_info.value.column == "u.id"
        assert fake_conn.executed == []

    async def test_table_without_primary_key(self, ops, fake_conn):
        """Test that tables without a primary key cannot be updated."""
        with pytest.raises(MissingPrimaryKeyError):
            await ops.update(fake_conn, "logs", {"message": "x"})

    async def test_now_sentinel_in_set(self, ops, fake_conn):
        """The now() sentinel works in SET as well."""
        await ops.update(fake_conn, "orders", {"id": 1, "placed": "NOW()"})
        assert fake_conn.executed[-1] == (
            "UPDATE `orders` SET `placed`=CURRENT_TIMESTAMP WHERE `id`=?",
            [1],
        )

    async def test_zero_rows_affected(self, ops, fake_conn):
        """Test that an update matching no row reports zero."""
        fake_conn.affected_rows = 0
        assert await ops.update(fake_conn, "users", {"id": 99, "name": "x"}) == 0


class TestSelectOne:
    """Tests for TableOperations.select_one."""

    async def test_returns_single_match(self, ops, fake_conn):
        """Test that select_one returns the matching row."""
        fake_conn.results.append([{"id": 1, "total": 5}])
        row = await ops.select_one(fake_conn, "orders", {"id": 1}, ["id", "total"])
        assert row == {"id": 1, "total": 5}
        assert fake_conn.last_sql == "SELECT `id`,`total` FROM `orders` WHERE `id`=?"
        assert fake_conn.last_params == [1]

    async def test_no_match_is_none(self, ops, fake_conn):
        """Test that select_one returns None on no match."""
        assert await ops.select_one(fake_conn, "orders", {"id": 1}) is None

    async def test_requires_primary_key(self, ops, fake_conn):
        """Test that select_one requires the key values."""
        with pytest.raises(MissingPrimaryKeyError):
            await ops.select_one(fake_conn, "orders", {"total": 1})


class TestFieldHelpers:
    """Tests for the chainable field helpers."""

    def test_sanitize(self, ops):
        """Test that sanitizing rewrites listed string fields in place."""
        data = {"slug": " hello world!", "n": 3}
        assert ops.sanitize_fields_az09(data, ["slug", "n", "absent"]) is ops
        assert data == {"slug": "hello-world-", "n": 3}

    def test_empty_fields(self, ops):
        """Test that empty required fields raise."""
        ops.check_for_empty_fields({"a": "x"}, ["a", "b"])
        with pytest.raises(ValidationError) as exc_info:
            ops.check_for_empty_fields({"a": ""}, ["a"])
        assert exc_info.value.reason == "was empty"

    def test_missing_fields(self, ops):
        """Test that absent required fields raise."""
        ops.check_for_missing_fields({"a": None}, ["a"])
        with pytest.raises(ValidationError) as exc_info:
            ops.check_for_missing_fields({}, ["a"])
        assert exc_info.value.field_name == "a"
