"""
Native Backend Tests — Database API over the in-process aiosqlite adapter.

These run without the sqlite3 binary.
"""

import asyncio

import pytest

from shellite import Database, ResultMode
from shellite.db.backends.native import NativeAdapter, split_statements
from shellite.faults import DatabaseClosedFault, NestingFault, QueryFault


CREATE = "CREATE TABLE example (id INTEGER PRIMARY KEY, title TEXT, description TEXT)"


class TestSplitStatements:
    """Test script splitting."""

    def test_simple(self):
        assert split_statements("SELECT 1; SELECT 2;") == ["SELECT 1;", "SELECT 2;"]

    def test_semicolon_in_literal(self):
        assert split_statements("SELECT 'a;b'; SELECT 2") == ["SELECT 'a;b';", "SELECT 2"]

    def test_empty_statements_dropped(self):
        assert split_statements(" ;\n; SELECT 1;\n;") == ["SELECT 1;"]

    def test_trigger_body(self):
        script = (
            "CREATE TRIGGER t AFTER INSERT ON a BEGIN INSERT INTO b VALUES (1); END;"
            "SELECT 1;"
        )
        statements = split_statements(script)
        assert len(statements) == 2
        assert statements[0].endswith("END;")


class TestNativeQueries:
    """Test query modes."""

    @pytest.mark.asyncio
    async def test_insert_select(self, native_db, example_rows):
        await native_db.execute(CREATE)
        for row in example_rows:
            await native_db.sql(
                "INSERT INTO example VALUES (?, ?, ?)", row["id"], row["title"], row["description"]
            )
        assert await native_db.query("SELECT * FROM example") == example_rows
        assert native_db.backend == "native"
        assert native_db.pid is None

    @pytest.mark.asyncio
    async def test_modes(self, native_db):
        assert await native_db.query("SELECT 1 AS one", ResultMode.TEXT) == '[{"one":1}]\n'
        assert await native_db.query("SELECT 1 AS one", "bytes") == b'[{"one":1}]\n'
        assert await native_db.query("SELECT 1 AS one", ResultMode.DISCARD) is None
        assert await native_db.query("CREATE TABLE t (x)") == []

    @pytest.mark.asyncio
    async def test_error(self, native_db):
        with pytest.raises(QueryFault, match="no such table"):
            await native_db.query("SELECT * FROM missing")
        # Queue keeps going after a failure
        assert await native_db.query("SELECT 2 AS two") == [{"two": 2}]

    @pytest.mark.asyncio
    async def test_dot_command_rejected(self, native_db):
        with pytest.raises(QueryFault, match="Dot-commands"):
            await native_db.query(".tables")

    @pytest.mark.asyncio
    async def test_unawaited_queries_run_in_order(self, native_db):
        native_db.query(CREATE)
        native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")
        rows = native_db.query("SELECT id FROM example")
        assert await rows == [{"id": 1}]


class TestNativeCoordinator:
    """Test batch/transaction on the native backend."""

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, native_db):
        await native_db.execute(CREATE)

        async def body():
            await native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")
            await native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")

        assert await native_db.transaction(body) is False
        assert native_db.transacting is False
        assert await native_db.query("SELECT * FROM example") == []

    @pytest.mark.asyncio
    async def test_transaction_commit(self, native_db):
        await native_db.execute(CREATE)

        async def body():
            await native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")

        assert await native_db.transaction(body) is True
        assert len(await native_db.query("SELECT * FROM example")) == 1

    @pytest.mark.asyncio
    async def test_sync_body_failure_rolls_back(self, native_db):
        await native_db.execute(CREATE)

        def body():
            native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")
            native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")

        assert await native_db.transaction(body) is False
        assert await native_db.query("SELECT * FROM example") == []

    @pytest.mark.asyncio
    async def test_sync_nested_transaction_raises_immediately(self, native_db):
        await native_db.execute(CREATE)
        raised = []

        def body():
            native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")
            try:
                native_db.transaction(lambda: None)
            except NestingFault as exc:
                raised.append(exc)
                raise

        assert await native_db.transaction(body) is False
        assert len(raised) == 1
        assert await native_db.query("SELECT * FROM example") == []

    @pytest.mark.asyncio
    async def test_batch(self, native_db):
        await native_db.execute(CREATE)

        def body():
            native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")
            native_db.query("INSERT INTO example VALUES (2, 'c', 'd')")

        await native_db.batch(body)
        assert len(await native_db.query("SELECT * FROM example")) == 2

    @pytest.mark.asyncio
    async def test_nested_batch(self, native_db):
        async def body():
            await native_db.batch(lambda: None)

        with pytest.raises(NestingFault):
            await native_db.batch(body)
        assert native_db.batching is False

    @pytest.mark.asyncio
    async def test_sync_nested_batch(self, native_db):
        await native_db.execute(CREATE)

        def body():
            native_db.query("INSERT INTO example VALUES (1, 'a', 'b')")
            with pytest.raises(NestingFault, match="nested batches"):
                native_db.batch(lambda: None)

        await native_db.batch(body)
        assert len(await native_db.query("SELECT * FROM example")) == 1


class TestNativeMaintenance:
    """Test serialization and dumps."""

    @pytest.mark.asyncio
    async def test_serialize_roundtrip(self, native_db):
        await native_db.execute(CREATE + "; INSERT INTO example VALUES (1, 'a', 'b')")
        data = await native_db.serialize()
        assert data.startswith(b"SQLite format 3\x00")

        copy = Database(data, backend="native")
        try:
            assert copy.temporary is True
            assert await copy.query("SELECT id FROM example") == [{"id": 1}]
        finally:
            await copy.close()

    @pytest.mark.asyncio
    async def test_deserialize(self, native_db):
        source = Database(":memory:", backend="native")
        try:
            await source.execute("CREATE TABLE moved (v); INSERT INTO moved VALUES (7)")
            data = await source.serialize()
        finally:
            await source.close()

        assert await native_db.deserialize(data) is native_db
        assert await native_db.query("SELECT v FROM moved") == [{"v": 7}]

    @pytest.mark.asyncio
    async def test_dump(self, native_db):
        await native_db.execute(CREATE)
        dump = await native_db.dump()
        assert "CREATE TABLE example" in dump

    @pytest.mark.asyncio
    async def test_size(self, native_db):
        await native_db.execute(CREATE)
        assert await native_db.size() > 0


class TestNativeLifecycle:
    """Test close semantics."""

    @pytest.mark.asyncio
    async def test_close(self):
        import os

        db = Database(":memory:", backend="native")
        await db.query("SELECT 1")
        assert db.open is True
        path = db.path

        await db.close()
        await db.close()
        assert db.closed is True
        assert not os.path.exists(path)
        with pytest.raises(DatabaseClosedFault):
            db.query("SELECT 1")

    @pytest.mark.asyncio
    async def test_adapter_reconnects(self, tmp_path):
        adapter = NativeAdapter(str(tmp_path / "a.db"))
        await adapter.exec("CREATE TABLE t (x)")
        await adapter.close()
        assert adapter.is_open is False
        assert await adapter.exec("SELECT count(*) AS n FROM t") == [{"n": 0}]
        await adapter.close()
