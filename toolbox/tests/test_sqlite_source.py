"""
Tests for the SQLite source and its connection pool
"""

import asyncio
import sqlite3
import threading

import pytest

from toolbox.server.backends import SourceConfig
from toolbox.server.backends.errors import ConfigValidationError
from toolbox.server.backends.sources import SQLitePool, SQLiteSource


def make_source(name="db", **options):
    return SQLiteSource(SourceConfig(name=name, kind="sqlite", options=options))


class TestSQLiteSource:
    """Option validation and lifecycle"""

    def test_database_required(self):
        with pytest.raises(ConfigValidationError):
            make_source()

    @pytest.mark.parametrize("size", [0, -1, "5", True])
    def test_pool_size_validated(self, db_path, size):
        with pytest.raises(ConfigValidationError):
            make_source(database=db_path, poolSize=size)

    def test_read_only_memory_rejected(self):
        with pytest.raises(ConfigValidationError):
            make_source(database=":memory:", readOnly=True)

    def test_warmup_and_shutdown(self, db_path):
        """warmup opens a connection, shutdown closes the pool"""
        source = make_source(database=db_path, poolSize=2)
        asyncio.run(source.warmup())
        pool = source.sqlite_db()
        assert pool._opened == 1
        asyncio.run(source.shutdown())
        assert pool.closed
        assert pool._opened == 0

    def test_read_only_missing_file(self, tmp_path):
        """A read-only source never creates its database"""
        source = make_source(database=str(tmp_path / "missing.db"), readOnly=True)
        with pytest.raises(FileNotFoundError):
            asyncio.run(source.warmup())
        assert not (tmp_path / "missing.db").exists()

    def test_read_only_rejects_writes(self, db_path):
        source = make_source(database=db_path, readOnly=True)
        with source.sqlite_db().connection() as conn:
            assert conn.execute("SELECT name FROM t").fetchall() == [("a",)]
            with pytest.raises(sqlite3.OperationalError):
                conn.execute("DELETE FROM t")
        asyncio.run(source.shutdown())

    def test_get_info(self, db_path):
        info = make_source(name="app", database=db_path, poolSize=3).get_info()
        assert info["name"] == "app"
        assert info["kind"] == "sqlite"
        assert info["pool_size"] == 3
        assert info["read_only"] is False

    def test_implements_capability(self, db_path):
        from toolbox.server.backends.tools.sqlite_sql import SQLiteCompatibleSource

        assert isinstance(make_source(database=db_path), SQLiteCompatibleSource)


class TestSQLitePool:
    """Connection pool behaviour"""

    def test_memory_database_single_connection(self):
        """Every :memory: connection is its own database, so the pool keeps one"""
        pool = SQLitePool(":memory:", size=5)
        assert pool.size == 1
        with pool.connection() as conn:
            conn.execute("CREATE TABLE x (v INTEGER)")
            conn.execute("INSERT INTO x VALUES (1)")
        with pool.connection() as conn:
            assert conn.execute("SELECT v FROM x").fetchall() == [(1,)]
        pool.close()

    def test_connections_reused(self, db_path):
        pool = SQLitePool(db_path, size=2)
        with pool.connection() as first:
            pass
        with pool.connection() as second:
            assert second is first
        assert pool._opened == 1
        pool.close()

    def test_autocommit(self, db_path):
        """Writes are visible to other connections without an explicit commit"""
        pool = SQLitePool(db_path, size=1)
        with pool.connection() as conn:
            conn.execute("INSERT INTO t2 (name) VALUES ('z')")
        pool.close()

        other = sqlite3.connect(db_path)
        assert other.execute("SELECT COUNT(*) FROM t2").fetchone()[0] == 3
        other.close()

    def test_open_transaction_rolled_back_on_release(self, db_path):
        pool = SQLitePool(db_path, size=1)
        with pool.connection() as conn:
            conn.execute("BEGIN")
            conn.execute("DELETE FROM t2")
        with pool.connection() as conn:
            assert not conn.in_transaction
            assert conn.execute("SELECT COUNT(*) FROM t2").fetchone()[0] == 2
        pool.close()

    def test_failed_rollback_drops_connection(self, db_path):
        """A connection that cannot be rolled back is closed and its slot freed"""

        class BrokenRollbackConnection(sqlite3.Connection):
            def rollback(self):
                raise sqlite3.OperationalError("cannot rollback")

        class BrokenRollbackPool(SQLitePool):
            def _connect(self):
                return sqlite3.connect(
                    self.database,
                    isolation_level=None,
                    check_same_thread=False,
                    factory=BrokenRollbackConnection,
                )

        pool = BrokenRollbackPool(db_path, size=1, acquire_timeout=0.05)
        with pool.connection() as conn:
            conn.execute("BEGIN")
        assert pool._opened == 0
        assert pool._idle.qsize() == 0
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")

        with pool.connection() as fresh:
            assert fresh is not conn
            assert fresh.execute("SELECT COUNT(*) FROM t2").fetchone()[0] == 2
        pool.close()

    def test_exhausted(self, db_path):
        """With every connection checked out, acquire gives up after acquire_timeout"""
        pool = SQLitePool(db_path, size=1, acquire_timeout=0.05)
        with pool.connection():
            with pytest.raises(sqlite3.OperationalError):
                with pool.connection():
                    pass
        pool.close()

    def test_waits_for_release(self, db_path):
        pool = SQLitePool(db_path, size=1, acquire_timeout=5)
        got = []

        def worker():
            with pool.connection() as conn:
                got.append(conn)

        with pool.connection() as conn:
            thread = threading.Thread(target=worker)
            thread.start()
        thread.join(timeout=5)
        assert got == [conn]
        pool.close()

    def test_closed_pool(self, db_path):
        pool = SQLitePool(db_path)
        pool.close()
        with pytest.raises(sqlite3.ProgrammingError):
            with pool.connection():
                pass

    def test_release_after_close(self, db_path):
        """A connection returned after close() is closed, not pooled"""
        pool = SQLitePool(db_path, size=1)
        with pool.connection() as conn:
            pool.close()
        assert pool._opened == 0
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")
