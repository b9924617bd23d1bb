"""
Shared fixtures: a real SQLite file under tmp_path and a source over it.
"""

import asyncio
import sqlite3

import pytest

from toolbox.server.backends import SourceConfig
from toolbox.server.backends.sources import SQLiteSource
from toolbox.server.backends.tools import SQLiteSQLConfig


SCHEMA = """
CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT);
CREATE TABLE t2 (id INTEGER PRIMARY KEY, name TEXT);
CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT, owner TEXT, score REAL, avatar BLOB);

INSERT INTO t (id, name) VALUES (5, 'a');
INSERT INTO t2 (id, name) VALUES (1, 'x'), (2, 'y');
INSERT INTO users (id, name, email, owner, score, avatar) VALUES
    (1, 'alice', 'alice@example.com', 'alice@example.com', 9.5, X'0102'),
    (2, 'bob', NULL, 'bob@example.com', NULL, NULL),
    (3, 'carol', 'carol@example.com', 'alice@example.com', 7.25, NULL);
"""


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "test.db"
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
    return str(path)


@pytest.fixture
def source(db_path):
    src = SQLiteSource(SourceConfig(name="test-db", kind="sqlite", options={"database": db_path}))
    yield src
    asyncio.run(src.shutdown())


@pytest.fixture
def sources(source):
    return {"test-db": source}


@pytest.fixture
def make_tool(sources):
    """Build a sqlite-sql tool bound to the test source."""

    def _make(statement, name="test_tool", **extra):
        data = {
            "kind": "sqlite-sql",
            "source": "test-db",
            "description": f"{name} description",
            "statement": statement,
        }
        data.update(extra)
        return SQLiteSQLConfig.from_dict(name, data).initialize(sources)

    return _make
