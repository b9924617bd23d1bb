import logging
import os
import queue
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from ..base import Source, SourceConfig
from ..errors import ConfigValidationError

logger = logging.getLogger("SQLiteSource")

SOURCE_KIND = "sqlite"

MEMORY_DATABASE = ":memory:"


class SQLitePool:
    """
    Small blocking connection pool over one SQLite database.

    Connections are opened lazily, up to ``size``, and handed to one caller at
    a time. They are created with ``check_same_thread=False`` because tools
    use them from executor threads.
    """

    def __init__(
        self,
        database: str,
        size: int = 5,
        read_only: bool = False,
        timeout: float = 5.0,
        acquire_timeout: Optional[float] = 30.0,
    ):
        self.database = database
        self.read_only = read_only
        self.timeout = timeout
        self.acquire_timeout = acquire_timeout
        # every connection to ":memory:" is a different database
        self.size = 1 if database == MEMORY_DATABASE else size
        self._idle: "queue.LifoQueue[sqlite3.Connection]" = queue.LifoQueue()
        self._lock = threading.Lock()
        self._opened = 0
        self._closed = False

    def _connect(self) -> sqlite3.Connection:
        if self.database == MEMORY_DATABASE:
            return sqlite3.connect(
                MEMORY_DATABASE, timeout=self.timeout, isolation_level=None, check_same_thread=False
            )
        abs_path = os.path.abspath(self.database)
        if self.read_only:
            uri = f"file:{abs_path}?mode=ro"
            return sqlite3.connect(
                uri, uri=True, timeout=self.timeout, isolation_level=None, check_same_thread=False
            )
        return sqlite3.connect(abs_path, timeout=self.timeout, isolation_level=None, check_same_thread=False)

    def _acquire(self) -> sqlite3.Connection:
        if self._closed:
            raise sqlite3.ProgrammingError("connection pool is closed")
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass
        with self._lock:
            if self._opened < self.size:
                conn = self._connect()
                self._opened += 1
                return conn
        try:
            return self._idle.get(timeout=self.acquire_timeout)
        except queue.Empty:
            raise sqlite3.OperationalError(
                f"no connection available for {self.database} after {self.acquire_timeout}s"
            ) from None

    def _discard(self, conn: sqlite3.Connection):
        try:
            conn.close()
        except sqlite3.Error as exc:
            logger.error(f"Error closing connection to {self.database}: {exc}")
        with self._lock:
            self._opened -= 1

    def _release(self, conn: sqlite3.Connection):
        if self._closed:
            self._discard(conn)
            return
        if conn.in_transaction:
            try:
                conn.rollback()
            except sqlite3.Error as exc:
                logger.warning(f"Rollback failed on {self.database}, dropping connection: {exc}")
                self._discard(conn)
                return
        self._idle.put(conn)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._acquire()
        try:
            yield conn
        finally:
            self._release(conn)

    def close(self):
        self._closed = True
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            self._discard(conn)

    @property
    def closed(self) -> bool:
        return self._closed


class SQLiteSource(Source):
    """
    SQLite source.

    Expected config:
    {
      "sources": {
        "chinook": {
          "kind": "sqlite",
          "database": "/abs/path/chinook.sqlite",
          "readOnly": true,
          "poolSize": 5,
          "timeout": 5
        }
      }
    }
    """

    kind = SOURCE_KIND
    description = "SQLite database file"

    def __init__(self, config: SourceConfig):
        super().__init__(config)
        options = config.options
        database = options.get("database")
        if not database:
            raise ConfigValidationError(f"source {config.name!r}: 'database' is required")
        pool_size = options.get("poolSize", 5)
        if not isinstance(pool_size, int) or isinstance(pool_size, bool) or pool_size < 1:
            raise ConfigValidationError(f"source {config.name!r}: 'poolSize' must be a positive integer")
        read_only = options.get("readOnly", False)
        if read_only and database == MEMORY_DATABASE:
            raise ConfigValidationError(f"source {config.name!r}: an in-memory database cannot be read-only")

        self._pool = SQLitePool(
            database=database,
            size=pool_size,
            read_only=bool(read_only),
            timeout=float(options.get("timeout", 5.0)),
        )

    async def warmup(self):
        if self._pool.database != MEMORY_DATABASE and self._pool.read_only:
            if not os.path.exists(self._pool.database):
                raise FileNotFoundError(f"Database file not found: {self._pool.database} (source={self.name})")
        with self._pool.connection() as conn:
            conn.execute("SELECT 1").fetchone()
        logger.info(f"Source {self.name} ready: {self._pool.database}")

    async def shutdown(self):
        self._pool.close()
        logger.info(f"Source {self.name} closed")

    def sqlite_db(self) -> SQLitePool:
        return self._pool

    def get_info(self) -> Dict[str, Any]:
        info = super().get_info()
        info.update({
            "database": self._pool.database,
            "read_only": self._pool.read_only,
            "pool_size": self._pool.size,
        })
        return info
