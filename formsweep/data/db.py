"""
DuckDB connection management for formsweep.

Provides thread-safe connection pooling, query helpers and an explicit
transaction boundary used by the purge engine.

    Example:
        db = get_db()
        with db.transaction() as conn:
            conn.execute("DELETE FROM submissions_values WHERE submission_id = ?", (42,))
            conn.execute("DELETE FROM submissions WHERE id = ?", (42,))
"""

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, List, Optional, Set, Tuple, Union

import duckdb
from loguru import logger

# Default data directory
DEFAULT_DATA_DIR = Path.home() / "formsweep-data"
DEFAULT_DB_NAME = "formsweep.duckdb"


class ConnectionPool:
    """
    Thread-safe connection pool for DuckDB.

    Connections are created on demand up to max_size and reused when
    released. Callers block while the pool is exhausted.
    """

    def __init__(self, db_path: Union[str, Path], max_size: int = 5, read_only: bool = False):
        self.db_path = str(db_path)
        self.max_size = max_size
        self.read_only = read_only
        self._pool: List[duckdb.DuckDBPyConnection] = []
        self._in_use: Set[duckdb.DuckDBPyConnection] = set()
        self._lock = threading.Lock()
        self._condition = threading.Condition(self._lock)
        logger.debug(f"ConnectionPool initialized: {self.db_path}, max_size={self.max_size}")

    def _is_connection_valid(self, conn: duckdb.DuckDBPyConnection) -> bool:
        try:
            conn.execute("SELECT 1").fetchone()
            return True
        except duckdb.Error as e:
            logger.debug(f"Connection validation failed: {e}")
            return False

    def _discard(self, conn: duckdb.DuckDBPyConnection) -> None:
        try:
            conn.close()
        except duckdb.Error as e:
            logger.debug(f"Error closing discarded connection: {e}")

    def acquire(self) -> duckdb.DuckDBPyConnection:
        """
        Acquire a connection from the pool.

        Waits if all connections are in use and max_size is reached.
        """
        with self._condition:
            while len(self._pool) == 0 and len(self._in_use) >= self.max_size:
                logger.debug("Connection pool exhausted, waiting...")
                self._condition.wait()

            conn = None
            while self._pool:
                candidate = self._pool.pop()
                if self._is_connection_valid(candidate):
                    conn = candidate
                    break
                logger.debug("Discarding invalid connection from pool")
                self._discard(candidate)

            if conn is None:
                conn = duckdb.connect(self.db_path, read_only=self.read_only)
                logger.debug(
                    f"Created new connection to {self.db_path} "
                    f"(in use: {len(self._in_use) + 1}/{self.max_size})"
                )

            self._in_use.add(conn)
            return conn

    def release(self, conn: duckdb.DuckDBPyConnection) -> None:
        """Release a connection back to the pool, discarding it if broken."""
        with self._condition:
            if conn not in self._in_use:
                logger.warning("Attempted to release connection not in use")
                return

            self._in_use.remove(conn)
            if self._is_connection_valid(conn):
                self._pool.append(conn)
            else:
                logger.debug("Discarding invalid connection on release")
                self._discard(conn)
            self._condition.notify()

    @contextmanager
    def connection(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def get_stats(self) -> dict:
        """Current pool statistics."""
        with self._lock:
            return {
                "available": len(self._pool),
                "in_use": len(self._in_use),
                "max_size": self.max_size,
            }

    def close_all(self) -> None:
        """Close idle and in-use connections and clear the pool."""
        with self._lock:
            for conn in self._pool:
                conn.close()
            for conn in self._in_use:
                conn.close()
            self._pool.clear()
            self._in_use.clear()
            logger.debug("All connections closed")


class DatabaseManager:
    """
    Thread-safe DuckDB connection manager with connection pooling.

    One instance exists per (db_path, read_only) pair so every component
    opened against the same file shares a pool. DuckDB does not allow mixing
    read-only and read-write connections to one file within a process.
    """

    _lock = threading.Lock()

    def __new__(cls, db_path: Union[Path, str, None] = None, max_connections: int = 5, read_only: bool = False):
        instance_key = (str(db_path) if db_path else None, read_only)
        if not hasattr(cls, "_instances"):
            cls._instances = {}

        if instance_key not in cls._instances:
            with cls._lock:
                if instance_key not in cls._instances:
                    instance = super().__new__(cls)
                    instance._initialized = False
                    cls._instances[instance_key] = instance
        return cls._instances[instance_key]

    def __init__(self, db_path: Union[Path, str, None] = None, max_connections: int = 5, read_only: bool = False):
        """
        Initialize the database manager.

        Args:
            db_path: Path to DuckDB database file. Defaults to ~/formsweep-data/formsweep.duckdb
            max_connections: Maximum number of connections in the pool (default: 5)
            read_only: If True, creates a read-only connection manager (default: False)
        """
        if self._initialized:
            return

        self.db_path = Path(db_path) if db_path else self._get_db_path()
        self.max_connections = max_connections
        self.read_only = read_only
        self._initialized = True

        if not read_only:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._pool = ConnectionPool(self.db_path, max_size=self.max_connections, read_only=read_only)

        mode_str = "read-only" if read_only else "read-write"
        logger.info(
            f"Database manager initialized: {self.db_path} "
            f"(mode: {mode_str}, max_connections: {self.max_connections})"
        )

    def _get_db_path(self) -> Path:
        """Get database path from environment or default.

        Checks FORMSWEEP_DB_PATH first (full path to database file), then
        FORMSWEEP_DATA_DIR (directory containing formsweep.duckdb), then
        falls back to ~/formsweep-data/formsweep.duckdb.
        """
        db_path = os.getenv("FORMSWEEP_DB_PATH")
        if db_path:
            return Path(db_path).expanduser()

        data_dir = os.getenv("FORMSWEEP_DATA_DIR", str(DEFAULT_DATA_DIR))
        return Path(data_dir).expanduser() / DEFAULT_DB_NAME

    @contextmanager
    def connection(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Context manager for a pooled connection in autocommit mode.

        Every statement executed on it commits on its own.
        """
        with self._pool.connection() as conn:
            try:
                yield conn
            except duckdb.Error as e:
                logger.error(f"Database error: {e}")
                raise

    @contextmanager
    def transaction(
        self, conn: Optional[duckdb.DuckDBPyConnection] = None
    ) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Context manager for one transaction.

        Commits when the block exits normally and rolls back on any
        exception, which is re-raised.

        Args:
            conn: Connection already held by the caller; a pooled one is
                acquired and released around the transaction when omitted
        """
        if conn is None:
            with self._pool.connection() as pooled:
                with self.transaction(pooled) as tx:
                    yield tx
            return

        conn.begin()
        try:
            yield conn
        except BaseException:
            try:
                conn.rollback()
            except duckdb.Error as rollback_error:
                logger.warning(f"Rollback failed: {rollback_error}")
            raise
        else:
            conn.commit()

    def execute(self, query: str, params: Optional[tuple] = None) -> List[Tuple[Any, ...]]:
        """Execute a statement and return its materialized rows."""
        with self.connection() as conn:
            return conn.execute(query, params or ()).fetchall()

    def fetchall(self, query: str, params: Optional[tuple] = None) -> List[Tuple[Any, ...]]:
        with self.connection() as conn:
            return conn.execute(query, params or ()).fetchall()

    def fetchone(self, query: str, params: Optional[tuple] = None) -> Optional[Tuple[Any, ...]]:
        with self.connection() as conn:
            return conn.execute(query, params or ()).fetchone()

    def close(self) -> None:
        """Close all pooled connections."""
        if hasattr(self, "_pool"):
            self._pool.close_all()

    @classmethod
    def reset(cls) -> None:
        """Reset all singleton instances (useful for testing)."""
        with cls._lock:
            if hasattr(cls, "_instances"):
                for instance in cls._instances.values():
                    instance.close()
                cls._instances.clear()


def get_db(
    db_path: Union[Path, str, None] = None, max_connections: int = 5, read_only: bool = False
) -> DatabaseManager:
    """
    Get the database manager instance with connection pooling.

    Returns a DatabaseManager instance (singleton per configuration).
    """
    return DatabaseManager(db_path, max_connections, read_only)
