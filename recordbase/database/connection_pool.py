"""
SQLite Connection Pool

Thread-safe pool of sqlite3 connections that implements the executor
boundary the record engine talks to: `execute(sql, params)` for one-shot
statements and `acquire_connection()` for transaction-scoped work.
"""

import sqlite3
import threading
import queue
from contextlib import contextmanager
from decimal import Decimal
from typing import Optional, Dict, Any, Sequence

from .exceptions import DatabaseError, StoreErrorCode, classify_store_error
from .protocols import Rows
from ..utils.logger import logger

# DECIMAL columns are stored as text so no precision is lost
sqlite3.register_adapter(Decimal, str)


def _to_rows(cursor: sqlite3.Cursor) -> Rows:
    rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
    return Rows(rows, rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)


def _wrap_error(error: sqlite3.Error, sql: str) -> DatabaseError:
    code = classify_store_error(error)
    logger.error(f"SQLite statement failed [{code.value}]: {error} | {sql}")
    return DatabaseError(str(error), code, error)


class PooledConnection:
    """
    One connection borrowed from the pool

    The wrapper is handed to transaction scopes; `release()` puts the
    underlying connection back, rolling back anything left open.
    """

    def __init__(self, pool: "SQLiteConnectionPool", conn: sqlite3.Connection):
        self._pool = pool
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Rows:
        if self._conn is None:
            raise DatabaseError("Connection already released")
        try:
            return _to_rows(self._conn.execute(sql, tuple(params)))
        except sqlite3.Error as e:
            raise _wrap_error(e, sql) from e

    def begin_transaction(self) -> None:
        # IMMEDIATE takes the write lock up front
        self.execute("BEGIN IMMEDIATE")

    def commit(self) -> None:
        self.execute("COMMIT")

    def rollback(self) -> None:
        self.execute("ROLLBACK")

    def release(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        if conn.in_transaction:
            conn.rollback()
        self._pool._return_connection(conn)


class SQLiteConnectionPool:
    """
    Thread-safe SQLite connection pool

    Features:
    - WAL mode for better concurrency
    - Foreign keys enforced
    - Rows returned as plain dicts
    - Connection health check on return
    """

    dialect = "sqlite"

    def __init__(self, db_path: str, max_connections: int = 10, timeout: float = 30.0):
        self.db_path = db_path
        self.max_connections = max_connections
        self.timeout = timeout

        self._pool = queue.Queue(maxsize=max_connections)
        self._all_connections = []
        self._lock = threading.Lock()

        self._connection_stats = {
            'total_requests': 0,
            'pool_hits': 0,
            'pool_misses': 0,
            'active_connections': 0
        }

        self._initialize_pool()

    def _initialize_pool(self):
        """Initialize connection pool with WAL mode and optimizations"""
        logger.info(f"Initializing SQLite connection pool: {self.max_connections} connections")

        for _ in range(self.max_connections):
            conn = self._create_connection()
            self._pool.put(conn)

    def _create_connection(self) -> sqlite3.Connection:
        """Create optimized SQLite connection"""
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.timeout,
                check_same_thread=False,  # Allow cross-thread usage
                isolation_level=None      # Autocommit; transactions are explicit
            )

            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA cache_size=10000")
            conn.execute("PRAGMA temp_store=MEMORY")
            conn.execute("PRAGMA foreign_keys=ON")

            conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            logger.error(f"Failed to create SQLite connection: {e}")
            raise DatabaseError(f"Failed to create database connection: {e}",
                                StoreErrorCode.CONNECTION_REFUSED, e) from e

        with self._lock:
            self._all_connections.append(conn)
        logger.debug("Created SQLite connection: WAL mode enabled")
        return conn

    def _borrow(self) -> sqlite3.Connection:
        try:
            conn = self._pool.get(timeout=5.0)
            hit = True
        except queue.Empty:
            # Pool exhausted, open an extra connection
            conn = self._create_connection()
            hit = False

        with self._lock:
            self._connection_stats['total_requests'] += 1
            self._connection_stats['pool_hits' if hit else 'pool_misses'] += 1
            self._connection_stats['active_connections'] += 1
        return conn

    def _return_connection(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            self._connection_stats['active_connections'] -= 1
        try:
            # Health check
            conn.execute("SELECT 1").fetchone()
            self._pool.put(conn, timeout=1.0)
        except (queue.Full, sqlite3.Error):
            # Pool full or connection unhealthy
            self._discard(conn)

    def _discard(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            if conn in self._all_connections:
                self._all_connections.remove(conn)
        try:
            conn.close()
        except sqlite3.Error as e:
            logger.warning(f"Error while closing SQLite connection: {e}")

    @contextmanager
    def get_connection(self):
        """Borrow a raw sqlite3 connection for the duration of the block"""
        conn = self._borrow()
        try:
            yield conn
        finally:
            if conn.in_transaction:
                conn.rollback()
            self._return_connection(conn)

    def acquire_connection(self) -> PooledConnection:
        """Borrow a connection that stays checked out until release()"""
        return PooledConnection(self, self._borrow())

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Rows:
        """Run one statement on a pooled connection (autocommit)"""
        with self.get_connection() as conn:
            try:
                return _to_rows(conn.execute(sql, tuple(params)))
            except sqlite3.Error as e:
                raise _wrap_error(e, sql) from e

    def execute_bulk_transaction(self, operations: list) -> list:
        """Execute multiple {'query', 'params'} operations in a single transaction"""
        if not operations:
            return []

        conn = self.acquire_connection()
        try:
            conn.begin_transaction()
            results = [conn.execute(op.get('query', ''), op.get('params', ())) for op in operations]
            conn.commit()
            logger.debug(f"Bulk transaction completed: {len(operations)} operations")
            return results
        except DatabaseError:
            conn.rollback()
            raise
        finally:
            conn.release()

    def get_stats(self) -> Dict[str, Any]:
        """Get connection pool statistics"""
        with self._lock:
            return {
                **self._connection_stats,
                'pool_size': self._pool.qsize(),
                'max_connections': self.max_connections,
                'total_connections': len(self._all_connections)
            }

    def close_all(self):
        """Close all connections in pool"""
        logger.info("Closing all database connections")

        while not self._pool.empty():
            try:
                self._pool.get_nowait()
            except queue.Empty:
                break

        with self._lock:
            connections, self._all_connections = self._all_connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.warning(f"Error while closing SQLite connection: {e}")


# Global connection pool instance
_connection_pool: Optional[SQLiteConnectionPool] = None
_pool_lock = threading.Lock()


def get_connection_pool(db_path: str) -> SQLiteConnectionPool:
    """Get or create global connection pool"""
    global _connection_pool

    with _pool_lock:
        if _connection_pool is None:
            _connection_pool = SQLiteConnectionPool(db_path)
        return _connection_pool


def initialize_connection_pool(db_path: str, max_connections: int = 10) -> SQLiteConnectionPool:
    """Initialize (or replace) the global connection pool"""
    global _connection_pool

    with _pool_lock:
        if _connection_pool is not None:
            _connection_pool.close_all()

        _connection_pool = SQLiteConnectionPool(db_path, max_connections)
        logger.info(f"Initialized connection pool with {max_connections} connections")
        return _connection_pool


def close_connection_pool():
    """Close global connection pool"""
    global _connection_pool

    with _pool_lock:
        if _connection_pool is not None:
            _connection_pool.close_all()
            _connection_pool = None
