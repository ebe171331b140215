"""
DATABASE ENGINE MODULE
======================

SQLAlchemy-backed executor for the record engine. Wraps a SQLAlchemy
`Engine` and exposes the same boundary as `SQLiteConnectionPool`:

• execute(sql, params) -> Rows      one statement, committed on success
• acquire_connection() -> Connection transaction-scoped work
• dialect                             "sqlite" / "mysql" / "postgresql"

Statements are written with qmark (`?`) placeholders; they are rewritten to
named binds (`:p0`, `:p1`, ...) and run through `sqlalchemy.text()`.

ENGINE LIFECYCLE:
================
┌─────────────┐    ┌─────────────┐    ┌─────────────┐
│   Created   │───▶│   Started   │───▶│   Stopped   │
│ • Config    │    │ • Engine    │    │ • Disposed  │
│   loaded    │    │ • Pooling   │    │             │
└─────────────┘    └─────────────┘    └─────────────┘
"""

from sqlalchemy import create_engine, Engine, text
from sqlalchemy.engine import Connection as SAConnection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from typing import Optional, Dict, Any, Sequence, Tuple

from .config import DatabaseConfig
from ..database.exceptions import DatabaseError, StoreErrorCode, classify_store_error
from ..database.protocols import Rows
from ..utils.logger import logger

# =============================================================================
# STATEMENT TRANSLATION
# =============================================================================

def to_named_params(sql: str, params: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Rewrite qmark placeholders into SQLAlchemy named binds

    Question marks inside single- or double-quoted literals are left alone.

    Raises:
        DatabaseError: Placeholder count does not match the parameter count
    """
    params = list(params or ())
    parts = []
    bound: Dict[str, Any] = {}
    quote = None
    index = 0

    for char in sql:
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "?":
            if index >= len(params):
                raise DatabaseError(f"Not enough parameters for statement: {sql}")
            name = f"p{index}"
            bound[name] = params[index]
            parts.append(f":{name}")
            index += 1
            continue
        parts.append(char)

    if index != len(params):
        raise DatabaseError(f"Statement expects {index} parameters, got {len(params)}")

    return "".join(parts), bound


def _to_rows(result) -> Rows:
    rows = [dict(row._mapping) for row in result] if result.returns_rows else []
    try:
        lastrowid = result.lastrowid
    except (AttributeError, SQLAlchemyError):
        lastrowid = None
    return Rows(rows, rowcount=result.rowcount, lastrowid=lastrowid)


def _wrap_error(error: SQLAlchemyError, sql: str) -> DatabaseError:
    code = classify_store_error(error) if isinstance(error, DBAPIError) else StoreErrorCode.GENERIC
    message = str(error.orig) if isinstance(error, DBAPIError) else str(error)
    logger.error(f"SQL statement failed [{code.value}]: {message} | {sql}")
    return DatabaseError(message, code, error)

# =============================================================================
# TRANSACTION-SCOPED CONNECTION
# =============================================================================

class EngineConnection:
    """One SQLAlchemy connection held for the length of a transaction"""

    def __init__(self, conn: SAConnection):
        self._conn = conn
        self._transaction = None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Rows:
        if self._conn is None:
            raise DatabaseError("Connection already released")
        statement, bound = to_named_params(sql, params)
        try:
            return _to_rows(self._conn.execute(text(statement), bound))
        except SQLAlchemyError as e:
            raise _wrap_error(e, sql) from e

    def begin_transaction(self) -> None:
        try:
            self._transaction = self._conn.begin()
        except SQLAlchemyError as e:
            raise _wrap_error(e, "BEGIN") from e

    def commit(self) -> None:
        try:
            if self._transaction is not None:
                self._transaction.commit()
            else:
                self._conn.commit()
        except SQLAlchemyError as e:
            raise _wrap_error(e, "COMMIT") from e
        finally:
            self._transaction = None

    def rollback(self) -> None:
        try:
            if self._transaction is not None:
                self._transaction.rollback()
            else:
                self._conn.rollback()
        except SQLAlchemyError as e:
            raise _wrap_error(e, "ROLLBACK") from e
        finally:
            self._transaction = None

    def release(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        # close() rolls back anything still open
        conn.close()

# =============================================================================
# DATABASE ENGINE CLASS
# =============================================================================

class DatabaseEngine:
    """
    SQLAlchemy Engine lifecycle plus the raw executor boundary

    LIFECYCLE METHODS:
    ==================
    • start(): create the SQLAlchemy engine
    • stop(): dispose of the pool

    EXECUTOR METHODS:
    =================
    • execute(): one autocommitted statement
    • acquire_connection(): connection for explicit transactions

    UTILITY METHODS:
    ================
    • test_connection(): liveness query
    • get_connection_info(): debug information
    """

    def __init__(self, config: DatabaseConfig) -> None:
        """
        ALGORITHM:
        1. Keep the configuration
        2. Derive connection string and engine kwargs
        3. Mark the engine as not started
        """
        # Step 1: Core configuration
        self.__config: DatabaseConfig = config
        self.__engine: Optional[Engine] = None

        # Step 2: Derived configuration
        self.__connection_string: str = config.get_connection_string()
        self.__engine_config: dict = config.engine_config.to_dict()

        # Step 3: State tracking
        self.is_alive: bool = False

    def start(self) -> None:
        """Create the SQLAlchemy engine; errors propagate after cleanup"""
        logger.info(f"Starting database engine for {self.__config.db_type.value}")

        try:
            self.__engine = create_engine(self.__connection_string, **self.__engine_config)
            self.is_alive = True
        except (SQLAlchemyError, TypeError, ValueError) as e:
            logger.error(f"Engine startup failed: {e}")
            self.__engine = None
            self.is_alive = False
            raise

    def stop(self) -> None:
        """Dispose of the connection pool"""
        logger.info("Stopping database engine")

        if self.__engine:
            self.__engine.dispose()

        self.__engine = None
        self.is_alive = False

    @property
    def get_engine(self) -> Engine:
        if not self.__engine:
            raise RuntimeError("Engine not initialized. Call start() method first.")
        return self.__engine

    @property
    def dialect(self) -> str:
        return self.get_engine.dialect.name

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Rows:
        """
        Run one statement in its own transaction

        ALGORITHM:
        1. Rewrite qmark placeholders to named binds
        2. Run inside engine.begin() so writes are committed
        3. Convert the result into Rows

        Raises:
            DatabaseError: Classified store failure
        """
        # Step 1: Placeholders
        statement, bound = to_named_params(sql, params)

        # Step 2-3: Execute and convert
        try:
            with self.get_engine.begin() as conn:
                return _to_rows(conn.execute(text(statement), bound))
        except SQLAlchemyError as e:
            raise _wrap_error(e, sql) from e

    def acquire_connection(self) -> EngineConnection:
        try:
            return EngineConnection(self.get_engine.connect())
        except SQLAlchemyError as e:
            raise _wrap_error(e, "CONNECT") from e

    def test_connection(self) -> bool:
        """Run a dialect-appropriate liveness query"""
        if not self.is_alive:
            self.start()

        query = {"postgresql": "SELECT version()", "mysql": "SELECT VERSION()"}.get(self.dialect, "SELECT 1")
        try:
            self.execute(query)
            return True
        except DatabaseError as e:
            logger.warning(f"Database connection test failed: {e}")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            'database_type': self.__config.db_type.value,
            'database_name': self.__config.db_name,
            'is_alive': self.is_alive,
            'engine_config': self.__engine_config
        }

    def __repr__(self) -> str:
        return (f"DatabaseEngine("
                f"db_type={self.__config.db_type.value}, "
                f"db_name={self.__config.db_name}, "
                f"is_alive={self.is_alive})")

# =============================================================================
# ENGINE FACTORY FUNCTIONS
# =============================================================================

def create_database_engine(config: DatabaseConfig) -> DatabaseEngine:
    """Create and start a DatabaseEngine in one call"""
    db_engine = DatabaseEngine(config)
    db_engine.start()
    return db_engine
