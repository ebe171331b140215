"""
Transaction adapter.

run_transaction() borrows one connection from the executor, opens a
transaction and hands the callback a TransactionScope: the CRUD vocabulary
bound to that connection. Return commits; any exception rolls back and is
re-raised. The connection is always released.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING

from ..database.exceptions import DatabaseError
from ..database.utils import generate_timestamp
from ..exceptions import NotFoundError
from ..utils.logger import logger
from .filters import Equals
from .query_builder import build_where
from .statements import store_error_from, insert_statement, update_statement
from .validation import decode_record

if TYPE_CHECKING:
    from .engine import RecordEngine


class TransactionScope:
    """
    CRUD operations on a single transaction-bound connection

    The scope validates and encodes like the engine but never reads from or
    writes to the result cache.
    """

    def __init__(self, engine: "RecordEngine", connection):
        self.engine = engine
        self.connection = connection
        self.descriptor = engine.descriptor
        self.table = engine.table
        self.primary_key = engine.primary_key
        self.wrote = False

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        params = list(params or ())
        try:
            return self.connection.execute(sql, params)
        except DatabaseError as e:
            logger.error(f"Transaction statement failed on {self.table}: {e} | SQL: {sql} | Params: {params}")
            raise store_error_from(e, sql, params) from e

    def _write(self, sql: str, params: Sequence[Any]):
        rows = self.query(sql, params)
        self.wrote = True
        return rows

    def find_by_id(self, record_id: Any, include_soft_deleted: bool = False) -> Optional[Dict[str, Any]]:
        params: List[Any] = []
        where = build_where(self.descriptor, {f"{self.table}.{self.primary_key}": Equals(record_id)},
                            params, include_soft_deleted)
        rows = self.query(f"SELECT * FROM {self.table} {where} LIMIT 1", params)
        return decode_record(rows[0], self.engine.schema) if rows else None

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.engine._ensure_valid(data, "create")
        record = self.engine.prepare_insert(data)
        sql, params = insert_statement(self.table, [record])
        rows = self._write(sql, params)
        record_id = record.get(self.primary_key)
        if record_id is None:
            record_id = rows.lastrowid
        return self.find_by_id(record_id, include_soft_deleted=True)

    def insert_prepared(self, groups: List[List[Dict[str, Any]]]) -> int:
        """Insert already prepared records, one statement per column set"""
        inserted = 0
        for group in groups:
            sql, params = insert_statement(self.table, group)
            self._write(sql, params)
            inserted += len(group)
        return inserted

    def update(self, record_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        self.engine._ensure_valid(data, "update")
        if self.find_by_id(record_id) is None:
            raise NotFoundError(f"Record with {self.primary_key} {record_id} not found in {self.table}")

        changes = self.engine.prepare_update(data)
        if changes:
            sql, params = update_statement(self.table, changes, f"WHERE {self.primary_key} = ?", [record_id])
            self._write(sql, params)
        return self.find_by_id(record_id, include_soft_deleted=True)

    def delete(self, record_id: Any, hard_delete: bool = False) -> bool:
        hard = hard_delete or not self.descriptor.soft_delete
        if self.find_by_id(record_id, include_soft_deleted=hard) is None:
            raise NotFoundError(f"Record with {self.primary_key} {record_id} not found in {self.table}")

        if hard:
            self._write(f"DELETE FROM {self.table} WHERE {self.primary_key} = ?", [record_id])
        else:
            sql, params = update_statement(self.table, {"deleted_at": generate_timestamp()},
                                           f"WHERE {self.primary_key} = ?", [record_id])
            self._write(sql, params)
        return True


def run_transaction(engine: "RecordEngine", callback: Callable[[TransactionScope], Any]) -> Any:
    """
    ALGORITHM:
    1. Borrow a connection and BEGIN
    2. Run the callback with a scope bound to the connection
    3. COMMIT on return / ROLLBACK and re-raise on any exception
    4. Release the connection in every case
    5. Invalidate the entity cache when the committed work wrote anything
    """
    # Step 1: Borrow and begin
    try:
        connection = engine.executor.acquire_connection()
    except DatabaseError as e:
        raise store_error_from(e, "CONNECT", []) from e

    scope = TransactionScope(engine, connection)
    try:
        try:
            connection.begin_transaction()
        except DatabaseError as e:
            raise store_error_from(e, "BEGIN", []) from e

        # Step 2: Callback
        result = callback(scope)

        # Step 3: Commit
        try:
            connection.commit()
        except DatabaseError as e:
            raise store_error_from(e, "COMMIT", []) from e

    except Exception:
        # Step 3: Rollback; the original error is what the caller sees
        try:
            connection.rollback()
        except DatabaseError as rollback_error:
            logger.error(f"Rollback failed on {engine.table}: {rollback_error}")
        raise

    finally:
        # Step 4: Release
        connection.release()

    # Step 5: Invalidate after commit
    if scope.wrote:
        engine.invalidate_cache()
    logger.debug(f"Transaction committed on {engine.table}")
    return result
