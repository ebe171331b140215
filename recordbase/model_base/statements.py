from typing import Any, Dict, List, Sequence, Tuple

from ..database.exceptions import DatabaseError, StoreErrorCode, classify_store_error
from ..exceptions import (
    QueryError, StoreError, DuplicateKeyError, MissingReferenceError, StoreConnectionError,
)
from .query_builder import check_identifier

# Constraint violations fail the same way on every attempt
NON_RETRYABLE = (StoreErrorCode.DUPLICATE_KEY, StoreErrorCode.MISSING_REFERENCE)

_STORE_ERRORS = {
    StoreErrorCode.DUPLICATE_KEY: DuplicateKeyError,
    StoreErrorCode.MISSING_REFERENCE: MissingReferenceError,
    StoreErrorCode.CONNECTION_REFUSED: StoreConnectionError,
}


def store_error_from(error: DatabaseError, sql: str, params: Sequence[Any]) -> StoreError:
    code = classify_store_error(error)
    error_class = _STORE_ERRORS.get(code, StoreError)
    return error_class(f"Database operation failed: {error}", code.value, sql, params)


def group_by_columns(records: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
    """Split records into runs sharing one column set, in first-seen order"""
    groups: Dict[Tuple[str, ...], List[Dict[str, Any]]] = {}
    for record in records:
        groups.setdefault(tuple(sorted(record)), []).append(record)
    return list(groups.values())


def insert_statement(table: str, records: List[Dict[str, Any]]) -> Tuple[str, List[Any]]:
    """
    Multi-row INSERT for `records`

    Columns are the union of all record keys in first-seen order; a record
    without a column binds NULL for it. Callers that need store defaults
    split the records with group_by_columns() first.
    """
    if not records:
        raise QueryError("No records to insert")

    columns: List[str] = []
    for record in records:
        for column in record:
            if column not in columns:
                columns.append(check_identifier(column))
    if not columns:
        raise QueryError("No data to insert")

    row_placeholder = "(" + ", ".join("?" for _ in columns) + ")"
    params = [record.get(column) for record in records for column in columns]
    sql = (f"INSERT INTO {table} ({', '.join(columns)}) "
           f"VALUES {', '.join(row_placeholder for _ in records)}")
    return sql, params


def update_statement(table: str, changes: Dict[str, Any], where: str,
                     where_params: Sequence[Any]) -> Tuple[str, List[Any]]:
    if not changes:
        raise QueryError("No data to update")
    assignments = ", ".join(f"{check_identifier(column)} = ?" for column in changes)
    sql = f"UPDATE {table} SET {assignments} {where}".rstrip()
    return sql, list(changes.values()) + list(where_params)
