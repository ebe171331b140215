import sqlite3
from enum import Enum
from typing import Optional


class StoreErrorCode(Enum):
    """Driver-independent classification of store failures"""
    DUPLICATE_KEY = "DUPLICATE_KEY"
    MISSING_REFERENCE = "MISSING_REFERENCE"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    GENERIC = "GENERIC"


class DatabaseError(Exception):
    """Raised by executors; carries the classified store error code"""
    def __init__(self, message: str, error_code: StoreErrorCode = StoreErrorCode.GENERIC,
                 original: Optional[BaseException] = None):
        super().__init__(message)
        self.error_code = error_code
        self.original = original


# MySQL error numbers
_MYSQL_CODES = {
    1062: StoreErrorCode.DUPLICATE_KEY,
    1452: StoreErrorCode.MISSING_REFERENCE,
    1451: StoreErrorCode.MISSING_REFERENCE,
    2002: StoreErrorCode.CONNECTION_REFUSED,
    2003: StoreErrorCode.CONNECTION_REFUSED,
}

# PostgreSQL SQLSTATE values
_POSTGRES_CODES = {
    "23505": StoreErrorCode.DUPLICATE_KEY,
    "23503": StoreErrorCode.MISSING_REFERENCE,
    "08001": StoreErrorCode.CONNECTION_REFUSED,
    "08006": StoreErrorCode.CONNECTION_REFUSED,
}

# sqlite3 extended error names (Python 3.11+) and message fragments
_SQLITE_NAMES = {
    "SQLITE_CONSTRAINT_UNIQUE": StoreErrorCode.DUPLICATE_KEY,
    "SQLITE_CONSTRAINT_PRIMARYKEY": StoreErrorCode.DUPLICATE_KEY,
    "SQLITE_CONSTRAINT_FOREIGNKEY": StoreErrorCode.MISSING_REFERENCE,
    "SQLITE_CANTOPEN": StoreErrorCode.CONNECTION_REFUSED,
}

_SQLITE_MESSAGES = (
    ("UNIQUE constraint failed", StoreErrorCode.DUPLICATE_KEY),
    ("FOREIGN KEY constraint failed", StoreErrorCode.MISSING_REFERENCE),
    ("unable to open database", StoreErrorCode.CONNECTION_REFUSED),
)


def classify_store_error(error: BaseException) -> StoreErrorCode:
    """
    Map a driver exception (sqlite3, pymysql, psycopg2, or a SQLAlchemy
    DBAPIError wrapping one of them) onto a StoreErrorCode.
    """
    if isinstance(error, DatabaseError):
        return error.error_code

    # SQLAlchemy keeps the DBAPI exception on .orig
    orig = getattr(error, "orig", None) or error

    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in _POSTGRES_CODES:
        return _POSTGRES_CODES[pgcode]

    errno = getattr(orig, "errno", None)
    if errno is None and orig.args and isinstance(orig.args[0], int):
        errno = orig.args[0]
    if errno in _MYSQL_CODES:
        return _MYSQL_CODES[errno]

    if isinstance(orig, sqlite3.Error):
        name = getattr(orig, "sqlite_errorname", None)
        if name in _SQLITE_NAMES:
            return _SQLITE_NAMES[name]

    message = str(orig)
    for fragment, code in _SQLITE_MESSAGES:
        if fragment in message:
            return code

    return StoreErrorCode.GENERIC
