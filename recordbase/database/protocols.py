"""
Executor boundary used by the record engine.

Any object with a `dialect` name, an `execute(sql, params)` returning Rows and
an `acquire_connection()` returning a Connection can back a RecordEngine. The
package ships SQLiteConnectionPool and the SQLAlchemy-backed DatabaseEngine.
Placeholders are qmark style (`?`).
"""

from typing import Any, Optional, Protocol, Sequence


class Rows(list):
    """Result rows plus the statement's affected row count and last insert id"""

    def __init__(self, rows=(), rowcount: int = -1, lastrowid: Optional[Any] = None):
        super().__init__(rows)
        self.rowcount = rowcount
        self.lastrowid = lastrowid


class Connection(Protocol):
    def execute(self, sql: str, params: Sequence[Any] = ()) -> Rows: ...

    def begin_transaction(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def release(self) -> None: ...


class Executor(Protocol):
    dialect: str

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Rows: ...

    def acquire_connection(self) -> Connection: ...
