# Raw executor layer
from .connection_pool import (
    SQLiteConnectionPool,
    PooledConnection,
    get_connection_pool,
    initialize_connection_pool,
    close_connection_pool
)
from .exceptions import DatabaseError, StoreErrorCode, classify_store_error
from .protocols import Rows, Connection, Executor
from .utils import generate_uuid, generate_timestamp, format_date, safe_json_dumps, safe_json_loads

__all__ = [
    'SQLiteConnectionPool',
    'PooledConnection',
    'get_connection_pool',
    'initialize_connection_pool',
    'close_connection_pool',
    'DatabaseError',
    'StoreErrorCode',
    'classify_store_error',
    'Rows',
    'Connection',
    'Executor',
    'generate_uuid',
    'generate_timestamp',
    'format_date',
    'safe_json_dumps',
    'safe_json_loads',
]
