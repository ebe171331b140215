"""
Recordbase - schema-aware record access engine

Main modules:
- database: sqlite connection pool and executor boundary
- database_manager: SQLAlchemy-backed executor and its configuration
- model_base: RecordEngine, filters, cache, transactions, batch processing
"""

from . import database
from . import database_manager
from .exceptions import (
    RecordbaseException,
    ValidationError,
    NotFoundError,
    ConfigError,
    QueryError,
    SchemaUnavailable,
    StoreError,
    DuplicateKeyError,
    MissingReferenceError,
    StoreConnectionError,
)
from .model_base import EntityDescriptor, RecordEngine

__version__ = "1.0.0"

__all__ = [
    'database',
    'database_manager',
    'RecordbaseException',
    'ValidationError',
    'NotFoundError',
    'ConfigError',
    'QueryError',
    'SchemaUnavailable',
    'StoreError',
    'DuplicateKeyError',
    'MissingReferenceError',
    'StoreConnectionError',
    'EntityDescriptor',
    'RecordEngine',
    '__version__',
]
