"""
RECORDBASE MODEL BASE
=====================

Generic schema-aware record access: one RecordEngine per entity, built on a
raw executor.

ARCHITECTURE OVERVIEW:
=====================
┌─────────────────┐    ┌─────────────────┐    ┌─────────────────┐
│  Filters /      │    │  RecordEngine   │    │  Executor       │
│  Query Builder  │────│  (CRUD façade)  │────│  (sqlite pool / │
│                 │    │                 │    │   SQLAlchemy)   │
└─────────────────┘    └─────────────────┘    └─────────────────┘
                         │      │      │
          ┌──────────────┘      │      └──────────────┐
┌─────────────────┐    ┌─────────────────┐    ┌─────────────────┐
│ SchemaCatalog + │    │  ResultCache    │    │ Transaction /   │
│ validation      │    │  (TTL, sweeper) │    │ Batch / Relation│
└─────────────────┘    └─────────────────┘    └─────────────────┘

USAGE EXAMPLE:
=============
```python
from recordbase.database import SQLiteConnectionPool
from recordbase.model_base import EntityDescriptor, RecordEngine, Like

pool = SQLiteConnectionPool("family.db")
donations = RecordEngine(pool, EntityDescriptor(table="donations", cache_enabled=True))

donation = donations.create({"donor_name": "Layla", "amount": 50})
page = donations.find_all({"donor_name": Like("Lay")}, page=1, limit=10)
```
"""

from .descriptor import EntityDescriptor
from .schema import SchemaCatalog, ColumnSchema, LogicalType, parse_declared_type
from .cache import ResultCache, CacheEntry, identity_key, query_key
from .filters import (
    Equals, In, NotIn, Like, NotLike, Between, IsNull, IsNotNull, Compare, Raw,
    coerce_filter, coerce_filters,
)
from .query_builder import (
    Join, build_where, build_order, build_pagination, build_joins, build_group_by, render_condition,
)
from .validation import validate_data, encode_record, decode_record
from .hooks import DeleteKind, RecordObserver
from .models import (
    Pagination, PaginatedResult, BulkInsertResult, BulkProgress, UpdateManyResult,
    BatchProgress, BatchSummary,
)
from .relations import Relation, RelationType
from .transaction import TransactionScope
from .engine import RecordEngine

__all__ = [
    "EntityDescriptor",
    "SchemaCatalog", "ColumnSchema", "LogicalType", "parse_declared_type",
    "ResultCache", "CacheEntry", "identity_key", "query_key",
    "Equals", "In", "NotIn", "Like", "NotLike", "Between", "IsNull", "IsNotNull", "Compare", "Raw",
    "coerce_filter", "coerce_filters",
    "Join", "build_where", "build_order", "build_pagination", "build_joins", "build_group_by",
    "render_condition",
    "validate_data", "encode_record", "decode_record",
    "DeleteKind", "RecordObserver",
    "Pagination", "PaginatedResult", "BulkInsertResult", "BulkProgress", "UpdateManyResult",
    "BatchProgress", "BatchSummary",
    "Relation", "RelationType",
    "TransactionScope",
    "RecordEngine",
]
