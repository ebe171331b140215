"""
SCHEMA CATALOG
==============

Introspects column metadata for a table once and keeps it for the lifetime
of the catalog. Declared store types are mapped onto a small closed set of
logical types when the schema is cached; validation and value encoding only
ever look at the logical type.

INTROSPECTION BY DIALECT:
========================
• sqlite     - PRAGMA table_info / index_list / index_info
• mysql      - INFORMATION_SCHEMA.COLUMNS
• postgresql - information_schema.columns + key constraints
"""

import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..database.exceptions import DatabaseError
from ..exceptions import SchemaUnavailable, QueryError
from ..utils.logger import logger

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_DECLARED = re.compile(r"^\s*([a-zA-Z][a-zA-Z0-9_ ]*?)\s*(?:\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\))?\s*(?:unsigned|signed|zerofill|\s)*$")

# =============================================================================
# LOGICAL TYPES
# =============================================================================

class LogicalType(Enum):
    INTEGER = "integer"
    DECIMAL = "decimal"
    TEXT = "text"
    DATE = "date"
    BOOLEAN = "boolean"
    STRUCTURED = "structured"
    OTHER = "other"


_TYPE_NAMES = {
    LogicalType.INTEGER: ("int", "integer", "bigint", "smallint", "tinyint", "mediumint",
                          "serial", "bigserial", "smallserial", "int2", "int4", "int8"),
    LogicalType.DECIMAL: ("decimal", "numeric", "float", "double", "real",
                          "double precision", "money", "float4", "float8"),
    LogicalType.TEXT: ("varchar", "char", "text", "longtext", "mediumtext", "tinytext",
                       "character varying", "character", "nvarchar", "nchar", "clob", "citext"),
    LogicalType.DATE: ("date", "datetime", "timestamp", "timestamp without time zone",
                       "timestamp with time zone", "timestamptz"),
    LogicalType.BOOLEAN: ("boolean", "bool"),
    LogicalType.STRUCTURED: ("json", "jsonb"),
}

_TYPE_LOOKUP = {name: logical for logical, names in _TYPE_NAMES.items() for name in names}


def parse_declared_type(declared: Optional[str]) -> Tuple[LogicalType, Optional[int], Optional[int]]:
    """
    Split a declared column type into (logical type, first size, second size)

    'VARCHAR(255)' -> (TEXT, 255, None); 'DECIMAL(10,2)' -> (DECIMAL, 10, 2)
    """
    if not declared:
        return LogicalType.OTHER, None, None

    match = _DECLARED.match(declared.lower())
    if not match:
        return LogicalType.OTHER, None, None

    base = match.group(1).strip()
    size = int(match.group(2)) if match.group(2) else None
    scale = int(match.group(3)) if match.group(3) else None

    logical = _TYPE_LOOKUP.get(base) or _TYPE_LOOKUP.get(base.split(" ")[0], LogicalType.OTHER)
    return logical, size, scale

# =============================================================================
# COLUMN SCHEMA
# =============================================================================

@dataclass(frozen=True)
class ColumnSchema:
    name: str
    declared_type: str
    logical_type: LogicalType
    nullable: bool = True
    default_value: Any = None
    is_primary_key: bool = False
    is_unique: bool = False
    max_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    extra: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.declared_type,
            "logical_type": self.logical_type.value,
            "nullable": self.nullable,
            "default_value": self.default_value,
            "is_primary_key": self.is_primary_key,
            "is_unique": self.is_unique,
            "max_length": self.max_length,
            "precision": self.numeric_precision,
            "scale": self.numeric_scale,
            "extra": self.extra,
        }


def build_column(name: str, declared: str, nullable: bool, default: Any = None,
                 is_primary_key: bool = False, is_unique: bool = False,
                 max_length: Optional[int] = None, precision: Optional[int] = None,
                 scale: Optional[int] = None, extra: Optional[str] = None) -> ColumnSchema:
    """Build a ColumnSchema, filling sizes from the declaration when the store does not report them"""
    logical, size, second = parse_declared_type(declared)
    if logical == LogicalType.TEXT and max_length is None:
        max_length = size
    if logical == LogicalType.DECIMAL and precision is None:
        precision, scale = size, second
    return ColumnSchema(
        name=name,
        declared_type=declared or "",
        logical_type=logical,
        nullable=nullable,
        default_value=default,
        is_primary_key=is_primary_key,
        is_unique=is_unique,
        max_length=int(max_length) if max_length is not None else None,
        numeric_precision=int(precision) if precision is not None else None,
        numeric_scale=int(scale) if scale is not None else None,
        extra=extra or None,
    )

# =============================================================================
# DIALECT INTROSPECTION
# =============================================================================

_MYSQL_COLUMNS = """
    SELECT
        COLUMN_NAME AS column_name,
        DATA_TYPE AS data_type,
        COLUMN_TYPE AS column_type,
        IS_NULLABLE AS is_nullable,
        COLUMN_DEFAULT AS column_default,
        COLUMN_KEY AS column_key,
        EXTRA AS extra,
        CHARACTER_MAXIMUM_LENGTH AS max_length,
        NUMERIC_PRECISION AS numeric_precision,
        NUMERIC_SCALE AS numeric_scale
    FROM INFORMATION_SCHEMA.COLUMNS
    WHERE TABLE_SCHEMA = DATABASE()
      AND TABLE_NAME = ?
    ORDER BY ORDINAL_POSITION
"""

_POSTGRES_COLUMNS = """
    SELECT
        c.column_name,
        c.data_type,
        c.is_nullable,
        c.column_default,
        c.character_maximum_length AS max_length,
        c.numeric_precision,
        c.numeric_scale,
        MAX(CASE WHEN tc.constraint_type = 'PRIMARY KEY' THEN 1 ELSE 0 END) AS is_primary,
        MAX(CASE WHEN tc.constraint_type = 'UNIQUE' THEN 1 ELSE 0 END) AS is_unique
    FROM information_schema.columns c
    LEFT JOIN information_schema.key_column_usage k
        ON k.table_schema = c.table_schema
       AND k.table_name = c.table_name
       AND k.column_name = c.column_name
    LEFT JOIN information_schema.table_constraints tc
        ON tc.constraint_name = k.constraint_name
       AND tc.table_schema = k.table_schema
    WHERE c.table_schema = current_schema()
      AND c.table_name = ?
    GROUP BY c.column_name, c.data_type, c.is_nullable, c.column_default,
             c.character_maximum_length, c.numeric_precision, c.numeric_scale,
             c.ordinal_position
    ORDER BY c.ordinal_position
"""


def _sqlite_unique_columns(executor, table: str) -> set:
    unique = set()
    for index in executor.execute(f"PRAGMA index_list({table})"):
        if not index.get("unique") or index.get("origin") == "pk":
            continue
        columns = executor.execute(f'PRAGMA index_info("{index["name"]}")')
        # Composite unique indexes do not make a single column unique
        if len(columns) == 1:
            unique.add(columns[0]["name"])
    return unique


def _introspect_sqlite(executor, table: str) -> List[ColumnSchema]:
    rows = executor.execute(f"PRAGMA table_info({table})")
    unique = _sqlite_unique_columns(executor, table) if rows else set()
    return [
        build_column(
            name=row["name"],
            declared=row["type"],
            nullable=not row["notnull"] and not row["pk"],
            default=row["dflt_value"],
            is_primary_key=bool(row["pk"]),
            is_unique=row["name"] in unique,
        )
        for row in rows
    ]


def _introspect_mysql(executor, table: str) -> List[ColumnSchema]:
    rows = executor.execute(_MYSQL_COLUMNS, [table])
    return [
        build_column(
            name=row["column_name"],
            declared=row["column_type"] or row["data_type"],
            nullable=row["is_nullable"] == "YES",
            default=row["column_default"],
            is_primary_key=row["column_key"] == "PRI",
            is_unique=row["column_key"] == "UNI",
            max_length=row["max_length"],
            precision=row["numeric_precision"],
            scale=row["numeric_scale"],
            extra=row["extra"],
        )
        for row in rows
    ]


def _introspect_postgresql(executor, table: str) -> List[ColumnSchema]:
    rows = executor.execute(_POSTGRES_COLUMNS, [table])
    return [
        build_column(
            name=row["column_name"],
            declared=row["data_type"],
            nullable=row["is_nullable"] == "YES",
            default=row["column_default"],
            is_primary_key=bool(row["is_primary"]),
            is_unique=bool(row["is_unique"]),
            max_length=row["max_length"],
            precision=row["numeric_precision"],
            scale=row["numeric_scale"],
        )
        for row in rows
    ]


_INTROSPECTORS = {
    "sqlite": _introspect_sqlite,
    "mysql": _introspect_mysql,
    "postgresql": _introspect_postgresql,
}

# =============================================================================
# SCHEMA CATALOG
# =============================================================================

class SchemaCatalog:
    """
    Per-executor cache of table schemas

    load_schema() introspects at most once per table (until refresh());
    get_schema() never touches the store.
    """

    def __init__(self, executor):
        self.executor = executor
        self._schemas: Dict[str, Dict[str, ColumnSchema]] = {}
        self._lock = threading.Lock()

    def _introspector(self):
        dialect = getattr(self.executor, "dialect", "sqlite")
        introspector = _INTROSPECTORS.get(dialect)
        if introspector is None:
            raise SchemaUnavailable(f"Schema introspection is not supported for dialect: {dialect}")
        return introspector

    def load_schema(self, table: str) -> Dict[str, ColumnSchema]:
        """
        Return the cached schema for `table`, introspecting on first use

        ALGORITHM:
        1. Return the cached snapshot if present
        2. Run the dialect introspection query
        3. Reject an empty column set (missing table)
        4. Cache and return

        Raises:
            SchemaUnavailable: Store failure or unknown table
        """
        if not _IDENTIFIER.match(table or ""):
            raise QueryError(f"Invalid table name: {table!r}")

        # Step 1: Cached snapshot
        with self._lock:
            cached = self._schemas.get(table)
        if cached is not None:
            return cached

        # Step 2: Introspect
        try:
            columns = self._introspector()(self.executor, table)
        except DatabaseError as e:
            raise SchemaUnavailable(f"Could not read schema for {table}", str(e)) from e

        # Step 3: Missing table
        if not columns:
            raise SchemaUnavailable(f"Table {table} has no columns or does not exist")

        # Step 4: Cache
        schema = {column.name: column for column in columns}
        with self._lock:
            self._schemas[table] = schema
        logger.debug(f"Schema cached for table: {table} ({len(schema)} columns)")
        return schema

    def get_schema(self, table: str) -> Optional[Dict[str, ColumnSchema]]:
        with self._lock:
            return self._schemas.get(table)

    def refresh(self, table: str) -> Dict[str, ColumnSchema]:
        """Drop the cached snapshot and introspect again"""
        with self._lock:
            self._schemas.pop(table, None)
        return self.load_schema(table)

    def describe_indexes(self, table: str) -> List[Dict[str, Any]]:
        """List indexes on `table` as {name, unique, columns} dicts"""
        if not _IDENTIFIER.match(table or ""):
            raise QueryError(f"Invalid table name: {table!r}")

        dialect = getattr(self.executor, "dialect", "sqlite")
        if dialect == "sqlite":
            indexes = []
            for index in self.executor.execute(f"PRAGMA index_list({table})"):
                columns = self.executor.execute(f'PRAGMA index_info("{index["name"]}")')
                indexes.append({
                    "name": index["name"],
                    "unique": bool(index["unique"]),
                    "columns": [column["name"] for column in columns],
                })
            return indexes

        if dialect == "mysql":
            grouped: Dict[str, Dict[str, Any]] = {}
            for row in self.executor.execute(f"SHOW INDEX FROM {table}"):
                entry = grouped.setdefault(row["Key_name"], {
                    "name": row["Key_name"], "unique": not row["Non_unique"], "columns": []})
                entry["columns"].append(row["Column_name"])
            return list(grouped.values())

        if dialect == "postgresql":
            rows = self.executor.execute(
                "SELECT indexname, indexdef FROM pg_indexes "
                "WHERE schemaname = current_schema() AND tablename = ?", [table])
            return [
                {
                    "name": row["indexname"],
                    "unique": "UNIQUE INDEX" in row["indexdef"].upper(),
                    "columns": [c.strip().strip('"') for c in row["indexdef"].rsplit("(", 1)[-1].rstrip(")").split(",")],
                }
                for row in rows
            ]

        raise SchemaUnavailable(f"Index introspection is not supported for dialect: {dialect}")
