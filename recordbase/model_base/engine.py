"""
RECORD ENGINE
=============

Generic, schema-aware record access for one table. Every domain entity is
a RecordEngine bound to an EntityDescriptor and a raw executor.

OPERATION CATEGORIES:
====================
1. Reads: find_by_id, find_one, find_many, find_all (paginated)
2. Writes: create, create_many, update, update_many, delete, soft_delete,
   hard_delete, restore, upsert
3. Aggregates: count, exists, sum, average, min, max
4. Composition: transaction, batch_process, load_relation
5. Maintenance: get_table_info, truncate, explain

ENGINE INVARIANTS:
=================
• Validation runs before any statement is issued
• Every write invalidates the entity's cache namespace before returning
• Mutations return a freshly re-read record
• Soft-deleted rows are invisible unless include_soft_deleted is set
"""

import copy
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..database.exceptions import DatabaseError
from ..database.protocols import Rows
from ..database.utils import generate_uuid, generate_timestamp
from ..exceptions import (
    ValidationError, NotFoundError, ConfigError, QueryError, SchemaUnavailable, ErrorManager,
)
from ..utils.logger import logger, log_performance
from .cache import ResultCache, identity_key, query_key
from .descriptor import EntityDescriptor
from .filters import Equals
from .hooks import DeleteKind, ObserverRegistry, RecordObserver
from .models import (
    PaginatedResult, Pagination, BulkInsertResult, BulkProgress, UpdateManyResult, BatchSummary,
)
from .query_builder import (
    build_where, build_order, build_pagination, build_joins, build_group_by, build_fields,
    check_identifier,
)
from .schema import SchemaCatalog
from .statements import NON_RETRYABLE, store_error_from, group_by_columns, insert_statement, update_statement
from .validation import validate_data, encode_record, decode_record
from . import batch as batch_module
from . import relations as relations_module
from . import transaction as transaction_module


class RecordEngine:
    """
    CRUD façade for one entity

    Args:
        executor: raw executor (SQLiteConnectionPool, DatabaseEngine, ...)
        descriptor: EntityDescriptor, or a plain options mapping
        catalog: shared SchemaCatalog (one is created when omitted)
        cache: ResultCache override (built from the descriptor when omitted)
    """

    def __init__(self, executor, descriptor: Union[EntityDescriptor, Dict[str, Any]],
                 catalog: Optional[SchemaCatalog] = None, cache: Optional[ResultCache] = None,
                 max_workers: int = 2):
        if isinstance(descriptor, dict):
            descriptor = EntityDescriptor.from_mapping(descriptor)

        self.executor = executor
        self.descriptor = descriptor
        self.table = descriptor.table
        self.primary_key = descriptor.primary_key

        self.catalog = catalog or SchemaCatalog(executor)
        self.cache = cache or ResultCache(
            enabled=descriptor.cache_enabled,
            ttl=descriptor.cache_ttl,
            sweep_interval=descriptor.cache_sweep_interval,
        )
        self.observers = ObserverRegistry()

        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"recordbase-{self.table}")
        self._related: Dict[str, "RecordEngine"] = {}

        self.schema = self._load_schema()
        self.cache.start_sweeper()

    # =========================================================================
    # SCHEMA
    # =========================================================================

    def _load_schema(self):
        try:
            return self.catalog.load_schema(self.table)
        except SchemaUnavailable as e:
            # Pass-through mode: no validation, no structured decoding
            logger.warning(f"Could not cache schema for {self.table}: {e.message}")
            return None

    def get_schema(self):
        return self.schema

    def refresh_schema(self):
        self.schema = self.catalog.refresh(self.table)
        return self.schema

    def _has_column(self, column: str) -> bool:
        return self.schema is None or column in self.schema

    # =========================================================================
    # QUERY EXECUTION
    # =========================================================================

    def execute_query(self, sql: str, params: Sequence[Any] = (), use_cache: bool = False,
                      retry: Optional[int] = None) -> Rows:
        """
        Single path to the executor

        ALGORITHM:
        1. Serve from the query cache when asked and present
        2. Execute; on failure log SQL + params
        3. Retry after a fixed delay while attempts remain (never for
           duplicate-key / missing-reference failures)
        4. Raise StoreError, or cache and return the rows

        Args:
            retry: extra attempts for this call (descriptor.retry_attempts when None)
        """
        params = list(params or ())

        # Step 1: Query cache
        cache_key = query_key(self.table, sql, params) if use_cache else None
        if cache_key:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for query on {self.table}")
                return cached

        attempts_left = self.descriptor.retry_attempts if retry is None else retry
        while True:
            try:
                # Step 2: Execute
                start_time = time.perf_counter()
                rows = self.executor.execute(sql, params)
                logger.performance(f"{self.table} query", (time.perf_counter() - start_time) * 1000)
                break
            except DatabaseError as e:
                logger.error(f"Database error in {self.table}: {e} | SQL: {sql} | Params: {params}")

                # Step 3: Retry
                if attempts_left > 0 and e.error_code not in NON_RETRYABLE:
                    logger.warning(f"Retrying query on {self.table} ({attempts_left} attempts left)")
                    attempts_left -= 1
                    time.sleep(self.descriptor.retry_delay)
                    continue

                # Step 4: Give up
                raise store_error_from(e, sql, params) from e

        if cache_key:
            self.cache.set(cache_key, rows)
        return rows

    def query(self, sql: str, params: Sequence[Any] = (), use_cache: bool = False) -> List[Dict[str, Any]]:
        """Run caller SQL and decode rows with this entity's schema"""
        return [decode_record(row, self.schema) for row in self.execute_query(sql, params, use_cache)]

    def invalidate_cache(self) -> None:
        self.cache.invalidate(f"{self.table}:")

    # =========================================================================
    # VALIDATION & RECORD PREPARATION
    # =========================================================================

    def validate(self, data: Dict[str, Any], operation: str = "create") -> List[str]:
        if not self.descriptor.validation:
            return []
        return validate_data(data, self.schema, operation)

    def _ensure_valid(self, data: Any, operation: str) -> None:
        if not isinstance(data, dict):
            raise QueryError(f"{operation} expects a mapping of column values")
        errors = self.validate(data, operation)
        if errors:
            raise ValidationError(f"Validation failed: {', '.join(errors)}", errors)

    def prepare_insert(self, data: Dict[str, Any], now: Optional[str] = None) -> Dict[str, Any]:
        """Assign an id and timestamps, then encode values for storage"""
        record = dict(data)
        if self.descriptor.generate_ids and record.get(self.primary_key) is None:
            record[self.primary_key] = generate_uuid()
        if self.descriptor.timestamps:
            now = now or generate_timestamp()
            for column in ("created_at", "updated_at"):
                if record.get(column) is None and self._has_column(column):
                    record[column] = now
        return encode_record(record, self.schema)

    def prepare_update(self, data: Dict[str, Any]) -> Dict[str, Any]:
        changes = {key: value for key, value in data.items() if key != self.primary_key}
        if self.descriptor.timestamps and self._has_column("updated_at"):
            changes["updated_at"] = generate_timestamp()
        return encode_record(changes, self.schema)

    def _id_condition(self, record_id: Any, include_soft_deleted: bool, params: List[Any]) -> str:
        return build_where(self.descriptor, {f"{self.table}.{self.primary_key}": Equals(record_id)},
                           params, include_soft_deleted)

    def _default_sort_column(self) -> str:
        if self.descriptor.timestamps and self._has_column("created_at"):
            return f"{self.table}.created_at"
        return f"{self.table}.{self.primary_key}"

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def find_by_id(self, record_id: Any, include_soft_deleted: bool = False,
                   use_cache: bool = True) -> Optional[Dict[str, Any]]:
        """
        Fetch one record by primary key; None when missing (or soft-deleted
        and not requested). Only default-visibility lookups are cached.
        """
        cacheable = use_cache and not include_soft_deleted
        key = identity_key(self.table, record_id)
        if cacheable:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for {key}")
                return copy.deepcopy(cached)

        params: List[Any] = []
        where = self._id_condition(record_id, include_soft_deleted, params)
        rows = self.execute_query(f"SELECT * FROM {self.table} {where} LIMIT 1", params)
        if not rows:
            return None

        record = decode_record(rows[0], self.schema)
        if cacheable:
            self.cache.set(key, copy.deepcopy(record))
        return record

    @ErrorManager.operation_context("find_one")
    def find_one(self, filters: Optional[Dict[str, Any]] = None, include_soft_deleted: bool = False,
                 use_cache: bool = False, sort=None) -> Optional[Dict[str, Any]]:
        params: List[Any] = []
        where = build_where(self.descriptor, filters, params, include_soft_deleted)
        order = build_order(sort) if sort else ""
        sql = " ".join(part for part in (f"SELECT * FROM {self.table}", where, order, "LIMIT 1") if part)
        rows = self.execute_query(sql, params, use_cache=use_cache)
        return decode_record(rows[0], self.schema) if rows else None

    @ErrorManager.operation_context("find_many")
    def find_many(self, filters: Optional[Dict[str, Any]] = None, sort=None,
                  include_soft_deleted: bool = False, use_cache: bool = False) -> List[Dict[str, Any]]:
        """All matching records, unpaginated"""
        params: List[Any] = []
        where = build_where(self.descriptor, filters, params, include_soft_deleted)
        order = build_order(sort, default_column=self._default_sort_column())
        sql = " ".join(part for part in (f"SELECT * FROM {self.table}", where, order) if part)
        return [decode_record(row, self.schema) for row in self.execute_query(sql, params, use_cache=use_cache)]

    @log_performance("find_all")
    @ErrorManager.operation_context("find_all")
    def find_all(self, filters: Optional[Dict[str, Any]] = None, page: int = 1, limit: Optional[int] = None,
                 sort=None, include_soft_deleted: bool = False, fields=None, joins=None,
                 group_by=None, having: Optional[str] = None, use_cache: bool = False) -> PaginatedResult:
        """
        One page of matching records plus pagination metadata

        ALGORITHM:
        1. Build WHERE / JOIN / GROUP BY / ORDER BY / LIMIT fragments
        2. Data query: full statement; count query: no ORDER/LIMIT, grouped
           queries are counted through a subquery
        3. Run both concurrently and wait for both
        4. Decode rows and compute pagination
        """
        if limit is None:
            limit = self.descriptor.default_page_size

        # Step 1: Fragments
        params: List[Any] = []
        where = build_where(self.descriptor, filters, params, include_soft_deleted)
        join_sql = build_joins(joins)
        group_sql = build_group_by(group_by, having)
        order_sql = build_order(sort, default_column=self._default_sort_column())
        page_sql = build_pagination(page, limit)
        select_list = build_fields(fields, self.table)

        # Step 2: Statements
        base = " ".join(part for part in (f"FROM {self.table}", join_sql, where) if part)
        data_sql = " ".join(part for part in (f"SELECT {select_list}", base, group_sql, order_sql, page_sql) if part)
        if group_sql:
            count_sql = f"SELECT COUNT(*) AS total FROM (SELECT 1 AS grouped_row {base} {group_sql}) AS grouped_rows"
        else:
            count_sql = f"SELECT COUNT(*) AS total {base}"

        # Step 3: Concurrent execution, both must finish
        data_future = self._pool.submit(self.execute_query, data_sql, params, use_cache)
        count_future = self._pool.submit(self.execute_query, count_sql, params, use_cache)
        wait([data_future, count_future])
        rows = data_future.result()
        count_rows = count_future.result()

        # Step 4: Result
        total = int(count_rows[0]["total"]) if count_rows else 0
        return PaginatedResult(
            data=[decode_record(row, self.schema) for row in rows],
            pagination=Pagination.build(total, page, limit),
        )

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    def create(self, data: Dict[str, Any],
               on_created: Optional[Callable[[Dict[str, Any]], None]] = None) -> Dict[str, Any]:
        """
        Insert one record and return it as stored

        ALGORITHM:
        1. Validate against the schema (all violations collected)
        2. Assign id and timestamps, encode structured values
        3. INSERT
        4. Invalidate the entity cache
        5. Re-read and notify
        """
        # Step 1: Validate
        self._ensure_valid(data, "create")

        # Step 2: Prepare
        record = self.prepare_insert(data)

        # Step 3: Insert
        sql, params = insert_statement(self.table, [record])
        rows = self.execute_query(sql, params)
        record_id = record.get(self.primary_key)
        if record_id is None:
            record_id = rows.lastrowid

        # Step 4: Invalidate
        self.invalidate_cache()
        logger.debug(f"Created {self.table} record {record_id}")

        # Step 5: Re-read and notify
        created = self.find_by_id(record_id, include_soft_deleted=True, use_cache=False)
        if on_created:
            on_created(created)
        self.observers.notify("after_create", created)
        return created

    @log_performance("create_many")
    def create_many(self, records: Sequence[Dict[str, Any]], batch_size: Optional[int] = None,
                    on_progress: Optional[Callable[[BulkProgress], None]] = None) -> BulkInsertResult:
        """
        Insert records in batches of at most batch_size (max_bulk_insert by default)

        Every record is validated before the first INSERT. Batches are
        independent: a failure in batch k leaves batches < k inserted. A
        batch whose records carry different column sets is written as one
        INSERT per column set inside a single transaction, so omitted
        columns keep their store defaults.
        """
        if not records:
            raise QueryError("No records provided for bulk insert")

        size = batch_size or self.descriptor.max_bulk_insert
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise QueryError(f"batch_size must be a positive integer, got {size!r}")

        errors = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise QueryError(f"Record {index} is not a mapping")
            errors.extend(f"Record {index}: {error}" for error in self.validate(record, "create"))
        if errors:
            raise ValidationError(f"Bulk validation failed: {len(errors)} errors", errors)

        now = generate_timestamp()
        prepared = [self.prepare_insert(record, now) for record in records]
        total = len(prepared)

        inserted = 0
        inserted_ids: List[Any] = []
        try:
            for start in range(0, total, size):
                chunk = prepared[start:start + size]
                groups = group_by_columns(chunk)
                if len(groups) == 1:
                    sql, params = insert_statement(self.table, chunk)
                    self.execute_query(sql, params)
                else:
                    self.transaction(lambda scope: scope.insert_prepared(groups))

                inserted += len(chunk)
                inserted_ids.extend(r[self.primary_key] for r in chunk if r.get(self.primary_key) is not None)
                if on_progress:
                    on_progress(BulkProgress(processed=inserted, total=total,
                                             percentage=round(inserted * 100 / total)))
        finally:
            if inserted:
                self.invalidate_cache()

        logger.info(f"Bulk inserted {inserted} records into {self.table}")
        return BulkInsertResult(inserted_count=inserted, inserted_ids=inserted_ids)

    def update(self, record_id: Any, data: Dict[str, Any], include_soft_deleted: bool = False,
               on_updated: Optional[Callable[[Dict[str, Any], Dict[str, Any]], None]] = None) -> Dict[str, Any]:
        """
        Update one record and return the re-read version

        Raises:
            ValidationError: data violates the schema
            NotFoundError: no visible record with this id
        """
        self._ensure_valid(data, "update")

        existing = self.find_by_id(record_id, include_soft_deleted=include_soft_deleted, use_cache=False)
        if existing is None:
            raise NotFoundError(f"Record with {self.primary_key} {record_id} not found in {self.table}")

        changes = self.prepare_update(data)
        if not changes:
            return existing

        where_params: List[Any] = []
        where = self._id_condition(record_id, include_soft_deleted, where_params)
        sql, params = update_statement(self.table, changes, where, where_params)
        self.execute_query(sql, params)
        self.invalidate_cache()

        updated = self.find_by_id(record_id, include_soft_deleted=True, use_cache=False)
        if on_updated:
            on_updated(updated, existing)
        self.observers.notify("after_update", updated, existing)
        return updated

    def update_many(self, filters: Dict[str, Any], data: Dict[str, Any],
                    include_soft_deleted: bool = False) -> UpdateManyResult:
        """Update every visible record matching filters; at least one filter is required"""
        self._ensure_valid(data, "update")
        if not filters or all(value is None for value in filters.values()):
            raise QueryError("update_many requires at least one filter")

        changes = self.prepare_update(data)
        where_params: List[Any] = []
        where = build_where(self.descriptor, filters, where_params, include_soft_deleted)
        sql, params = update_statement(self.table, changes, where, where_params)
        rows = self.execute_query(sql, params)
        self.invalidate_cache()

        affected = max(rows.rowcount, 0)
        logger.info(f"Updated {affected} records in {self.table}")
        return UpdateManyResult(affected_rows=affected)

    def delete(self, record_id: Any, hard_delete: bool = False,
               on_deleted: Optional[Callable[[Dict[str, Any], DeleteKind], None]] = None) -> bool:
        """
        Soft delete by default; hard delete when asked or when soft delete is off

        A hard delete also reaches records that are already soft-deleted.
        """
        hard = hard_delete or not self.descriptor.soft_delete
        existing = self.find_by_id(record_id, include_soft_deleted=hard, use_cache=False)
        if existing is None:
            raise NotFoundError(f"Record with {self.primary_key} {record_id} not found in {self.table}")

        if hard:
            kind = DeleteKind.HARD
            sql = f"DELETE FROM {self.table} WHERE {self.primary_key} = ?"
            params = [record_id]
        else:
            kind = DeleteKind.SOFT
            changes = {"deleted_at": generate_timestamp()}
            if self.descriptor.timestamps and self._has_column("updated_at"):
                changes["updated_at"] = changes["deleted_at"]
            sql, params = update_statement(self.table, changes, f"WHERE {self.primary_key} = ?", [record_id])

        self.execute_query(sql, params)
        self.invalidate_cache()
        logger.debug(f"Deleted {self.table} record {record_id} ({kind.value})")

        if on_deleted:
            on_deleted(existing, kind)
        self.observers.notify("after_delete", existing, kind)
        return True

    def soft_delete(self, record_id: Any, **kwargs) -> bool:
        if not self.descriptor.soft_delete:
            raise ConfigError(f"Soft delete is not enabled for {self.table}")
        return self.delete(record_id, hard_delete=False, **kwargs)

    def hard_delete(self, record_id: Any, **kwargs) -> bool:
        return self.delete(record_id, hard_delete=True, **kwargs)

    def restore(self, record_id: Any) -> Dict[str, Any]:
        """Clear deleted_at on a soft-deleted record and return it"""
        if not self.descriptor.soft_delete:
            raise ConfigError(f"Soft delete is not enabled for {self.table}")

        existing = self.find_by_id(record_id, include_soft_deleted=True, use_cache=False)
        if existing is None:
            raise NotFoundError(f"Record with {self.primary_key} {record_id} not found in {self.table}")

        changes: Dict[str, Any] = {"deleted_at": None}
        if self.descriptor.timestamps and self._has_column("updated_at"):
            changes["updated_at"] = generate_timestamp()
        sql, params = update_statement(self.table, changes, f"WHERE {self.primary_key} = ?", [record_id])
        self.execute_query(sql, params)
        self.invalidate_cache()

        return self.find_by_id(record_id, use_cache=False)

    def upsert(self, data: Dict[str, Any], conflict_key: Optional[str] = None) -> Dict[str, Any]:
        """Update the record matching data[conflict_key] (soft-deleted included), else create"""
        key = check_identifier(conflict_key or self.primary_key)
        value = data.get(key)
        if value is None:
            return self.create(data)

        if key == self.primary_key:
            existing = self.find_by_id(value, include_soft_deleted=True, use_cache=False)
        else:
            existing = self.find_one({key: value}, include_soft_deleted=True)

        if existing is None:
            return self.create(data)
        return self.update(existing[self.primary_key], data, include_soft_deleted=True)

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    def _aggregate(self, expression: str, filters, include_soft_deleted: bool, use_cache: bool) -> Any:
        params: List[Any] = []
        where = build_where(self.descriptor, filters, params, include_soft_deleted)
        sql = " ".join(part for part in (f"SELECT {expression} AS result FROM {self.table}", where) if part)
        rows = self.execute_query(sql, params, use_cache=use_cache)
        return rows[0]["result"] if rows else None

    @ErrorManager.operation_context("count")
    def count(self, filters: Optional[Dict[str, Any]] = None, include_soft_deleted: bool = False,
              use_cache: bool = False) -> int:
        return int(self._aggregate("COUNT(*)", filters, include_soft_deleted, use_cache) or 0)

    @ErrorManager.operation_context("exists")
    def exists(self, filters: Optional[Dict[str, Any]] = None, include_soft_deleted: bool = False) -> bool:
        params: List[Any] = []
        where = build_where(self.descriptor, filters, params, include_soft_deleted)
        sql = " ".join(part for part in (f"SELECT 1 AS found FROM {self.table}", where, "LIMIT 1") if part)
        return len(self.execute_query(sql, params)) > 0

    @ErrorManager.operation_context("sum")
    def sum(self, field: str, filters: Optional[Dict[str, Any]] = None, include_soft_deleted: bool = False,
            use_cache: bool = False) -> Any:
        return self._aggregate(f"COALESCE(SUM({check_identifier(field)}), 0)", filters,
                               include_soft_deleted, use_cache)

    @ErrorManager.operation_context("average")
    def average(self, field: str, filters: Optional[Dict[str, Any]] = None, include_soft_deleted: bool = False,
                use_cache: bool = False) -> Any:
        return self._aggregate(f"COALESCE(AVG({check_identifier(field)}), 0)", filters,
                               include_soft_deleted, use_cache)

    @ErrorManager.operation_context("min")
    def min(self, field: str, filters: Optional[Dict[str, Any]] = None, include_soft_deleted: bool = False,
            use_cache: bool = False) -> Any:
        return self._aggregate(f"MIN({check_identifier(field)})", filters, include_soft_deleted, use_cache)

    @ErrorManager.operation_context("max")
    def max(self, field: str, filters: Optional[Dict[str, Any]] = None, include_soft_deleted: bool = False,
            use_cache: bool = False) -> Any:
        return self._aggregate(f"MAX({check_identifier(field)})", filters, include_soft_deleted, use_cache)

    # =========================================================================
    # COMPOSITION
    # =========================================================================

    def transaction(self, callback: Callable[["transaction_module.TransactionScope"], Any]) -> Any:
        """Run callback(scope) atomically on one borrowed connection"""
        return transaction_module.run_transaction(self, callback)

    def batch_process(self, process_callback: Callable[[Dict[str, Any], int], Any], batch_size: int = 1000,
                      where: Optional[Dict[str, Any]] = None, order_by: Optional[str] = None,
                      include_soft_deleted: bool = True, on_progress=None, on_complete=None) -> BatchSummary:
        return batch_module.batch_process(
            self, process_callback, batch_size=batch_size, where=where, order_by=order_by,
            include_soft_deleted=include_soft_deleted, on_progress=on_progress, on_complete=on_complete,
        )

    def related_engine(self, table: str, descriptor: Optional[EntityDescriptor] = None) -> "RecordEngine":
        """RecordEngine for another table sharing this executor and schema catalog"""
        engine = self._related.get(table)
        if engine is None:
            engine = RecordEngine(self.executor, descriptor or EntityDescriptor(table=table),
                                  catalog=self.catalog)
            self._related[table] = engine
        return engine

    def load_relation(self, relation: "relations_module.Relation", record_id: Any,
                      include_soft_deleted: bool = False) -> Optional[Dict[str, Any]]:
        return relations_module.load_relation(self, relation, record_id, include_soft_deleted)

    def add_observer(self, observer: RecordObserver) -> None:
        self.observers.add(observer)

    def remove_observer(self, observer: RecordObserver) -> None:
        self.observers.remove(observer)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def get_table_info(self) -> Dict[str, Any]:
        schema = self.schema or self.refresh_schema()
        return {
            "table": self.table,
            "primary_key": self.primary_key,
            "columns": [column.to_dict() for column in schema.values()],
            "indexes": self.catalog.describe_indexes(self.table),
            "row_count": self.count(include_soft_deleted=True),
        }

    def truncate(self) -> None:
        """Remove every row, soft-deleted ones included"""
        dialect = getattr(self.executor, "dialect", "sqlite")
        sql = f"DELETE FROM {self.table}" if dialect == "sqlite" else f"TRUNCATE TABLE {self.table}"
        self.execute_query(sql)
        self.invalidate_cache()
        logger.warning(f"Truncated table {self.table}")

    def explain(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        dialect = getattr(self.executor, "dialect", "sqlite")
        prefix = "EXPLAIN QUERY PLAN" if dialect == "sqlite" else "EXPLAIN"
        return list(self.execute_query(f"{prefix} {sql}", params))

    def analyze(self) -> List[Dict[str, Any]]:
        """Refresh the planner statistics for this table"""
        dialect = getattr(self.executor, "dialect", "sqlite")
        sql = f"ANALYZE TABLE {self.table}" if dialect == "mysql" else f"ANALYZE {self.table}"
        rows = list(self.execute_query(sql))
        logger.info(f"Analyzed table {self.table}")
        return rows

    def optimize(self) -> List[Dict[str, Any]]:
        """
        Reclaim space and refresh statistics

        sqlite runs VACUUM on the whole database file. PostgreSQL VACUUM
        cannot run inside the executor's transaction, so it gets ANALYZE.
        """
        dialect = getattr(self.executor, "dialect", "sqlite")
        if dialect == "sqlite":
            sql = "VACUUM"
        elif dialect == "mysql":
            sql = f"OPTIMIZE TABLE {self.table}"
        else:
            sql = f"ANALYZE {self.table}"
        rows = list(self.execute_query(sql))
        logger.info(f"Optimized table {self.table}")
        return rows

    def check_integrity(self) -> List[Dict[str, Any]]:
        """Run the store's consistency check; sqlite answers [{'integrity_check': 'ok'}] when healthy"""
        dialect = getattr(self.executor, "dialect", "sqlite")
        if dialect == "sqlite":
            return list(self.execute_query("PRAGMA integrity_check"))
        if dialect == "mysql":
            return list(self.execute_query(f"CHECK TABLE {self.table}"))
        raise QueryError(f"Integrity check is not supported on {dialect}")

    def next_auto_increment(self) -> Optional[int]:
        """
        Value the store will assign to the next auto-increment primary key

        Returns None when the primary key is not store-generated.

        ALGORITHM (sqlite):
        1. Only INTEGER primary keys are rowid aliases
        2. Start from MAX(primary key) + 1
        3. Raise to the AUTOINCREMENT high-water mark when sqlite_sequence has one
        """
        dialect = getattr(self.executor, "dialect", "sqlite")

        if dialect == "mysql":
            rows = self.execute_query(
                "SELECT AUTO_INCREMENT AS next_id FROM INFORMATION_SCHEMA.TABLES "
                "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = ?", [self.table])
            return int(rows[0]["next_id"]) if rows and rows[0]["next_id"] is not None else None

        if dialect == "postgresql":
            rows = self.execute_query("SELECT pg_get_serial_sequence(?, ?) AS seq", [self.table, self.primary_key])
            sequence = rows[0]["seq"] if rows else None
            if not sequence:
                return None
            state = self.execute_query(f"SELECT last_value, is_called FROM {sequence}")[0]
            return int(state["last_value"]) + 1 if state["is_called"] else int(state["last_value"])

        # Step 1: Rowid alias
        schema = self.schema or {}
        column = schema.get(self.primary_key)
        if column is None or column.declared_type.strip().lower() != "integer":
            return None

        # Step 2: Current maximum
        rows = self.execute_query(f"SELECT COALESCE(MAX({self.primary_key}), 0) AS max_id FROM {self.table}")
        next_id = int(rows[0]["max_id"]) + 1

        # Step 3: AUTOINCREMENT never reuses ids
        if self.execute_query("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'"):
            sequence = self.execute_query("SELECT seq FROM sqlite_sequence WHERE name = ?", [self.table])
            if sequence:
                next_id = max(next_id, int(sequence[0]["seq"]) + 1)
        return next_id

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        for engine in self._related.values():
            engine.close()
        self._related.clear()
        self.cache.close()
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "RecordEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RecordEngine(table={self.table}, primary_key={self.primary_key})"
