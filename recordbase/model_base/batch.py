from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ..exceptions import QueryError
from ..utils.logger import logger
from .models import BatchProgress, BatchSummary
from .query_builder import build_where, build_order, build_pagination
from .validation import decode_record

if TYPE_CHECKING:
    from .engine import RecordEngine


def batch_process(engine: "RecordEngine", process_callback: Callable[[Dict[str, Any], int], Any],
                  batch_size: int = 1000, where: Optional[Dict[str, Any]] = None,
                  order_by: Optional[str] = None, include_soft_deleted: bool = True,
                  on_progress: Optional[Callable[[BatchProgress], Any]] = None,
                  on_complete: Optional[Callable[[BatchSummary], Any]] = None) -> BatchSummary:
    """
    Walk the whole table page by page and call process_callback(record, index)

    ALGORITHM:
    1. Fetch page n (LIMIT batch_size OFFSET (n-1)*batch_size), ordered by
       order_by (primary key by default) so pages are stable
    2. Call the callback for each record, in order
    3. Report progress after each page
    4. Stop after an empty or short page, then report completion

    A callback exception stops the walk and propagates; records already
    handled stay handled.
    """
    if not callable(process_callback):
        raise QueryError("process_callback must be callable")
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise QueryError(f"batch_size must be a positive integer, got {batch_size!r}")

    params: List[Any] = []
    where_sql = build_where(engine.descriptor, where, params, include_soft_deleted)
    order_sql = build_order([(order_by or engine.primary_key, "ASC")])

    processed = 0
    batches = 0
    page = 1
    while True:
        # Step 1: Fetch
        sql = " ".join(part for part in (f"SELECT * FROM {engine.table}", where_sql, order_sql,
                                         build_pagination(page, batch_size)) if part)
        rows = engine.execute_query(sql, params)
        if not rows:
            break

        # Step 2: Process
        batches += 1
        for row in rows:
            process_callback(decode_record(row, engine.schema), processed)
            processed += 1

        # Step 3: Progress
        has_more = len(rows) == batch_size
        if on_progress:
            on_progress(BatchProgress(processed=processed, batch=page, has_more=has_more))

        # Step 4: Short page ends the walk
        if not has_more:
            break
        page += 1

    summary = BatchSummary(total_processed=processed, batches=batches)
    logger.info(f"Batch processing on {engine.table} finished: {processed} records")
    if on_complete:
        on_complete(summary)
    return summary
