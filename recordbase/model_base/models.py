from pydantic import BaseModel, Field
from typing import List, Dict, Any


# PAGINATION
# ==============================================================
class Pagination(BaseModel):
    total: int = Field(..., description="Rows matching the filters, before pagination")
    page: int = Field(..., description="Requested page (1-based)")
    limit: int = Field(..., description="Requested page size")
    total_pages: int = Field(..., description="ceil(total / limit)")
    has_next: bool = Field(..., description="page < total_pages")
    has_prev: bool = Field(..., description="page > 1")

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        total_pages = -(-total // limit) if limit > 0 else 0
        return cls(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class PaginatedResult(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list, description="Records on this page")
    pagination: Pagination


# BULK WRITE RESULTS
# ==============================================================
class BulkInsertResult(BaseModel):
    success: bool = Field(True)
    inserted_count: int = Field(..., description="Rows inserted across all batches")
    inserted_ids: List[Any] = Field(default_factory=list, description="Ids assigned to the inserted rows")


class BulkProgress(BaseModel):
    processed: int
    total: int
    percentage: int = Field(..., description="processed / total, rounded to a whole percent")


class UpdateManyResult(BaseModel):
    success: bool = Field(True)
    affected_rows: int


# BATCH PROCESSING
# ==============================================================
class BatchProgress(BaseModel):
    processed: int = Field(..., description="Records handled so far")
    batch: int = Field(..., description="1-based number of the batch just finished")
    has_more: bool


class BatchSummary(BaseModel):
    total_processed: int
    batches: int = Field(..., description="Non-empty pages handled")
