from typing import Dict, Any, Callable, List, Optional, Sequence
from datetime import datetime, timezone
from functools import wraps
import logging

logger = logging.getLogger(__name__)


class RecordbaseException(Exception):
    """Base exception for every recordbase failure"""
    def __init__(self, message: str, error_code: str = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "GENERAL_ERROR"
        self.details = details


class ValidationError(RecordbaseException):
    """Submitted data violates the cached column schema"""
    def __init__(self, message: str, errors: Optional[List[str]] = None, error_code: str = None):
        self.errors = list(errors or [])
        super().__init__(message, error_code or "VALIDATION_ERROR", self.errors)


class NotFoundError(RecordbaseException):
    """Record with the requested identity does not exist (or is soft-deleted)"""
    def __init__(self, message: str, details: Any = None, error_code: str = None):
        super().__init__(message, error_code or "NOT_FOUND", details)


class ConfigError(RecordbaseException):
    """Operation is not allowed by the entity configuration"""
    def __init__(self, message: str, details: Any = None, error_code: str = None):
        super().__init__(message, error_code or "CONFIG_ERROR", details)


class QueryError(RecordbaseException):
    """Malformed filter, join, grouping, pagination or relation input"""
    def __init__(self, message: str, details: Any = None, error_code: str = None):
        super().__init__(message, error_code or "QUERY_ERROR", details)


class SchemaUnavailable(RecordbaseException):
    """Column metadata could not be introspected"""
    def __init__(self, message: str, details: Any = None, error_code: str = None):
        super().__init__(message, error_code or "SCHEMA_UNAVAILABLE", details)


class StoreError(RecordbaseException):
    """Failure reported by the underlying store, after retries"""
    def __init__(self, message: str, store_code: str = "GENERIC", sql: str = None,
                 params: Sequence[Any] = None, error_code: str = None):
        self.store_code = store_code
        self.sql = sql
        self.params = list(params) if params is not None else []
        super().__init__(message, error_code or "STORE_ERROR",
                         {"store_code": store_code, "sql": sql, "params": self.params})


class DuplicateKeyError(StoreError):
    """Unique or primary key constraint violation"""


class MissingReferenceError(StoreError):
    """Foreign key points at a row that does not exist"""


class StoreConnectionError(StoreError):
    """The store refused or dropped the connection"""


def create_error_response(exception: RecordbaseException) -> Dict[str, Any]:
    # 1. Log the error
    logger.error(f"Error: {exception.error_code} - {exception.message}")
    if exception.details:
        logger.error(f"Details: {exception.details}")

    # 2. Build the error envelope
    return {
        "status": "error",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "error_code": exception.error_code,
        "message": exception.message,
        "details": exception.details
    }


class ErrorManager:
    """Central error handling helpers"""

    @staticmethod
    def operation_context(operation_name: str):
        def decorator(func: Callable) -> Callable:
            @wraps(func)
            def wrapper(*args, **kwargs):
                try:
                    logger.debug(f"Starting operation: {operation_name}")
                    result = func(*args, **kwargs)
                    logger.debug(f"Completed operation: {operation_name}")
                    return result

                except RecordbaseException:
                    # Re-raise our own exceptions as-is
                    logger.warning(f"Handled error in {operation_name}")
                    raise

                except (ValueError, TypeError, KeyError) as e:
                    error_msg = f"Invalid input in {operation_name}"
                    logger.error(f"{error_msg}: {str(e)}")
                    raise QueryError(error_msg, str(e)) from e

            return wrapper
        return decorator
