"""
Schema-driven validation and value encoding.

Every logical type has exactly one validator; a validator returns an error
message or None. validate_data() checks every submitted field that the
schema knows about and collects all violations.
"""

import json
import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from ..database.utils import TIMESTAMP_FORMAT, format_date, safe_json_dumps, safe_json_loads
from .schema import ColumnSchema, LogicalType

# Accepted besides ISO 8601; stored in canonical form
_EXTRA_DATE_FORMATS = (
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
)


def parse_date_text(text: str) -> Optional[datetime]:
    """Parse ISO 8601 or one of the slash forms; None when unparseable"""
    candidate = text.strip().replace("Z", "+00:00")
    if not candidate:
        return None
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass
    for pattern in _EXTRA_DATE_FORMATS:
        try:
            return datetime.strptime(candidate, pattern)
        except ValueError:
            continue
    return None


def _is_calendar_date(column: ColumnSchema) -> bool:
    return column.declared_type.strip().lower().split("(")[0].strip() == "date"


def _validate_integer(field: str, value: Any) -> Optional[str]:
    if isinstance(value, int):
        return None
    if isinstance(value, float) and value.is_integer():
        return None
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        return None
    if isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return f"{field} must be an integer"
        if number.is_finite() and number == number.to_integral_value():
            return None
    return f"{field} must be an integer"


def _validate_decimal(field: str, value: Any) -> Optional[str]:
    if isinstance(value, int):
        return None
    if isinstance(value, float):
        return None if math.isfinite(value) else f"{field} must be a number"
    if isinstance(value, Decimal):
        return None if value.is_finite() else f"{field} must be a number"
    if isinstance(value, str):
        try:
            if not Decimal(value.strip()).is_finite():
                return f"{field} must be a number"
            return None
        except InvalidOperation:
            return f"{field} must be a number"
    return f"{field} must be a number"


def _validate_text(field: str, value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return f"{field} must be a string"
    return None


def _validate_date(field: str, value: Any) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return None
    if isinstance(value, str) and parse_date_text(value) is not None:
        return None
    return f"{field} must be a valid date"


def _validate_structured(field: str, value: Any) -> Optional[str]:
    if isinstance(value, str):
        return None
    if safe_json_dumps(value) is None:
        return f"{field} must be valid JSON"
    return None


def _validate_boolean(field: str, value: Any) -> Optional[str]:
    if isinstance(value, bool) or (isinstance(value, int) and value in (0, 1)):
        return None
    return f"{field} must be a boolean"


VALIDATORS: Dict[LogicalType, Callable[[str, Any], Optional[str]]] = {
    LogicalType.INTEGER: _validate_integer,
    LogicalType.DECIMAL: _validate_decimal,
    LogicalType.TEXT: _validate_text,
    LogicalType.DATE: _validate_date,
    LogicalType.STRUCTURED: _validate_structured,
    LogicalType.BOOLEAN: _validate_boolean,
    LogicalType.OTHER: lambda field, value: None,
}


def validate_data(data: Dict[str, Any], schema: Optional[Dict[str, ColumnSchema]],
                  operation: str = "create") -> List[str]:
    """
    Validate submitted fields against the cached schema

    ALGORITHM:
    1. Skip fields the schema does not know
    2. Null on a non-nullable column is an error on create only
    3. Logical type check
    4. Max length check for strings

    Returns:
        List[str]: every violation found, empty when valid
    """
    if not schema:
        return []

    errors = []
    for field, value in data.items():
        # Step 1: Unknown fields pass through
        column = schema.get(field)
        if column is None:
            continue

        # Step 2: Nullability
        if value is None:
            if not column.nullable and operation == "create":
                errors.append(f"{field} is required")
            continue

        # Step 3: Type
        type_error = VALIDATORS[column.logical_type](field, value)
        if type_error:
            errors.append(type_error)

        # Step 4: Length
        if column.max_length and isinstance(value, str) and len(value) > column.max_length:
            errors.append(f"{field} exceeds maximum length of {column.max_length}")

    return errors


def _encode_date_text(column: ColumnSchema, text: str) -> str:
    """Rewrite slash-form dates into the stored form; ISO text is kept as given"""
    try:
        datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
        return text
    except ValueError:
        pass
    parsed = parse_date_text(text)
    if parsed is None:
        return text
    return parsed.date().isoformat() if _is_calendar_date(column) else parsed.strftime(TIMESTAMP_FORMAT)


def encode_record(data: Dict[str, Any], schema: Optional[Dict[str, ColumnSchema]]) -> Dict[str, Any]:
    """Convert values into their stored form (JSON text, formatted dates)"""
    encoded = {}
    for field, value in data.items():
        column = schema.get(field) if schema else None
        if column is not None and column.logical_type == LogicalType.STRUCTURED:
            if value is not None and not isinstance(value, str):
                value = safe_json_dumps(value)
        elif isinstance(value, (dict, list)):
            value = json.dumps(value, default=str)
        elif isinstance(value, (date, datetime)):
            if column is not None and _is_calendar_date(column) and isinstance(value, datetime):
                value = value.date()
            value = format_date(value)
        elif column is not None and column.logical_type == LogicalType.DATE and isinstance(value, str):
            value = _encode_date_text(column, value)
        encoded[field] = value
    return encoded


def _decode_date(column: ColumnSchema, value: Any) -> Any:
    """DATE columns become date, DATETIME/TIMESTAMP columns datetime; unparseable text is kept"""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if _is_calendar_date(column):
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return value
    try:
        return datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return value


def decode_record(row: Optional[Dict[str, Any]], schema: Optional[Dict[str, ColumnSchema]]) -> Optional[Dict[str, Any]]:
    """Decode structured, boolean and date columns read from the store"""
    if row is None or not schema:
        return row
    decoded = dict(row)
    for field, value in row.items():
        column = schema.get(field)
        if column is None or value is None:
            continue
        if column.logical_type == LogicalType.STRUCTURED:
            decoded[field] = safe_json_loads(value)
        elif column.logical_type == LogicalType.BOOLEAN and isinstance(value, int):
            decoded[field] = bool(value)
        elif column.logical_type == LogicalType.DATE:
            decoded[field] = _decode_date(column, value)
    return decoded
