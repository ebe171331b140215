from datetime import date, datetime
from decimal import Decimal
import json
import uuid

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def generate_uuid():
    return str(uuid.uuid4())


def generate_timestamp():
    """Current local time in the store's DATETIME text form"""
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def format_date(value):
    """Render date/datetime values the way they are written to the store"""
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return format_date(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def safe_json_dumps(data):
    try:
        if data is None:
            return None
        return json.dumps(data, ensure_ascii=False, separators=(',', ':'), default=_json_default)
    except (TypeError, ValueError):
        return None


def safe_json_loads(json_str):
    """Decode JSON text; non-text values and invalid JSON come back unchanged"""
    if not json_str or not isinstance(json_str, (str, bytes)):
        return json_str

    try:
        return json.loads(json_str)
    except (TypeError, ValueError):
        return json_str
