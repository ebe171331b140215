from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..exceptions import QueryError
from .descriptor import EntityDescriptor
from .query_builder import check_identifier

if TYPE_CHECKING:
    from .engine import RecordEngine


class RelationType(Enum):
    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    HAS_ONE = "has_one"


@dataclass(frozen=True)
class Relation:
    """
    Basic relationship from the engine's table to `related_table`

    belongs_to: record[foreign_key] -> related.primary_key
    has_many / has_one: related[foreign_key] -> record[local_key]
    """
    type: Any
    name: str
    related_table: str
    foreign_key: str
    local_key: Optional[str] = None
    related_descriptor: Optional[EntityDescriptor] = None


def _relation_type(value: Any) -> RelationType:
    if isinstance(value, RelationType):
        return value
    # camelCase names (belongsTo, hasMany, hasOne) are accepted too
    normalized = "".join(f"_{c.lower()}" if c.isupper() else c for c in str(value)).lstrip("_")
    try:
        return RelationType(normalized)
    except ValueError:
        raise QueryError(f"Unsupported relation type: {value}") from None


def load_relation(engine: "RecordEngine", relation: Relation, record_id: Any,
                  include_soft_deleted: bool = False) -> Optional[Dict[str, Any]]:
    """
    Return the record with the related record(s) attached under relation.name,
    or None when the record itself does not exist
    """
    relation_type = _relation_type(relation.type)
    check_identifier(relation.foreign_key)
    if record_id is None:
        raise QueryError(f"id is required for {relation_type.value} relationship")

    record = engine.find_by_id(record_id, include_soft_deleted=include_soft_deleted)
    if record is None:
        return None

    related = engine.related_engine(relation.related_table, relation.related_descriptor)
    local_key = relation.local_key or engine.primary_key

    if relation_type == RelationType.BELONGS_TO:
        foreign_value = record.get(relation.foreign_key)
        value = related.find_by_id(foreign_value) if foreign_value is not None else None
    elif record.get(local_key) is None:
        value = [] if relation_type == RelationType.HAS_MANY else None
    elif relation_type == RelationType.HAS_MANY:
        value = related.find_many({relation.foreign_key: record[local_key]})
    else:
        value = related.find_one({relation.foreign_key: record[local_key]})

    return {**record, relation.name: value}
