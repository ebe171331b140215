"""
Filter vocabulary.

A filter mapping goes from column name to one of the variants below. Plain
values are coerced: scalars become Equals, lists/tuples become In, and the
tagged dicts {"operator": ..., "value": ...} / {"raw": ..., "params": [...]}
become the matching variant. None values are skipped by coerce_filters();
use IsNull() to test for NULL.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple, Union

from ..exceptions import QueryError

COMPARISON_OPERATORS = (">", "<", ">=", "<=", "!=", "<>")


@dataclass(frozen=True)
class Equals:
    value: Any


@dataclass(frozen=True)
class In:
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class NotIn:
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Like:
    """Substring match; the value is wrapped in % on both sides"""
    value: str


@dataclass(frozen=True)
class NotLike:
    value: str


@dataclass(frozen=True)
class Between:
    low: Any
    high: Any


@dataclass(frozen=True)
class IsNull:
    pass


@dataclass(frozen=True)
class IsNotNull:
    pass


@dataclass(frozen=True)
class Compare:
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in COMPARISON_OPERATORS:
            raise QueryError(f"Unsupported comparison operator: {self.op}")


@dataclass(frozen=True)
class Raw:
    """SQL fragment appended after the column name, with its own parameters"""
    sql: str
    params: Tuple[Any, ...] = field(default_factory=tuple)


Filter = Union[Equals, In, NotIn, Like, NotLike, Between, IsNull, IsNotNull, Compare, Raw]
FILTER_TYPES = (Equals, In, NotIn, Like, NotLike, Between, IsNull, IsNotNull, Compare, Raw)


def _sequence(value: Any, operator: str) -> Tuple[Any, ...]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(value)
    raise QueryError(f"{operator} expects a list of values")


def _from_operator(column: str, operator: str, value: Any) -> Filter:
    op = str(operator).strip().upper()

    if op == "=":
        return Equals(value)
    if op == "LIKE":
        return Like(value)
    if op == "NOT LIKE":
        return NotLike(value)
    if op == "BETWEEN":
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise QueryError(f"BETWEEN on {column} requires exactly two values")
        return Between(value[0], value[1])
    if op == "IN":
        return In(_sequence(value, op))
    if op == "NOT IN":
        return NotIn(_sequence(value, op))
    if op == "IS NULL":
        return IsNull()
    if op == "IS NOT NULL":
        return IsNotNull()
    if op in COMPARISON_OPERATORS:
        return Compare(op, value)
    if op == "RAW":
        return Raw(str(value), ())

    raise QueryError(f"Unknown filter operator for {column}: {operator}")


def coerce_filter(column: str, value: Any) -> Filter:
    """Turn one filter value (plain or tagged) into a filter variant"""
    if isinstance(value, FILTER_TYPES):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return In(tuple(value))
    if isinstance(value, dict):
        if "raw" in value:
            return Raw(str(value["raw"]), tuple(value.get("params") or ()))
        if "operator" in value:
            return _from_operator(column, value["operator"], value.get("value"))
        raise QueryError(f"Filter for {column} must carry an 'operator' or 'raw' key")
    return Equals(value)


def coerce_filters(filters: Union[Dict[str, Any], Sequence[Tuple[str, Any]], None]) -> List[Tuple[str, Filter]]:
    """Normalize a filter mapping into (column, variant) pairs, skipping None values"""
    if not filters:
        return []
    items = filters.items() if isinstance(filters, dict) else filters
    return [(column, coerce_filter(column, value)) for column, value in items if value is not None]
