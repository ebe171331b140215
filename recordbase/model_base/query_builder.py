"""
Predicate & clause builder.

Renders filter variants into a parameterized WHERE clause (qmark
placeholders) and builds ORDER BY, LIMIT/OFFSET, JOIN and GROUP BY
fragments. Identifiers are validated, values are always bound.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from ..exceptions import QueryError
from .descriptor import EntityDescriptor
from .filters import (
    Filter, Equals, In, NotIn, Like, NotLike, Between, IsNull, IsNotNull, Compare, Raw,
    coerce_filters,
)

_COLUMN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
_JOIN_TYPES = ("INNER", "LEFT", "RIGHT", "LEFT OUTER", "RIGHT OUTER", "CROSS")


def check_identifier(name: Any) -> str:
    if not isinstance(name, str) or not _COLUMN.match(name):
        raise QueryError(f"Invalid column name: {name!r}")
    return name


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def render_condition(column: str, condition: Filter, params: List[Any]) -> str:
    """Render one (column, variant) pair, appending its values to params"""
    check_identifier(column)

    if isinstance(condition, Equals):
        params.append(condition.value)
        return f"{column} = ?"

    if isinstance(condition, In):
        # Empty membership can never match
        if not condition.values:
            return "1 = 0"
        params.extend(condition.values)
        return f"{column} IN ({_placeholders(len(condition.values))})"

    if isinstance(condition, NotIn):
        if not condition.values:
            raise QueryError(f"NOT IN on {column} requires at least one value")
        params.extend(condition.values)
        return f"{column} NOT IN ({_placeholders(len(condition.values))})"

    if isinstance(condition, Like):
        params.append(f"%{condition.value}%")
        return f"{column} LIKE ?"

    if isinstance(condition, NotLike):
        params.append(f"%{condition.value}%")
        return f"{column} NOT LIKE ?"

    if isinstance(condition, Between):
        params.extend((condition.low, condition.high))
        return f"{column} BETWEEN ? AND ?"

    if isinstance(condition, IsNull):
        return f"{column} IS NULL"

    if isinstance(condition, IsNotNull):
        return f"{column} IS NOT NULL"

    if isinstance(condition, Compare):
        params.append(condition.value)
        return f"{column} {condition.op} ?"

    if isinstance(condition, Raw):
        params.extend(condition.params)
        return f"({column} {condition.sql})"

    raise QueryError(f"Unsupported filter for {column}: {condition!r}")


def build_where(descriptor: EntityDescriptor, filters: Union[Dict[str, Any], None], params: List[Any],
                include_soft_deleted: bool = False, extra_condition: Optional[str] = None) -> str:
    """
    Build a WHERE clause for `descriptor`'s table

    ALGORITHM:
    1. Soft-delete visibility condition (unless deleted rows are requested)
    2. Caller-supplied extra condition
    3. One condition per non-None filter entry
    4. Join with AND; no conditions -> empty string

    Args:
        params: list the bound values are appended to, in placeholder order
    """
    conditions = []

    # Step 1: Soft-delete visibility
    if descriptor.soft_delete and not include_soft_deleted:
        conditions.append(f"{descriptor.table}.deleted_at IS NULL")

    # Step 2: Extra condition
    if extra_condition:
        conditions.append(extra_condition)

    # Step 3: Filters
    for column, condition in coerce_filters(filters):
        conditions.append(render_condition(column, condition, params))

    # Step 4: Combine
    if not conditions:
        return ""
    return "WHERE " + " AND ".join(conditions)


def build_order(sort: Union[Dict[str, str], Sequence, None], default_column: str = "created_at") -> str:
    """
    ORDER BY clause; anything other than ASC (case-insensitive) sorts DESC

    `sort` is a {field: direction} mapping or a sequence of (field, direction)
    pairs. Without a sort the default column is used, descending.
    """
    if not sort:
        return f"ORDER BY {check_identifier(default_column)} DESC"

    items = sort.items() if isinstance(sort, dict) else sort
    orders = []
    for column, direction in items:
        direction = "ASC" if str(direction).strip().upper() == "ASC" else "DESC"
        orders.append(f"{check_identifier(column)} {direction}")
    return "ORDER BY " + ", ".join(orders)


def build_pagination(page: Any, limit: Any) -> str:
    """LIMIT/OFFSET clause; page and limit must be integers, ranges are not checked"""
    for name, value in (("page", page), ("limit", limit)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise QueryError(f"{name} must be an integer, got {value!r}")
    return f"LIMIT {limit} OFFSET {(page - 1) * limit}"


@dataclass(frozen=True)
class Join:
    table: str
    on: str
    type: str = "LEFT"


def build_joins(joins: Optional[Sequence[Union[Join, Dict[str, Any]]]]) -> str:
    """Render join descriptors ({type, table, on} dicts or Join objects)"""
    if not joins:
        return ""

    rendered = []
    for join in joins:
        if isinstance(join, dict):
            if "table" not in join or "on" not in join:
                raise QueryError(f"Join requires 'table' and 'on': {join!r}")
            join = Join(table=join["table"], on=join["on"], type=join.get("type", "LEFT"))
        if not isinstance(join, Join):
            raise QueryError(f"Malformed join: {join!r}")

        join_type = str(join.type).strip().upper()
        if join_type not in _JOIN_TYPES:
            raise QueryError(f"Unsupported join type: {join.type}")
        table = str(join.table).strip()
        name = table.split()[0] if table else ""
        check_identifier(name)
        if not join.on or not str(join.on).strip():
            raise QueryError(f"Join on {name} requires a condition")
        rendered.append(f"{join_type} JOIN {table} ON {join.on}")
    return " ".join(rendered)


def build_group_by(group_by: Union[str, Sequence[str], None], having: Optional[str] = None) -> str:
    if not group_by:
        if having:
            raise QueryError("HAVING requires GROUP BY")
        return ""
    columns = [group_by] if isinstance(group_by, str) else list(group_by)
    if not columns:
        raise QueryError("GROUP BY requires at least one column")
    clause = "GROUP BY " + ", ".join(check_identifier(c) for c in columns)
    if having:
        clause += f" HAVING {having}"
    return clause


def build_fields(fields: Union[str, Sequence[str], None], table: str) -> str:
    """SELECT list; `*` (qualified with the table) when no fields are given"""
    if not fields or fields == "*":
        return f"{table}.*"
    if isinstance(fields, str):
        return fields
    return ", ".join(fields)
