"""Tests for filter coercion."""

import pytest

from recordbase.exceptions import QueryError
from recordbase.model_base import (
    Equals, In, NotIn, Like, NotLike, Between, IsNull, IsNotNull, Compare, Raw,
    coerce_filter, coerce_filters,
)


class TestCoerceFilter:
    def test_scalar_is_equality(self):
        assert coerce_filter("category", "zakat") == Equals("zakat")

    def test_list_is_membership(self):
        assert coerce_filter("category", ["zakat", "sadaqah"]) == In(("zakat", "sadaqah"))

    def test_tuple_is_membership(self):
        assert coerce_filter("quantity", (1, 2)) == In((1, 2))

    def test_variants_pass_through(self):
        variant = Between(1, 10)
        assert coerce_filter("amount", variant) is variant

    @pytest.mark.parametrize("operator,value,expected", [
        ("like", "Lay", Like("Lay")),
        ("NOT LIKE", "test", NotLike("test")),
        ("between", [5, 10], Between(5, 10)),
        ("IN", [1, 2], In((1, 2))),
        ("not in", [3], NotIn((3,))),
        ("IS NULL", None, IsNull()),
        ("is not null", None, IsNotNull()),
        (">=", 100, Compare(">=", 100)),
        ("<>", 0, Compare("<>", 0)),
        ("=", "x", Equals("x")),
    ])
    def test_operator_dicts(self, operator, value, expected):
        assert coerce_filter("col", {"operator": operator, "value": value}) == expected

    def test_raw_dict(self):
        assert coerce_filter("amount", {"raw": "> ?", "params": [5]}) == Raw("> ?", (5,))

    def test_raw_operator(self):
        assert coerce_filter("amount", {"operator": "RAW", "value": "> 5"}) == Raw("> 5", ())

    def test_unknown_operator_rejected(self):
        with pytest.raises(QueryError, match="Unknown filter operator"):
            coerce_filter("amount", {"operator": "SOUNDS LIKE", "value": "x"})

    @pytest.mark.parametrize("value", [[1], [1, 2, 3], 5])
    def test_between_needs_two_bounds(self, value):
        with pytest.raises(QueryError, match="BETWEEN"):
            coerce_filter("amount", {"operator": "BETWEEN", "value": value})

    def test_in_operator_needs_list(self):
        with pytest.raises(QueryError):
            coerce_filter("amount", {"operator": "IN", "value": 5})

    def test_dict_without_operator_rejected(self):
        with pytest.raises(QueryError):
            coerce_filter("tags", {"channel": "web"})

    def test_compare_rejects_unknown_operator(self):
        with pytest.raises(QueryError):
            Compare("~", 1)


class TestCoerceFilters:
    def test_none_values_are_skipped(self):
        pairs = coerce_filters({"category": None, "quantity": 2})
        assert pairs == [("quantity", Equals(2))]

    def test_empty_mapping(self):
        assert coerce_filters({}) == []
        assert coerce_filters(None) == []

    def test_pairs_keep_order(self):
        pairs = coerce_filters([("b", 1), ("a", [2])])
        assert pairs == [("b", Equals(1)), ("a", In((2,)))]
