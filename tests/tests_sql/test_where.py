"""
=============================================
Comprehensive pytest suite for sql/where.py
=============================================

Sections:
---------
1. Unit tests - Predicate rendering and parameter order
2. Edge case tests - None values, empty IN lists, placeholder mismatches

Available markers:
------------------
unit, edge_case

How to Execute:
---------------
All tests:          pytest tests/tests_sql/test_where.py -v
By category:        pytest tests/tests_sql/test_where.py -m edge_case
"""

import pytest

from core.exceptions import ConfigurationError
from sql.where import Condition, WhereClause

# ====================
# Unit Tests
# ====================

@pytest.mark.unit
def test_conditions_are_anded_in_order():
    """Predicates are combined with AND in declaration order, parameters likewise."""
    where = WhereClause().equal("code", 123).in_("name", ["a", "b"]).expression("x > ?", 5)
    assert where.render() == " WHERE code = ? AND name IN (?, ?) AND x > ?"
    assert where.parameters == [123, "a", "b", 5]


@pytest.mark.unit
def test_empty_clause_renders_nothing():
    """No predicates means no WHERE keyword at all."""
    assert WhereClause().render() == ""


@pytest.mark.unit
def test_all_rows_renders_tautology():
    """all_rows() without conditions renders an explicit match-everything predicate."""
    assert WhereClause().all_rows().render() == " WHERE 1 = 1"


@pytest.mark.unit
def test_expression_with_multiple_parameters_for_or():
    """OR is expressed inside one raw expression."""
    where = WhereClause().expression_with_parameters("code = ? OR name = ?", [1, "Jane"])
    assert where.render() == " WHERE code = ? OR name = ?"
    assert where.parameters == [1, "Jane"]


@pytest.mark.unit
def test_equal_all_adds_one_predicate_per_pair():
    """equal_all() expands into one equality per column."""
    where = WhereClause().equal_all(["code", "name"], [7, "Jane"])
    assert where.render() == " WHERE code = ? AND name = ?"
    assert where.parameters == [7, "Jane"]


@pytest.mark.unit
def test_copy_is_independent():
    """Adding to a copy leaves the original untouched."""
    original = WhereClause().equal("code", 1)
    copied = original.copy().equal("name", "x")
    assert len(original) == 1
    assert len(copied) == 2


# ====================
# Edge Case Tests
# ====================

@pytest.mark.edge_case
def test_equal_none_renders_is_null():
    """Equality with None is the explicit IS NULL test."""
    where = WhereClause().equal("email", None)
    assert where.render() == " WHERE email IS NULL"
    assert where.parameters == []


@pytest.mark.edge_case
def test_not_equal_none_renders_is_not_null():
    where = WhereClause().not_equal("email", None)
    assert where.render() == " WHERE email IS NOT NULL"


@pytest.mark.edge_case
def test_optional_none_adds_nothing():
    """An optional predicate with None does not constrain the query."""
    where = WhereClause().optional("name", None).optional("email", "")
    assert where.render() == " WHERE email = ?"
    assert where.parameters == [""]


@pytest.mark.edge_case
def test_empty_in_matches_nothing():
    """An empty IN list becomes a predicate that is always false."""
    where = WhereClause().in_("code", [])
    assert where.render() == " WHERE 1 = 0"
    assert where.parameters == []


@pytest.mark.edge_case
def test_placeholder_mismatch_is_rejected():
    """The number of parameters must equal the number of placeholders."""
    with pytest.raises(ConfigurationError, match="2 placeholders but 1 parameters"):
        Condition("a = ? OR b = ?", (1,))


@pytest.mark.edge_case
def test_equal_all_length_mismatch():
    with pytest.raises(ConfigurationError):
        WhereClause().equal_all(["code", "name"], [1])


@pytest.mark.edge_case
def test_require_predicate_without_conditions():
    """Mutations without predicates and without all_rows() are refused."""
    with pytest.raises(ConfigurationError, match="all_rows"):
        WhereClause().require_predicate("DELETE", "persons")
    WhereClause().all_rows().require_predicate("DELETE", "persons")
