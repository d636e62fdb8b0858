"""
Tests for strict rule tree validation.

These tests verify:
- Accepted shapes and inferred rule types
- Document-level structure errors
- Operator arity and operand type errors with JSONPaths
- Variable references against the catalog, strict and lenient
- Depth and node-count guards used by the API schemas
"""

import pytest

from policy_graph.compiler.validator import validate_rule_tree
from policy_graph.core.errors import MalformedRuleTreeError
from policy_graph.core.validators import (
    rule_tree_depth,
    validate_rule_tree_depth,
    validate_rule_tree_node_count,
)
from policy_graph.domain.enums import ValueType

LATE = {">": [{"var": "minutes_late"}, 10]}


def _error_path(document, catalog, **kwargs) -> str:
    with pytest.raises(MalformedRuleTreeError) as exc_info:
        validate_rule_tree(document, catalog, **kwargs)
    return exc_info.value.details.get("path")


class TestValidShapes:
    """Well-formed rule trees validate and report their types."""

    def test_empty_document(self, catalog):
        assert validate_rule_tree({"status_rules": []}, catalog) == []

    def test_inferred_types(self, catalog):
        document = {
            "status_rules": [
                LATE,
                "ABSENT",
                {"var": "total_hours"},
                {"not": {"var": "is_first_session"}},
                {"if": [LATE, "LATE", "PRESENT"]},
                {"if": [LATE, "LATE", 0]},
            ]
        }
        assert validate_rule_tree(document, catalog) == [
            ValueType.BOOLEAN,
            ValueType.STRING,
            ValueType.NUMBER,
            ValueType.BOOLEAN,
            ValueType.STRING,
            ValueType.ANY,
        ]

    def test_null_branches_allowed(self, catalog):
        validate_rule_tree({"status_rules": [{"if": [LATE, None, None]}]}, catalog)

    def test_not_accepts_list_operand(self, catalog):
        validate_rule_tree({"status_rules": [{"not": [LATE]}]}, catalog)

    def test_var_list_form(self, catalog):
        assert validate_rule_tree({"status_rules": [{"var": ["minutes_late", 0]}]}, catalog) == [
            ValueType.NUMBER
        ]


class TestInvalidDocuments:
    """Document-level problems."""

    @pytest.mark.parametrize("document", [None, [], {"status": []}, {"status_rules": "x"}])
    def test_rejected(self, catalog, document):
        with pytest.raises(MalformedRuleTreeError):
            validate_rule_tree(document, catalog)


class TestInvalidRules:
    """Rule-level problems are reported with their JSONPath."""

    def test_unknown_operator(self, catalog):
        assert _error_path({"status_rules": [{"between": [1, 2]}]}, catalog) == "$.status_rules[0]"

    def test_multiple_keys(self, catalog):
        rule = {">": [1, 2], "<": [1, 2]}
        assert _error_path({"status_rules": [True, rule]}, catalog) == "$.status_rules[1]"

    def test_binary_arity(self, catalog):
        assert _error_path({"status_rules": [{"and": [True]}]}, catalog) == "$.status_rules[0]"
        assert _error_path({"status_rules": [{"==": [1, 2, 3]}]}, catalog) == "$.status_rules[0]"

    def test_missing_operand(self, catalog):
        path = _error_path({"status_rules": [{">": [{"var": "minutes_late"}, None]}]}, catalog)
        assert path == "$.status_rules[0].>[1]"

    def test_logic_operand_must_be_boolean(self, catalog):
        rule = {"or": [LATE, {"var": "total_hours"}]}
        assert _error_path({"status_rules": [rule]}, catalog) == "$.status_rules[0].or[1]"

    def test_if_condition_must_be_boolean(self, catalog):
        rule = {"if": ["yes", "LATE", "PRESENT"]}
        assert _error_path({"status_rules": [rule]}, catalog) == "$.status_rules[0].if[0]"

    def test_nested_path(self, catalog):
        rule = {"if": [LATE, {"not": {"var": "minutes_late"}}, None]}
        assert _error_path({"status_rules": [rule]}, catalog) == "$.status_rules[0].if[1].not"

    def test_unknown_variable(self, catalog):
        document = {"status_rules": [{"==": [{"var": "on_leave"}, True]}]}
        assert _error_path(document, catalog) == "$.status_rules[0].==[0]"

    def test_unknown_variable_lenient(self, catalog):
        document = {"status_rules": [{"and": [{"var": "on_leave"}, True]}]}
        assert validate_rule_tree(document, catalog, allow_unknown_variables=True) == [
            ValueType.BOOLEAN
        ]

    def test_empty_var(self, catalog):
        assert _error_path({"status_rules": [{"var": ""}]}, catalog) == "$.status_rules[0]"


class TestSizeGuards:
    """Depth and node-count limits for posted rule trees."""

    def test_depth(self):
        assert rule_tree_depth(10) == 1
        assert rule_tree_depth({"var": "x"}) == 1
        assert rule_tree_depth(LATE) == 2
        assert rule_tree_depth({"not": LATE}) == 3

    def test_depth_limit(self):
        rule = LATE
        for _ in range(5):
            rule = {"not": rule}
        validate_rule_tree_depth([rule], max_depth=7)
        with pytest.raises(ValueError, match="maximum depth"):
            validate_rule_tree_depth([rule], max_depth=6)

    def test_node_count_limit(self):
        rules = [LATE] * 10
        validate_rule_tree_node_count(rules, max_nodes=100)
        with pytest.raises(ValueError, match="maximum node count"):
            validate_rule_tree_node_count(rules, max_nodes=20)
