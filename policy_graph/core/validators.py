"""Shared validators for rule tree payloads posted to the API."""

from typing import Any


def rule_tree_depth(rule: Any) -> int:
    """
    Return the nesting depth of a rule.

    Literals and ``{"var": ...}`` leaves have depth 1.
    """
    if isinstance(rule, dict):
        if not rule or "var" in rule:
            return 1
        return 1 + max((rule_tree_depth(v) for v in rule.values()), default=0)
    if isinstance(rule, list):
        return max((rule_tree_depth(item) for item in rule), default=0)
    return 1


def validate_rule_tree_depth(status_rules: list[Any], max_depth: int = 32) -> None:
    """
    Validate that no rule in ``status_rules`` exceeds the maximum depth.

    Raises:
        ValueError: If a rule is too deep
    """
    for index, rule in enumerate(status_rules):
        depth = rule_tree_depth(rule)
        if depth > max_depth:
            raise ValueError(
                f"status_rules[{index}] exceeds maximum depth of {max_depth} (got {depth})"
            )


def validate_rule_tree_node_count(status_rules: list[Any], max_nodes: int = 2000) -> None:
    """
    Validate that the rule tree doesn't exceed the maximum node count.

    Every dict, list element and literal counts as one node. Each node
    becomes at most one graph node on import, so this bounds import cost.

    Raises:
        ValueError: If the tree is too large
    """

    def count_nodes(obj: Any) -> int:
        if isinstance(obj, dict):
            return 1 + sum(count_nodes(v) for v in obj.values())
        if isinstance(obj, list):
            return sum(count_nodes(item) for item in obj)
        return 1

    node_count = count_nodes(status_rules)
    if node_count > max_nodes:
        raise ValueError(
            f"Rule tree exceeds maximum node count of {max_nodes} (got {node_count} nodes)"
        )
