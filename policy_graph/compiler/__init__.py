"""
Rule tree compiler for the attendance policy graph.

This package translates between the node graph and the rule tree consumed
by the external attendance policy evaluator.

Key Components:
- compiler: Graph -> rule tree, with per-kind defaults for unwired inputs
- importer: Rule tree -> graph, recovering from malformed fragments
- validator: Strict shape and type validation of rule tree documents
- canonicalizer: Ensures deterministic JSON output

Design Principles:
- Determinism: Same graph produces byte-for-byte identical output
- Totality: Every intermediate editing state compiles
- Recoverability: A partially malformed policy still loads for editing
"""

from policy_graph.compiler.canonicalizer import canonicalize_json, rule_tree_fingerprint
from policy_graph.compiler.compiler import compile_graph
from policy_graph.compiler.importer import ImportIssue, ImportResult, import_rule_tree
from policy_graph.compiler.validator import validate_rule_tree

__all__ = [
    "compile_graph",
    "import_rule_tree",
    "ImportIssue",
    "ImportResult",
    "validate_rule_tree",
    "canonicalize_json",
    "rule_tree_fingerprint",
]
