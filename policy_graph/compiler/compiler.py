"""
Rule Compiler: graph -> rule tree.

Walks the graph backward from every Result node and emits one JSON-logic
style rule per wired Result, in node order::

    {"status_rules": [ <rule>, ... ]}

The compiler is a pure function of graph state. Unwired inputs are not
errors; each node kind defines a default so the editor compiles at every
intermediate editing state:

- Compare / Logic operands default to ``null``
- If condition defaults to ``true``, true-branch to ``"PRESENT"``,
  false-branch to ``null``
- A Result node without an incoming edge contributes no rule
"""

import json
import logging
import time
from typing import Any

from policy_graph.core.observability import record_metric
from policy_graph.domain.enums import LogicOperator, NodeKind
from policy_graph.domain.models import Node
from policy_graph.graph.store import GraphStore

logger = logging.getLogger(__name__)

# Defaults for unwired If inputs, by input index
IF_INPUT_DEFAULTS: tuple[Any, Any, Any] = (True, "PRESENT", None)


def compile_graph(store: GraphStore) -> dict[str, list[Any]]:
    """
    Compile the graph into a rule tree document.

    Args:
        store: Graph to compile

    Returns:
        ``{"status_rules": [...]}``, one entry per Result node with an
        incoming edge
    """
    start_time = time.time()
    status = "error"
    status_rules: list[Any] = []

    try:
        for result_node in store.nodes_of_kind(NodeKind.RESULT):
            edge = store.incoming_edge(result_node.id, 0)
            if edge is None:
                continue
            status_rules.append(_resolve(store, edge.source.node_id, frozenset()))
        status = "success"
    finally:
        duration = time.time() - start_time
        _record_compiler_metrics(status, duration, status_rules)

    logger.debug("Compiled %d status rules in %.4fs", len(status_rules), duration)
    return {"status_rules": status_rules}


def compile_node(store: GraphStore, node_id: str) -> Any:
    """Compile the subtree rooted at ``node_id`` (used for per-node previews)."""
    return _resolve(store, node_id, frozenset())


def _record_compiler_metrics(status: str, duration: float, status_rules: list[Any]) -> None:
    def update(m):
        m.compiler_compilations_total.labels(status=status).inc()
        m.compiler_duration_seconds.observe(duration)
        if status == "success":
            m.compiler_rules_count.observe(len(status_rules))
            m.compiler_tree_bytes.observe(len(json.dumps(status_rules).encode("utf-8")))

    record_metric(update)


def _resolve(store: GraphStore, node_id: str, visiting: frozenset[str]) -> Any:
    """
    Compile the value produced by ``node_id``.

    ``visiting`` holds the ids on the current path. The store rejects
    cycles, but a graph assembled elsewhere may still contain one; the
    back-reference then compiles to ``null``.
    """
    if node_id in visiting:
        logger.warning("Cycle detected at node %s; emitting null", node_id)
        return None
    visiting = visiting | {node_id}

    node = store.get_node(node_id)
    payload = node.payload

    if node.kind == NodeKind.CONSTANT:
        return payload.value

    if node.kind == NodeKind.VARIABLE:
        return {"var": payload.key}

    if node.kind == NodeKind.LOGIC:
        left = _input(store, node, 0, visiting)
        if payload.operator == LogicOperator.NOT:
            return {"not": left}
        return {payload.operator.value: [left, _input(store, node, 1, visiting)]}

    if node.kind == NodeKind.COMPARE:
        return {
            payload.operator.value: [
                _input(store, node, 0, visiting),
                _input(store, node, 1, visiting),
            ]
        }

    if node.kind == NodeKind.IF:
        return {
            "if": [
                _input(store, node, index, visiting, default=default)
                for index, default in enumerate(IF_INPUT_DEFAULTS)
            ]
        }

    # Result nodes have no output and never appear as a source
    logger.warning("Node %s of kind %s cannot produce a value", node.id, node.kind.value)
    return None


def _input(
    store: GraphStore, node: Node, index: int, visiting: frozenset[str], default: Any = None
) -> Any:
    edge = store.incoming_edge(node.id, index)
    if edge is None:
        return default
    return _resolve(store, edge.source.node_id, visiting)
