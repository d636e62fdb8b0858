"""Graph builders shared by the test modules."""

from __future__ import annotations

import itertools
from collections.abc import Callable

from policy_graph.domain.enums import NodeKind
from policy_graph.domain.models import Point, PortRef
from policy_graph.graph.store import GraphStore


def sequential_ids(prefix: str = "n") -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


def port(node_id: str, index: int = 0) -> PortRef:
    return PortRef(node_id=node_id, port_index=index)


def build_compare(
    store: GraphStore, key: str, operator: str, threshold: float | int
) -> str:
    """Variable(key) <operator> Constant(threshold). Returns the Compare node id."""
    variable = store.add_node(NodeKind.VARIABLE, Point(0, 0), {"key": key})
    constant = store.add_node(
        NodeKind.CONSTANT, Point(0, 150), {"valueType": "number", "value": threshold}
    )
    compare = store.add_node(NodeKind.COMPARE, Point(300, 50), {"operator": operator})
    store.connect(port(variable), port(compare, 0))
    store.connect(port(constant), port(compare, 1))
    return compare


def build_minutes_late_rule(store: GraphStore, threshold: int = 10) -> dict[str, str]:
    """Variable(minutes_late) > Constant(threshold) -> Result. Returns node ids by role."""
    compare = build_compare(store, "minutes_late", ">", threshold)
    variable, constant = (edge.source.node_id for edge in _inputs(store, compare))
    result = store.add_node(NodeKind.RESULT, Point(600, 50))
    store.connect(port(compare), port(result))
    return {"variable": variable, "constant": constant, "compare": compare, "result": result}


def _inputs(store: GraphStore, node_id: str):
    return [store.incoming_edge(node_id, index) for index in (0, 1)]
