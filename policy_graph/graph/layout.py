"""
Node geometry in world coordinates, and hit-testing against it.

A node is a fixed-width card whose position is its top-left corner.
Input ports sit just outside the left edge, output ports just outside the
right edge, stacked from the top of the body::

    port i anchor: y + PORT_TOP + i * PORT_GAP
    inputs:        x - PORT_OUTSET
    outputs:       x + NODE_WIDTH + PORT_OUTSET
"""

from __future__ import annotations

from dataclasses import dataclass

from policy_graph.domain.enums import PortDirection
from policy_graph.domain.models import Node, Point
from policy_graph.graph.ports import port_count
from policy_graph.graph.store import GraphStore

NODE_WIDTH = 192.0
MIN_NODE_HEIGHT = 96.0
PORT_TOP = 46.0
PORT_GAP = 24.0
PORT_OUTSET = 12.0
PORT_HIT_SIZE = 24.0


@dataclass(frozen=True)
class PortHit:
    node_id: str
    direction: PortDirection
    index: int


@dataclass(frozen=True)
class NodeHit:
    node_id: str


HitTarget = PortHit | NodeHit


def node_height(node: Node) -> float:
    ports = max(
        port_count(node.kind, PortDirection.INPUT), port_count(node.kind, PortDirection.OUTPUT)
    )
    return max(MIN_NODE_HEIGHT, PORT_TOP + ports * PORT_GAP)


def node_contains(node: Node, point: Point) -> bool:
    return (
        node.x <= point.x <= node.x + NODE_WIDTH
        and node.y <= point.y <= node.y + node_height(node)
    )


def port_anchor(node: Node, direction: PortDirection, index: int) -> Point:
    """World position of a port's centre; edges are drawn between anchors."""
    y = node.y + PORT_TOP + index * PORT_GAP
    if direction == PortDirection.INPUT:
        return Point(node.x - PORT_OUTSET, y)
    return Point(node.x + NODE_WIDTH + PORT_OUTSET, y)


def _port_at(node: Node, point: Point) -> PortHit | None:
    half = PORT_HIT_SIZE / 2
    for direction in (PortDirection.INPUT, PortDirection.OUTPUT):
        for index in range(port_count(node.kind, direction)):
            anchor = port_anchor(node, direction, index)
            if abs(point.x - anchor.x) <= half and abs(point.y - anchor.y) <= half:
                return PortHit(node.id, direction, index)
    return None


def hit_test(store: GraphStore, point: Point) -> HitTarget | None:
    """
    What lies under ``point``.

    Ports take priority over node bodies, since port hit areas overlap
    the card edges. Among overlapping nodes the most recently added one
    (drawn on top) wins.
    """
    nodes = list(reversed(store.nodes))
    for node in nodes:
        port = _port_at(node, point)
        if port is not None:
            return port
    for node in nodes:
        if node_contains(node, point):
            return NodeHit(node.id)
    return None


def edge_endpoints(store: GraphStore, edge_id: str) -> tuple[Point, Point]:
    """Anchor points of an edge, source first."""
    edge = store.get_edge(edge_id)
    source = store.get_node(edge.source.node_id)
    target = store.get_node(edge.target.node_id)
    return (
        port_anchor(source, PortDirection.OUTPUT, edge.source.port_index),
        port_anchor(target, PortDirection.INPUT, edge.target.port_index),
    )
