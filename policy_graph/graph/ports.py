"""
Declared ports per node kind and port type resolution.

Port types are resolved by pure functions of the node (and the type
catalog for Variable nodes), never stored on the node, so the
connection type check has exactly one source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass

from policy_graph.domain.catalog import TypeCatalog
from policy_graph.domain.enums import NodeKind, PortDirection, ValueType
from policy_graph.domain.models import Node


@dataclass(frozen=True)
class PortSpec:
    """Name and static type of one declared port."""

    name: str
    type: ValueType


# Output types of Variable and Constant are placeholders here; they are
# resolved from the payload by output_port_type().
NODE_PORTS: dict[NodeKind, tuple[tuple[PortSpec, ...], tuple[PortSpec, ...]]] = {
    NodeKind.LOGIC: (
        (PortSpec("A", ValueType.BOOLEAN), PortSpec("B", ValueType.BOOLEAN)),
        (PortSpec("Result", ValueType.BOOLEAN),),
    ),
    NodeKind.COMPARE: (
        (PortSpec("A", ValueType.ANY), PortSpec("B", ValueType.ANY)),
        (PortSpec("Result", ValueType.BOOLEAN),),
    ),
    NodeKind.VARIABLE: (
        (),
        (PortSpec("Value", ValueType.ANY),),
    ),
    NodeKind.CONSTANT: (
        (),
        (PortSpec("Value", ValueType.ANY),),
    ),
    NodeKind.IF: (
        (
            PortSpec("Condition", ValueType.BOOLEAN),
            PortSpec("True", ValueType.ANY),
            PortSpec("False", ValueType.ANY),
        ),
        (PortSpec("Result", ValueType.ANY),),
    ),
    NodeKind.RESULT: (
        (PortSpec("Rule", ValueType.ANY),),
        (),
    ),
}


def declared_ports(kind: NodeKind, direction: PortDirection) -> tuple[PortSpec, ...]:
    inputs, outputs = NODE_PORTS[kind]
    return inputs if direction == PortDirection.INPUT else outputs


def port_count(kind: NodeKind, direction: PortDirection) -> int:
    return len(declared_ports(kind, direction))


def output_port_type(node: Node, catalog: TypeCatalog, index: int = 0) -> ValueType:
    """Declared type of output ``index`` of ``node``."""
    payload = node.payload
    if node.kind == NodeKind.VARIABLE:
        return catalog.type_of(payload.key)
    if node.kind == NodeKind.CONSTANT:
        return payload.value_type
    return declared_ports(node.kind, PortDirection.OUTPUT)[index].type


def input_port_type(node: Node, index: int) -> ValueType:
    """Declared type of input ``index`` of ``node``."""
    return declared_ports(node.kind, PortDirection.INPUT)[index].type


def port_type(
    node: Node, direction: PortDirection, index: int, catalog: TypeCatalog
) -> ValueType:
    if direction == PortDirection.OUTPUT:
        return output_port_type(node, catalog, index)
    return input_port_type(node, index)


def types_compatible(from_type: ValueType, to_type: ValueType) -> bool:
    """Ports connect when their types are equal or either side is ``any``."""
    return from_type == ValueType.ANY or to_type == ValueType.ANY or from_type == to_type
