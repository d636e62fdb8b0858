"""
Graph Store: the single source of truth for nodes and edges.

Invariants enforced at this boundary:
- every edge runs from an existing output port to an existing input port
- no edge connects a node to itself
- the port types on both ends are compatible (equal, or either is ``any``)
- an input port has at most one incoming edge; connecting to an occupied
  input replaces the previous edge
- no connection may close a cycle

Every failed operation raises a PolicyGraphError subclass and leaves the
graph untouched. Reads are synchronous and always reflect the latest state.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from policy_graph.core.errors import (
    ConflictError,
    CycleDetectedError,
    InvalidConnectionError,
    InvalidPayloadError,
    NotFoundError,
    TypeMismatchError,
)
from policy_graph.core.observability import record_metric
from policy_graph.domain.catalog import TypeCatalog
from policy_graph.domain.enums import NodeKind, PortDirection, ValueType
from policy_graph.domain.models import (
    DEFAULT_CONSTANT_VALUES,
    PAYLOAD_TYPES,
    Edge,
    Node,
    Point,
    PortRef,
    parse_payload,
)
from policy_graph.graph.ports import (
    input_port_type,
    output_port_type,
    port_count,
    types_compatible,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class GraphChange:
    """Describes one committed mutation, passed to subscribers."""

    event: str
    node_id: str | None = None
    edge_id: str | None = None


GraphListener = Callable[[GraphChange], None]


class GraphStore:
    """
    Mutable node and edge sets with invariant-checked operations.

    Nodes and edges keep insertion order; the compiler relies on it to
    emit one status rule per Result node in a stable order.
    """

    def __init__(self, catalog: TypeCatalog, id_factory: Callable[[], str] | None = None):
        self.catalog = catalog
        self._id_factory = id_factory or _new_id
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}
        # (node_id, input index) -> edge id
        self._inputs: dict[tuple[str, int], str] = {}
        self._listeners: list[GraphListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NotFoundError("Node not found", details={"node_id": node_id})
        return node

    def get_edge(self, edge_id: str) -> Edge:
        edge = self._edges.get(edge_id)
        if edge is None:
            raise NotFoundError("Edge not found", details={"edge_id": edge_id})
        return edge

    def nodes_of_kind(self, kind: NodeKind) -> list[Node]:
        return [node for node in self._nodes.values() if node.kind == kind]

    def incoming_edge(self, node_id: str, port_index: int) -> Edge | None:
        """The edge occupying input ``port_index`` of ``node_id``, if any."""
        edge_id = self._inputs.get((node_id, port_index))
        return self._edges[edge_id] if edge_id is not None else None

    def outgoing_edges(self, node_id: str) -> list[Edge]:
        return [edge for edge in self._edges.values() if edge.source.node_id == node_id]

    def output_type(self, node_id: str, port_index: int = 0) -> ValueType:
        return output_port_type(self.get_node(node_id), self.catalog, port_index)

    def input_type(self, node_id: str, port_index: int) -> ValueType:
        return input_port_type(self.get_node(node_id), port_index)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: GraphListener) -> Callable[[], None]:
        """Register ``listener`` for committed changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str, *, node_id: str | None = None, edge_id: str | None = None) -> None:
        change = GraphChange(event=event, node_id=node_id, edge_id=edge_id)
        for listener in list(self._listeners):
            listener(change)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(
        self,
        kind: NodeKind | str,
        position: Point | tuple[float, float] = Point(0.0, 0.0),
        payload: dict[str, Any] | None = None,
        *,
        node_id: str | None = None,
        allow_unknown_variables: bool = False,
    ) -> str:
        """
        Create a node and return its id.

        Args:
            kind: Node kind
            position: World position of the node's top-left corner
            payload: Payload fields; omitted fields take the kind's defaults
            node_id: Explicit id (used when restoring a serialized graph)
            allow_unknown_variables: Accept Variable keys missing from the
                catalog (lenient mode used by the rule importer)

        Raises:
            InvalidPayloadError: If ``kind`` is unknown, or the payload or
                position does not fit it
            ConflictError: If ``node_id`` is already taken
        """
        try:
            kind = NodeKind(kind)
        except ValueError as e:
            raise InvalidPayloadError(
                f"Unknown node kind '{kind}'", details={"kind": str(kind)}
            ) from e
        data = {**self._default_payload(kind), **(payload or {})}
        validated = self._validate_payload(kind, data, allow_unknown_variables)

        node_id = node_id or self._id_factory()
        if node_id in self._nodes:
            raise ConflictError("Node id already exists", details={"node_id": node_id})

        x, y = _position(position)
        self._nodes[node_id] = Node(id=node_id, x=x, y=y, payload=validated)
        logger.debug("Added %s node %s at (%.1f, %.1f)", kind.value, node_id, x, y)
        self._emit("node_added", node_id=node_id)
        return node_id

    def remove_node(self, node_id: str) -> list[Edge]:
        """
        Delete a node and every edge touching it.

        Returns:
            The removed edges
        """
        self.get_node(node_id)
        removed = [edge for edge in self._edges.values() if edge.touches(node_id)]
        for edge in removed:
            self._drop_edge(edge)
        del self._nodes[node_id]
        logger.debug("Removed node %s and %d edges", node_id, len(removed))
        self._emit("node_removed", node_id=node_id)
        return removed

    def move_node(self, node_id: str, position: Point | tuple[float, float]) -> None:
        node = self.get_node(node_id)
        node.x, node.y = _position(position)
        self._emit("node_moved", node_id=node_id)

    def update_payload(self, node_id: str, partial: dict[str, Any]) -> Node:
        """
        Merge ``partial`` into the node's payload.

        Changing a Constant's value type without supplying a value resets
        the value to the type's default. When the update changes the node's
        output type, outgoing edges that no longer type-check are removed.

        Raises:
            NotFoundError: If the node does not exist
            InvalidPayloadError: If the merged payload is invalid
        """
        node = self.get_node(node_id)
        partial = _use_aliases(PAYLOAD_TYPES[node.kind], partial)

        if "kind" in partial and partial["kind"] != node.kind.value:
            raise InvalidPayloadError(
                "Payload update cannot change the node kind",
                details={"node_id": node_id, "kind": node.kind.value},
            )

        current = node.payload.model_dump(mode="json", by_alias=True)
        if (
            node.kind == NodeKind.CONSTANT
            and "valueType" in partial
            and "value" not in partial
            and partial["valueType"] != current["valueType"]
        ):
            partial = {**partial, "value": DEFAULT_CONSTANT_VALUES[ValueType(partial["valueType"])]}

        # Keep leniency for Variable nodes imported with unknown keys
        lenient = node.kind == NodeKind.VARIABLE and "key" not in partial
        validated = self._validate_payload(node.kind, {**current, **partial}, lenient)

        has_output = port_count(node.kind, PortDirection.OUTPUT) > 0
        old_type = output_port_type(node, self.catalog) if has_output else None
        node.payload = validated

        if old_type is not None:
            new_type = output_port_type(node, self.catalog)
            if new_type != old_type:
                self._drop_incompatible_outputs(node, new_type)

        self._emit("payload_updated", node_id=node_id)
        return node

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def connect(
        self, source: PortRef | dict, target: PortRef | dict, *, edge_id: str | None = None
    ) -> str:
        """
        Connect output ``source`` to input ``target`` and return the edge id.

        Any edge already occupying ``target`` is replaced.

        Raises:
            InvalidConnectionError: Unknown node/port, wrong direction or self-loop
            TypeMismatchError: Incompatible port types
            CycleDetectedError: The edge would close a cycle
            ConflictError: If ``edge_id`` is already taken
        """
        try:
            source = _port_ref(source, "from")
            target = _port_ref(target, "to")
            from_type, to_type = self._check_connection(source, target)
        except TypeMismatchError:
            record_metric(lambda m: m.graph_connections_total.labels(outcome="type_mismatch").inc())
            raise
        except CycleDetectedError:
            record_metric(lambda m: m.graph_connections_total.labels(outcome="cycle").inc())
            raise
        except InvalidConnectionError:
            record_metric(lambda m: m.graph_connections_total.labels(outcome="invalid").inc())
            raise

        edge_id = edge_id or self._id_factory()
        if edge_id in self._edges:
            raise ConflictError("Edge id already exists", details={"edge_id": edge_id})

        replaced = self.incoming_edge(target.node_id, target.port_index)
        if replaced is not None:
            self._drop_edge(replaced)

        edge = Edge(id=edge_id, source=source, target=target)
        self._edges[edge_id] = edge
        self._inputs[(target.node_id, target.port_index)] = edge_id

        outcome = "replaced" if replaced is not None else "connected"
        record_metric(lambda m: m.graph_connections_total.labels(outcome=outcome).inc())
        logger.debug(
            "Connected %s[%d] -> %s[%d] (%s -> %s)%s",
            source.node_id,
            source.port_index,
            target.node_id,
            target.port_index,
            from_type.value,
            to_type.value,
            f", replacing {replaced.id}" if replaced else "",
        )
        self._emit("edge_added", edge_id=edge_id)
        return edge_id

    def disconnect(self, edge_id: str) -> Edge:
        edge = self.get_edge(edge_id)
        self._drop_edge(edge)
        self._emit("edge_removed", edge_id=edge_id)
        return edge

    def can_connect(self, source: PortRef | dict, target: PortRef | dict) -> bool:
        """Whether ``connect(source, target)`` would succeed, without mutating."""
        try:
            self._check_connection(_port_ref(source, "from"), _port_ref(target, "to"))
        except InvalidConnectionError:
            return False
        return True

    def would_create_cycle(self, source_node_id: str, target_node_id: str) -> bool:
        """
        Whether an edge source -> target would close a cycle.

        True when ``source`` is reachable from ``target`` by following edges
        forward.
        """
        stack = [target_node_id]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current == source_node_id:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(edge.target.node_id for edge in self.outgoing_edges(current))
        return False

    # ------------------------------------------------------------------
    # Whole-graph operations
    # ------------------------------------------------------------------

    def clear(self) -> None:
        self._nodes.clear()
        self._edges.clear()
        self._inputs.clear()
        self._emit("cleared")

    def to_document(self) -> dict[str, list[dict[str, Any]]]:
        """Serialize to ``{"nodes": [...], "edges": [...]}``."""
        return {
            "nodes": [node.to_document() for node in self._nodes.values()],
            "edges": [edge.to_document() for edge in self._edges.values()],
        }

    @classmethod
    def from_document(
        cls,
        document: dict[str, Any],
        catalog: TypeCatalog,
        *,
        allow_unknown_variables: bool = False,
        id_factory: Callable[[], str] | None = None,
    ) -> GraphStore:
        """
        Rebuild a store from its serialized form.

        Edges go through ``connect`` so every invariant is re-checked.
        """
        store = cls(catalog, id_factory=id_factory)
        for node_doc in document.get("nodes", []):
            store.add_node(
                node_doc["kind"],
                Point(node_doc.get("x", 0.0), node_doc.get("y", 0.0)),
                node_doc.get("payload") or {},
                node_id=node_doc["id"],
                allow_unknown_variables=allow_unknown_variables,
            )
        for edge_doc in document.get("edges", []):
            store.connect(edge_doc["from"], edge_doc["to"], edge_id=edge_doc.get("id"))
        return store

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _default_payload(self, kind: NodeKind) -> dict[str, Any]:
        if kind == NodeKind.VARIABLE:
            default_key = self.catalog.default_key()
            return {"key": default_key} if default_key is not None else {}
        return {}

    def _validate_payload(
        self, kind: NodeKind, data: dict[str, Any], allow_unknown_variables: bool
    ) -> Any:
        try:
            payload = parse_payload(kind, data)
        except ValidationError as e:
            raise InvalidPayloadError(
                f"Invalid payload for {kind.value} node",
                details={
                    "kind": kind.value,
                    "errors": e.errors(
                        include_url=False, include_context=False, include_input=False
                    ),
                },
            ) from e

        if kind == NodeKind.VARIABLE and payload.key not in self.catalog:
            if not allow_unknown_variables:
                raise InvalidPayloadError(
                    f"Unknown variable '{payload.key}'",
                    details={"key": payload.key},
                )
            logger.warning("Unknown variable '%s' accepted in lenient mode", payload.key)
        return payload

    def _check_connection(self, source: PortRef, target: PortRef) -> tuple[ValueType, ValueType]:
        source_node = self._nodes.get(source.node_id)
        target_node = self._nodes.get(target.node_id)
        if source_node is None or target_node is None:
            raise InvalidConnectionError(
                "Connection references a node that does not exist",
                details={"from": source.node_id, "to": target.node_id},
            )

        if source.port_index >= port_count(source_node.kind, PortDirection.OUTPUT):
            raise InvalidConnectionError(
                "Connection source must be an output port",
                details={
                    "node_id": source.node_id,
                    "kind": source_node.kind.value,
                    "port_index": source.port_index,
                },
            )
        if target.port_index >= port_count(target_node.kind, PortDirection.INPUT):
            raise InvalidConnectionError(
                "Connection target must be an input port",
                details={
                    "node_id": target.node_id,
                    "kind": target_node.kind.value,
                    "port_index": target.port_index,
                },
            )

        if source.node_id == target.node_id:
            raise InvalidConnectionError(
                "A node cannot be connected to itself", details={"node_id": source.node_id}
            )

        from_type = output_port_type(source_node, self.catalog, source.port_index)
        to_type = input_port_type(target_node, target.port_index)
        if not types_compatible(from_type, to_type):
            raise TypeMismatchError(
                from_type.value,
                to_type.value,
                details={"from": source.node_id, "to": target.node_id},
            )

        if self.would_create_cycle(source.node_id, target.node_id):
            raise CycleDetectedError(
                "Connection would create a cycle",
                details={"from": source.node_id, "to": target.node_id},
            )

        return from_type, to_type

    def _drop_edge(self, edge: Edge) -> None:
        del self._edges[edge.id]
        key = (edge.target.node_id, edge.target.port_index)
        if self._inputs.get(key) == edge.id:
            del self._inputs[key]

    def _drop_incompatible_outputs(self, node: Node, new_type: ValueType) -> None:
        for edge in self.outgoing_edges(node.id):
            to_type = input_port_type(self._nodes[edge.target.node_id], edge.target.port_index)
            if not types_compatible(new_type, to_type):
                self._drop_edge(edge)
                logger.warning(
                    "Removed edge %s: %s output is now %s, input expects %s",
                    edge.id,
                    node.id,
                    new_type.value,
                    to_type.value,
                )
                self._emit("edge_removed", edge_id=edge.id)


def _use_aliases(payload_cls: type, partial: dict[str, Any]) -> dict[str, Any]:
    """Rewrite field names in ``partial`` to their serialization aliases."""
    result = dict(partial)
    for name, field in payload_cls.model_fields.items():
        if field.alias and name in result:
            result[field.alias] = result.pop(name)
    return result


def serialize_graph(store: GraphStore) -> dict[str, list[dict[str, Any]]]:
    """Graph document ``{"nodes": [...], "edges": [...]}`` for ``store``."""
    return store.to_document()


def deserialize_graph(
    document: dict[str, Any],
    catalog: TypeCatalog,
    *,
    allow_unknown_variables: bool = False,
) -> GraphStore:
    """Build a new store from a graph document, re-checking every edge."""
    return GraphStore.from_document(
        document, catalog, allow_unknown_variables=allow_unknown_variables
    )


def _port_ref(ref: PortRef | dict, role: str) -> PortRef:
    if isinstance(ref, PortRef):
        return ref
    try:
        return PortRef.model_validate(ref)
    except ValidationError as e:
        raise InvalidConnectionError(
            f"Invalid '{role}' port reference",
            details={
                "port": role,
                "errors": e.errors(include_url=False, include_context=False, include_input=False),
            },
        ) from e


def _position(position: Point | tuple[float, float]) -> tuple[float, float]:
    try:
        x, y = position
        return float(x), float(y)
    except (TypeError, ValueError) as e:
        raise InvalidPayloadError(
            "Node position must be a pair of numbers", details={"position": repr(position)}
        ) from e
