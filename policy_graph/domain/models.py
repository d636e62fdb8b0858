"""
Graph data model: nodes, typed payloads, port references and edges.

A node's payload is a tagged union keyed by ``kind``, so a payload can
never carry fields that belong to another node kind. Models dump to the
editor-session serialization shape::

    node: {"id", "kind", "x", "y", "payload"}
    edge: {"id", "from": {"nodeId", "portIndex"}, "to": {"nodeId", "portIndex"}}
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from policy_graph.domain.enums import CompareOperator, LogicOperator, NodeKind, ValueType


class Point(NamedTuple):
    """A 2D position, in world or screen coordinates depending on context."""

    x: float
    y: float


# =============================================================================
# Payloads
# =============================================================================


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class LogicPayload(_Payload):
    kind: Literal["Logic"] = "Logic"
    operator: LogicOperator = LogicOperator.AND


class ComparePayload(_Payload):
    kind: Literal["Compare"] = "Compare"
    operator: CompareOperator = CompareOperator.GT


class VariablePayload(_Payload):
    kind: Literal["Variable"] = "Variable"
    key: str


DEFAULT_CONSTANT_VALUES: dict[ValueType, bool | int | float | str] = {
    ValueType.NUMBER: 0,
    ValueType.STRING: "",
    ValueType.BOOLEAN: False,
}


def literal_type(value: Any) -> ValueType | None:
    """Value type of a JSON literal, or None when it is not a literal."""
    # bool is a subclass of int; test it first
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueType.NUMBER
    if isinstance(value, str):
        return ValueType.STRING
    return None


class ConstantPayload(_Payload):
    kind: Literal["Constant"] = "Constant"
    value_type: ValueType = Field(default=ValueType.NUMBER, alias="valueType")
    value: bool | int | float | str = 0

    @field_validator("value_type")
    @classmethod
    def validate_concrete_type(cls, v: ValueType) -> ValueType:
        if v == ValueType.ANY:
            raise ValueError("constants must be number, string or boolean")
        return v

    @model_validator(mode="after")
    def validate_value_matches_type(self) -> ConstantPayload:
        actual = literal_type(self.value)
        if actual != self.value_type:
            raise ValueError(
                f"Constant value {self.value!r} does not match value type "
                f"'{self.value_type.value}'"
            )
        return self


class IfPayload(_Payload):
    kind: Literal["If"] = "If"


class ResultPayload(_Payload):
    kind: Literal["Result"] = "Result"


NodePayload = Annotated[
    Union[
        LogicPayload,
        ComparePayload,
        VariablePayload,
        ConstantPayload,
        IfPayload,
        ResultPayload,
    ],
    Field(discriminator="kind"),
]

PAYLOAD_TYPES: dict[NodeKind, type[_Payload]] = {
    NodeKind.LOGIC: LogicPayload,
    NodeKind.COMPARE: ComparePayload,
    NodeKind.VARIABLE: VariablePayload,
    NodeKind.CONSTANT: ConstantPayload,
    NodeKind.IF: IfPayload,
    NodeKind.RESULT: ResultPayload,
}

_payload_adapter: TypeAdapter[Any] = TypeAdapter(NodePayload)


def parse_payload(kind: NodeKind | str, data: dict[str, Any] | None) -> Any:
    """Validate ``data`` as the payload of a node of ``kind``."""
    return _payload_adapter.validate_python({**(data or {}), "kind": NodeKind(kind).value})


def payload_fields(payload: Any) -> dict[str, Any]:
    """Payload as a JSON-ready dict without the ``kind`` tag."""
    data = payload.model_dump(mode="json", by_alias=True)
    data.pop("kind", None)
    return data


# =============================================================================
# Nodes and edges
# =============================================================================


class Node(BaseModel):
    """A typed unit in the graph. Position is in world coordinates."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    x: float = 0.0
    y: float = 0.0
    payload: NodePayload

    @property
    def kind(self) -> NodeKind:
        return NodeKind(self.payload.kind)

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "x": self.x,
            "y": self.y,
            "payload": payload_fields(self.payload),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Node:
        return cls(
            id=document["id"],
            x=document.get("x", 0.0),
            y=document.get("y", 0.0),
            payload=parse_payload(document["kind"], document.get("payload")),
        )


class PortRef(BaseModel):
    """Reference to a port: a node id plus the index within one direction."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    node_id: str = Field(alias="nodeId")
    port_index: int = Field(alias="portIndex", ge=0)


class Edge(BaseModel):
    """A directed connection from an output port to an input port."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    source: PortRef = Field(alias="from")
    target: PortRef = Field(alias="to")

    def touches(self, node_id: str) -> bool:
        return self.source.node_id == node_id or self.target.node_id == node_id

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
