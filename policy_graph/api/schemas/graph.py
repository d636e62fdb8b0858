from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from policy_graph.domain.enums import NodeKind, ValueType


class PortRefDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(alias="nodeId")
    port_index: int = Field(alias="portIndex", ge=0)


class NodeDocument(BaseModel):
    id: str
    kind: NodeKind
    x: float = 0.0
    y: float = 0.0
    payload: dict[str, Any] = Field(default_factory=dict)


class EdgeDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    source: PortRefDocument = Field(alias="from")
    target: PortRefDocument = Field(alias="to")


class GraphDocument(BaseModel):
    """Serialized editor graph: ``{"nodes": [...], "edges": [...]}``."""

    nodes: list[NodeDocument] = Field(default_factory=list)
    edges: list[EdgeDocument] = Field(default_factory=list)

    def to_store_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class VariableResponse(BaseModel):
    label: str
    key: str
    type: ValueType
