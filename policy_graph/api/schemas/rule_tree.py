from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from policy_graph.api.schemas.graph import GraphDocument
from policy_graph.core.config import settings
from policy_graph.core.validators import validate_rule_tree_depth, validate_rule_tree_node_count
from policy_graph.domain.enums import ValueType


class RuleTreeDocument(BaseModel):
    """The rule tree interchange document consumed by the policy evaluator."""

    status_rules: list[Any] = Field(
        description="One rule per Result node, in node order",
    )

    @field_validator("status_rules")
    @classmethod
    def validate_size(cls, v: list[Any]) -> list[Any]:
        """Bound depth and node count before the tree is walked."""
        validate_rule_tree_depth(v, max_depth=settings.max_rule_tree_depth)
        validate_rule_tree_node_count(v, max_nodes=settings.max_rule_tree_nodes)
        return v


class CompileResponse(BaseModel):
    rule_tree: dict[str, list[Any]]
    fingerprint: str = Field(description="SHA-256 of the canonical rule tree JSON")


class ImportIssueResponse(BaseModel):
    path: str
    message: str


class ImportResponse(BaseModel):
    graph: GraphDocument
    issues: list[ImportIssueResponse] = Field(default_factory=list)


class ValidateResponse(BaseModel):
    valid: bool
    rule_types: list[ValueType] = Field(
        default_factory=list, description="Inferred value type of each status rule"
    )
