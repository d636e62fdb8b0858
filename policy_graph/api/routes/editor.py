"""
Editor endpoints.

Stateless adapters over the core: each request builds a graph (or rule
tree) from its body, runs one core operation and returns the result.
Domain errors propagate to the application's PolicyGraphError handler.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from policy_graph.api.schemas.graph import GraphDocument, VariableResponse
from policy_graph.api.schemas.rule_tree import (
    CompileResponse,
    ImportIssueResponse,
    ImportResponse,
    RuleTreeDocument,
    ValidateResponse,
)
from policy_graph.compiler.canonicalizer import rule_tree_fingerprint
from policy_graph.compiler.compiler import compile_graph
from policy_graph.compiler.importer import import_rule_tree
from policy_graph.compiler.validator import validate_rule_tree
from policy_graph.core.config import settings
from policy_graph.core.dependencies import CatalogDep
from policy_graph.graph.store import deserialize_graph, serialize_graph

logger = logging.getLogger(__name__)

router = APIRouter(tags=["editor"])


@router.get("/variables", response_model=list[VariableResponse])
def list_variables(catalog: CatalogDep):
    """Variables available to Variable nodes, in catalog order."""
    return [entry.model_dump(mode="json") for entry in catalog]


@router.post("/graph/compile", response_model=CompileResponse)
def post_compile(payload: GraphDocument, catalog: CatalogDep):
    """
    Compile a graph document into a rule tree.

    Every edge is re-checked on load, so a graph with a type mismatch,
    a self-loop or a cycle is rejected rather than compiled.
    """
    store = deserialize_graph(payload.to_store_document(), catalog)
    rule_tree = compile_graph(store)
    return {"rule_tree": rule_tree, "fingerprint": rule_tree_fingerprint(rule_tree)}


@router.post("/rules/import", response_model=ImportResponse)
def post_import(payload: RuleTreeDocument, catalog: CatalogDep):
    """
    Import a rule tree into a laid-out graph document.

    Unrecognized fragments are recovered and listed in ``issues``.
    """
    result = import_rule_tree(
        payload.model_dump(mode="json"),
        catalog,
        column_spacing=settings.import_column_spacing,
        row_spacing=settings.import_row_spacing,
        result_x=settings.import_result_x,
        allow_unknown_variables=settings.allow_unknown_variables_on_import,
    )
    return {
        "graph": serialize_graph(result.store),
        "issues": [
            ImportIssueResponse(path=issue.path, message=issue.message) for issue in result.issues
        ],
    }


@router.post("/rules/validate", response_model=ValidateResponse)
def post_validate(payload: RuleTreeDocument, catalog: CatalogDep):
    """Strictly validate a rule tree against the catalog."""
    rule_types = validate_rule_tree(payload.model_dump(mode="json"), catalog)
    return {"valid": True, "rule_types": rule_types}
