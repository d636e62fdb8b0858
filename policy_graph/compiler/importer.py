"""
Rule Importer: rule tree -> graph.

Inverse of the compiler, performed top-down. Every ``status_rules[i]``
becomes one Result node with its subtree laid out to the left of it:

- literals become Constant nodes
- ``{"var": key}`` becomes a Variable node
- binary logic / compare symbols become Logic / Compare nodes with both
  operand subtrees wired to inputs 0 and 1
- ``{"not": x}`` becomes a Logic(not) node
- ``{"if": [c, t, f]}`` becomes an If node wired to inputs 0, 1 and 2

The importer never fails on a bad fragment. Anything it cannot map is
imported as a string Constant holding the fragment's canonical JSON, and
reported as an ImportIssue so the rest of the policy stays editable.
Only a document that is not ``{"status_rules": [...]}`` at all is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from policy_graph.compiler.canonicalizer import to_canonical_json_string
from policy_graph.compiler.validator import require_status_rules
from policy_graph.core.errors import InvalidConnectionError, MalformedRuleTreeError
from policy_graph.core.notifications import NotificationSink, notify
from policy_graph.core.observability import record_metric
from policy_graph.domain.catalog import TypeCatalog
from policy_graph.domain.enums import (
    BINARY_LOGIC_SYMBOLS,
    COMPARE_SYMBOLS,
    LogicOperator,
    NodeKind,
    ValueType,
)
from policy_graph.domain.models import Point, PortRef, literal_type
from policy_graph.graph.store import GraphStore

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_SPACING = 250.0
DEFAULT_ROW_SPACING = 100.0
DEFAULT_RESULT_X = 900.0
LAYOUT_TOP = 100.0


@dataclass(frozen=True)
class ImportIssue:
    """A fragment that was recovered rather than imported as written."""

    path: str
    message: str


@dataclass
class ImportResult:
    store: GraphStore
    issues: list[ImportIssue] = field(default_factory=list)
    result_node_ids: list[str] = field(default_factory=list)


@dataclass
class _Fragment:
    """A planned node: kind, payload, and one entry per input (None = unwired)."""

    kind: NodeKind
    payload: dict[str, Any]
    path: str
    inputs: list[_Fragment | None] = field(default_factory=list)

    def leaf_count(self) -> int:
        return max(1, sum(child.leaf_count() for child in self.inputs if child is not None))


class RuleTreeImporter:
    """
    Rebuilds a graph from a rule tree document.

    Import runs in two passes: the document is first planned into a tree
    of fragments (where all recovery happens), then the fragments are
    laid out in vertical bands sized by their leaf count and created in
    the store, children before parents.
    """

    def __init__(
        self,
        catalog: TypeCatalog,
        *,
        column_spacing: float = DEFAULT_COLUMN_SPACING,
        row_spacing: float = DEFAULT_ROW_SPACING,
        result_x: float = DEFAULT_RESULT_X,
        allow_unknown_variables: bool = True,
        notifier: NotificationSink | None = None,
    ) -> None:
        self.catalog = catalog
        self.column_spacing = column_spacing
        self.row_spacing = row_spacing
        self.result_x = result_x
        self.allow_unknown_variables = allow_unknown_variables
        self.notifier = notifier
        self._issues: list[ImportIssue] = []

    def import_document(self, document: Any, store: GraphStore | None = None) -> ImportResult:
        """
        Import ``document`` into ``store`` (cleared first) or into a new store.

        Raises:
            MalformedRuleTreeError: If the document has no ``status_rules`` list.
                The store is left untouched in that case.
        """
        try:
            status_rules = require_status_rules(document)
        except MalformedRuleTreeError:
            record_metric(lambda m: m.importer_imports_total.labels(status="rejected").inc())
            raise

        self._issues = []
        plans = [
            self._plan(rule, f"$.status_rules[{i}]") for i, rule in enumerate(status_rules)
        ]

        if store is None:
            store = GraphStore(self.catalog)
        else:
            store.clear()

        result = ImportResult(store=store, issues=self._issues)
        top = LAYOUT_TOP
        for plan in plans:
            slots = plan.leaf_count() if plan is not None else 1
            if plan is None:
                result_y = top
                root_id = None
            else:
                root_id = self._place(store, plan, depth=1, top=top)
                result_y = store.get_node(root_id).y

            result_id = store.add_node(NodeKind.RESULT, Point(self.result_x, result_y))
            if root_id is not None:
                self._wire(store, root_id, result_id, 0, plan.path)
            result.result_node_ids.append(result_id)
            top += (slots + 1) * self.row_spacing

        issue_count = len(self._issues)
        record_metric(lambda m: m.importer_imports_total.labels(status="success").inc())
        if issue_count:
            record_metric(lambda m: m.importer_issues_total.inc(issue_count))
            notify(
                "rule_tree_import_recovered",
                f"{issue_count} rule fragment(s) could not be imported as written",
                details={"issues": [issue.path for issue in self._issues]},
                sink=self.notifier,
            )

        logger.info(
            "Imported %d status rules into %d nodes (%d issues)",
            len(plans),
            len(store),
            issue_count,
        )
        return result

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _issue(self, path: str, message: str) -> None:
        logger.debug("Import issue at %s: %s", path, message)
        self._issues.append(ImportIssue(path=path, message=message))

    def _placeholder(self, rule: Any, path: str, message: str) -> _Fragment:
        self._issue(path, message)
        return _Fragment(
            kind=NodeKind.CONSTANT,
            payload={"valueType": ValueType.STRING.value, "value": to_canonical_json_string(rule)},
            path=path,
        )

    def _plan(self, rule: Any, path: str) -> _Fragment | None:
        if rule is None:
            return None

        value_type = literal_type(rule)
        if value_type is not None:
            return _Fragment(
                kind=NodeKind.CONSTANT,
                payload={"valueType": value_type.value, "value": rule},
                path=path,
            )

        if not isinstance(rule, dict) or len(rule) != 1:
            return self._placeholder(rule, path, "Unrecognized rule shape")

        operator, args = next(iter(rule.items()))

        if operator == "var":
            return self._plan_var(rule, args, path)
        if operator == "not":
            return self._plan_not(rule, args, path)
        if operator in BINARY_LOGIC_SYMBOLS:
            return self._plan_logic(rule, operator, args, path)
        if operator in COMPARE_SYMBOLS:
            if not isinstance(args, list) or len(args) != 2:
                return self._placeholder(rule, path, f"'{operator}' requires exactly 2 operands")
            return _Fragment(
                kind=NodeKind.COMPARE,
                payload={"operator": operator},
                path=path,
                inputs=[self._plan(arg, f"{path}.{operator}[{i}]") for i, arg in enumerate(args)],
            )
        if operator == "if":
            return self._plan_if(rule, args, path)

        return self._placeholder(rule, path, f"Unknown operator '{operator}'")

    def _plan_var(self, rule: Any, args: Any, path: str) -> _Fragment:
        # {"var": [key, default]} carries an evaluator-side default we cannot represent
        key = args[0] if isinstance(args, list) and args else args
        if not isinstance(key, str) or not key:
            return self._placeholder(rule, path, "'var' must name a variable")
        if isinstance(args, list) and len(args) > 1:
            self._issue(path, f"Default value of variable '{key}' dropped")
        if key not in self.catalog:
            if not self.allow_unknown_variables:
                return self._placeholder(rule, path, f"Unknown variable '{key}'")
            self._issue(path, f"Unknown variable '{key}' imported with type any")
        return _Fragment(kind=NodeKind.VARIABLE, payload={"key": key}, path=path)

    def _plan_not(self, rule: Any, args: Any, path: str) -> _Fragment:
        if isinstance(args, list):
            if len(args) != 1:
                return self._placeholder(rule, path, "'not' requires exactly 1 operand")
            args = args[0]
        return _Fragment(
            kind=NodeKind.LOGIC,
            payload={"operator": LogicOperator.NOT.value},
            path=path,
            inputs=[self._plan(args, f"{path}.not")],
        )

    def _plan_logic(self, rule: Any, operator: str, args: Any, path: str) -> _Fragment | None:
        if not isinstance(args, list) or not args:
            return self._placeholder(rule, path, f"'{operator}' requires a list of operands")

        operands = [self._plan(arg, f"{path}.{operator}[{i}]") for i, arg in enumerate(args)]
        if len(operands) == 1:
            if operands[0] is None:
                # the Result must stay wired
                self._issue(path, f"Single null operand of '{operator}' left unwired")
                return _Fragment(
                    kind=NodeKind.LOGIC,
                    payload={"operator": operator},
                    path=path,
                    inputs=[None, None],
                )
            self._issue(path, f"Single-operand '{operator}' unwrapped")
            return operands[0]
        if len(operands) > 2:
            self._issue(path, f"{len(operands)}-operand '{operator}' folded into binary nodes")

        # a and b and c -> ((a and b) and c)
        folded = _Fragment(
            kind=NodeKind.LOGIC, payload={"operator": operator}, path=path, inputs=operands[:2]
        )
        for operand in operands[2:]:
            folded = _Fragment(
                kind=NodeKind.LOGIC,
                payload={"operator": operator},
                path=path,
                inputs=[folded, operand],
            )
        return folded

    def _plan_if(self, rule: Any, args: Any, path: str) -> _Fragment:
        if not isinstance(args, list) or len(args) < 2:
            return self._placeholder(rule, path, "'if' requires at least 2 operands")

        if len(args) > 3:
            # Else-if chain: [c1, t1, c2, t2, ..., else] -> nested ifs on the false branch
            self._issue(path, f"{len(args)}-operand 'if' folded into nested if nodes")
            nested = self._plan_if({"if": args[2:]}, args[2:], f"{path}.if[2:]")
            inputs = [
                self._plan(args[0], f"{path}.if[0]"),
                self._plan(args[1], f"{path}.if[1]"),
                nested,
            ]
        else:
            inputs = [self._plan(arg, f"{path}.if[{i}]") for i, arg in enumerate(args)]
            while len(inputs) < 3:
                inputs.append(None)

        # Unwired If inputs compile to defaults; only some of those differ from null
        if args[0] is None:
            self._issue(f"{path}.if[0]", "Null condition left unwired (compiles to true)")
        if args[1] is None:
            self._issue(f"{path}.if[1]", "Null true-branch left unwired (compiles to \"PRESENT\")")

        return _Fragment(kind=NodeKind.IF, payload={}, path=path, inputs=inputs)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def _place(self, store: GraphStore, plan: _Fragment, depth: int, top: float) -> str:
        """Create ``plan`` and its inputs in the band starting at ``top``; returns the node id."""
        child_ids: list[tuple[int, str, str]] = []
        child_top = top
        for index, child in enumerate(plan.inputs):
            if child is None:
                continue
            child_ids.append((index, self._place(store, child, depth + 1, child_top), child.path))
            child_top += child.leaf_count() * self.row_spacing

        position = Point(
            self.result_x - depth * self.column_spacing,
            top + (plan.leaf_count() - 1) * self.row_spacing / 2,
        )
        node_id = store.add_node(
            plan.kind,
            position,
            plan.payload,
            allow_unknown_variables=self.allow_unknown_variables,
        )
        for index, child_id, child_path in child_ids:
            self._wire(store, child_id, node_id, index, child_path)
        return node_id

    def _wire(
        self, store: GraphStore, source_id: str, target_id: str, index: int, path: str
    ) -> None:
        try:
            store.connect(
                PortRef(node_id=source_id, port_index=0),
                PortRef(node_id=target_id, port_index=index),
            )
        except InvalidConnectionError as e:
            self._issue(path, f"{e.message}; operand left unwired")


def import_rule_tree(
    document: Any,
    catalog: TypeCatalog,
    *,
    store: GraphStore | None = None,
    column_spacing: float = DEFAULT_COLUMN_SPACING,
    row_spacing: float = DEFAULT_ROW_SPACING,
    result_x: float = DEFAULT_RESULT_X,
    allow_unknown_variables: bool = True,
    notifier: NotificationSink | None = None,
) -> ImportResult:
    """
    Import a rule tree document into a graph.

    Example:
        >>> rule = {">": [{"var": "minutes_late"}, 10]}
        >>> result = import_rule_tree({"status_rules": [rule]}, catalog)
        >>> [node.kind.value for node in result.store.nodes]
        ['Variable', 'Constant', 'Compare', 'Result']
    """
    importer = RuleTreeImporter(
        catalog,
        column_spacing=column_spacing,
        row_spacing=row_spacing,
        result_x=result_x,
        allow_unknown_variables=allow_unknown_variables,
        notifier=notifier,
    )
    return importer.import_document(document, store=store)
