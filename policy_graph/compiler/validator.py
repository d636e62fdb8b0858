"""
Rule tree validation.

Validates that a rule tree document matches the wire contract of the
policy evaluator and is type-correct against the type catalog:
- the document is ``{"status_rules": [<rule>, ...]}``
- every rule has one of the recognized shapes
- every ``{"var": key}`` references a catalog variable
- logic operands and if-conditions are boolean

The importer is lenient and recovers from bad fragments; this validator
is the strict gate used before a policy is handed to the evaluator.
"""

import logging
from typing import Any

from policy_graph.core.errors import MalformedRuleTreeError
from policy_graph.domain.catalog import TypeCatalog
from policy_graph.domain.enums import BINARY_LOGIC_SYMBOLS, COMPARE_SYMBOLS, ValueType
from policy_graph.domain.models import literal_type

logger = logging.getLogger(__name__)


def require_status_rules(document: Any) -> list[Any]:
    """
    Return the ``status_rules`` list of a rule tree document.

    Raises:
        MalformedRuleTreeError: If the document is not an object holding a
            ``status_rules`` list
    """
    if not isinstance(document, dict):
        raise MalformedRuleTreeError(
            "Rule tree must be an object", details={"type": type(document).__name__}
        )
    if "status_rules" not in document:
        raise MalformedRuleTreeError(
            "Rule tree is missing 'status_rules'", details={"keys": sorted(document.keys())}
        )
    status_rules = document["status_rules"]
    if not isinstance(status_rules, list):
        raise MalformedRuleTreeError(
            "'status_rules' must be a list",
            details={"type": type(status_rules).__name__},
        )
    return status_rules


def validate_rule_tree(
    document: Any, catalog: TypeCatalog, allow_unknown_variables: bool = False
) -> list[ValueType]:
    """
    Validate a rule tree document.

    Args:
        document: Parsed JSON document
        catalog: Type catalog for ``var`` references
        allow_unknown_variables: If True, unknown variables are typed ``any``
            and only logged (lenient mode)

    Returns:
        The inferred value type of each status rule

    Raises:
        MalformedRuleTreeError: On the first problem found, with its JSONPath

    Example:
        >>> validate_rule_tree({"status_rules": [{">": [{"var": "minutes_late"}, 10]}]}, catalog)
        [<ValueType.BOOLEAN: 'boolean'>]
    """
    status_rules = require_status_rules(document)
    return [
        _validate_rule(rule, catalog, f"$.status_rules[{i}]", allow_unknown_variables)
        for i, rule in enumerate(status_rules)
    ]


def _validate_rule(
    rule: Any, catalog: TypeCatalog, path: str, allow_unknown_variables: bool
) -> ValueType:
    """
    Recursively validate one rule and infer its value type.

    Raises:
        MalformedRuleTreeError: If validation fails at this node
    """
    value_type = literal_type(rule)
    if value_type is not None:
        return value_type

    if rule is None:
        raise MalformedRuleTreeError(
            f"Missing operand at {path}", details={"path": path}
        )

    if not isinstance(rule, dict) or len(rule) != 1:
        raise MalformedRuleTreeError(
            f"Invalid rule at {path}: must be a literal or an object with exactly one operator",
            details={
                "path": path,
                "type": type(rule).__name__,
                "keys": sorted(rule.keys()) if isinstance(rule, dict) else None,
            },
        )

    (operator, args), = rule.items()

    if operator == "var":
        return _validate_var(args, catalog, path, allow_unknown_variables)

    if operator == "not":
        operand = args[0] if isinstance(args, list) and len(args) == 1 else args
        _expect_boolean(
            _validate_rule(operand, catalog, f"{path}.not", allow_unknown_variables),
            f"{path}.not",
        )
        return ValueType.BOOLEAN

    if operator in BINARY_LOGIC_SYMBOLS or operator in COMPARE_SYMBOLS:
        operands = _expect_operands(args, 2, operator, path)
        types = [
            _validate_rule(operand, catalog, f"{path}.{operator}[{i}]", allow_unknown_variables)
            for i, operand in enumerate(operands)
        ]
        if operator in BINARY_LOGIC_SYMBOLS:
            for i, operand_type in enumerate(types):
                _expect_boolean(operand_type, f"{path}.{operator}[{i}]")
        return ValueType.BOOLEAN

    if operator == "if":
        condition, when_true, when_false = _expect_operands(args, 3, operator, path)
        _expect_boolean(
            _validate_rule(condition, catalog, f"{path}.if[0]", allow_unknown_variables),
            f"{path}.if[0]",
        )
        branch_types = [
            _validate_branch(branch, catalog, f"{path}.if[{i}]", allow_unknown_variables)
            for i, branch in ((1, when_true), (2, when_false))
        ]
        if branch_types[0] == branch_types[1]:
            return branch_types[0]
        return ValueType.ANY

    raise MalformedRuleTreeError(
        f"Unknown operator '{operator}' at {path}",
        details={"path": path, "operator": operator},
    )


def _validate_branch(
    branch: Any, catalog: TypeCatalog, path: str, allow_unknown_variables: bool
) -> ValueType:
    # A null branch means "no status" and is a valid outcome
    if branch is None:
        return ValueType.ANY
    return _validate_rule(branch, catalog, path, allow_unknown_variables)


def _validate_var(
    args: Any, catalog: TypeCatalog, path: str, allow_unknown_variables: bool
) -> ValueType:
    key = args[0] if isinstance(args, list) and args else args
    if not isinstance(key, str) or not key:
        raise MalformedRuleTreeError(
            f"'var' must name a variable at {path}",
            details={"path": path, "var": args},
        )
    if key not in catalog:
        if allow_unknown_variables:
            logger.warning("Unknown variable '%s' at %s - typed as any", key, path)
            return ValueType.ANY
        raise MalformedRuleTreeError(
            f"Unknown variable '{key}' at {path}", details={"path": path, "var": key}
        )
    return catalog.type_of(key)


def _expect_operands(args: Any, count: int, operator: str, path: str) -> list[Any]:
    if not isinstance(args, list) or len(args) != count:
        raise MalformedRuleTreeError(
            f"'{operator}' requires exactly {count} operands at {path}",
            details={
                "path": path,
                "operator": operator,
                "operand_count": len(args) if isinstance(args, list) else None,
            },
        )
    return args


def _expect_boolean(value_type: ValueType, path: str) -> None:
    if value_type not in (ValueType.BOOLEAN, ValueType.ANY):
        raise MalformedRuleTreeError(
            f"Expected a boolean at {path}, got {value_type.value}",
            details={"path": path, "expected_type": "boolean", "actual_type": value_type.value},
        )
