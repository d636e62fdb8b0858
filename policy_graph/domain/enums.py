"""
Domain enums for the policy graph.

String values match the rule tree wire format and the graph
serialization shape, so enum members can be dumped directly.
"""

from enum import Enum


class NodeKind(str, Enum):
    """Kind of a graph node. Determines its payload and declared ports."""

    LOGIC = "Logic"
    COMPARE = "Compare"
    VARIABLE = "Variable"
    CONSTANT = "Constant"
    IF = "If"
    RESULT = "Result"


class ValueType(str, Enum):
    """
    Declared type of a port or a catalog variable.

    ANY is only used for ports; catalog variables and constants always
    carry a concrete type.
    """

    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"
    ANY = "any"


class PortDirection(str, Enum):
    """Direction of a port on a node."""

    INPUT = "input"
    OUTPUT = "output"


class LogicOperator(str, Enum):
    """Boolean operators of a Logic node. Values are rule tree symbols."""

    AND = "and"
    OR = "or"
    NOT = "not"


class CompareOperator(str, Enum):
    """Comparison operators of a Compare node. Values are rule tree symbols."""

    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    EQ = "=="
    NEQ = "!="


# Symbols that compile to {"<symbol>": [left, right]}
BINARY_LOGIC_SYMBOLS = frozenset({LogicOperator.AND.value, LogicOperator.OR.value})
COMPARE_SYMBOLS = frozenset(op.value for op in CompareOperator)
