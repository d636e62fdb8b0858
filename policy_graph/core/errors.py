"""
Domain-specific exceptions for the attendance policy graph editor.

These exceptions represent editing and compilation violations. The editor
session turns them into user-visible warnings; the API layer maps them
to appropriate HTTP status codes.
"""

from typing import Any


class PolicyGraphError(Exception):
    """Base exception for all policy graph domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidConnectionError(PolicyGraphError):
    """
    Raised when a connection request is structurally invalid.

    Examples:
    - Source and target are the same node (self-loop)
    - Source is not an output port or target is not an input port
    - Reference to a node or port index that does not exist

    HTTP Status: 422 Unprocessable Entity
    """

    pass


class TypeMismatchError(InvalidConnectionError):
    """
    Raised when the declared types of the two ports are incompatible.

    Two port types are compatible when they are equal or either is ``any``.

    HTTP Status: 422 Unprocessable Entity
    """

    def __init__(self, from_type: str, to_type: str, details: dict[str, Any] | None = None):
        self.from_type = from_type
        self.to_type = to_type
        super().__init__(
            f"Type mismatch: cannot connect {from_type} to {to_type}",
            details={"from_type": from_type, "to_type": to_type, **(details or {})},
        )


class CycleDetectedError(InvalidConnectionError):
    """
    Raised when a connection would close a cycle in the graph.

    The rule compiler walks edges backward from each Result node, so a
    cycle would never terminate.

    HTTP Status: 409 Conflict
    """

    pass


class NotFoundError(PolicyGraphError):
    """
    Raised when a referenced node or edge does not exist.

    Examples:
    - Removing a node that was already deleted
    - Updating the payload of an unknown node id
    - Disconnecting an unknown edge id

    HTTP Status: 404 Not Found
    """

    pass


class ConflictError(PolicyGraphError):
    """
    Raised when an operation conflicts with current graph state.

    Examples:
    - Inserting a node or edge with an id that is already taken

    HTTP Status: 409 Conflict
    """

    pass


class InvalidPayloadError(PolicyGraphError):
    """
    Raised when a payload update does not fit the node kind.

    Examples:
    - Setting ``operator`` on a Variable node
    - Constant literal that does not match its value type
    - Variable key that is not in the type catalog

    HTTP Status: 400 Bad Request
    """

    pass


class MalformedRuleTreeError(PolicyGraphError):
    """
    Raised when a rule tree document cannot be used.

    Individual unrecognized fragments are recovered by the importer;
    this error covers documents that are unusable as a whole, and
    strict validation failures.

    HTTP Status: 422 Unprocessable Entity
    """

    pass


# HTTP Status Code Mapping
ERROR_STATUS_MAP = {
    InvalidConnectionError: 422,
    TypeMismatchError: 422,
    CycleDetectedError: 409,
    NotFoundError: 404,
    ConflictError: 409,
    InvalidPayloadError: 400,
    MalformedRuleTreeError: 422,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    return ERROR_STATUS_MAP.get(type(error), 500)
