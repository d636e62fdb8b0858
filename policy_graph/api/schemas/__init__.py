"""
Pydantic schemas for API request/response validation.

This package contains schema definitions for the graph document and the
rule tree document used in API endpoints.
"""

# Re-export schemas for convenient imports.
from .graph import (
    GraphDocument as GraphDocument,
)
from .graph import (
    VariableResponse as VariableResponse,
)
from .rule_tree import (
    CompileResponse as CompileResponse,
)
from .rule_tree import (
    ImportResponse as ImportResponse,
)
from .rule_tree import (
    RuleTreeDocument as RuleTreeDocument,
)
from .rule_tree import (
    ValidateResponse as ValidateResponse,
)
