"""
JSON canonicalization for deterministic rule tree output.

Ensures that a compiled rule tree serializes byte-for-byte identically
for the same graph, which the policy service relies on for:
- change detection (hash-based diff of saved policies)
- audit trails (detecting actual semantic changes)
"""

import hashlib
import json
from typing import Any


def canonicalize_json(obj: Any) -> dict | list | Any:
    """
    Produce a deterministic, canonical representation of a JSON object.

    - All dictionary keys are sorted alphabetically
    - Nested structures are recursively canonicalized
    - List order is preserved (operand order is meaningful)

    Example:
        >>> canonicalize_json({"z": 1, "a": {"c": 2, "b": 3}})
        {'a': {'b': 3, 'c': 2}, 'z': 1}
    """
    if isinstance(obj, dict):
        return {k: canonicalize_json(v) for k, v in sorted(obj.items())}

    elif isinstance(obj, list):
        return [canonicalize_json(item) for item in obj]

    else:
        # Primitives (str, int, float, bool, None) pass through unchanged
        return obj


def to_canonical_json_string(obj: Any) -> str:
    """
    Convert a Python object to a canonical JSON string.

    Example:
        >>> to_canonical_json_string({"status_rules": [{">": [{"var": "minutes_late"}, 10]}]})
        '{"status_rules":[{">":[{"var":"minutes_late"},10]}]}'
    """
    canonical = canonicalize_json(obj)
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def to_canonical_json_pretty(obj: Any) -> str:
    """Pretty-printed canonical JSON, for logs and the editor's JSON panel."""
    canonical = canonicalize_json(obj)
    return json.dumps(canonical, sort_keys=True, indent=2, ensure_ascii=False)


def rule_tree_fingerprint(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON string."""
    return hashlib.sha256(to_canonical_json_string(obj).encode("utf-8")).hexdigest()
