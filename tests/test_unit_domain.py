"""
Unit tests for the domain layer: Type Catalog and node payload models.

Tests cover:
- Built-in attendance catalog contents and lookups
- Catalog loading from records and files, duplicate / invalid entries
- Tagged payload validation per node kind
- Constant literal / valueType agreement
- Node and edge serialization shapes
"""

import json

import pytest
from pydantic import ValidationError

from policy_graph.domain.catalog import CatalogEntry, TypeCatalog, load_catalog
from policy_graph.domain.enums import CompareOperator, LogicOperator, NodeKind, ValueType
from policy_graph.domain.models import (
    ConstantPayload,
    Edge,
    Node,
    literal_type,
    parse_payload,
    payload_fields,
)

# =============================================================================
# Type Catalog
# =============================================================================


class TestTypeCatalog:
    """Tests for the variable type catalog."""

    def test_default_catalog_keys_in_order(self, catalog):
        assert [entry.key for entry in catalog] == [
            "minutes_late",
            "total_hours",
            "total_hours_today",
            "first_time_in_hour",
            "last_time_out_hour",
            "is_first_session",
        ]

    def test_type_of_known_keys(self, catalog):
        assert catalog.type_of("minutes_late") == ValueType.NUMBER
        assert catalog.type_of("is_first_session") == ValueType.BOOLEAN

    def test_type_of_unknown_key_is_any(self, catalog):
        """Unknown keys resolve to any so imported trees stay connectable."""
        assert catalog.type_of("overtime_minutes") == ValueType.ANY

    def test_contains_and_get(self, catalog):
        assert "total_hours" in catalog
        assert "nope" not in catalog
        assert catalog.get("total_hours").label == "Total Hours"
        assert catalog.get("nope") is None

    def test_default_key_is_first_entry(self, catalog):
        assert catalog.default_key() == "minutes_late"

    def test_empty_catalog_has_no_default_key(self):
        assert TypeCatalog([]).default_key() is None

    def test_duplicate_keys_rejected(self):
        entry = CatalogEntry(label="A", key="a", type=ValueType.NUMBER)
        with pytest.raises(ValueError, match="Duplicate catalog key"):
            TypeCatalog([entry, entry])

    def test_catalog_entry_rejects_any(self):
        with pytest.raises(ValidationError):
            CatalogEntry(label="A", key="a", type=ValueType.ANY)

    def test_catalog_entry_rejects_blank_key(self):
        with pytest.raises(ValidationError):
            CatalogEntry(label="A", key="  ", type=ValueType.NUMBER)

    def test_from_records(self):
        catalog = TypeCatalog.from_records(
            [
                {"label": "Shift Code", "key": "shift_code", "type": "string"},
                {"label": "On Leave", "key": "on_leave", "type": "boolean"},
            ]
        )
        assert len(catalog) == 2
        assert catalog.type_of("shift_code") == ValueType.STRING

    def test_from_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps([{"label": "Break Minutes", "key": "break_minutes", "type": "number"}]),
            encoding="utf-8",
        )
        catalog = TypeCatalog.from_file(path)
        assert [entry.key for entry in catalog] == ["break_minutes"]

    def test_load_catalog_without_path_uses_default(self):
        assert len(load_catalog(None)) == 6


# =============================================================================
# Payloads
# =============================================================================


class TestPayloads:
    """Tests for the tagged payload union."""

    def test_defaults_per_kind(self):
        assert parse_payload(NodeKind.LOGIC, {}).operator == LogicOperator.AND
        assert parse_payload(NodeKind.COMPARE, {}).operator == CompareOperator.GT
        constant = parse_payload(NodeKind.CONSTANT, {})
        assert constant.value_type == ValueType.NUMBER
        assert constant.value == 0

    def test_variable_requires_key(self):
        with pytest.raises(ValidationError):
            parse_payload(NodeKind.VARIABLE, {})

    def test_foreign_fields_rejected(self):
        """A payload cannot carry fields of another node kind."""
        with pytest.raises(ValidationError):
            parse_payload(NodeKind.LOGIC, {"operator": "and", "key": "minutes_late"})

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValidationError):
            parse_payload(NodeKind.COMPARE, {"operator": "=~"})

    def test_not_is_a_logic_operator_only(self):
        assert parse_payload(NodeKind.LOGIC, {"operator": "not"}).operator == LogicOperator.NOT
        with pytest.raises(ValidationError):
            parse_payload(NodeKind.COMPARE, {"operator": "not"})

    @pytest.mark.parametrize(
        "value_type,value",
        [("number", 10), ("number", 7.5), ("string", "LATE"), ("boolean", True)],
    )
    def test_constant_accepts_matching_literal(self, value_type, value):
        payload = parse_payload(NodeKind.CONSTANT, {"valueType": value_type, "value": value})
        assert payload.value == value

    @pytest.mark.parametrize(
        "value_type,value",
        [("number", "10"), ("number", True), ("string", 3), ("boolean", 1)],
    )
    def test_constant_rejects_mismatched_literal(self, value_type, value):
        with pytest.raises(ValidationError):
            parse_payload(NodeKind.CONSTANT, {"valueType": value_type, "value": value})

    def test_constant_rejects_any(self):
        with pytest.raises(ValidationError):
            ConstantPayload(value_type=ValueType.ANY, value=0)

    def test_payload_fields_use_wire_names(self):
        payload = parse_payload(NodeKind.CONSTANT, {"valueType": "string", "value": "ABSENT"})
        assert payload_fields(payload) == {"valueType": "string", "value": "ABSENT"}

    def test_literal_type_checks_bool_before_number(self):
        assert literal_type(True) == ValueType.BOOLEAN
        assert literal_type(0) == ValueType.NUMBER
        assert literal_type("x") == ValueType.STRING
        assert literal_type(None) is None
        assert literal_type({"var": "x"}) is None


# =============================================================================
# Nodes and edges
# =============================================================================


class TestSerializationShapes:
    """Tests for node/edge document shapes."""

    def test_node_document(self):
        node = Node(id="a", x=10, y=20, payload=parse_payload(NodeKind.COMPARE, {"operator": "<="}))
        assert node.to_document() == {
            "id": "a",
            "kind": "Compare",
            "x": 10.0,
            "y": 20.0,
            "payload": {"operator": "<="},
        }

    def test_node_document_round_trip(self):
        document = {
            "id": "c1",
            "kind": "Constant",
            "x": 1.5,
            "y": 2.5,
            "payload": {"valueType": "boolean", "value": False},
        }
        assert Node.from_document(document).to_document() == document

    def test_edge_document_uses_from_to(self):
        edge = Edge.model_validate(
            {"id": "e1", "from": {"nodeId": "a", "portIndex": 0}, "to": {"nodeId": "b", "portIndex": 1}}
        )
        assert edge.to_document() == {
            "id": "e1",
            "from": {"nodeId": "a", "portIndex": 0},
            "to": {"nodeId": "b", "portIndex": 1},
        }
        assert edge.touches("a") and edge.touches("b") and not edge.touches("c")

    def test_negative_port_index_rejected(self):
        with pytest.raises(ValidationError):
            Edge.model_validate(
                {"id": "e1", "from": {"nodeId": "a", "portIndex": -1}, "to": {"nodeId": "b", "portIndex": 0}}
            )
