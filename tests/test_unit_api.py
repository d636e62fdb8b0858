"""
Unit tests for the HTTP adapter.

Tests cover:
- Health and variable catalog endpoints
- Graph compile (happy path, rejected edges)
- Rule tree import and validation
- Domain error mapping and request validation errors
- Metrics endpoint protection and request id propagation
"""

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from policy_graph.main import create_app

LATE = {">": [{"var": "minutes_late"}, 10]}


def _minutes_late_graph() -> dict:
    return {
        "nodes": [
            {"id": "v", "kind": "Variable", "x": 0, "y": 0, "payload": {"key": "minutes_late"}},
            {
                "id": "c",
                "kind": "Constant",
                "x": 0,
                "y": 120,
                "payload": {"valueType": "number", "value": 10},
            },
            {"id": "cmp", "kind": "Compare", "x": 250, "y": 60, "payload": {"operator": ">"}},
            {"id": "r", "kind": "Result", "x": 500, "y": 60, "payload": {}},
        ],
        "edges": [
            {"id": "e1", "from": {"nodeId": "v", "portIndex": 0}, "to": {"nodeId": "cmp", "portIndex": 0}},
            {"id": "e2", "from": {"nodeId": "c", "portIndex": 0}, "to": {"nodeId": "cmp", "portIndex": 1}},
            {"id": "e3", "from": {"nodeId": "cmp", "portIndex": 0}, "to": {"nodeId": "r", "portIndex": 0}},
        ],
    }


# ============================================================================
# Tests: Health and catalog
# ============================================================================


@pytest.mark.anyio
async def test_health_ok(client) -> None:
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


@pytest.mark.anyio
async def test_list_variables(client) -> None:
    resp = client.get("/api/v1/variables")
    assert resp.status_code == 200
    body = resp.json()
    assert len(body) == 6
    assert body[0] == {"label": "Minutes Late", "key": "minutes_late", "type": "number"}


@pytest.mark.anyio
async def test_create_app_registers_routers() -> None:
    paths = create_app().openapi()["paths"]
    assert set(paths) == {
        "/api/v1/health",
        "/api/v1/variables",
        "/api/v1/graph/compile",
        "/api/v1/rules/import",
        "/api/v1/rules/validate",
    }
    assert "post" in paths["/api/v1/graph/compile"]


# ============================================================================
# Tests: Compile
# ============================================================================


class TestCompileEndpoint:
    @pytest.mark.anyio
    async def test_compile_graph(self, client):
        resp = client.post("/api/v1/graph/compile", json=_minutes_late_graph())

        assert resp.status_code == 200
        body = resp.json()
        assert body["rule_tree"] == {"status_rules": [LATE]}
        assert len(body["fingerprint"]) == 64

    @pytest.mark.anyio
    async def test_compile_empty_graph(self, client):
        resp = client.post("/api/v1/graph/compile", json={"nodes": [], "edges": []})
        assert resp.status_code == 200
        assert resp.json()["rule_tree"] == {"status_rules": []}

    @pytest.mark.anyio
    async def test_fingerprint_ignores_layout(self, client):
        moved = _minutes_late_graph()
        for node in moved["nodes"]:
            node["x"] += 1000

        first = client.post("/api/v1/graph/compile", json=_minutes_late_graph()).json()
        second = client.post("/api/v1/graph/compile", json=moved).json()
        assert first["fingerprint"] == second["fingerprint"]

    @pytest.mark.anyio
    async def test_type_mismatch_rejected(self, client):
        document = {
            "nodes": [
                {"id": "v", "kind": "Variable", "payload": {"key": "minutes_late"}},
                {"id": "l", "kind": "Logic", "payload": {"operator": "and"}},
            ],
            "edges": [
                {"from": {"nodeId": "v", "portIndex": 0}, "to": {"nodeId": "l", "portIndex": 0}},
            ],
        }
        resp = client.post("/api/v1/graph/compile", json=document)

        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "TypeMismatchError"
        assert body["details"]["from_type"] == "number"
        assert body["details"]["to_type"] == "boolean"

    @pytest.mark.anyio
    async def test_cycle_rejected(self, client):
        document = {
            "nodes": [
                {"id": "a", "kind": "If"},
                {"id": "b", "kind": "If"},
            ],
            "edges": [
                {"from": {"nodeId": "a", "portIndex": 0}, "to": {"nodeId": "b", "portIndex": 1}},
                {"from": {"nodeId": "b", "portIndex": 0}, "to": {"nodeId": "a", "portIndex": 1}},
            ],
        }
        resp = client.post("/api/v1/graph/compile", json=document)

        assert resp.status_code == 409
        assert resp.json()["error"] == "CycleDetectedError"

    @pytest.mark.anyio
    async def test_unknown_kind_is_request_error(self, client):
        document = {"nodes": [{"id": "x", "kind": "Between"}], "edges": []}
        resp = client.post("/api/v1/graph/compile", json=document)
        assert resp.status_code == 422


# ============================================================================
# Tests: Import
# ============================================================================


class TestImportEndpoint:
    @pytest.mark.anyio
    async def test_import_returns_graph(self, client):
        resp = client.post("/api/v1/rules/import", json={"status_rules": [LATE]})

        assert resp.status_code == 200
        body = resp.json()
        assert [node["kind"] for node in body["graph"]["nodes"]] == [
            "Variable",
            "Constant",
            "Compare",
            "Result",
        ]
        assert len(body["graph"]["edges"]) == 3
        assert set(body["graph"]["edges"][0]) == {"id", "from", "to"}
        assert body["issues"] == []

    @pytest.mark.anyio
    async def test_import_then_compile(self, client):
        document = {"status_rules": [LATE, {"between": [1, 2]}]}
        imported = client.post("/api/v1/rules/import", json=document).json()

        assert imported["issues"] == [
            {"path": "$.status_rules[1]", "message": "Unknown operator 'between'"}
        ]

        compiled = client.post("/api/v1/graph/compile", json=imported["graph"]).json()
        assert compiled["rule_tree"] == {"status_rules": [LATE, '{"between":[1,2]}']}

    @pytest.mark.anyio
    async def test_missing_status_rules(self, client):
        resp = client.post("/api/v1/rules/import", json={"rules": []})
        assert resp.status_code == 422

    @pytest.mark.anyio
    async def test_depth_limit(self, client):
        rule = LATE
        for _ in range(40):
            rule = {"not": rule}
        resp = client.post("/api/v1/rules/import", json={"status_rules": [rule]})
        assert resp.status_code == 422


# ============================================================================
# Tests: Validate
# ============================================================================


class TestValidateEndpoint:
    @pytest.mark.anyio
    async def test_valid_rule_tree(self, client):
        document = {"status_rules": [LATE, {"if": [LATE, "LATE", "PRESENT"]}]}
        resp = client.post("/api/v1/rules/validate", json=document)

        assert resp.status_code == 200
        assert resp.json() == {"valid": True, "rule_types": ["boolean", "string"]}

    @pytest.mark.anyio
    async def test_invalid_rule_tree_reports_path(self, client):
        document = {"status_rules": [{">": [{"var": "minutes_late"}, None]}]}
        resp = client.post("/api/v1/rules/validate", json=document)

        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "MalformedRuleTreeError"
        assert body["details"]["path"] == "$.status_rules[0].>[1]"

    @pytest.mark.anyio
    async def test_unknown_variable_is_strict(self, client):
        document = {"status_rules": [{"var": "on_leave"}]}
        resp = client.post("/api/v1/rules/validate", json=document)
        assert resp.status_code == 422


# ============================================================================
# Tests: Error handlers, metrics and request ids
# ============================================================================


class TestExceptionHandlers:
    @pytest.mark.anyio
    async def test_http_exception_handler(self):
        app = create_app()

        @app.get("/test-http")
        def test_http():
            raise HTTPException(status_code=400, detail="Bad request")

        resp = TestClient(app).get("/test-http")
        assert resp.status_code == 400
        assert resp.json() == {"error": "HTTPException", "message": "Bad request", "details": {}}

    @pytest.mark.anyio
    async def test_general_exception_handler(self):
        app = create_app()

        @app.get("/test-general")
        def test_general():
            raise RuntimeError("Unexpected error")

        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/test-general")
        assert resp.status_code == 500
        assert resp.json()["message"] == "An unexpected error occurred"


class TestMetricsAndRequestIds:
    @pytest.mark.anyio
    async def test_metrics_open_without_token(self, client, monkeypatch):
        monkeypatch.setattr("policy_graph.main.settings.metrics_token", None)
        client.post("/api/v1/graph/compile", json=_minutes_late_graph())

        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "compiler_compilations_total" in resp.text

    @pytest.mark.anyio
    async def test_metrics_token_required(self, client, monkeypatch):
        monkeypatch.setattr("policy_graph.main.settings.metrics_token", "secret")

        assert client.get("/metrics").status_code == 403
        assert client.get("/metrics", headers={"X-Metrics-Token": "wrong"}).status_code == 403
        assert client.get("/metrics", headers={"X-Metrics-Token": "secret"}).status_code == 200

    @pytest.mark.anyio
    async def test_request_id_echoed(self, client):
        resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    @pytest.mark.anyio
    async def test_request_id_generated(self, client):
        resp = client.get("/api/v1/health")
        assert resp.headers["X-Request-ID"]
