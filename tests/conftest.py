"""
Pytest configuration and shared fixtures.

Provides:
- catalog: the built-in attendance Type Catalog
- store: an empty GraphStore with deterministic ids
- session: an EditorSession with a seeded random source
- client: FastAPI TestClient for the API adapter
- build helpers for the common graph shapes used across tests
"""

from __future__ import annotations

import random

import pytest
from fastapi.testclient import TestClient

from policy_graph.domain.catalog import TypeCatalog
from policy_graph.graph.store import GraphStore
from policy_graph.main import create_app
from policy_graph.services.editor_session import EditorSession
from tests.factories import build_minutes_late_rule, sequential_ids


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def catalog() -> TypeCatalog:
    return TypeCatalog.default()


@pytest.fixture
def store(catalog: TypeCatalog) -> GraphStore:
    return GraphStore(catalog, id_factory=sequential_ids())


@pytest.fixture
def session(catalog: TypeCatalog) -> EditorSession:
    return EditorSession(catalog, rng=random.Random(7))


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def minutes_late_rule(store: GraphStore) -> dict[str, str]:
    return build_minutes_late_rule(store)
