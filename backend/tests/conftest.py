"""Shared fixtures: throwaway SQLite stores and the services over them."""

from __future__ import annotations

from pathlib import Path

import pytest

from backend.src.services.collection_service import CollectionService
from backend.src.services.database import DatabaseService
from backend.src.services.graph_service import GraphService


@pytest.fixture
def db(tmp_path: Path) -> DatabaseService:
    """Initialized database in a temporary directory."""
    service = DatabaseService(tmp_path / "contextory.db")
    service.initialize()
    return service


@pytest.fixture
def collection_service(db: DatabaseService) -> CollectionService:
    return CollectionService(db)


@pytest.fixture
def graph_service(db: DatabaseService) -> GraphService:
    return GraphService(db)


@pytest.fixture
def api_client(collection_service: CollectionService, graph_service: GraphService):
    """TestClient whose route services are bound to the temporary database."""
    from fastapi.testclient import TestClient

    from backend.src.api.main import app
    from backend.src.services.collection_service import get_collection_service
    from backend.src.services.graph_service import get_graph_service

    app.dependency_overrides[get_collection_service] = lambda: collection_service
    app.dependency_overrides[get_graph_service] = lambda: graph_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides = {}
