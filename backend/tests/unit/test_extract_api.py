"""HTTP tests for /api/extract (NDJSON and SSE progress streams)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

from backend.src.api.main import app
from backend.src.services.config import AppConfig
from backend.src.services.errors import NoCredentialError
from backend.src.services.extraction_pipeline import ExtractionPipeline, get_extraction_pipeline
from backend.tests.helpers import FakeGenerator, raw

OUTPUT = {
    "summary": "Found a reading list.",
    "suggestions": [
        raw(
            "collection_with_records",
            "Books",
            collectionName="Books",
            fields=[{"name": "Author", "type": "text"}],
            items=[
                {"name": "Dune", "fields": [{"field": "Author", "value": "Herbert"}]},
                {"name": "Emma", "fields": None},
            ],
        ),
        raw(
            "graph_nodes",
            "Reading order",
            graphName="Reading order",
            viewStyle="flow",
            nodes=[{"content": "Dune"}, {"content": "Emma"}],
            edges=[{"sourceIndex": 0, "targetIndex": 1}],
        ),
    ],
}

BODY = {
    "sources": [{"name": "Notes", "content": "<h1>Books</h1><ul><li>Dune</li><li>Emma</li></ul>"}],
    "targetScope": {"workspaceId": "w1"},
}


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator(OUTPUT)


@pytest.fixture
def client(api_client, collection_service, graph_service, generator, tmp_path: Path):
    config = AppConfig(database_path=tmp_path / "unused.db")

    def factory(selection, cfg):
        if selection.provider == "none":
            raise NoCredentialError("No API key configured for none", {"provider": "none"})
        return generator

    pipeline = ExtractionPipeline(
        collection_service, graph_service, config=config, generator_factory=factory
    )
    app.dependency_overrides[get_extraction_pipeline] = lambda: pipeline
    return api_client


def ndjson(response) -> List[Dict[str, Any]]:
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


def test_analyze_streams_ndjson(client, collection_service, graph_service) -> None:
    response = client.post("/api/extract/analyze", json=BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    events = ndjson(response)
    assert [e["type"] for e in events] == [
        "step", "step", "step", "suggestions", "step",
        "tool_result", "tool_result", "tool_result", "tool_result",
        "delta", "done",
    ]
    assert events[0] == {"type": "step", "step": "collect", "message": "Collecting 1 source..."}
    assert events[-1] == {"type": "done"}
    assert events[-2]["content"] == "Created 1 collection, 2 records, 1 graph. Found a reading list."

    tool_results = [e for e in events if e["type"] == "tool_result"]
    assert {e["toolName"] for e in tool_results} == {
        "create_collection", "create_record", "create_graph",
    }
    graph_id = json.loads(tool_results[-1]["toolOutput"])["id"]
    graph = graph_service.get_graph(graph_id)
    assert graph.workspace_id == "w1"
    assert graph.kind.value == "board"
    assert len(graph.edges) == 1


def test_analyze_parses_markup_before_prompting(client, generator) -> None:
    client.post("/api/extract/analyze", json=BODY)

    assert "## Notes\nBooks Dune Emma" in generator.prompts[0]
    assert "<li>" not in generator.prompts[0]


def test_analyze_respects_confirm_indices(client, graph_service) -> None:
    events = ndjson(client.post("/api/extract/analyze", json={**BODY, "confirmIndices": [1]}))

    tool_names = [e["toolName"] for e in events if e["type"] == "tool_result"]
    assert tool_names == ["create_graph"]


def test_missing_credential_streams_error_then_done(client) -> None:
    body = {**BODY, "collaboratorSelection": {"provider": "none"}}

    events = ndjson(client.post("/api/extract/analyze", json=body))

    assert events[-2:] == [
        {"type": "error", "error": "No API key configured for none"},
        {"type": "done"},
    ]


def test_analyze_as_server_sent_events(client) -> None:
    response = client.post(
        "/api/extract/analyze", json=BODY, headers={"Accept": "text/event-stream"}
    )

    assert response.headers["content-type"].startswith("text/event-stream")
    payloads = [
        json.loads(line[len("data:"):].strip())
        for line in response.text.splitlines()
        if line.startswith("data:")
    ]
    assert payloads[0]["step"] == "collect"
    assert payloads[-1] == {"type": "done"}


def test_suggest_returns_flat_output(client, collection_service) -> None:
    response = client.post("/api/extract/suggest", json=BODY)

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == "Found a reading list."
    assert [s["type"] for s in body["suggestions"]] == ["collection_with_records", "graph_nodes"]
    assert body["suggestions"][1]["viewStyle"] == "flow"
    assert collection_service.list_collections() == []


def test_suggest_without_credential_is_400(client) -> None:
    response = client.post(
        "/api/extract/suggest", json={**BODY, "collaboratorSelection": {"provider": "none"}}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "no_credential"


def test_materialize_confirmed_suggestions(client, collection_service) -> None:
    response = client.post(
        "/api/extract/materialize",
        json={
            "suggestions": [OUTPUT["suggestions"][0]],
            "targetScope": {},
            "summary": "Books only.",
        },
    )

    events = ndjson(response)
    assert events[0] == {"type": "step", "step": "create", "message": "Creating 1 suggestion..."}
    assert events[-2]["content"] == "Created 1 collection, 2 records. Books only."
    (collection,) = collection_service.list_collections()
    assert collection.available_global is True
    assert [r.name for r in collection_service.list_records(collection.id)] == ["Dune", "Emma"]


def test_materialize_rejects_unknown_kind(client) -> None:
    bad = {**OUTPUT["suggestions"][0], "type": "spreadsheet"}

    response = client.post("/api/extract/materialize", json={"suggestions": [bad]})

    assert response.status_code == 400
