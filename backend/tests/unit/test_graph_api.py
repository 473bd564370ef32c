"""HTTP tests for /api/graphs (CRUD, node/edge operations, rendered views)."""

from __future__ import annotations

import pytest


def create(client, **payload):
    body = {"name": "Roadmap", "icon": "🗺️", **payload}
    response = client.post("/api/graphs", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_fetch_graph(api_client) -> None:
    graph = create(api_client, style="kanban", projectId="p1", workspaceId="w1")

    assert graph["kind"] == "board"
    assert graph["style"] == "kanban"
    assert graph["scope"] == "project"

    fetched = api_client.get(f"/api/graphs/{graph['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Roadmap"


def test_unknown_style_defaults_to_outline(api_client) -> None:
    graph = create(api_client, style="spiral")

    assert (graph["kind"], graph["style"]) == ("hierarchy", "outline")


def test_list_graphs_by_scope(api_client) -> None:
    create(api_client, name="Global")
    create(api_client, name="Scoped", projectId="p1")

    everything = api_client.get("/api/graphs", params={"projectId": "p1"}).json()
    assert [g["name"] for g in everything] == ["Scoped"]
    assert everything[0]["nodeCount"] == 0

    global_only = api_client.get("/api/graphs").json()
    assert [g["name"] for g in global_only] == ["Global"]


def test_node_and_edge_lifecycle(api_client) -> None:
    graph_id = create(api_client)["id"]

    root = api_client.post(f"/api/graphs/{graph_id}/nodes", json={"content": "Root"}).json()["id"]
    child = api_client.post(
        f"/api/graphs/{graph_id}/nodes", json={"content": "Child", "parentId": root}
    ).json()["id"]
    other = api_client.post(f"/api/graphs/{graph_id}/nodes", json={"content": "Other"}).json()["id"]

    first = api_client.post(
        f"/api/graphs/{graph_id}/edges", json={"sourceId": child, "targetId": other}
    )
    again = api_client.post(
        f"/api/graphs/{graph_id}/edges", json={"sourceId": other, "targetId": child}
    )
    assert first.status_code == 201
    assert again.json()["id"] == first.json()["id"]

    patched = api_client.patch(
        f"/api/graphs/{graph_id}/nodes/{child}", json={"content": "Renamed", "parentId": None}
    )
    assert patched.status_code == 200
    assert patched.json()["content"] == "Renamed"
    assert patched.json()["parentId"] is None

    assert api_client.delete(f"/api/graphs/{graph_id}/edges/{first.json()['id']}").status_code == 204
    assert api_client.delete(f"/api/graphs/{graph_id}/nodes/{root}").status_code == 204

    graph = api_client.get(f"/api/graphs/{graph_id}").json()
    assert [n["id"] for n in graph["nodes"]] == [child, other]
    assert graph["edges"] == []


def test_delete_node_cascades(api_client, graph_service) -> None:
    graph_id = create(api_client)["id"]
    root = graph_service.add_node(graph_id, "Root")
    child = graph_service.add_node(graph_id, "Child", parent_id=root)
    other = graph_service.add_node(graph_id, "Other")
    graph_service.add_edge(graph_id, child, other)

    api_client.delete(f"/api/graphs/{graph_id}/nodes/{root}")

    graph = graph_service.get_graph(graph_id)
    assert [n.id for n in graph.nodes] == [other]
    assert graph.edges == []


def test_cycle_is_rejected_with_422(api_client, graph_service) -> None:
    graph_id = create(api_client)["id"]
    root = graph_service.add_node(graph_id, "Root")
    child = graph_service.add_node(graph_id, "Child", parent_id=root)

    response = api_client.patch(f"/api/graphs/{graph_id}/nodes/{root}", json={"parentId": child})

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "invalid_reference"
    assert body["detail"] == {"node_id": root, "parent_id": child}


def test_edge_to_missing_node_is_rejected(api_client, graph_service) -> None:
    graph_id = create(api_client)["id"]
    node_id = graph_service.add_node(graph_id, "Only")

    response = api_client.post(
        f"/api/graphs/{graph_id}/edges", json={"sourceId": node_id, "targetId": "ghost"}
    )

    assert response.status_code == 422
    assert response.json()["detail"]["missing"] == ["ghost"]


def test_missing_graph_is_404(api_client) -> None:
    response = api_client.get("/api/graphs/nope")

    assert response.status_code == 404
    assert response.json() == {
        "error": "not_found",
        "message": "Graph nope not found",
        "detail": {"graph_id": "nope"},
    }
    assert api_client.delete("/api/graphs/nope").status_code == 404


def test_malformed_body_is_400(api_client) -> None:
    response = api_client.post("/api/graphs", json={"icon": "x"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["detail"]["errors"][0]["loc"] == ["body", "name"]


def test_style_switch_keeps_node_identity(api_client, graph_service) -> None:
    graph_id = create(api_client)["id"]
    node_id = graph_service.add_node(graph_id, "Task", metadata={"startDate": "2025-01-01"})

    response = api_client.put(f"/api/graphs/{graph_id}/style", json={"style": "gantt"})

    assert response.status_code == 200
    assert (response.json()["kind"], response.json()["style"]) == ("board", "timeline")
    assert [n["id"] for n in response.json()["nodes"]] == [node_id]


def test_unknown_style_switch_is_400(api_client) -> None:
    graph_id = create(api_client)["id"]

    response = api_client.put(f"/api/graphs/{graph_id}/style", json={"style": "spiral"})

    assert response.status_code == 400


@pytest.mark.parametrize(
    ("style", "expected_keys"),
    [
        ("outline", {"style", "branches"}),
        ("kanban", {"style", "columns", "links"}),
        ("flow", {"style", "nodes", "connections"}),
        ("table", {"style", "groups", "links"}),
        ("timeline", {"style", "tasks"}),
        ("freeform", {"style", "nodes", "links"}),
    ],
)
def test_view_endpoint_shapes(api_client, graph_service, style, expected_keys) -> None:
    graph_id = create(api_client, style=style)["id"]
    graph_service.add_node(graph_id, "Only")

    response = api_client.get(f"/api/graphs/{graph_id}/view")

    assert response.status_code == 200
    body = response.json()
    assert body["graphId"] == graph_id
    assert body["style"] == style
    assert set(body["view"]) == expected_keys


def test_flow_view_positions(api_client, graph_service) -> None:
    graph_id = create(api_client, style="flow")["id"]
    first = graph_service.add_node(graph_id, "First", metadata={"x": 10, "y": 20})
    second = graph_service.add_node(graph_id, "Second")
    graph_service.add_edge(graph_id, first, second)

    view = api_client.get(f"/api/graphs/{graph_id}/view").json()["view"]

    assert [(n["x"], n["y"]) for n in view["nodes"]] == [(10, 20), (250, 0)]
    assert view["connections"][0]["sourceId"] == first
