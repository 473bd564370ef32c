"""Unit tests for GraphService persistence."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from backend.src.models.graph import GraphScope, StructuralKind, ViewStyle
from backend.src.models.scope import TargetScope
from backend.src.services.errors import InvalidReferenceError, NotFoundError
from backend.src.services.graph_service import GraphService
from backend.tests.helpers import edge, node


@pytest.fixture
def seeded(graph_service: GraphService):
    return graph_service.create_graph(
        "Roadmap",
        style="kanban",
        scope=TargetScope(workspace_id="w1", project_id="p1"),
        icon="🗺️",
        nodes=[node("col"), node("card", parent_id="col"), node("other")],
        edges=[edge("e1", "card", "other")],
    )


def test_create_graph_round_trips(graph_service: GraphService, seeded) -> None:
    loaded = graph_service.get_graph(seeded.id)

    assert loaded.kind is StructuralKind.BOARD
    assert loaded.style is ViewStyle.KANBAN
    assert loaded.scope is GraphScope.PROJECT
    assert (loaded.workspace_id, loaded.project_id) == ("w1", "p1")
    assert [n.id for n in loaded.nodes] == ["col", "card", "other"]
    assert loaded.node("card").parent_id == "col"
    assert loaded.edges[0].source_id == "card"


def test_create_graph_rejects_invalid_forest(graph_service: GraphService) -> None:
    with pytest.raises(InvalidReferenceError):
        graph_service.create_graph("Bad", nodes=[node("a", parent_id="missing")])

    assert graph_service.list_graphs() == []


def test_unknown_style_defaults_to_outline(graph_service: GraphService) -> None:
    graph = graph_service.create_graph("Notes", style="sparkles")

    assert (graph.kind, graph.style) == (StructuralKind.HIERARCHY, ViewStyle.OUTLINE)


def test_list_graphs_by_scope(graph_service: GraphService, seeded) -> None:
    graph_service.create_graph("Global one")

    in_project = graph_service.list_graphs(TargetScope(project_id="p1"))
    global_only = graph_service.list_graphs(TargetScope())

    assert [(g.name, g.node_count, g.edge_count) for g in in_project] == [("Roadmap", 3, 1)]
    assert [g.name for g in global_only] == ["Global one"]


def test_set_style_keeps_identities(graph_service: GraphService, seeded) -> None:
    updated = graph_service.set_style(seeded.id, "mindmap")

    reloaded = graph_service.get_graph(seeded.id)
    assert updated.kind is StructuralKind.HIERARCHY
    assert reloaded.style is ViewStyle.MINDMAP
    assert [n.id for n in reloaded.nodes] == ["col", "card", "other"]
    assert [e.id for e in reloaded.edges] == ["e1"]


def test_node_mutations_persist(graph_service: GraphService, seeded) -> None:
    new_id = graph_service.add_node(seeded.id, "New card", parent_id="col", metadata={"x": 5})
    patched = graph_service.update_node(seeded.id, new_id, {"content": "Renamed"})
    graph_service.delete_node(seeded.id, "col")

    reloaded = graph_service.get_graph(seeded.id)
    assert patched.content == "Renamed"
    assert [n.id for n in reloaded.nodes] == ["other"]
    assert reloaded.edges == []


def test_add_edge_twice_returns_same_id(graph_service: GraphService, seeded) -> None:
    first = graph_service.add_edge(seeded.id, "col", "other")
    second = graph_service.add_edge(seeded.id, "other", "col")

    reloaded = graph_service.get_graph(seeded.id)
    assert first == second
    assert len(reloaded.edges) == 2


def test_delete_edge_and_graph(graph_service: GraphService, seeded) -> None:
    graph_service.delete_edge(seeded.id, "e1")
    assert graph_service.get_graph(seeded.id).edges == []

    graph_service.delete_graph(seeded.id)
    with pytest.raises(NotFoundError):
        graph_service.get_graph(seeded.id)
    with pytest.raises(NotFoundError):
        graph_service.delete_graph(seeded.id)


def test_mutating_a_missing_graph_raises(graph_service: GraphService) -> None:
    with pytest.raises(NotFoundError):
        graph_service.add_node("nope", "Orphan")
    with pytest.raises(NotFoundError):
        graph_service.set_style("nope", "kanban")


def test_failed_mutation_leaves_graph_untouched(graph_service: GraphService, seeded) -> None:
    with pytest.raises(InvalidReferenceError):
        graph_service.add_node(seeded.id, "Lost", parent_id="missing")

    assert [n.id for n in graph_service.get_graph(seeded.id).nodes] == ["col", "card", "other"]


def test_concurrent_add_node_keeps_every_node(graph_service: GraphService, seeded) -> None:
    workers = 8
    barrier = threading.Barrier(workers)

    def add(index: int) -> str:
        barrier.wait()
        return graph_service.add_node(seeded.id, f"Card {index}", parent_id="col")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        new_ids = list(pool.map(add, range(workers)))

    reloaded = graph_service.get_graph(seeded.id)
    assert len(set(new_ids)) == workers
    assert {n.id for n in reloaded.nodes} >= set(new_ids)
    assert len(reloaded.nodes) == 3 + workers
