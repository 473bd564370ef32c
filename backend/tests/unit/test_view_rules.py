"""Unit tests for the view interpretation rules."""

from datetime import date

import pytest

from backend.src.models.graph import StructuralKind, ViewStyle
from backend.src.models.views import (
    CanvasView,
    FlowView,
    GridView,
    KanbanView,
    OutlineView,
    TimelineView,
)
from backend.src.services import view_rules
from backend.tests.helpers import edge, make_graph, node

TODAY = date(2025, 3, 10)


@pytest.fixture
def board_nodes():
    return [
        node("todo", "To do"),
        node("done", "Done"),
        node("c1", "Write docs", parent_id="todo"),
        node("c1a", "Outline", parent_id="c1"),
        node("c2", "Ship", parent_id="done"),
    ]


class TestHierarchy:
    def test_outline_nests_children(self, board_nodes) -> None:
        view = view_rules.interpret(make_graph(board_nodes, style="outline"))

        assert isinstance(view, OutlineView)
        assert [b.content for b in view.branches] == ["To do", "Done"]
        assert view.branches[0].children[0].children[0].content == "Outline"

    def test_mindmap_shares_the_outline_rule(self, board_nodes) -> None:
        view = view_rules.interpret(make_graph(board_nodes, style="mindmap"))

        assert isinstance(view, OutlineView)
        assert view.style == "mindmap"

    def test_missing_parent_becomes_branch(self) -> None:
        view = view_rules.interpret(make_graph([node("a"), node("b", parent_id="gone")]))

        assert [b.node_id for b in view.branches] == ["a", "b"]


class TestBoard:
    def test_kanban_columns_and_cards(self, board_nodes) -> None:
        graph = make_graph(board_nodes, edges=[edge("e1", "c1", "c2")], style="kanban")

        view = view_rules.interpret(graph)

        assert isinstance(view, KanbanView)
        assert [c.title for c in view.columns] == ["To do", "Done"]
        card = view.columns[0].cards[0]
        assert card.content == "Write docs"
        assert card.children == ["Outline"]
        assert view.links[0].edge_id == "e1"

    def test_grid_and_table_group_rows(self, board_nodes) -> None:
        for style in ("grid", "table"):
            view = view_rules.interpret(make_graph(board_nodes, style=style))

            assert isinstance(view, GridView)
            assert view.style == style
            assert [len(g.rows) for g in view.groups] == [1, 1]

    def test_flow_uses_stored_positions_and_grid_fallback(self) -> None:
        nodes = [node(f"n{i}") for i in range(5)]
        nodes[0] = node("n0", x=40, y=60)
        graph = make_graph(nodes, edges=[edge("e1", "n0", "n1")], style="flow")

        view = view_rules.interpret(graph)

        assert isinstance(view, FlowView)
        assert (view.nodes[0].x, view.nodes[0].y) == (40.0, 60.0)
        # index 4 wraps to the second row of the 4-column grid
        assert (view.nodes[4].x, view.nodes[4].y) == (0.0, 150.0)
        assert view.connections[0].source_id == "n0"

    def test_non_numeric_position_falls_back(self) -> None:
        graph = make_graph([node("a"), node("b", x="left", y=3)], style="freeform")

        view = view_rules.interpret(graph)

        assert isinstance(view, CanvasView)
        assert (view.nodes[1].x, view.nodes[1].y) == (250.0, 0.0)


class TestTimeline:
    def test_defaults_for_missing_schedule(self) -> None:
        graph = make_graph([node("t1", "Kickoff")], style="timeline")

        view = view_rules.interpret_timeline(graph, today=TODAY)

        task = view.tasks[0]
        assert task.start_date == "2025-03-10"
        assert task.end_date == "2025-03-17"
        assert task.progress == 0

    def test_reads_schedule_and_clamps_progress(self) -> None:
        graph = make_graph(
            [node("t1", startDate="2025-01-01", endDate="2025-01-31", progress=140)],
            style="timeline",
        )

        task = view_rules.interpret_timeline(graph, today=TODAY).tasks[0]

        assert (task.start_date, task.end_date, task.progress) == ("2025-01-01", "2025-01-31", 100)

    def test_unparseable_values_fall_back(self) -> None:
        graph = make_graph(
            [node("t1", startDate="soon", endDate="2024-12-01", progress="half")],
            style="timeline",
        )

        task = view_rules.interpret_timeline(graph, today=TODAY).tasks[0]

        assert task.start_date == "2025-03-10"
        # an end before the start collapses onto the start
        assert task.end_date == "2025-03-10"
        assert task.progress == 0

    def test_progress_string_with_percent(self) -> None:
        start, end, progress = view_rules.schedule_for(node("t", progress="45%"), TODAY)

        assert progress == 45.0

    def test_gantt_alias_reads_as_timeline(self) -> None:
        graph = make_graph([node("t1")], style="gantt")

        assert graph.style is ViewStyle.TIMELINE
        assert isinstance(view_rules.interpret(graph), TimelineView)


def test_every_style_has_a_rule() -> None:
    for style in ViewStyle:
        graph = make_graph([node("a"), node("b", parent_id="a")], style=style.value)
        assert view_rules.interpret(graph) is not None


def test_mismatched_kind_uses_style_rule() -> None:
    graph = make_graph([node("a")], style="kanban").model_copy(
        update={"kind": StructuralKind.HIERARCHY}
    )

    assert isinstance(view_rules.interpret(graph), KanbanView)


def test_cyclic_parents_do_not_loop() -> None:
    graph = make_graph([node("x", parent_id="y"), node("y", parent_id="x")], style="outline")

    view = view_rules.interpret(graph)

    assert isinstance(view, OutlineView)
