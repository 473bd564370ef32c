"""View interpretation rules.

A graph is an opaque forest plus edges; these functions are the only place
visual meaning is attached to it. Every rule is total: missing or malformed
metadata falls back to defaults instead of raising.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..models.graph import Graph, GraphNode, StructuralKind, ViewStyle, kind_for_style
from ..models.views import (
    BoardCard,
    CanvasView,
    FlowView,
    GraphView,
    GridGroup,
    GridView,
    KanbanColumn,
    KanbanView,
    OutlineBranch,
    OutlineView,
    PositionedNode,
    TimelineTask,
    TimelineView,
    ViewLink,
)
from .graph_model import children_of, descendants

logger = logging.getLogger(__name__)

GRID_COLUMNS = 4
CELL_WIDTH = 250.0
CELL_HEIGHT = 150.0
DEFAULT_TASK_DAYS = 7


def _links(graph: Graph) -> List[ViewLink]:
    return [
        ViewLink(edge_id=edge.id, source_id=edge.source_id, target_id=edge.target_id)
        for edge in graph.edges
    ]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _position(node: GraphNode, index: int) -> Tuple[float, float]:
    """Stored x/y when both are numeric, else the index-th cell of a grid."""
    x = node.metadata.get("x")
    y = node.metadata.get("y")
    if _is_number(x) and _is_number(y):
        return float(x), float(y)
    return (index % GRID_COLUMNS) * CELL_WIDTH, (index // GRID_COLUMNS) * CELL_HEIGHT


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _progress(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return 0.0
    if not isinstance(value, (int, float)):
        return 0.0
    return max(0.0, min(100.0, float(value)))


def schedule_for(node: GraphNode, today: Optional[date] = None) -> Tuple[date, date, float]:
    """Start, end and percent-complete of a timeline task with defaults applied."""
    today = today or date.today()
    start = _parse_date(node.metadata.get("startDate")) or today
    end = _parse_date(node.metadata.get("endDate")) or start + timedelta(days=DEFAULT_TASK_DAYS)
    if end < start:
        end = start
    return start, end, _progress(node.metadata.get("progress"))


def _card(graph: Graph, node: GraphNode) -> BoardCard:
    below = descendants(graph, node.id)
    order = [candidate.content for candidate in graph.nodes if candidate.id in below]
    return BoardCard(node_id=node.id, content=node.content, children=order)


def interpret_outline(graph: Graph, style: ViewStyle = ViewStyle.OUTLINE) -> OutlineView:
    grouped = children_of(graph)

    def build(node: GraphNode, visited: Set[str]) -> OutlineBranch:
        visited.add(node.id)
        return OutlineBranch(
            node_id=node.id,
            content=node.content,
            children=[
                build(child, visited)
                for child in grouped.get(node.id, [])
                if child.id not in visited
            ],
        )

    visited: Set[str] = set()
    branches = [build(root, visited) for root in grouped.get(None, [])]
    return OutlineView(style=style.value, branches=branches)


def interpret_kanban(graph: Graph, style: ViewStyle = ViewStyle.KANBAN) -> KanbanView:
    grouped = children_of(graph)
    columns = [
        KanbanColumn(
            node_id=column.id,
            title=column.content,
            cards=[_card(graph, card) for card in grouped.get(column.id, [])],
        )
        for column in grouped.get(None, [])
    ]
    return KanbanView(columns=columns, links=_links(graph))


def interpret_flow(graph: Graph, style: ViewStyle = ViewStyle.FLOW) -> FlowView:
    nodes = []
    for index, node in enumerate(graph.nodes):
        x, y = _position(node, index)
        nodes.append(PositionedNode(node_id=node.id, content=node.content, x=x, y=y))
    return FlowView(nodes=nodes, connections=_links(graph))


def interpret_grid(graph: Graph, style: ViewStyle = ViewStyle.GRID) -> GridView:
    grouped = children_of(graph)
    groups = [
        GridGroup(
            node_id=group.id,
            title=group.content,
            rows=[_card(graph, row) for row in grouped.get(group.id, [])],
        )
        for group in grouped.get(None, [])
    ]
    return GridView(style=style.value, groups=groups, links=_links(graph))


def interpret_timeline(
    graph: Graph, style: ViewStyle = ViewStyle.TIMELINE, today: Optional[date] = None
) -> TimelineView:
    tasks = []
    for node in graph.nodes:
        start, end, progress = schedule_for(node, today)
        tasks.append(
            TimelineTask(
                node_id=node.id,
                content=node.content,
                start_date=start.isoformat(),
                end_date=end.isoformat(),
                progress=progress,
            )
        )
    return TimelineView(tasks=tasks)


def interpret_canvas(graph: Graph, style: ViewStyle = ViewStyle.FREEFORM) -> CanvasView:
    nodes = []
    for index, node in enumerate(graph.nodes):
        x, y = _position(node, index)
        nodes.append(PositionedNode(node_id=node.id, content=node.content, x=x, y=y))
    return CanvasView(nodes=nodes, links=_links(graph))


RULES: Dict[Tuple[StructuralKind, ViewStyle], Callable[[Graph, ViewStyle], GraphView]] = {
    (StructuralKind.HIERARCHY, ViewStyle.OUTLINE): interpret_outline,
    (StructuralKind.HIERARCHY, ViewStyle.MINDMAP): interpret_outline,
    (StructuralKind.BOARD, ViewStyle.KANBAN): interpret_kanban,
    (StructuralKind.BOARD, ViewStyle.FLOW): interpret_flow,
    (StructuralKind.BOARD, ViewStyle.GRID): interpret_grid,
    (StructuralKind.BOARD, ViewStyle.TABLE): interpret_grid,
    (StructuralKind.BOARD, ViewStyle.TIMELINE): interpret_timeline,
    (StructuralKind.CANVAS, ViewStyle.FREEFORM): interpret_canvas,
}


def interpret(graph: Graph) -> GraphView:
    """Render a graph under its own kind/style pair.

    A pair with no rule (for example a style stored under the wrong kind)
    is read with the rule of the style's own kind.
    """
    rule = RULES.get((graph.kind, graph.style))
    if rule is None:
        logger.warning(
            "No view rule for kind/style pair, using the style's own kind",
            extra={"graph_id": graph.id, "kind": graph.kind.value, "style": graph.style.value},
        )
        rule = RULES[(kind_for_style(graph.style), graph.style)]
    return rule(graph, graph.style)


__all__ = [
    "RULES",
    "interpret",
    "interpret_outline",
    "interpret_kanban",
    "interpret_flow",
    "interpret_grid",
    "interpret_timeline",
    "interpret_canvas",
    "schedule_for",
]
