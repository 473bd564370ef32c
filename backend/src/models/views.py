"""Typed read models produced by the view interpretation rules."""

from __future__ import annotations

from typing import List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _ViewModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OutlineBranch(_ViewModel):
    node_id: str = Field(..., alias="nodeId")
    content: str
    children: List["OutlineBranch"] = Field(default_factory=list)


class OutlineView(_ViewModel):
    """Hierarchy rendered as bullets (outline) or branches (mindmap)."""

    style: Literal["outline", "mindmap"]
    branches: List[OutlineBranch] = Field(default_factory=list)


class ViewLink(_ViewModel):
    edge_id: str = Field(..., alias="edgeId")
    source_id: str = Field(..., alias="sourceId")
    target_id: str = Field(..., alias="targetId")


class BoardCard(_ViewModel):
    node_id: str = Field(..., alias="nodeId")
    content: str
    children: List[str] = Field(default_factory=list, description="Content of deeper descendants")


class KanbanColumn(_ViewModel):
    node_id: str = Field(..., alias="nodeId")
    title: str
    cards: List[BoardCard] = Field(default_factory=list)


class KanbanView(_ViewModel):
    style: Literal["kanban"] = "kanban"
    columns: List[KanbanColumn] = Field(default_factory=list)
    links: List[ViewLink] = Field(default_factory=list)


class PositionedNode(_ViewModel):
    node_id: str = Field(..., alias="nodeId")
    content: str
    x: float
    y: float


class FlowView(_ViewModel):
    style: Literal["flow"] = "flow"
    nodes: List[PositionedNode] = Field(default_factory=list)
    connections: List[ViewLink] = Field(default_factory=list, description="Directed source -> target")


class GridGroup(_ViewModel):
    node_id: str = Field(..., alias="nodeId")
    title: str
    rows: List[BoardCard] = Field(default_factory=list)


class GridView(_ViewModel):
    style: Literal["grid", "table"]
    groups: List[GridGroup] = Field(default_factory=list)
    links: List[ViewLink] = Field(default_factory=list)


class TimelineTask(_ViewModel):
    node_id: str = Field(..., alias="nodeId")
    content: str
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")
    progress: float = Field(..., ge=0, le=100)


class TimelineView(_ViewModel):
    style: Literal["timeline"] = "timeline"
    tasks: List[TimelineTask] = Field(default_factory=list)


class CanvasView(_ViewModel):
    style: Literal["freeform"] = "freeform"
    nodes: List[PositionedNode] = Field(default_factory=list)
    links: List[ViewLink] = Field(default_factory=list)


GraphView = Union[OutlineView, KanbanView, FlowView, GridView, TimelineView, CanvasView]


class GraphViewResponse(_ViewModel):
    graph_id: str = Field(..., alias="graphId")
    kind: str
    style: str
    view: GraphView


__all__ = [
    "OutlineBranch",
    "OutlineView",
    "ViewLink",
    "BoardCard",
    "KanbanColumn",
    "KanbanView",
    "PositionedNode",
    "FlowView",
    "GridGroup",
    "GridView",
    "TimelineTask",
    "TimelineView",
    "CanvasView",
    "GraphView",
    "GraphViewResponse",
]
