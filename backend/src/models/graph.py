"""Graph data models: a node forest plus non-hierarchical edges."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StructuralKind(str, Enum):
    """Which interpretation family reads a graph."""

    HIERARCHY = "hierarchy"
    BOARD = "board"
    CANVAS = "canvas"


class ViewStyle(str, Enum):
    """A specific visual interpretation within a structural kind."""

    OUTLINE = "outline"
    MINDMAP = "mindmap"
    KANBAN = "kanban"
    FLOW = "flow"
    GRID = "grid"
    TABLE = "table"
    TIMELINE = "timeline"
    FREEFORM = "freeform"


# Names emitted by older clients and prompts
STYLE_ALIASES: Dict[str, ViewStyle] = {
    "notes": ViewStyle.OUTLINE,
    "list": ViewStyle.OUTLINE,
    "gantt": ViewStyle.TIMELINE,
}

STYLE_KINDS: Dict[ViewStyle, StructuralKind] = {
    ViewStyle.OUTLINE: StructuralKind.HIERARCHY,
    ViewStyle.MINDMAP: StructuralKind.HIERARCHY,
    ViewStyle.KANBAN: StructuralKind.BOARD,
    ViewStyle.FLOW: StructuralKind.BOARD,
    ViewStyle.GRID: StructuralKind.BOARD,
    ViewStyle.TABLE: StructuralKind.BOARD,
    ViewStyle.TIMELINE: StructuralKind.BOARD,
    ViewStyle.FREEFORM: StructuralKind.CANVAS,
}

DEFAULT_STYLE = ViewStyle.OUTLINE


def normalize_style(value: Optional[str | ViewStyle]) -> ViewStyle:
    """Map a raw style name (or None) onto a ViewStyle, defaulting to outline."""
    if value is None or value == "":
        return DEFAULT_STYLE
    if isinstance(value, ViewStyle):
        return value
    cleaned = value.strip().lower()
    if cleaned in STYLE_ALIASES:
        return STYLE_ALIASES[cleaned]
    try:
        return ViewStyle(cleaned)
    except ValueError:
        return DEFAULT_STYLE


def kind_for_style(style: Optional[str | ViewStyle]) -> StructuralKind:
    """Structural kind that owns a style."""
    return STYLE_KINDS[normalize_style(style)]


class GraphScope(str, Enum):
    """Container level a graph belongs to."""

    GLOBAL = "global"
    WORKSPACE = "workspace"
    PROJECT = "project"


class GraphNode(BaseModel):
    """An addressable unit of content within one graph."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Identifier unique within the graph")
    content: str = Field(default="", description="Node text")
    parent_id: Optional[str] = Field(
        default=None, alias="parentId", description="Parent node id, None for a root"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Open bag read by view interpretations (x, y, startDate, endDate, progress, ...)",
    )


class GraphEdge(BaseModel):
    """A non-hierarchical link between two nodes of the same graph."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    source_id: str = Field(..., alias="sourceId")
    target_id: str = Field(..., alias="targetId")


class Graph(BaseModel):
    """A node forest plus its edges, owned by one kind/style pair."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = Field(..., min_length=1, max_length=256)
    icon: str = ""
    kind: StructuralKind
    style: ViewStyle
    scope: GraphScope = GraphScope.GLOBAL
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    def node(self, node_id: str) -> Optional[GraphNode]:
        for candidate in self.nodes:
            if candidate.id == node_id:
                return candidate
        return None


class GraphCreate(BaseModel):
    """Request payload to create a graph."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=256)
    icon: str = ""
    style: Optional[str] = None
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)


class NodeCreate(BaseModel):
    """Request payload to add a node."""

    model_config = ConfigDict(populate_by_name=True)

    content: str = ""
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    metadata: Optional[Dict[str, Any]] = None


class NodePatch(BaseModel):
    """Partial node update; only fields that were sent are applied."""

    model_config = ConfigDict(populate_by_name=True)

    content: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    metadata: Optional[Dict[str, Any]] = None


class EdgeCreate(BaseModel):
    """Request payload to connect two nodes."""

    model_config = ConfigDict(populate_by_name=True)

    source_id: str = Field(..., alias="sourceId")
    target_id: str = Field(..., alias="targetId")


class StyleUpdate(BaseModel):
    """Request payload to reassign a graph's style."""

    style: str

    @field_validator("style")
    @classmethod
    def _known_style(cls, value: str) -> str:
        cleaned = value.strip().lower()
        if cleaned not in STYLE_ALIASES and cleaned not in {s.value for s in ViewStyle}:
            raise ValueError(f"Unknown view style: {value}")
        return cleaned


class GraphSummary(BaseModel):
    """Lightweight representation used for listings."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    icon: str
    kind: StructuralKind
    style: ViewStyle
    node_count: int = Field(..., alias="nodeCount")
    edge_count: int = Field(..., alias="edgeCount")


__all__ = [
    "StructuralKind",
    "ViewStyle",
    "GraphScope",
    "STYLE_ALIASES",
    "STYLE_KINDS",
    "DEFAULT_STYLE",
    "normalize_style",
    "kind_for_style",
    "GraphNode",
    "GraphEdge",
    "Graph",
    "GraphCreate",
    "NodeCreate",
    "NodePatch",
    "EdgeCreate",
    "StyleUpdate",
    "GraphSummary",
]
