"""Graph builders and a stand-in text generator shared by the test modules."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from backend.src.models.graph import Graph, GraphEdge, GraphNode, kind_for_style, normalize_style


def node(node_id: str, content: str = "", parent_id: Optional[str] = None, **metadata) -> GraphNode:
    return GraphNode(id=node_id, content=content or node_id, parent_id=parent_id, metadata=metadata)


def edge(edge_id: str, source_id: str, target_id: str) -> GraphEdge:
    return GraphEdge(id=edge_id, source_id=source_id, target_id=target_id)


def make_graph(nodes=(), edges=(), style: str = "outline", graph_id: str = "g1") -> Graph:
    resolved = normalize_style(style)
    return Graph(
        id=graph_id,
        name="Test graph",
        kind=kind_for_style(resolved),
        style=resolved,
        nodes=list(nodes),
        edges=list(edges),
    )


class FakeGenerator:
    """Stands in for a provider; records prompts and returns a canned object."""

    provider = "fake"
    model = "fake-model"

    def __init__(self, output: Any = None, error: Exception | None = None):
        self.output = output
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str, schema: Dict[str, Any], name: str) -> Dict[str, Any]:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.output


NULLS = {
    "sourceHeading": None,
    "collectionName": None,
    "fields": None,
    "items": None,
    "graphName": None,
    "viewStyle": None,
    "nodes": None,
    "edges": None,
    "targetCollectionId": None,
    "targetCollectionName": None,
    "standaloneItems": None,
}


def raw(kind: str, title: str, **fields) -> Dict[str, Any]:
    return {"type": kind, "title": title, "icon": "✨", "description": f"{title} found", **NULLS, **fields}
