"""Pure node/edge operations on a Graph.

Every function here takes a ``Graph`` and returns a new one (or a value
derived from it); nothing touches storage. ``GraphService`` loads a graph,
applies one of these operations and persists the result in one write.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Set, Tuple

from ..models.graph import Graph, GraphEdge, GraphNode
from .errors import InvalidReferenceError, NotFoundError


def new_id() -> str:
    return uuid.uuid4().hex


def _node_ids(graph: Graph) -> Set[str]:
    return {node.id for node in graph.nodes}


def _require_node(graph: Graph, node_id: str) -> GraphNode:
    node = graph.node(node_id)
    if node is None:
        raise NotFoundError(
            f"Node {node_id} not found in graph {graph.id}",
            {"graph_id": graph.id, "node_id": node_id},
        )
    return node


def ancestors(graph: Graph, node_id: str) -> List[str]:
    """Parent chain of a node, nearest first.

    The walk stops after ``len(graph.nodes)`` steps, so a corrupted cyclic
    chain cannot loop forever.
    """
    parents = {node.id: node.parent_id for node in graph.nodes}
    chain: List[str] = []
    current = parents.get(node_id)
    for _ in range(len(parents)):
        if current is None or current not in parents:
            break
        chain.append(current)
        current = parents[current]
    return chain


def would_create_cycle(graph: Graph, node_id: str, new_parent_id: Optional[str]) -> bool:
    """True when parenting ``node_id`` under ``new_parent_id`` closes a loop."""
    if new_parent_id is None:
        return False
    if new_parent_id == node_id:
        return True
    return node_id in ancestors(graph, new_parent_id)


def descendants(graph: Graph, node_id: str) -> Set[str]:
    """Every node below ``node_id`` in the forest."""
    children: Dict[str, List[str]] = {}
    for node in graph.nodes:
        if node.parent_id is not None:
            children.setdefault(node.parent_id, []).append(node.id)
    found: Set[str] = set()
    stack = list(children.get(node_id, []))
    while stack:
        current = stack.pop()
        if current in found or current == node_id:
            continue
        found.add(current)
        stack.extend(children.get(current, []))
    return found


def find_edge(graph: Graph, first_id: str, second_id: str) -> Optional[GraphEdge]:
    """Edge joining two nodes in either direction."""
    pair = {first_id, second_id}
    for edge in graph.edges:
        if {edge.source_id, edge.target_id} == pair:
            return edge
    return None


def validate_graph(graph: Graph) -> None:
    """Check the forest and edge invariants, raising InvalidReferenceError."""
    ids = [node.id for node in graph.nodes]
    if len(ids) != len(set(ids)):
        raise InvalidReferenceError("Node ids must be unique within a graph", {"graph_id": graph.id})
    known = set(ids)

    for node in graph.nodes:
        if node.parent_id is not None and node.parent_id not in known:
            raise InvalidReferenceError(
                f"Parent {node.parent_id} of node {node.id} does not exist",
                {"node_id": node.id, "parent_id": node.parent_id},
            )

    parents = {node.id: node.parent_id for node in graph.nodes}
    for node_id in ids:
        seen = {node_id}
        current = parents[node_id]
        while current is not None:
            if current in seen:
                raise InvalidReferenceError(
                    f"Parent chain of node {node_id} contains a cycle", {"node_id": node_id}
                )
            seen.add(current)
            current = parents[current]

    edge_ids: Set[str] = set()
    pairs: Set[frozenset] = set()
    for edge in graph.edges:
        if edge.id in edge_ids:
            raise InvalidReferenceError(f"Duplicate edge id {edge.id}", {"edge_id": edge.id})
        edge_ids.add(edge.id)
        if edge.source_id not in known or edge.target_id not in known:
            raise InvalidReferenceError(
                f"Edge {edge.id} references a missing node",
                {"edge_id": edge.id, "source_id": edge.source_id, "target_id": edge.target_id},
            )
        if edge.source_id == edge.target_id:
            raise InvalidReferenceError(f"Edge {edge.id} is a self-loop", {"edge_id": edge.id})
        pair = frozenset((edge.source_id, edge.target_id))
        if pair in pairs:
            raise InvalidReferenceError(
                f"Edge {edge.id} duplicates an existing connection", {"edge_id": edge.id}
            )
        pairs.add(pair)


def add_node(
    graph: Graph,
    content: str,
    parent_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    node_id: Optional[str] = None,
) -> Tuple[Graph, str]:
    if parent_id is not None and parent_id not in _node_ids(graph):
        raise InvalidReferenceError(
            f"Parent {parent_id} does not exist in graph {graph.id}",
            {"graph_id": graph.id, "parent_id": parent_id},
        )
    node = GraphNode(
        id=node_id or new_id(),
        content=content,
        parent_id=parent_id,
        metadata=dict(metadata or {}),
    )
    if node.id in _node_ids(graph):
        raise InvalidReferenceError(f"Node id {node.id} already exists", {"node_id": node.id})
    return graph.model_copy(update={"nodes": [*graph.nodes, node]}), node.id


def update_node(graph: Graph, node_id: str, patch: Dict[str, Any]) -> Graph:
    """Apply a partial update.

    ``patch`` may carry ``content``, ``parent_id`` and ``metadata``. Metadata
    keys are merged into the existing bag and a ``None`` value removes a key.
    """
    node = _require_node(graph, node_id)
    changes: Dict[str, Any] = {}

    if "content" in patch and patch["content"] is not None:
        changes["content"] = patch["content"]

    if "parent_id" in patch:
        parent_id = patch["parent_id"]
        if parent_id is not None and parent_id not in _node_ids(graph):
            raise InvalidReferenceError(
                f"Parent {parent_id} does not exist in graph {graph.id}",
                {"graph_id": graph.id, "parent_id": parent_id},
            )
        if would_create_cycle(graph, node_id, parent_id):
            raise InvalidReferenceError(
                f"Moving node {node_id} under {parent_id} would create a cycle",
                {"node_id": node_id, "parent_id": parent_id},
            )
        changes["parent_id"] = parent_id

    if patch.get("metadata") is not None:
        merged = dict(node.metadata)
        for key, value in patch["metadata"].items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        changes["metadata"] = merged

    updated = node.model_copy(update=changes)
    nodes = [updated if candidate.id == node_id else candidate for candidate in graph.nodes]
    return graph.model_copy(update={"nodes": nodes})


def delete_node(graph: Graph, node_id: str) -> Graph:
    """Remove a node, its descendants and every incident edge."""
    _require_node(graph, node_id)
    removed = descendants(graph, node_id) | {node_id}
    nodes = [node for node in graph.nodes if node.id not in removed]
    edges = [
        edge
        for edge in graph.edges
        if edge.source_id not in removed and edge.target_id not in removed
    ]
    return graph.model_copy(update={"nodes": nodes, "edges": edges})


def add_edge(graph: Graph, source_id: str, target_id: str) -> Tuple[Graph, str]:
    """Connect two nodes; an already-connected pair returns the existing edge id."""
    known = _node_ids(graph)
    missing = [node_id for node_id in (source_id, target_id) if node_id not in known]
    if missing:
        raise InvalidReferenceError(
            f"Edge endpoint(s) not found: {', '.join(missing)}",
            {"graph_id": graph.id, "missing": missing},
        )
    if source_id == target_id:
        raise InvalidReferenceError(
            "An edge must connect two distinct nodes", {"node_id": source_id}
        )
    existing = find_edge(graph, source_id, target_id)
    if existing is not None:
        return graph, existing.id
    edge = GraphEdge(id=new_id(), source_id=source_id, target_id=target_id)
    return graph.model_copy(update={"edges": [*graph.edges, edge]}), edge.id


def delete_edge(graph: Graph, edge_id: str) -> Graph:
    if not any(edge.id == edge_id for edge in graph.edges):
        raise NotFoundError(
            f"Edge {edge_id} not found in graph {graph.id}",
            {"graph_id": graph.id, "edge_id": edge_id},
        )
    return graph.model_copy(update={"edges": [e for e in graph.edges if e.id != edge_id]})


def children_of(graph: Graph) -> Dict[Optional[str], List[GraphNode]]:
    """Group nodes by parent id, preserving order. Orphans count as roots."""
    known = _node_ids(graph)
    grouped: Dict[Optional[str], List[GraphNode]] = {}
    for node in graph.nodes:
        parent = node.parent_id if node.parent_id in known and node.parent_id != node.id else None
        grouped.setdefault(parent, []).append(node)
    return grouped


def roots(graph: Graph) -> List[GraphNode]:
    return children_of(graph).get(None, [])


__all__ = [
    "new_id",
    "ancestors",
    "would_create_cycle",
    "descendants",
    "find_edge",
    "validate_graph",
    "add_node",
    "update_node",
    "delete_node",
    "add_edge",
    "delete_edge",
    "children_of",
    "roots",
]
