"""Graph Service - persistence for node/edge graphs.

A graph is stored as a single row whose ``data`` column holds the node and
edge lists, so every mutation (including bulk creation by the extraction
pipeline) is one atomic write.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..models.graph import (
    Graph,
    GraphEdge,
    GraphNode,
    GraphSummary,
    kind_for_style,
    normalize_style,
)
from ..models.scope import TargetScope
from . import graph_model
from .database import DatabaseService
from .errors import EntityWriteError, NotFoundError

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_graph(row: sqlite3.Row) -> Graph:
    data = json.loads(row["data"] or "{}")
    return Graph(
        id=row["id"],
        name=row["name"],
        icon=row["icon"],
        kind=row["kind"],
        style=row["style"],
        scope=row["scope"],
        workspace_id=row["workspace_id"],
        project_id=row["project_id"],
        nodes=[GraphNode.model_validate(node) for node in data.get("nodes", [])],
        edges=[GraphEdge.model_validate(edge) for edge in data.get("edges", [])],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _serialize_data(graph: Graph) -> str:
    return json.dumps(
        {
            "nodes": [node.model_dump(mode="json") for node in graph.nodes],
            "edges": [edge.model_dump(mode="json") for edge in graph.edges],
        }
    )


class GraphService:
    """Service for graph CRUD and node/edge mutations."""

    def __init__(self, db_service: DatabaseService | None = None):
        """Initialize with database service."""
        self._db = db_service or DatabaseService()

    # ------------------------------------------------------------------
    # Graph rows
    # ------------------------------------------------------------------

    def create_graph(
        self,
        name: str,
        style: Optional[str] = None,
        scope: Optional[TargetScope] = None,
        icon: str = "",
        nodes: Sequence[GraphNode] = (),
        edges: Sequence[GraphEdge] = (),
    ) -> Graph:
        """Create a graph with its full node/edge set in one write."""
        scope = scope or TargetScope()
        resolved_style = normalize_style(style)
        now = _now()
        graph = Graph(
            id=uuid.uuid4().hex,
            name=name,
            icon=icon,
            kind=kind_for_style(resolved_style),
            style=resolved_style,
            scope=scope.level,
            workspace_id=scope.workspace_id,
            project_id=scope.project_id,
            nodes=list(nodes),
            edges=list(edges),
            created_at=now,
            updated_at=now,
        )
        graph_model.validate_graph(graph)

        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO graphs (
                        id, name, icon, kind, style, scope, workspace_id, project_id,
                        data, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        graph.id,
                        graph.name,
                        graph.icon,
                        graph.kind.value,
                        graph.style.value,
                        graph.scope.value,
                        graph.workspace_id,
                        graph.project_id,
                        _serialize_data(graph),
                        now.isoformat(),
                        now.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            logger.error(f"Failed to create graph '{name}': {exc}")
            raise EntityWriteError(f"Failed to create graph: {exc}") from exc
        finally:
            conn.close()

        logger.info(
            f"Created graph {graph.id} ({graph.kind.value}/{graph.style.value}) "
            f"with {len(graph.nodes)} nodes and {len(graph.edges)} edges"
        )
        return graph

    def get_graph(self, graph_id: str) -> Graph:
        conn = self._db.connect()
        try:
            row = conn.execute("SELECT * FROM graphs WHERE id = ?", (graph_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError(f"Graph {graph_id} not found", {"graph_id": graph_id})
        return _row_to_graph(row)

    def list_graphs(self, scope: Optional[TargetScope] = None) -> List[GraphSummary]:
        """Graphs owned by a scope's target container (all graphs when scope is None)."""
        query = "SELECT * FROM graphs"
        params: List[Any] = []
        if scope is not None:
            if scope.project_id:
                query += " WHERE project_id = ?"
                params.append(scope.project_id)
            elif scope.workspace_id:
                query += " WHERE workspace_id = ? AND project_id IS NULL"
                params.append(scope.workspace_id)
            else:
                query += " WHERE scope = 'global'"
        query += " ORDER BY created_at, name"

        conn = self._db.connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        summaries = []
        for row in rows:
            graph = _row_to_graph(row)
            summaries.append(
                GraphSummary(
                    id=graph.id,
                    name=graph.name,
                    icon=graph.icon,
                    kind=graph.kind,
                    style=graph.style,
                    node_count=len(graph.nodes),
                    edge_count=len(graph.edges),
                )
            )
        return summaries

    def delete_graph(self, graph_id: str) -> None:
        conn = self._db.connect()
        try:
            with conn:
                cursor = conn.execute("DELETE FROM graphs WHERE id = ?", (graph_id,))
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise NotFoundError(f"Graph {graph_id} not found", {"graph_id": graph_id})
        logger.info(f"Deleted graph {graph_id}")

    def set_style(self, graph_id: str, style: str) -> Graph:
        """Reassign the kind/style pair; node and edge identities are untouched."""
        resolved = normalize_style(style)

        def restyle(graph: Graph) -> Tuple[Graph, None]:
            return graph.model_copy(update={"style": resolved, "kind": kind_for_style(resolved)}), None

        graph, _ = self._mutate(graph_id, restyle)
        return graph

    def _mutate(
        self, graph_id: str, operation: Callable[[Graph], Tuple[Graph, Any]]
    ) -> Tuple[Graph, Any]:
        """Apply ``operation`` to the stored graph under one write transaction.

        The row is read after ``BEGIN IMMEDIATE`` takes the write lock, so
        concurrent mutations of the same graph serialize instead of
        overwriting each other. An operation that returns the graph it was
        given leaves the row untouched.
        """
        conn = self._db.connect()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute("SELECT * FROM graphs WHERE id = ?", (graph_id,)).fetchone()
                if row is None:
                    raise NotFoundError(f"Graph {graph_id} not found", {"graph_id": graph_id})
                original = _row_to_graph(row)
                graph, result = operation(original)
                if graph is original:
                    return graph, result
                graph_model.validate_graph(graph)
                now = _now()
                conn.execute(
                    """
                    UPDATE graphs SET name = ?, icon = ?, kind = ?, style = ?, data = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        graph.name,
                        graph.icon,
                        graph.kind.value,
                        graph.style.value,
                        _serialize_data(graph),
                        now.isoformat(),
                        graph.id,
                    ),
                )
        except sqlite3.Error as exc:
            logger.error(f"Failed to save graph {graph_id}: {exc}")
            raise EntityWriteError(f"Failed to save graph: {exc}") from exc
        finally:
            conn.close()
        return graph.model_copy(update={"updated_at": now}), result

    # ------------------------------------------------------------------
    # Node / edge operations
    # ------------------------------------------------------------------

    def add_node(
        self,
        graph_id: str,
        content: str,
        parent_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        _, node_id = self._mutate(
            graph_id,
            lambda graph: graph_model.add_node(
                graph, content, parent_id=parent_id, metadata=metadata
            ),
        )
        return node_id

    def update_node(self, graph_id: str, node_id: str, patch: Dict[str, Any]) -> GraphNode:
        graph, _ = self._mutate(
            graph_id, lambda graph: (graph_model.update_node(graph, node_id, patch), None)
        )
        return graph.node(node_id)

    def delete_node(self, graph_id: str, node_id: str) -> None:
        self._mutate(graph_id, lambda graph: (graph_model.delete_node(graph, node_id), None))

    def add_edge(self, graph_id: str, source_id: str, target_id: str) -> str:
        _, edge_id = self._mutate(
            graph_id, lambda graph: graph_model.add_edge(graph, source_id, target_id)
        )
        return edge_id

    def delete_edge(self, graph_id: str, edge_id: str) -> None:
        self._mutate(graph_id, lambda graph: (graph_model.delete_edge(graph, edge_id), None))


def get_graph_service() -> GraphService:
    """Dependency provider bound to the configured database."""
    return GraphService(DatabaseService())


__all__ = ["GraphService", "get_graph_service"]
