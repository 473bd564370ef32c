"""HTTP API routes for graphs, their nodes, edges and rendered views."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ...models.graph import (
    EdgeCreate,
    Graph,
    GraphCreate,
    GraphNode,
    GraphSummary,
    NodeCreate,
    NodePatch,
    StyleUpdate,
)
from ...models.scope import TargetScope
from ...models.views import GraphViewResponse
from ...services.graph_service import GraphService, get_graph_service
from ...services.view_rules import interpret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/graphs", tags=["graphs"])


@router.get("", response_model=List[GraphSummary], response_model_by_alias=True)
async def list_graphs(
    workspace_id: Optional[str] = Query(None, alias="workspaceId"),
    project_id: Optional[str] = Query(None, alias="projectId"),
    service: GraphService = Depends(get_graph_service),
):
    """List graphs owned by a workspace or project (global graphs without either)."""
    return service.list_graphs(TargetScope(workspace_id=workspace_id, project_id=project_id))


@router.post("", response_model=Graph, status_code=status.HTTP_201_CREATED)
async def create_graph(
    payload: GraphCreate,
    service: GraphService = Depends(get_graph_service),
):
    """Create a graph, optionally with an initial node/edge set."""
    scope = TargetScope(workspace_id=payload.workspace_id, project_id=payload.project_id)
    return service.create_graph(
        payload.name,
        style=payload.style,
        scope=scope,
        icon=payload.icon,
        nodes=payload.nodes,
        edges=payload.edges,
    )


@router.get("/{graph_id}", response_model=Graph)
async def get_graph(graph_id: str, service: GraphService = Depends(get_graph_service)):
    return service.get_graph(graph_id)


@router.delete("/{graph_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_graph(graph_id: str, service: GraphService = Depends(get_graph_service)):
    service.delete_graph(graph_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{graph_id}/style", response_model=Graph)
async def set_style(
    graph_id: str,
    payload: StyleUpdate,
    service: GraphService = Depends(get_graph_service),
):
    """Switch the graph to another view style; node and edge ids are kept."""
    return service.set_style(graph_id, payload.style)


@router.get("/{graph_id}/view", response_model=GraphViewResponse, response_model_by_alias=True)
async def get_view(graph_id: str, service: GraphService = Depends(get_graph_service)):
    """Render the graph under its kind/style interpretation rule."""
    graph = service.get_graph(graph_id)
    return GraphViewResponse(
        graph_id=graph.id,
        kind=graph.kind.value,
        style=graph.style.value,
        view=interpret(graph),
    )


@router.post("/{graph_id}/nodes", status_code=status.HTTP_201_CREATED)
async def add_node(
    graph_id: str,
    payload: NodeCreate,
    service: GraphService = Depends(get_graph_service),
) -> Dict[str, str]:
    node_id = service.add_node(
        graph_id, payload.content, parent_id=payload.parent_id, metadata=payload.metadata
    )
    return {"id": node_id}


@router.patch("/{graph_id}/nodes/{node_id}", response_model=GraphNode)
async def update_node(
    graph_id: str,
    node_id: str,
    payload: NodePatch,
    service: GraphService = Depends(get_graph_service),
):
    """Apply only the fields present in the request body."""
    patch = {name: getattr(payload, name) for name in payload.model_fields_set}
    return service.update_node(graph_id, node_id, patch)


@router.delete("/{graph_id}/nodes/{node_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_node(
    graph_id: str,
    node_id: str,
    service: GraphService = Depends(get_graph_service),
):
    """Delete a node together with its descendants and incident edges."""
    service.delete_node(graph_id, node_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{graph_id}/edges", status_code=status.HTTP_201_CREATED)
async def add_edge(
    graph_id: str,
    payload: EdgeCreate,
    service: GraphService = Depends(get_graph_service),
) -> Dict[str, str]:
    """Connect two nodes. Re-adding an existing pair returns the existing id."""
    return {"id": service.add_edge(graph_id, payload.source_id, payload.target_id)}


@router.delete("/{graph_id}/edges/{edge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_edge(
    graph_id: str,
    edge_id: str,
    service: GraphService = Depends(get_graph_service),
):
    service.delete_edge(graph_id, edge_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
