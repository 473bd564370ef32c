"""FastMCP server exposing collection, graph and extraction tools."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

# Load environment variables from .env file
load_dotenv()

from ..models.extraction import CollaboratorSelection, ExtractionRequest, SourceDocument
from ..models.scope import TargetScope
from ..services.collection_service import get_collection_service
from ..services.database import init_database
from ..services.errors import ContextoryError
from ..services.extraction_pipeline import ExtractionPipeline, get_extraction_pipeline
from ..services.graph_service import get_graph_service

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "contextory",
    instructions=(
        "Structured workspace tools. Collections are typed tables of records; graphs are forests "
        "of nodes plus undirected edges rendered as outline, mindmap, kanban, flow, grid, table, "
        "timeline or freeform views. Scope every call with workspace_id/project_id; omit both for "
        "global entities. extract_structure analyzes raw text and creates every suggestion it finds."
    ),
)


def _scope(workspace_id: Optional[str], project_id: Optional[str]) -> TargetScope:
    return TargetScope(workspace_id=workspace_id or None, project_id=project_id or None)


def _log_call(tool_name: str, start_time: float, **extra: Any) -> None:
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "MCP tool called",
        extra={"tool_name": tool_name, "duration_ms": f"{duration_ms:.2f}", **extra},
    )


@mcp.tool(
    name="list_collections",
    description="List collections reachable from a workspace/project (global ones always included).",
)
def list_collections(
    workspace_id: Optional[str] = Field(default=None, description="Enclosing workspace id."),
    project_id: Optional[str] = Field(default=None, description="Target project id."),
) -> List[Dict[str, Any]]:
    start_time = time.time()
    collections = get_collection_service().list_collections(_scope(workspace_id, project_id))
    _log_call("list_collections", start_time, result_count=len(collections))
    return [
        {
            "id": collection.id,
            "name": collection.name,
            "icon": collection.icon,
            "fields": [{"id": f.id, "name": f.name, "type": f.type.value} for f in collection.fields],
        }
        for collection in collections
    ]


@mcp.tool(name="get_graph", description="Read a graph with all of its nodes and edges.")
def get_graph(
    graph_id: str = Field(..., description="Graph id."),
) -> Dict[str, Any]:
    start_time = time.time()
    try:
        graph = get_graph_service().get_graph(graph_id)
    except ContextoryError as exc:
        logger.error(f"get_graph failed: {exc.message}", extra=exc.details)
        return {"error": exc.message, "details": exc.details}
    _log_call("get_graph", start_time, graph_id=graph_id, node_count=len(graph.nodes))
    return graph.model_dump(mode="json", by_alias=True)


@mcp.tool(
    name="add_graph_node",
    description="Add a node to a graph, optionally under a parent node. Returns the new node id.",
)
def add_graph_node(
    graph_id: str = Field(..., description="Graph id."),
    content: str = Field(..., description="Node text."),
    parent_id: Optional[str] = Field(default=None, description="Parent node id; omit for a root."),
    metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Style-specific metadata such as status, x/y or startDate/endDate/progress.",
    ),
) -> Dict[str, Any]:
    start_time = time.time()
    try:
        node_id = get_graph_service().add_node(
            graph_id, content, parent_id=parent_id, metadata=metadata
        )
    except ContextoryError as exc:
        logger.error(f"add_graph_node failed: {exc.message}", extra=exc.details)
        return {"error": exc.message, "details": exc.details}
    _log_call("add_graph_node", start_time, graph_id=graph_id)
    return {"id": node_id}


@mcp.tool(
    name="add_graph_edge",
    description="Connect two nodes of a graph. Re-adding an existing pair returns the existing id.",
)
def add_graph_edge(
    graph_id: str = Field(..., description="Graph id."),
    source_id: str = Field(..., description="First node id."),
    target_id: str = Field(..., description="Second node id."),
) -> Dict[str, Any]:
    start_time = time.time()
    try:
        edge_id = get_graph_service().add_edge(graph_id, source_id, target_id)
    except ContextoryError as exc:
        logger.error(f"add_graph_edge failed: {exc.message}", extra=exc.details)
        return {"error": exc.message, "details": exc.details}
    _log_call("add_graph_edge", start_time, graph_id=graph_id)
    return {"id": edge_id}


async def run_extraction(
    pipeline: ExtractionPipeline, request: ExtractionRequest
) -> List[Dict[str, Any]]:
    """Drive a full, auto-confirmed run and collect its wire events."""
    return [event.to_wire() async for event in pipeline.run(request)]


@mcp.tool(
    name="extract_structure",
    description=(
        "Analyze raw text and create the collections, records and graphs it contains. "
        "Every suggestion is created; returns the progress events of the run."
    ),
)
async def extract_structure(
    text: str = Field(..., min_length=1, description="Text to analyze (markdown or HTML)."),
    source_name: str = Field(default="MCP input", description="Label for the source."),
    workspace_id: Optional[str] = Field(default=None, description="Enclosing workspace id."),
    project_id: Optional[str] = Field(default=None, description="Target project id."),
    provider: Optional[str] = Field(
        default=None, description="openai, anthropic or openrouter; server default when omitted."
    ),
) -> Dict[str, Any]:
    start_time = time.time()
    request = ExtractionRequest(
        sources=[SourceDocument(name=source_name, content=text)],
        target_scope=_scope(workspace_id, project_id),
        collaborator=CollaboratorSelection(provider=provider),
    )
    events = await run_extraction(get_extraction_pipeline(), request)
    _log_call("extract_structure", start_time, text_length=len(text), event_count=len(events))
    return {"events": events}


if __name__ == "__main__":
    init_database()
    transport = os.getenv("MCP_TRANSPORT", "stdio").strip().lower() or "stdio"

    # Configure HTTP transport with custom port if specified
    if transport == "http":
        port = int(os.getenv("MCP_PORT", "8001"))
        host = os.getenv("MCP_HOST", "127.0.0.1")
        logger.info(
            "Starting MCP server",
            extra={"transport": transport, "host": host, "port": port},
        )
        mcp.run(transport=transport, host=host, port=port)
    else:
        logger.info("Starting MCP server", extra={"transport": transport})
        mcp.run(transport=transport)


__all__ = ["mcp", "run_extraction"]
