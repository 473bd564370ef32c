"""Extraction API endpoints - streaming analyze/materialize runs."""

from __future__ import annotations

import json
import logging
from typing import AsyncGenerator, AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sse_starlette.sse import EventSourceResponse

from ...models.events import ExtractionEvent
from ...models.extraction import ExtractionOutput, ExtractionRequest, MaterializeRequest
from ...services.extraction_pipeline import ExtractionPipeline, get_extraction_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/extract", tags=["extract"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def wants_event_stream(request: Request) -> bool:
    return "text/event-stream" in request.headers.get("accept", "")


def _stream(request: Request, events: AsyncIterator[ExtractionEvent]):
    """Serialize pipeline events as NDJSON, or as SSE when the client asks for it."""

    async def ndjson() -> AsyncGenerator[str, None]:
        async for event in events:
            yield json.dumps(event.to_wire()) + "\n"

    async def sse() -> AsyncGenerator[str, None]:
        async for event in events:
            yield json.dumps(event.to_wire())

    if wants_event_stream(request):
        return EventSourceResponse(sse())
    return StreamingResponse(
        ndjson(),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/analyze")
async def analyze(
    payload: ExtractionRequest,
    request: Request,
    pipeline: ExtractionPipeline = Depends(get_extraction_pipeline),
):
    """
    Run the full pipeline over the given sources and stream progress.

    **Request Body:**
    - `sources`: list of `{name, content?, summary?}`
    - `targetScope`: `{workspaceId?, projectId?}`; empty means global
    - `collaboratorSelection`: `{provider?, model?, credential?}`
    - `confirmIndices`: suggestions to materialize; null confirms all

    **Response:** one JSON event per line (`step`, `suggestions`,
    `tool_result`, `delta`, `error`, `done`). Send
    `Accept: text/event-stream` to receive the same events as SSE.
    """
    logger.info(
        f"Extraction run requested: {len(payload.sources)} sources, "
        f"scope={payload.target_scope.level.value}"
    )
    return _stream(request, pipeline.run(payload))


@router.post("/suggest", response_model=ExtractionOutput, response_model_by_alias=True)
async def suggest(
    payload: ExtractionRequest,
    pipeline: ExtractionPipeline = Depends(get_extraction_pipeline),
):
    """Analyze sources and return suggestions without creating anything."""
    return await pipeline.suggest(payload)


@router.post("/materialize")
async def materialize(
    payload: MaterializeRequest,
    request: Request,
    pipeline: ExtractionPipeline = Depends(get_extraction_pipeline),
):
    """Create entities for client-confirmed suggestions, streaming progress."""
    suggestions = [raw.to_suggestion() for raw in payload.suggestions]
    logger.info(f"Materializing {len(suggestions)} confirmed suggestions")
    return _stream(
        request, pipeline.materialize(suggestions, payload.target_scope, payload.summary or "")
    )


__all__ = ["router", "wants_event_stream", "NDJSON_MEDIA_TYPE"]
