"""HTTP API routes for collections and their records."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...models.collection import Collection, CollectionCreate, Record, RecordCreate
from ...models.scope import TargetScope
from ...services.collection_service import CollectionService, get_collection_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/collections", tags=["collections"])


@router.get("", response_model=List[Collection])
async def list_collections(
    workspace_id: Optional[str] = Query(None, alias="workspaceId"),
    project_id: Optional[str] = Query(None, alias="projectId"),
    service: CollectionService = Depends(get_collection_service),
):
    """
    List collections.

    Without `workspaceId`/`projectId` every collection is returned; with
    either, only collections reachable from that scope.
    """
    if workspace_id is None and project_id is None:
        return service.list_collections()
    return service.list_collections(TargetScope(workspace_id=workspace_id, project_id=project_id))


@router.post("", response_model=Collection, status_code=status.HTTP_201_CREATED)
async def create_collection(
    payload: CollectionCreate,
    service: CollectionService = Depends(get_collection_service),
):
    return service.create_collection(payload)


@router.get("/{collection_id}", response_model=Collection)
async def get_collection(
    collection_id: str, service: CollectionService = Depends(get_collection_service)
):
    return service.get_collection(collection_id)


@router.get("/{collection_id}/records", response_model=List[Record])
async def list_records(
    collection_id: str, service: CollectionService = Depends(get_collection_service)
):
    service.get_collection(collection_id)
    return service.list_records(collection_id)


@router.post(
    "/{collection_id}/records", response_model=Record, status_code=status.HTTP_201_CREATED
)
async def create_record(
    collection_id: str,
    payload: RecordCreate,
    service: CollectionService = Depends(get_collection_service),
):
    """Add a record. Field values are keyed by field-definition id."""
    return service.create_record(
        collection_id,
        payload.name,
        payload.field_values,
        workspace_id=payload.workspace_id,
        project_id=payload.project_id,
    )


__all__ = ["router"]
