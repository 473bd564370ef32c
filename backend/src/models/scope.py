"""Target scope shared by collections, records, graphs and the pipeline."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .graph import GraphScope


class TargetScope(BaseModel):
    """Which container new entities belong to.

    ``project_id`` names the target container when present and
    ``workspace_id`` its enclosing container. With neither set the entity
    is global.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")
    project_id: Optional[str] = Field(default=None, alias="projectId")

    @property
    def level(self) -> GraphScope:
        if self.project_id:
            return GraphScope.PROJECT
        if self.workspace_id:
            return GraphScope.WORKSPACE
        return GraphScope.GLOBAL

    @property
    def is_global(self) -> bool:
        return self.level is GraphScope.GLOBAL


__all__ = ["TargetScope"]
