"""Progress events streamed by the extraction pipeline (one JSON object per line)."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

StepName = Literal["collect", "parse", "analyze", "create"]


class SuggestionPreview(BaseModel):
    """Title-level view of a suggestion, shown before anything is created."""

    type: str
    title: str
    icon: str
    description: str


class ExtractionEvent(BaseModel):
    """A single record of the progress protocol."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["step", "suggestions", "tool_result", "delta", "error", "done"] = Field(
        ..., description="Event type"
    )
    step: Optional[StepName] = Field(None, description="Stage name (step events only)")
    message: Optional[str] = Field(None, description="Human-readable stage message (step events only)")
    suggestions: Optional[List[SuggestionPreview]] = Field(
        None, description="Suggestion titles (suggestions event only)"
    )
    tool_name: Optional[str] = Field(None, alias="toolName", description="create_collection, create_record or create_graph")
    tool_output: Optional[str] = Field(
        None, alias="toolOutput", description="JSON of {id, name} for the created entity"
    )
    group: Optional[str] = Field(None, description="Title of the originating suggestion")
    group_icon: Optional[str] = Field(None, alias="groupIcon", description="Icon of the originating suggestion")
    content: Optional[str] = Field(None, description="Narrative text (delta events only)")
    error: Optional[str] = Field(None, description="Error message (error events only)")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


__all__ = ["StepName", "SuggestionPreview", "ExtractionEvent"]
