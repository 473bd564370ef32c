"""Extraction schema models.

Two shapes live here. The *flat* shape (``RawSuggestion``) is what the
text-generation provider is constrained to emit: every kind-specific field
is always present and null on kinds it does not belong to, because strict
structured-output backends reject optional properties. Immediately after
validation a flat suggestion is converted into one member of the
``Suggestion`` tagged union, which is what the pipeline works with.
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .graph import STYLE_ALIASES, ViewStyle, normalize_style
from .scope import TargetScope

SuggestionKind = Literal["collection_with_records", "graph_nodes", "standalone_records"]

BOUNDARY_VIEW_STYLES = (
    "outline",
    "mindmap",
    "kanban",
    "flow",
    "timeline",
    "grid",
    "table",
    "freeform",
)
BoundaryViewStyle = Literal[
    "outline", "mindmap", "kanban", "flow", "timeline", "grid", "table", "freeform"
]

_KIND_FIELDS = {
    "collection_with_records": ("collection_name", "fields", "items"),
    "graph_nodes": ("graph_name", "view_style", "nodes", "edges"),
    "standalone_records": ("target_collection_id", "target_collection_name", "standalone_items"),
}


class _BoundaryModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RawFieldSpec(_BoundaryModel):
    name: str = Field(..., description="Field name")
    type: str = Field(..., description="One of: text, number, date, url, checkbox, select")


class RawFieldValue(_BoundaryModel):
    field: str = Field(..., description="Field name matching a field in the fields array")
    value: str = Field(..., description="Field value as string")


class RawItem(_BoundaryModel):
    name: str
    fields: Optional[List[RawFieldValue]] = Field(
        default=None, description="Field values for this item, or null"
    )


class RawNodeMetadata(_BoundaryModel):
    start_date: Optional[str] = Field(
        default=None, alias="startDate", description="ISO date YYYY-MM-DD (timeline only), or null"
    )
    end_date: Optional[str] = Field(
        default=None, alias="endDate", description="ISO date YYYY-MM-DD (timeline only), or null"
    )
    progress: Optional[float] = Field(
        default=None, description="0-100 percentage (timeline only), or null"
    )

    def as_node_metadata(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class RawNode(_BoundaryModel):
    content: str
    parent_index: Optional[int] = Field(
        default=None, alias="parentIndex", description="0-based index of parent node, null for root"
    )
    metadata: Optional[RawNodeMetadata] = None


class RawEdge(_BoundaryModel):
    source_index: int = Field(..., alias="sourceIndex", description="0-based index of source node")
    target_index: int = Field(..., alias="targetIndex", description="0-based index of target node")


class RawStandaloneItem(_BoundaryModel):
    name: str


class RawSuggestion(_BoundaryModel):
    """Flat, nullable suggestion exactly as the provider emits it."""

    type: SuggestionKind
    title: str = Field(..., description="Human-readable group name")
    icon: str = Field(..., description="Single emoji icon")
    description: str = Field(..., description="What this group represents")
    source_heading: Optional[str] = Field(
        default=None,
        alias="sourceHeading",
        description="The heading this data was extracted from, or null",
    )
    collection_name: Optional[str] = Field(
        default=None,
        alias="collectionName",
        description="Name for the collection (collection_with_records only, null otherwise)",
    )
    fields: Optional[List[RawFieldSpec]] = Field(
        default=None,
        description="Field definitions (collection_with_records only, null otherwise)",
    )
    items: Optional[List[RawItem]] = Field(
        default=None, description="Records to create (collection_with_records only, null otherwise)"
    )
    graph_name: Optional[str] = Field(
        default=None,
        alias="graphName",
        description="Name for the graph (graph_nodes only, null otherwise)",
    )
    view_style: Optional[BoundaryViewStyle] = Field(
        default=None,
        alias="viewStyle",
        description=(
            "Best view. flow=process, kanban=grouped by status, mindmap/outline=hierarchy, "
            "timeline=schedule, grid/table=groups of rows, freeform=loose canvas. "
            "Null if not graph_nodes."
        ),
    )
    nodes: Optional[List[RawNode]] = Field(
        default=None, description="Graph nodes (graph_nodes only, null otherwise)"
    )
    edges: Optional[List[RawEdge]] = Field(
        default=None, description="Connections between nodes (graph_nodes only, null otherwise)"
    )
    target_collection_id: Optional[str] = Field(
        default=None,
        alias="targetCollectionId",
        description="Existing collection id (standalone_records only, null otherwise)",
    )
    target_collection_name: Optional[str] = Field(
        default=None,
        alias="targetCollectionName",
        description="Existing collection name (standalone_records only, null otherwise)",
    )
    standalone_items: Optional[List[RawStandaloneItem]] = Field(
        default=None,
        alias="standaloneItems",
        description="Records to add to an existing collection (standalone_records only, null otherwise)",
    )

    @field_validator("view_style", mode="before")
    @classmethod
    def _legacy_style_names(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str) and value.strip().lower() in STYLE_ALIASES:
            return STYLE_ALIASES[value.strip().lower()].value
        return value

    @model_validator(mode="after")
    def _check_kind_fields(self) -> "RawSuggestion":
        for kind, names in _KIND_FIELDS.items():
            if kind == self.type:
                continue
            for name in names:
                value = getattr(self, name)
                if value is None or value == [] or value == "":
                    continue
                raise ValueError(f"'{name}' must be null for suggestions of type '{self.type}'")

        if self.type == "collection_with_records" and self.items is None:
            raise ValueError("collection_with_records requires 'items'")
        if self.type == "graph_nodes" and not self.nodes:
            raise ValueError("graph_nodes requires at least one node")
        if self.type == "standalone_records":
            if not (self.target_collection_id or self.target_collection_name):
                raise ValueError("standalone_records requires a target collection id or name")
            if self.standalone_items is None:
                raise ValueError("standalone_records requires 'standaloneItems'")
        return self

    def to_suggestion(self) -> "Suggestion":
        """Convert to the tagged-union member for this kind."""
        common = {
            "title": self.title,
            "icon": self.icon,
            "description": self.description,
            "source_heading": self.source_heading,
        }
        if self.type == "collection_with_records":
            return CollectionSuggestion(
                **common,
                collection_name=self.collection_name or self.title,
                fields=self.fields or [],
                items=self.items or [],
            )
        if self.type == "graph_nodes":
            return GraphSuggestion(
                **common,
                graph_name=self.graph_name or self.title,
                style=normalize_style(self.view_style),
                nodes=self.nodes or [],
                edges=self.edges or [],
            )
        return StandaloneRecordsSuggestion(
            **common,
            target_collection_id=self.target_collection_id,
            target_collection_name=self.target_collection_name,
            items=self.standalone_items or [],
        )


class ExtractionOutput(_BoundaryModel):
    """Top-level object the provider must produce."""

    summary: str = Field(..., description="Brief one-sentence description of what was found")
    suggestions: List[RawSuggestion]


class _SuggestionBase(BaseModel):
    title: str
    icon: str = ""
    description: str = ""
    source_heading: Optional[str] = None


class CollectionSuggestion(_SuggestionBase):
    kind: Literal["collection_with_records"] = "collection_with_records"
    collection_name: str
    fields: List[RawFieldSpec] = Field(default_factory=list)
    items: List[RawItem] = Field(default_factory=list)


class GraphSuggestion(_SuggestionBase):
    kind: Literal["graph_nodes"] = "graph_nodes"
    graph_name: str
    style: ViewStyle = ViewStyle.OUTLINE
    nodes: List[RawNode] = Field(default_factory=list)
    edges: List[RawEdge] = Field(default_factory=list)


class StandaloneRecordsSuggestion(_SuggestionBase):
    kind: Literal["standalone_records"] = "standalone_records"
    target_collection_id: Optional[str] = None
    target_collection_name: Optional[str] = None
    items: List[RawStandaloneItem] = Field(default_factory=list)


Suggestion = Annotated[
    Union[CollectionSuggestion, GraphSuggestion, StandaloneRecordsSuggestion],
    Field(discriminator="kind"),
]


class SourceDocument(_BoundaryModel):
    """One raw text source supplied by the caller."""

    name: str = Field(..., min_length=1)
    content: Optional[str] = None
    summary: Optional[str] = None


class CollaboratorSelection(_BoundaryModel):
    """Which text-generation provider to use, and optionally a per-request key."""

    provider: Optional[str] = None
    model: Optional[str] = None
    credential: Optional[str] = Field(default=None, description="Per-request API key")


class ExtractionRequest(_BoundaryModel):
    """Pipeline invocation input."""

    sources: List[SourceDocument] = Field(default_factory=list)
    target_scope: TargetScope = Field(default_factory=TargetScope, alias="targetScope")
    collaborator: CollaboratorSelection = Field(
        default_factory=CollaboratorSelection, alias="collaboratorSelection"
    )
    confirm_indices: Optional[List[int]] = Field(
        default=None,
        alias="confirmIndices",
        description="Indices of suggestions to materialize; null confirms all",
    )


class MaterializeRequest(_BoundaryModel):
    """Client-confirmed suggestions to turn into durable entities."""

    suggestions: List[RawSuggestion]
    target_scope: TargetScope = Field(default_factory=TargetScope, alias="targetScope")
    summary: Optional[str] = None


__all__ = [
    "SuggestionKind",
    "BOUNDARY_VIEW_STYLES",
    "RawFieldSpec",
    "RawFieldValue",
    "RawItem",
    "RawNodeMetadata",
    "RawNode",
    "RawEdge",
    "RawStandaloneItem",
    "RawSuggestion",
    "ExtractionOutput",
    "CollectionSuggestion",
    "GraphSuggestion",
    "StandaloneRecordsSuggestion",
    "Suggestion",
    "SourceDocument",
    "CollaboratorSelection",
    "ExtractionRequest",
    "MaterializeRequest",
]
