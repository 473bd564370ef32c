"""Pydantic models for data validation and serialization."""

from .collection import Collection, CollectionCreate, FieldDefinition, FieldType, Record, RecordCreate
from .events import ExtractionEvent, SuggestionPreview
from .extraction import (
    CollectionSuggestion,
    ExtractionOutput,
    ExtractionRequest,
    GraphSuggestion,
    MaterializeRequest,
    RawSuggestion,
    SourceDocument,
    StandaloneRecordsSuggestion,
    Suggestion,
)
from .graph import Graph, GraphEdge, GraphNode, GraphScope, GraphSummary, StructuralKind, ViewStyle
from .scope import TargetScope
from .views import GraphViewResponse

__all__ = [
    "Collection",
    "CollectionCreate",
    "FieldDefinition",
    "FieldType",
    "Record",
    "RecordCreate",
    "ExtractionEvent",
    "SuggestionPreview",
    "RawSuggestion",
    "ExtractionOutput",
    "CollectionSuggestion",
    "GraphSuggestion",
    "StandaloneRecordsSuggestion",
    "Suggestion",
    "SourceDocument",
    "ExtractionRequest",
    "MaterializeRequest",
    "Graph",
    "GraphNode",
    "GraphEdge",
    "GraphScope",
    "GraphSummary",
    "StructuralKind",
    "ViewStyle",
    "TargetScope",
    "GraphViewResponse",
]
