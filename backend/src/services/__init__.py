"""Service layer for business logic and external integrations."""

from .collection_service import CollectionService, get_collection_service
from .config import AppConfig, get_config, reload_config
from .database import DatabaseService, init_database
from .errors import (
    ContextoryError,
    EntityWriteError,
    GenerationError,
    InvalidReferenceError,
    NoCredentialError,
    NotFoundError,
    SchemaViolationError,
)
from .extraction_pipeline import ExtractionPipeline, MaterializationReport, get_extraction_pipeline
from .extraction_schema import extraction_json_schema, parse_extraction, validate_extraction
from .graph_service import GraphService, get_graph_service
from .prompt_loader import PromptLoader, PromptLoaderError
from .structured_generator import StructuredGenerator, get_generator
from .view_rules import interpret

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "DatabaseService",
    "init_database",
    "ContextoryError",
    "NoCredentialError",
    "GenerationError",
    "SchemaViolationError",
    "EntityWriteError",
    "InvalidReferenceError",
    "NotFoundError",
    "CollectionService",
    "get_collection_service",
    "GraphService",
    "get_graph_service",
    "ExtractionPipeline",
    "MaterializationReport",
    "get_extraction_pipeline",
    "extraction_json_schema",
    "validate_extraction",
    "parse_extraction",
    "PromptLoader",
    "PromptLoaderError",
    "StructuredGenerator",
    "get_generator",
    "interpret",
]
